"""Freja eID remote assertion client."""

from __future__ import annotations

import os
import ssl
import tempfile
import urllib.error
import urllib.request
from pathlib import Path
from typing import Any, Callable, Mapping, Protocol
from urllib.parse import quote, urlparse

import msgspec
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs12

from .config import FrejaConfig, IdType
from .exceptions import ConfigurationError, RemoteServiceError
from .models import AssertionHandle, AssertionStatus
from .serialization import b64_json, json_decode

TransportCallable = Callable[[str, bytes, Mapping[str, str]], tuple[int, bytes]]

INIT_AUTH_PATH = "/authentication/1.0/initAuthentication"
GET_ONE_RESULT_PATH = "/authentication/1.0/getOneResult"
AUTOSTART_URL = "frejaeid://bindUserToTransaction?transactionReference={reference}"

_PENDING_STATUSES = frozenset({"STARTED", "DELIVERED_TO_MOBILE"})
_CANCELLED_STATUSES = frozenset({"CANCELED", "RP_CANCELED", "EXPIRED", "REJECTED"})
_PKCS12_SUFFIXES = frozenset({".pfx", ".p12"})


class AssertionClient(Protocol):
    """Contract the ceremony core requires of the remote service binding.

    Implementations are constructed once per process and must tolerate
    concurrent calls from unrelated ceremonies.
    """

    def initiate_request(self, subject_id: str) -> AssertionHandle:  # pragma: no cover - protocol
        ...

    def poll_request(self, reference: str) -> AssertionHandle:  # pragma: no cover - protocol
        ...


class FrejaClient:
    """Start and poll Freja eID authentication requests over the REST API."""

    def __init__(self, config: FrejaConfig, *, transport: TransportCallable | None = None) -> None:
        self.config = config
        endpoint = config.resolved_endpoint
        parsed = urlparse(endpoint)
        if (parsed.scheme or "").lower() != "https":
            raise ConfigurationError("Freja eID endpoint must use HTTPS")
        if not parsed.hostname:
            raise ConfigurationError("Freja eID endpoint must include a host")
        self._endpoint = endpoint
        self._transport = transport or HttpsTransport(config)

    def initiate_request(self, subject_id: str) -> AssertionHandle:
        payload = {
            "userInfoType": self.config.id_type.value,
            "userInfo": self._user_info(subject_id),
            "minRegistrationLevel": self.config.minimum_level.value,
            "attributesToReturn": [{"attribute": name} for name in self.config.attributes],
        }
        document = self._call(INIT_AUTH_PATH, "initAuthRequest", payload)
        error_code = _remote_error_code(document)
        if error_code is not None:
            return AssertionHandle(status=AssertionStatus.ERROR, error_code=error_code, raw_status="ERROR")
        reference = document.get("authRef")
        if not isinstance(reference, str) or not reference:
            raise RemoteServiceError("initAuthentication response is missing authRef", detail=document)
        return AssertionHandle(
            status=AssertionStatus.INITIALIZED,
            reference=reference,
            code="started",
            qr_payload=autostart_url(reference),
            raw_status="STARTED",
        )

    def poll_request(self, reference: str) -> AssertionHandle:
        document = self._call(GET_ONE_RESULT_PATH, "getOneAuthResultRequest", {"authRef": reference})
        error_code = _remote_error_code(document)
        if error_code is not None:
            return AssertionHandle(status=AssertionStatus.ERROR, error_code=error_code, raw_status="ERROR")
        raw_status = document.get("status")
        if not isinstance(raw_status, str) or not raw_status:
            raise RemoteServiceError("getOneResult response is missing status", detail=document)
        remote = raw_status.upper()
        code = remote.lower()
        if remote in _PENDING_STATUSES:
            return AssertionHandle(
                status=AssertionStatus.PENDING,
                reference=reference,
                code=code,
                qr_payload=autostart_url(reference),
                raw_status=raw_status,
            )
        if remote == "APPROVED":
            return AssertionHandle(status=AssertionStatus.COMPLETED, code=code, raw_status=raw_status)
        if remote in _CANCELLED_STATUSES:
            return AssertionHandle(
                status=AssertionStatus.CANCELLED,
                code=code,
                error_code=code,
                raw_status=raw_status,
            )
        return AssertionHandle(status=AssertionStatus.UNKNOWN, reference=reference, code=code, raw_status=raw_status)

    def _user_info(self, subject_id: str) -> str:
        if self.config.id_type is IdType.SSN:
            return b64_json({"country": self.config.default_country, "ssn": subject_id})
        if self.config.id_type is IdType.INFERRED:
            return "N/A"
        return subject_id

    def _call(self, path: str, field: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        url = f"{self._endpoint}{path}"
        body = f"{field}={b64_json(payload)}".encode("ascii")
        # Freja eID expects a JSON content type even though the body is field=base64.
        headers = {"content-type": "application/json; charset=utf-8", "accept": "application/json"}
        status, raw = self._transport(url, body, headers)
        try:
            document = json_decode(raw) if raw.strip() else {}
        except msgspec.DecodeError as exc:
            raise RemoteServiceError(f"Freja eID returned invalid JSON from {path}", status=status) from exc
        if not isinstance(document, dict):
            raise RemoteServiceError(f"Freja eID returned an unexpected document from {path}", status=status)
        if status >= 400 and _remote_error_code(document) is None:
            raise RemoteServiceError(
                f"Freja eID {path} failed with status {status}",
                status=status,
                detail=document,
            )
        return document


def autostart_url(reference: str) -> str:
    return AUTOSTART_URL.format(reference=quote(reference, safe=""))


def _remote_error_code(document: Mapping[str, Any]) -> str | None:
    code = document.get("code")
    if code is None or code == "":
        return None
    return str(code)


class _RefuseRedirects(urllib.request.HTTPRedirectHandler):
    def redirect_request(self, req, fp, code, msg, headers, newurl):  # type: ignore[override]
        raise RemoteServiceError(f"Freja eID redirected to '{newurl}', which is not supported", status=code)


class HttpsTransport:
    """Mutually authenticated HTTPS transport built from adapter configuration."""

    def __init__(self, config: FrejaConfig) -> None:
        self.timeout = config.timeout
        self._context = build_ssl_context(config)

    def __call__(self, url: str, body: bytes, headers: Mapping[str, str]) -> tuple[int, bytes]:
        request = urllib.request.Request(url, data=body, headers=dict(headers), method="POST")
        opener = urllib.request.build_opener(_RefuseRedirects(), urllib.request.HTTPSHandler(context=self._context))
        try:
            with opener.open(request, timeout=self.timeout) as response:
                status = getattr(response, "status", None) or response.getcode()
                return status, response.read()
        except urllib.error.HTTPError as exc:
            return exc.code, exc.read()
        except urllib.error.URLError as exc:  # pragma: no cover - depends on network I/O
            raise RemoteServiceError(f"Failed to reach Freja eID at {url!r}: {exc.reason}") from exc
        except OSError as exc:  # pragma: no cover - depends on network I/O
            raise RemoteServiceError(f"Freja eID request to {url!r} failed: {exc}") from exc


def build_ssl_context(config: FrejaConfig) -> ssl.SSLContext:
    """Return a TLS context trusting ``ca_cert`` and presenting the client certificate."""

    try:
        context = ssl.create_default_context(cafile=config.ca_cert or None)
    except (OSError, ssl.SSLError) as exc:
        raise ConfigurationError(f"Unable to load CA certificate {config.ca_cert!r}") from exc
    if config.client_cert:
        _load_client_certificate(context, Path(config.client_cert), config.password)
    return context


def _load_client_certificate(context: ssl.SSLContext, path: Path, password: str | None) -> None:
    try:
        if path.suffix.lower() in _PKCS12_SUFFIXES:
            with tempfile.TemporaryDirectory() as workdir:
                pem_path = os.path.join(workdir, "client.pem")
                with open(pem_path, "wb") as handle:
                    handle.write(_pkcs12_to_pem(path.read_bytes(), password))
                context.load_cert_chain(pem_path, password=password)
        else:
            context.load_cert_chain(str(path), password=password)
    except (OSError, ValueError, ssl.SSLError) as exc:
        raise ConfigurationError(f"Unable to load client certificate {str(path)!r}") from exc


def _pkcs12_to_pem(data: bytes, password: str | None) -> bytes:
    secret = password.encode() if password else None
    key, certificate, additional = pkcs12.load_key_and_certificates(data, secret)
    if key is None or certificate is None:
        raise ValueError("PKCS#12 bundle must contain a private key and a certificate")
    encryption = (
        serialization.BestAvailableEncryption(secret) if secret else serialization.NoEncryption()
    )
    chunks = [
        key.private_bytes(serialization.Encoding.PEM, serialization.PrivateFormat.PKCS8, encryption),
        certificate.public_bytes(serialization.Encoding.PEM),
    ]
    chunks.extend(extra.public_bytes(serialization.Encoding.PEM) for extra in additional or ())
    return b"".join(chunks)


__all__ = [
    "AUTOSTART_URL",
    "GET_ONE_RESULT_PATH",
    "INIT_AUTH_PATH",
    "AssertionClient",
    "FrejaClient",
    "HttpsTransport",
    "TransportCallable",
    "autostart_url",
    "build_ssl_context",
]
