from __future__ import annotations

import base64
import io
import ssl
import urllib.error
import urllib.request
from pathlib import Path
from typing import Callable

import pytest
from cryptography.hazmat.primitives.serialization import pkcs12

import frejagate.client as client_module
from frejagate import (
    AssertionHandle,
    AssertionStatus,
    ConfigurationError,
    FrejaClient,
    FrejaConfig,
    IdType,
    RegistrationLevel,
    RemoteServiceError,
    build_client,
)
from frejagate.client import GET_ONE_RESULT_PATH, INIT_AUTH_PATH, HttpsTransport, autostart_url, build_ssl_context
from frejagate.config import Environment
from frejagate.serialization import json_decode
from tests.support import FakeTransport


def _client(transport: FakeTransport, **overrides: object) -> FrejaClient:
    return FrejaClient(FrejaConfig(**overrides), transport=transport)  # type: ignore[arg-type]


def test_initiate_request_posts_encoded_email_request() -> None:
    transport = FakeTransport()
    transport.queue_json({"authRef": "ref-123"})
    client = _client(transport, attribute_list="email_address, basic_user_info")

    handle = client.initiate_request("alice@example.com")

    assert handle == AssertionHandle(
        status=AssertionStatus.INITIALIZED,
        reference="ref-123",
        code="started",
        qr_payload="frejaeid://bindUserToTransaction?transactionReference=ref-123",
        raw_status="STARTED",
    )
    call = transport.calls[0]
    assert call.url == "https://services.test.frejaeid.com" + INIT_AUTH_PATH
    assert call.field() == "initAuthRequest"
    assert call.headers["content-type"] == "application/json; charset=utf-8"
    assert call.headers["accept"] == "application/json"
    assert call.payload() == {
        "userInfoType": "EMAIL",
        "userInfo": "alice@example.com",
        "minRegistrationLevel": "BASIC",
        "attributesToReturn": [{"attribute": "EMAIL_ADDRESS"}, {"attribute": "BASIC_USER_INFO"}],
    }


def test_initiate_request_encodes_ssn_with_default_country() -> None:
    transport = FakeTransport()
    transport.queue_json({"authRef": "ref-ssn"})
    client = _client(
        transport,
        id_type=IdType.SSN,
        default_country="NO",
        minimum_level=RegistrationLevel.EXTENDED,
    )

    client.initiate_request("198001011234")

    payload = transport.calls[0].payload()
    assert payload["userInfoType"] == "SSN"
    assert payload["minRegistrationLevel"] == "EXTENDED"
    assert json_decode(base64.b64decode(payload["userInfo"])) == {"country": "NO", "ssn": "198001011234"}


def test_initiate_request_inferred_sends_placeholder() -> None:
    transport = FakeTransport()
    transport.queue_json({"authRef": "ref-inferred"})

    _client(transport, id_type=IdType.INFERRED).initiate_request("anyone")

    assert transport.calls[0].payload()["userInfo"] == "N/A"


def test_initiate_request_maps_remote_error_body() -> None:
    transport = FakeTransport()
    transport.queue_json({"code": 1002, "message": "Invalid userInfo"}, status=422)

    handle = _client(transport).initiate_request("nobody@example.com")

    assert handle.status is AssertionStatus.ERROR
    assert handle.error_code == "1002"
    assert handle.reference is None


def test_initiate_request_without_auth_ref_is_protocol_fault() -> None:
    transport = FakeTransport()
    transport.queue_json({"unexpected": True})

    with pytest.raises(RemoteServiceError, match="authRef"):
        _client(transport).initiate_request("alice@example.com")


@pytest.mark.parametrize(
    ("remote", "status"),
    [
        ("STARTED", AssertionStatus.PENDING),
        ("DELIVERED_TO_MOBILE", AssertionStatus.PENDING),
        ("APPROVED", AssertionStatus.COMPLETED),
        ("CANCELED", AssertionStatus.CANCELLED),
        ("RP_CANCELED", AssertionStatus.CANCELLED),
        ("EXPIRED", AssertionStatus.CANCELLED),
        ("REJECTED", AssertionStatus.CANCELLED),
        ("ON_HOLD", AssertionStatus.UNKNOWN),
    ],
)
def test_poll_request_maps_remote_status(remote: str, status: AssertionStatus) -> None:
    transport = FakeTransport()
    transport.queue_json({"authRef": "ref-123", "status": remote})

    handle = _client(transport).poll_request("ref-123")

    assert handle.status is status
    assert handle.raw_status == remote
    assert handle.code == remote.lower()
    call = transport.calls[0]
    assert call.url.endswith(GET_ONE_RESULT_PATH)
    assert call.field() == "getOneAuthResultRequest"
    assert call.payload() == {"authRef": "ref-123"}


def test_poll_request_pending_keeps_reference_and_qr_payload() -> None:
    transport = FakeTransport()
    transport.queue_json({"authRef": "ref-123", "status": "DELIVERED_TO_MOBILE"})

    handle = _client(transport).poll_request("ref-123")

    assert handle.reference == "ref-123"
    assert handle.qr_payload == autostart_url("ref-123")
    assert handle.error_code is None


def test_poll_request_cancelled_carries_error_code() -> None:
    transport = FakeTransport()
    transport.queue_json({"authRef": "ref-123", "status": "EXPIRED"})

    handle = _client(transport).poll_request("ref-123")

    assert handle.error_code == "expired"
    assert handle.reference is None


def test_poll_request_maps_remote_error_code() -> None:
    transport = FakeTransport()
    transport.queue_json({"code": 1100, "message": "Invalid reference"}, status=400)

    handle = _client(transport).poll_request("ref-123")

    assert handle == AssertionHandle(status=AssertionStatus.ERROR, error_code="1100", raw_status="ERROR")


def test_poll_request_missing_status_is_protocol_fault() -> None:
    transport = FakeTransport()
    transport.queue_json({"authRef": "ref-123"})

    with pytest.raises(RemoteServiceError, match="status"):
        _client(transport).poll_request("ref-123")


def test_invalid_json_is_protocol_fault() -> None:
    transport = FakeTransport()
    transport.queue_raw(b"<html>gateway</html>", status=502)

    with pytest.raises(RemoteServiceError) as excinfo:
        _client(transport).poll_request("ref-123")

    assert excinfo.value.status == 502


def test_http_failure_without_error_body_is_transport_fault() -> None:
    transport = FakeTransport()
    transport.queue_json({"detail": "maintenance"}, status=503)

    with pytest.raises(RemoteServiceError) as excinfo:
        _client(transport).poll_request("ref-123")

    assert excinfo.value.status == 503
    assert excinfo.value.detail == {"detail": "maintenance"}


def test_transport_errors_propagate_once() -> None:
    transport = FakeTransport()
    transport.queue_error(RemoteServiceError("Failed to reach Freja eID"))

    with pytest.raises(RemoteServiceError):
        _client(transport).poll_request("ref-123")

    assert len(transport.calls) == 1


def test_client_uses_environment_endpoint() -> None:
    transport = FakeTransport()
    transport.queue_json({"authRef": "ref-prod"})

    _client(transport, environment=Environment.PRODUCTION).initiate_request("alice@example.com")

    assert transport.calls[0].url.startswith("https://services.prod.frejaeid.com/")


def test_client_rejects_plain_http_endpoint() -> None:
    with pytest.raises(ConfigurationError):
        _client(FakeTransport(), endpoint="http://services.test.frejaeid.com")


def test_build_client_passes_transport() -> None:
    transport = FakeTransport()
    transport.queue_json({"authRef": "ref-built"})

    client = build_client(FrejaConfig(endpoint="https://freja.example.test/"), transport=transport)
    client.initiate_request("alice@example.com")

    assert transport.calls[0].url == "https://freja.example.test" + INIT_AUTH_PATH


def test_autostart_url_quotes_reference() -> None:
    assert autostart_url("a/b c") == "frejaeid://bindUserToTransaction?transactionReference=a%2Fb%20c"


def test_build_ssl_context_rejects_missing_ca(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        build_ssl_context(FrejaConfig(ca_cert=str(tmp_path / "missing.pem")))


def test_build_ssl_context_rejects_unreadable_client_cert(tmp_path: Path) -> None:
    broken = tmp_path / "client.pfx"
    broken.write_bytes(b"not a pkcs12 bundle")

    with pytest.raises(ConfigurationError):
        build_ssl_context(FrejaConfig(client_cert=str(broken), password="secret"))


def test_pkcs12_bundle_is_unpacked_for_tls(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import datetime as dt

    from cryptography import x509
    from cryptography.hazmat.primitives import hashes, serialization
    from cryptography.hazmat.primitives.asymmetric import ec
    from cryptography.x509.oid import NameOID

    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "relying-party")])
    now = dt.datetime.now(dt.timezone.utc)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - dt.timedelta(days=1))
        .not_valid_after(now + dt.timedelta(days=1))
        .sign(key, hashes.SHA256())
    )
    bundle = pkcs12.serialize_key_and_certificates(
        b"rp", key, certificate, None, serialization.BestAvailableEncryption(b"secret")
    )
    path = tmp_path / "client.p12"
    path.write_bytes(bundle)

    loaded: list[tuple[bytes, str | None]] = []

    def fake_load_cert_chain(self: ssl.SSLContext, certfile: str, keyfile: str | None = None, password: str | None = None) -> None:
        loaded.append((Path(certfile).read_bytes(), password))

    monkeypatch.setattr(ssl.SSLContext, "load_cert_chain", fake_load_cert_chain)

    build_ssl_context(FrejaConfig(client_cert=str(path), password="secret"))

    pem, password = loaded[0]
    assert password == "secret"
    assert b"BEGIN ENCRYPTED PRIVATE KEY" in pem
    assert b"BEGIN CERTIFICATE" in pem


def test_pkcs12_to_pem_requires_key_and_certificate() -> None:
    with pytest.raises(ValueError):
        client_module._pkcs12_to_pem(b"garbage", None)


class _StubResponse:
    def __init__(self, status: int, body: bytes) -> None:
        self.status = status
        self._body = body

    def __enter__(self) -> "_StubResponse":
        return self

    def __exit__(self, *exc_info: object) -> None:
        return None

    def read(self) -> bytes:
        return self._body


class _StubOpener:
    def __init__(self, handlers: tuple[object, ...], respond: Callable[..., _StubResponse]) -> None:
        self.handlers = handlers
        self.requests: list[tuple[urllib.request.Request, float | None]] = []
        self._respond = respond

    def open(self, request: urllib.request.Request, timeout: float | None = None) -> _StubResponse:
        self.requests.append((request, timeout))
        return self._respond(self, request)


def _install_opener(
    monkeypatch: pytest.MonkeyPatch, respond: Callable[..., _StubResponse]
) -> list[_StubOpener]:
    built: list[_StubOpener] = []

    def fake_build_opener(*handlers: object) -> _StubOpener:
        opener = _StubOpener(handlers, respond)
        built.append(opener)
        return opener

    monkeypatch.setattr(client_module.urllib.request, "build_opener", fake_build_opener)
    return built


def test_https_transport_posts_body_and_returns_response(monkeypatch: pytest.MonkeyPatch) -> None:
    openers = _install_opener(monkeypatch, lambda opener, request: _StubResponse(200, b'{"authRef": "ref-1"}'))
    transport = HttpsTransport(FrejaConfig(timeout=3.5))

    status, body = transport(
        "https://services.test.frejaeid.com" + INIT_AUTH_PATH,
        b"initAuthRequest=e30=",
        {"content-type": "application/json; charset=utf-8"},
    )

    assert (status, body) == (200, b'{"authRef": "ref-1"}')
    request, timeout = openers[0].requests[0]
    assert timeout == 3.5
    assert request.get_method() == "POST"
    assert request.data == b"initAuthRequest=e30="
    assert request.get_header("Content-type") == "application/json; charset=utf-8"
    assert isinstance(openers[0].handlers[0], client_module._RefuseRedirects)


def test_https_transport_refuses_redirects(monkeypatch: pytest.MonkeyPatch) -> None:
    def redirect(opener: _StubOpener, request: urllib.request.Request) -> _StubResponse:
        handler = opener.handlers[0]
        return handler.redirect_request(request, None, 302, "Found", {}, "https://elsewhere.example/")  # type: ignore[attr-defined]

    _install_opener(monkeypatch, redirect)
    transport = HttpsTransport(FrejaConfig())

    with pytest.raises(RemoteServiceError, match="elsewhere.example") as excinfo:
        transport("https://services.test.frejaeid.com" + GET_ONE_RESULT_PATH, b"x=1", {})

    assert excinfo.value.status == 302


def test_https_transport_returns_http_error_body(monkeypatch: pytest.MonkeyPatch) -> None:
    def reject(opener: _StubOpener, request: urllib.request.Request) -> _StubResponse:
        raise urllib.error.HTTPError(request.full_url, 400, "Bad Request", None, io.BytesIO(b'{"code": 1100}'))  # type: ignore[arg-type]

    _install_opener(monkeypatch, reject)

    status, body = HttpsTransport(FrejaConfig())("https://services.test.frejaeid.com" + INIT_AUTH_PATH, b"x=1", {})

    assert status == 400
    assert json_decode(body) == {"code": 1100}
