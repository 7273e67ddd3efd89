"""Adapter configuration objects and loading."""

from __future__ import annotations

import codecs
from enum import Enum
from typing import TYPE_CHECKING, Any, Mapping
from xml.etree import ElementTree as ET

import msgspec

from .exceptions import ConfigurationError
from .observability import ObservabilityConfig
from .serialization import json_decode

if TYPE_CHECKING:  # pragma: no cover - used for typing only
    from .client import FrejaClient, TransportCallable


class Environment(str, Enum):
    TESTING = "testing"
    PRODUCTION = "production"


class IdType(str, Enum):
    EMAIL = "EMAIL"
    SSN = "SSN"
    PHONE = "PHONE"
    INFERRED = "INFERRED"


class RegistrationLevel(str, Enum):
    BASIC = "BASIC"
    EXTENDED = "EXTENDED"
    PLUS = "PLUS"


DEFAULT_ENDPOINTS: Mapping[Environment, str] = {
    Environment.TESTING: "https://services.test.frejaeid.com",
    Environment.PRODUCTION: "https://services.prod.frejaeid.com",
}


class FrejaConfig(msgspec.Struct, frozen=True):
    """Typed configuration for the Freja eID binding and its login pages."""

    environment: Environment = Environment.TESTING
    endpoint: str | None = None
    ca_cert: str | None = None
    client_cert: str | None = None
    password: str | None = None
    id_type: IdType = IdType.EMAIL
    attribute_list: str = "EMAIL_ADDRESS"
    minimum_level: RegistrationLevel = RegistrationLevel.BASIC
    default_country: str = "SE"
    timeout: float = 10.0
    company_name: str = ""
    support_email: str = ""
    observability: ObservabilityConfig = ObservabilityConfig()

    @property
    def resolved_endpoint(self) -> str:
        """Return the configured endpoint or the environment's default service URL."""

        return (self.endpoint or DEFAULT_ENDPOINTS[self.environment]).rstrip("/")

    @property
    def attributes(self) -> tuple[str, ...]:
        return tuple(item.strip().upper() for item in self.attribute_list.split(",") if item.strip())


_XML_FIELDS = {
    "endpoint": "endpoint",
    "ca_cert": "ca_cert",
    "client_cert": "client_cert",
    "password": "password",
    "id_type": "id_type",
    "attribute_list": "attribute_list",
    "minimum_level": "minimum_level",
    "default_country": "default_country",
    "enviroment": "environment",
    "environment": "environment",
    "companyname": "company_name",
    "company_name": "company_name",
    "supportemail": "support_email",
    "support_email": "support_email",
    "timeout": "timeout",
}


def load_config(data: bytes | str | None) -> FrejaConfig:
    """Decode adapter configuration from the host's stored document.

    The host stores either the XML document produced by its management
    tooling or a JSON object. An absent document selects the testing
    environment with every other setting at its default.
    """

    if data is None:
        return FrejaConfig()
    raw = data.encode() if isinstance(data, str) else bytes(data)
    raw = raw.removeprefix(codecs.BOM_UTF8)
    if not raw.strip():
        return FrejaConfig()
    try:
        if raw.lstrip().startswith(b"<"):
            fields = _xml_fields(raw)
        else:
            document = json_decode(raw)
            if not isinstance(document, dict):
                raise ConfigurationError("configuration document must be an object")
            fields = {_XML_FIELDS.get(key.lower(), key): value for key, value in document.items()}
        return msgspec.convert(_normalize(fields), FrejaConfig, strict=False)
    except (ET.ParseError, msgspec.DecodeError, msgspec.ValidationError, UnicodeDecodeError, ConfigurationError) as exc:
        raise ConfigurationError("Invalid configuration data.") from exc


def build_client(config: FrejaConfig, *, transport: TransportCallable | None = None) -> FrejaClient:
    """Construct the process-wide e-ID client for ``config``."""

    from .client import FrejaClient

    return FrejaClient(config, transport=transport)


def _xml_fields(raw: bytes) -> dict[str, Any]:
    root = ET.fromstring(raw)
    fields: dict[str, Any] = {}
    for element in root:
        tag = element.tag.rsplit("}", 1)[-1].lower()
        name = _XML_FIELDS.get(tag)
        if name is None:
            continue
        text = (element.text or "").strip()
        if text:
            fields[name] = text
    return fields


def _normalize(fields: dict[str, Any]) -> dict[str, Any]:
    normalized = dict(fields)
    environment = normalized.get("environment")
    if isinstance(environment, str):
        normalized["environment"] = environment.strip().lower()
    for key in ("id_type", "minimum_level", "default_country"):
        value = normalized.get(key)
        if isinstance(value, str):
            normalized[key] = value.strip().upper()
    return normalized


__all__ = [
    "DEFAULT_ENDPOINTS",
    "Environment",
    "FrejaConfig",
    "IdType",
    "RegistrationLevel",
    "build_client",
    "load_config",
]
