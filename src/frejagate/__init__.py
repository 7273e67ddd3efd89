"""Freja eID multi-factor authentication adapter for identity-federation hosts."""

from .adapter import AdapterMetadata, AdapterPresentation, AuthenticationAdapter
from .ceremony import (
    CeremonyContext,
    MappingCeremonyContext,
    PollCoordinator,
    RequestInitiator,
    load_state,
    outcome_for,
    store_state,
)
from .client import AssertionClient, FrejaClient
from .config import Environment, FrejaConfig, IdType, RegistrationLevel, build_client, load_config
from .exceptions import ConfigurationError, CorruptedCeremonyError, FrejaGateError, RemoteServiceError
from .models import (
    AssertionHandle,
    AssertionStatus,
    AuthView,
    CeremonyState,
    Claim,
    Continue,
    ErrorView,
    PollOutcome,
    PresentationView,
    Terminal,
)
from .observability import Observability, ObservabilityConfig
from .presentation import failure_view, fault_view, select_view
from .rendering import Renderer
from .testing import SimulatedAssertionClient

__all__ = [
    "AdapterMetadata",
    "AdapterPresentation",
    "AssertionClient",
    "AssertionHandle",
    "AssertionStatus",
    "AuthView",
    "AuthenticationAdapter",
    "CeremonyContext",
    "CeremonyState",
    "Claim",
    "ConfigurationError",
    "Continue",
    "CorruptedCeremonyError",
    "Environment",
    "ErrorView",
    "FrejaClient",
    "FrejaConfig",
    "FrejaGateError",
    "IdType",
    "MappingCeremonyContext",
    "Observability",
    "ObservabilityConfig",
    "PollCoordinator",
    "PollOutcome",
    "PresentationView",
    "RegistrationLevel",
    "RemoteServiceError",
    "Renderer",
    "RequestInitiator",
    "SimulatedAssertionClient",
    "Terminal",
    "build_client",
    "failure_view",
    "fault_view",
    "load_config",
    "load_state",
    "outcome_for",
    "select_view",
    "store_state",
]
