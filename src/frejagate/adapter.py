"""Host-facing multi-factor authentication adapter."""

from __future__ import annotations

from collections.abc import MutableMapping
from typing import Any

import msgspec

from .ceremony import (
    CeremonyContext,
    MappingCeremonyContext,
    PollCoordinator,
    RequestInitiator,
    load_state,
    store_state,
)
from .client import AssertionClient, TransportCallable
from .config import FrejaConfig, build_client, load_config
from .exceptions import ConfigurationError
from .models import (
    AUTHENTICATION_METHOD_CLAIM_TYPE,
    OTP_AUTHENTICATION_METHOD,
    UPN_CLAIM_TYPE,
    AuthView,
    Claim,
    ErrorView,
    Terminal,
)
from .observability import Observability
from .presentation import fault_view
from .rendering import AVAILABLE_LOCALES, Renderer, strings_for


class AdapterMetadata(msgspec.Struct, frozen=True):
    """Static description of the adapter advertised to the host."""

    authentication_methods: tuple[str, ...] = (OTP_AUTHENTICATION_METHOD,)
    available_locales: tuple[str, ...] = AVAILABLE_LOCALES
    identity_claims: tuple[str, ...] = (UPN_CLAIM_TYPE,)
    requires_identity: bool = True

    @property
    def admin_name(self) -> str:
        return strings_for(None)["admin_name"]

    @property
    def descriptions(self) -> dict[str, str]:
        return {locale: strings_for(locale)["description"] for locale in self.available_locales}

    @property
    def friendly_names(self) -> dict[str, str]:
        return {locale: strings_for(locale)["friendly_name"] for locale in self.available_locales}


class AdapterPresentation:
    """A view bound to the renderer that turns it into page fragments."""

    def __init__(self, view: AuthView | ErrorView, renderer: Renderer) -> None:
        self.view = view
        self.renderer = renderer

    def page_title(self, locale: str | None = None) -> str:
        return self.renderer.page_title(locale)

    def form_html(self, locale: str | None = None) -> str:
        return self.renderer.form_html(self.view, locale)

    def form_pre_render_html(self, locale: str | None = None) -> str:
        return self.renderer.form_pre_render_html(locale)


class AuthenticationAdapter:
    """Entry points the identity-federation host invokes for each ceremony.

    ``on_pipeline_load`` runs once per process and binds the remote client;
    every other entry point may be called concurrently for unrelated
    ceremonies. An ``observability`` passed to the constructor is kept across
    loads; otherwise each load builds one from the loaded configuration.
    """

    metadata = AdapterMetadata()

    def __init__(
        self,
        *,
        client: AssertionClient | None = None,
        config: FrejaConfig | None = None,
        observability: Observability | None = None,
        transport: TransportCallable | None = None,
    ) -> None:
        self.config = config or FrejaConfig()
        self._transport = transport
        self._observability = observability
        self.observability: Observability | None = None
        self.renderer = Renderer(company_name=self.config.company_name, support_email=self.config.support_email)
        self._initiator: RequestInitiator | None = None
        self._coordinator: PollCoordinator | None = None
        if client is not None:
            self._bind(client, observability or Observability(self.config.observability))

    def on_pipeline_load(self, config_data: bytes | str | None) -> None:
        config = load_config(config_data)
        client = build_client(config, transport=self._transport)
        self.config = config
        self.renderer = Renderer(company_name=config.company_name, support_email=config.support_email)
        self._bind(client, self._observability or Observability(config.observability))

    def on_pipeline_unload(self) -> None:
        return None

    def is_available_for_user(self, identity_claim: Claim, context: Any = None) -> bool:
        return True

    def begin_authentication(
        self,
        identity_claim: Claim,
        context: CeremonyContext | MutableMapping[str, Any],
    ) -> AdapterPresentation:
        initiator, _ = self._require_bound()
        state, view = initiator.begin(identity_claim.value)
        store_state(_as_context(context), state)
        return AdapterPresentation(view, self.renderer)

    def try_end_authentication(
        self,
        context: CeremonyContext | MutableMapping[str, Any] | None,
    ) -> tuple[AdapterPresentation | None, tuple[Claim, ...]]:
        """Poll once and report whether the ceremony completed.

        Returns ``(None, claims)`` on success and ``(presentation, ())``
        otherwise. Corrupted-ceremony and transport faults propagate to the
        host, which renders them through :meth:`on_error`.
        """

        _, coordinator = self._require_bound()
        state = load_state(_as_context(context) if context is not None else None)
        outcome = coordinator.resume(state)
        if isinstance(outcome, Terminal):
            if outcome.success:
                return None, (Claim(type=AUTHENTICATION_METHOD_CLAIM_TYPE, value=OTP_AUTHENTICATION_METHOD),)
            assert outcome.view is not None
            return AdapterPresentation(outcome.view, self.renderer), ()
        return AdapterPresentation(outcome.view, self.renderer), ()

    def on_error(self, error: BaseException) -> AdapterPresentation:
        return AdapterPresentation(fault_view(error), self.renderer)

    def _bind(self, client: AssertionClient, observability: Observability) -> None:
        self.observability = observability
        self._initiator = RequestInitiator(client, observability=observability)
        self._coordinator = PollCoordinator(client, observability=observability)

    def _require_bound(self) -> tuple[RequestInitiator, PollCoordinator]:
        if self._initiator is None or self._coordinator is None:
            raise ConfigurationError("Adapter has not been loaded; call on_pipeline_load first")
        return self._initiator, self._coordinator


def _as_context(context: CeremonyContext | MutableMapping[str, Any]) -> CeremonyContext:
    if isinstance(context, MutableMapping):
        return MappingCeremonyContext(context)
    return context


__all__ = ["AdapterMetadata", "AdapterPresentation", "AuthenticationAdapter"]
