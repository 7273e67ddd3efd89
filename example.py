"""Walk one authentication ceremony through the adapter the way a host would.

Run ``uv run example.py`` to drive a simulated Freja eID service: the script
begins a ceremony, then polls it until the service reports completion,
printing each form the host would render along the way. Set
``FREJA_CONFIG`` to the path of an adapter configuration document to load it
instead of the testing defaults; the simulated service is still used, so no
certificates or network access are required.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from frejagate import (
    AssertionHandle,
    AssertionStatus,
    AuthenticationAdapter,
    Claim,
    ErrorView,
    FrejaGateError,
    SimulatedAssertionClient,
    load_config,
)
from frejagate.models import UPN_CLAIM_TYPE


def _config_document() -> bytes | None:
    """Return the configuration document named by ``FREJA_CONFIG`` if set."""

    path = os.getenv("FREJA_CONFIG")
    if not path:
        return None
    return Path(path).read_bytes()


def create_adapter() -> AuthenticationAdapter:
    client = SimulatedAssertionClient(
        polls=[
            AssertionHandle(status=AssertionStatus.PENDING, reference="req-simulated", code="started"),
            AssertionHandle(status=AssertionStatus.PENDING, reference="req-simulated", code="delivered_to_mobile"),
            AssertionHandle(status=AssertionStatus.COMPLETED, code="approved"),
        ]
    )
    return AuthenticationAdapter(client=client, config=load_config(_config_document()))


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    adapter = create_adapter()
    context: dict[str, object] = {}
    identity = Claim(type=UPN_CLAIM_TYPE, value=os.getenv("FREJA_SUBJECT", "alice@example.com"))

    try:
        presentation = adapter.begin_authentication(identity, context)
        print(presentation.form_html("en-US"))
        while True:
            presentation, claims = adapter.try_end_authentication(context)
            if presentation is None:
                print("authenticated:", [claim.value for claim in claims])
                return
            print(presentation.form_html("en-US"))
            if isinstance(presentation.view, ErrorView):
                return
    except FrejaGateError as exc:
        print(adapter.on_error(exc).form_html("en-US"))


if __name__ == "__main__":
    main()
