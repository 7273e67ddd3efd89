"""Render view descriptors into the HTML fragments shown on the host's MFA page."""

from __future__ import annotations

from typing import Any, Mapping

from jinja2 import Environment, PackageLoader, select_autoescape

from .models import AuthView, ErrorView

DEFAULT_LOCALE = "en-US"

STRINGS: Mapping[str, Mapping[str, str]] = {
    "en-US": {
        "page_title": "Freja eID",
        "admin_name": "Freja eID authentication",
        "description": "Verify your identity with the Freja eID app.",
        "friendly_name": "Freja eID",
        "auth_heading": "Approve the sign-in in Freja eID",
        "auth_instructions": "Open the Freja eID app and approve the request, or scan the QR code with your phone.",
        "status_label": "Status",
        "continue_button": "Continue",
        "error_heading": "Authentication failed",
        "support_text": "If the problem persists, contact",
    },
    "sv-SE": {
        "page_title": "Freja eID",
        "admin_name": "Freja eID-autentisering",
        "description": "Bekräfta din identitet med appen Freja eID.",
        "friendly_name": "Freja eID",
        "auth_heading": "Godkänn inloggningen i Freja eID",
        "auth_instructions": "Öppna appen Freja eID och godkänn begäran, eller skanna QR-koden med din telefon.",
        "status_label": "Status",
        "continue_button": "Fortsätt",
        "error_heading": "Autentiseringen misslyckades",
        "support_text": "Om problemet kvarstår, kontakta",
    },
}

AVAILABLE_LOCALES: tuple[str, ...] = tuple(STRINGS)

_ENV: Environment | None = None


def _get_env() -> Environment:
    global _ENV
    if _ENV is None:
        _ENV = Environment(
            loader=PackageLoader("frejagate", "templates"),
            autoescape=select_autoescape(["html", "xml", "jinja"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )
    return _ENV


def strings_for(locale: str | None) -> Mapping[str, str]:
    """Return the string table for ``locale``, falling back by language, then to English."""

    if locale in STRINGS:
        return STRINGS[locale]
    if locale:
        language = locale.split("-", 1)[0].lower()
        for candidate, table in STRINGS.items():
            if candidate.split("-", 1)[0].lower() == language:
                return table
    return STRINGS[DEFAULT_LOCALE]


class Renderer:
    """Render views with the organization details from configuration."""

    def __init__(self, *, company_name: str = "", support_email: str = "") -> None:
        self.company_name = company_name
        self.support_email = support_email

    def page_title(self, locale: str | None = None) -> str:
        return strings_for(locale)["page_title"]

    def form_html(self, view: AuthView | ErrorView, locale: str | None = None) -> str:
        context: dict[str, Any] = {
            "strings": strings_for(locale),
            "company_name": self.company_name,
            "support_email": self.support_email,
        }
        if isinstance(view, ErrorView):
            return _get_env().get_template("error_form.html.jinja").render(error=view.message, **context)
        return _get_env().get_template("auth_form.html.jinja").render(
            code=view.code,
            status=view.status,
            qr_data=view.qr_payload,
            **context,
        )

    def form_pre_render_html(self, locale: str | None = None) -> str:
        return ""


__all__ = ["AVAILABLE_LOCALES", "DEFAULT_LOCALE", "STRINGS", "Renderer", "strings_for"]
