"""Template rendering for lifecycle notifications.

Templates use ``${var}`` placeholders. Nested payload keys are flattened
with underscores, so ``party.email`` is available as ``${party_email}``.
"""

from __future__ import annotations

from string import Template
from typing import Any

from ..requests.types import Request


class TemplateError(Exception):
    """Raised when a template is unknown or a placeholder has no value."""
    pass


DEFAULT_TEMPLATES: dict[str, str] = {
    "employee_request_invitation": (
        "Dear ${party_first_name} ${party_last_name}, you have been invited to join "
        "as ${position}. Request ${request_id} is awaiting your confirmation."
    ),
    "employee_created_notification": (
        "Dear ${party_first_name} ${party_last_name}, your employee request ${request_id} "
        "has been approved. Your employee record is ${entity_id}."
    ),
    "employee_request_rejected": (
        "Dear ${party_first_name} ${party_last_name}, your employee request ${request_id} "
        "has been rejected."
    ),
    "legal_entity_registered": (
        "Legal entity ${name} (${edrpou}) has been registered under id ${entity_id}."
    ),
    "legal_entity_rejected": (
        "Registration request ${request_id} for legal entity ${name} (${edrpou}) has been rejected."
    ),
}


def flatten(data: dict[str, Any], prefix: str = "") -> dict[str, str]:
    """Flatten nested dicts into ``a_b_c`` keys with string values."""
    flat: dict[str, str] = {}
    for key, value in data.items():
        name = f"{prefix}_{key}" if prefix else str(key)
        if isinstance(value, dict):
            flat.update(flatten(value, name))
        elif value is None:
            flat[name] = ""
        else:
            flat[name] = str(value)
    return flat


def request_context(request: Request, extra: dict[str, Any] | None = None) -> dict[str, str]:
    """Build the substitution context for a request."""
    context = flatten(request.data)
    context.update({
        "request_id": request.id,
        "request_kind": request.kind,
        "request_status": request.status.value,
    })
    if extra:
        context.update(flatten(extra))
    return context


class TemplateRenderer:
    """Render notification templates with strict placeholder rules."""

    def __init__(self, templates: dict[str, str] | None = None) -> None:
        self.templates = dict(DEFAULT_TEMPLATES)
        if templates:
            self.templates.update(templates)

    def render(self, template_id: str, context: dict[str, Any]) -> str:
        """
        Render a template.

        Raises:
            TemplateError: If the template is unknown or a variable is missing
        """
        source = self.templates.get(template_id)
        if source is None:
            raise TemplateError(f"Unknown template: {template_id}")
        try:
            return Template(source).substitute(context)
        except KeyError as exc:
            raise TemplateError(f"Missing template variable {exc} in {template_id}") from exc
        except ValueError as exc:
            raise TemplateError(f"Malformed template {template_id}: {exc}") from exc
