"""Template registry and the top-level ``parse`` entry point."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from expense_sync.parsers import grab, vib

if TYPE_CHECKING:
    from expense_sync.models import TransactionRecord
    from expense_sync.parsers.base import EmailTemplate

logger = logging.getLogger(__name__)

TEMPLATES: dict[str, EmailTemplate] = {
    vib.TEMPLATE.template_id.upper(): vib.TEMPLATE,
    grab.TEMPLATE.template_id.upper(): grab.TEMPLATE,
}


def register_template(template: EmailTemplate) -> None:
    """Add a template to the registry. Template ids are case-insensitive."""
    key = template.template_id.upper()
    if key in TEMPLATES:
        msg = f"Template {template.template_id!r} is already registered"
        raise ValueError(msg)
    TEMPLATES[key] = template


def get_template(template_id: str) -> EmailTemplate | None:
    """Look up a template by id, or None when unknown."""
    return TEMPLATES.get(template_id.upper())


def template_for_sender(address: str) -> EmailTemplate | None:
    """Return the template that handles mail from ``address``."""
    address = address.strip().lower()
    for template in TEMPLATES.values():
        if address in template.senders:
            return template
    return None


def parse(template_id: str, subject: str, body: str) -> TransactionRecord | None:
    """Extract a transaction from one email using the named template.

    Returns None for unknown templates, pending orders and any email missing
    an amount, merchant or timestamp. Never raises for malformed input.
    """
    if not isinstance(subject, str) or not isinstance(body, str):
        return None
    template = get_template(template_id) if isinstance(template_id, str) else None
    if template is None:
        logger.warning("Unknown email template %r", template_id)
        return None

    try:
        return template.extract(subject, body)
    except Exception:
        logger.warning(
            "Template %s failed on %r", template.template_id, subject, exc_info=True
        )
        return None
