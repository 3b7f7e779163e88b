"""Validation policies for signature fields and signature audits.

Every function returns the complete list of problems found so callers can
surface all of them at once.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from email_validator import EmailNotValidError, validate_email

from planit.models.contracts import SignerRole

KNOWN_SIGNER_ROLES = frozenset(role.value for role in SignerRole)


def _get(payload, key):
    if isinstance(payload, dict):
        return payload.get(key)
    return getattr(payload, key, None)


def _value(item: Any) -> Any:
    return getattr(item, "value", item)


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def email_problem(email: str | None) -> str | None:
    """Return why ``email`` is unusable, or None if it is fine."""
    if _blank(email):
        return "an assigned email is required"
    try:
        validate_email(email.strip(), check_deliverability=False)
    except EmailNotValidError as exc:
        return f"assigned email '{email}' is invalid ({exc})"
    return None


def validate_field(field) -> list[str]:
    field_id = _get(field, "id")
    label = _get(field, "label")
    name = f"Field '{field_id}'" + (f" ({label})" if label else "")
    issues: list[str] = []

    problem = email_problem(_get(field, "assigned_email"))
    if problem:
        issues.append(f"{name}: {problem}")

    role = _value(_get(field, "signer_role"))
    if role not in KNOWN_SIGNER_ROLES:
        allowed = ", ".join(sorted(KNOWN_SIGNER_ROLES))
        issues.append(f"{name}: unknown signer role '{role}' (expected one of {allowed})")
    return issues


def validate_fields(fields: Iterable) -> list[str]:
    """Policy checked before a draft contract may be saved."""
    fields = list(fields)
    if not fields:
        return ["Contract needs at least one signature field"]
    issues: list[str] = []
    for field in fields:
        issues.extend(validate_field(field))
    return issues


def validate_signature_audit(payload) -> list[str]:
    """Check a candidate audit record before it is persisted."""
    if payload is None:
        return ["Signature data is missing"]
    issues: list[str] = []
    if _blank(_get(payload, "signature_url")) and _blank(_get(payload, "signature_data")):
        issues.append("No signature image data found")
    if _blank(_get(payload, "signer_name")):
        issues.append("Signer name is required")
    if _blank(_get(payload, "signer_email")):
        issues.append("Signer email is required")
    if not _get(payload, "signed_at"):
        issues.append("Signature timestamp is missing")
    return issues
