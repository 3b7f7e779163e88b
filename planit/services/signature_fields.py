"""Signature field placement on contract documents."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy.orm import Session

from planit.errors import InvalidStateError, NotFoundError, ValidationError
from planit.models.contracts import Contract, FieldType, SignatureField, SignerRole
from planit.schemas.contracts import SignatureFieldCreate, SignatureFieldUpdate
from planit.services.contracts import record_activity, touch
from planit.services.signature_workflow import ensure_editable
from planit.validators.signatures import validate_fields

__all__ = ["add_field", "update_field", "remove_field", "validate_fields"]

logger = logging.getLogger(__name__)


def _generate_field_id(contract: Contract) -> str:
    existing = {field.id for field in contract.fields}
    while True:
        candidate = f"field_{uuid.uuid4().hex[:12]}"
        if candidate not in existing:
            return candidate


def _get_field(contract: Contract, field_id: str) -> SignatureField:
    field = contract.field_by_id(field_id)
    if not field:
        raise NotFoundError(f"Signature field {field_id} not found on contract {contract.id}")
    return field


def add_field(
    db: Session,
    contract: Contract,
    field_type: FieldType,
    signer_role: SignerRole,
    placement: SignatureFieldCreate | None = None,
    actor: str | None = None,
) -> SignatureField:
    """Append a field with a fresh id and no assigned email yet."""
    ensure_editable(contract)
    try:
        field_type = FieldType(field_type)
        signer_role = SignerRole(signer_role)
    except ValueError as exc:
        raise ValidationError(f"Cannot add field: {exc}") from exc
    data = placement.model_dump(exclude={"type", "signer_role"}) if placement else {}
    next_position = max((field.position for field in contract.fields), default=-1) + 1
    field = SignatureField(
        id=_generate_field_id(contract),
        position=next_position,
        type=field_type,
        signer_role=signer_role,
        assigned_email="",
        **data,
    )
    contract.fields.append(field)
    touch(contract)
    record_activity(
        db, contract, "field_added", actor, f"{field.id} ({field.type.value}, {field.signer_role.value})"
    )
    db.commit()
    db.refresh(field)
    return field


def update_field(
    db: Session,
    contract: Contract,
    field_id: str,
    patch: SignatureFieldUpdate,
    actor: str | None = None,
) -> SignatureField:
    ensure_editable(contract)
    field = _get_field(contract, field_id)
    data = patch.model_dump(exclude_unset=True)
    new_role = data.get("signer_role")
    if new_role is not None and SignerRole(new_role) != field.signer_role:
        if contract.audit_for(field_id) is not None:
            raise InvalidStateError(
                f"Signer role of field {field_id} cannot change after it has been signed"
            )
    if "assigned_email" in data and data["assigned_email"] is not None:
        data["assigned_email"] = data["assigned_email"].strip()
    for key, value in data.items():
        if value is None and key in {"type", "signer_role", "page", "x", "y", "required", "assigned_email"}:
            continue
        setattr(field, key, value)
    touch(contract)
    record_activity(db, contract, "field_updated", actor, f"{field_id}: {', '.join(sorted(data))}")
    db.commit()
    db.refresh(field)
    return field


def remove_field(
    db: Session, contract: Contract, field_id: str, actor: str | None = None
) -> None:
    ensure_editable(contract)
    field = _get_field(contract, field_id)
    contract.fields.remove(field)
    touch(contract)
    record_activity(db, contract, "field_removed", actor, field_id)
    db.commit()
    logger.info("Removed field %s from contract %s", field_id, contract.id)
