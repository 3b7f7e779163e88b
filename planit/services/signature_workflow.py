"""Workflow state machine for electronically signed contracts.

draft -> saved -> sent -> partially_signed -> completed, with cancellation
allowed from any state that is not terminal. Transitions never go backward.
"""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from planit.errors import InvalidStateError, ValidationError
from planit.models.contracts import Contract, WorkflowStatus
from planit.services.contracts import record_activity, touch
from planit.validators.signatures import validate_fields

logger = logging.getLogger(__name__)


# Valid workflow transitions (from -> allowed to states)
VALID_TRANSITIONS: dict[WorkflowStatus, frozenset[WorkflowStatus]] = {
    WorkflowStatus.draft: frozenset({WorkflowStatus.saved, WorkflowStatus.cancelled}),
    WorkflowStatus.saved: frozenset({WorkflowStatus.sent, WorkflowStatus.cancelled}),
    WorkflowStatus.sent: frozenset(
        {WorkflowStatus.partially_signed, WorkflowStatus.completed, WorkflowStatus.cancelled}
    ),
    WorkflowStatus.partially_signed: frozenset(
        {WorkflowStatus.partially_signed, WorkflowStatus.completed, WorkflowStatus.cancelled}
    ),
    WorkflowStatus.completed: frozenset(),
    WorkflowStatus.cancelled: frozenset(),
}

TERMINAL_STATES = frozenset(
    status for status, targets in VALID_TRANSITIONS.items() if not targets
)
SIGNABLE_STATES = frozenset({WorkflowStatus.sent, WorkflowStatus.partially_signed})


def can_transition(current: WorkflowStatus, target: WorkflowStatus) -> bool:
    return target in VALID_TRANSITIONS.get(current, frozenset())


def _require_electronic(contract: Contract) -> WorkflowStatus:
    if not contract.is_electronic or contract.workflow_status is None:
        raise InvalidStateError(
            f"Contract {contract.id} is managed manually; electronic signing is not enabled"
        )
    return contract.workflow_status


def current_status(contract: Contract) -> WorkflowStatus | None:
    """Workflow state of the contract, or None for manually managed contracts."""
    if not contract.is_electronic:
        return None
    return contract.workflow_status


def _transition(contract: Contract, target: WorkflowStatus) -> WorkflowStatus:
    current = _require_electronic(contract)
    if not can_transition(current, target):
        raise InvalidStateError(
            f"Cannot move contract from '{current.value}' to '{target.value}'"
        )
    contract.workflow_status = target
    touch(contract)
    if current != target:
        logger.info("Contract %s: %s -> %s", contract.id, current.value, target.value)
    return current


def ensure_editable(contract: Contract) -> None:
    """Signature fields may only change while the contract is a draft."""
    status = _require_electronic(contract)
    if status != WorkflowStatus.draft:
        raise InvalidStateError(
            "Signature fields can only be changed while the contract is a draft "
            f"(current status: {status.value})"
        )


def ensure_signable(contract: Contract) -> None:
    """Signatures are accepted only while the contract is out for signing."""
    status = _require_electronic(contract)
    if status in SIGNABLE_STATES:
        return
    if status == WorkflowStatus.completed:
        raise InvalidStateError("Contract is already completed; signatures can no longer change")
    if status == WorkflowStatus.cancelled:
        raise InvalidStateError("Contract was cancelled and cannot be signed")
    raise InvalidStateError(
        f"Contract has not been sent for signature yet (current status: {status.value})"
    )


def enable_electronic(db: Session, contract: Contract, actor: str | None = None) -> Contract:
    """Switch a manually managed contract to electronic signing, starting in draft."""
    if contract.is_electronic:
        raise InvalidStateError("Electronic signing is already enabled for this contract")
    contract.is_electronic = True
    contract.workflow_status = WorkflowStatus.draft
    touch(contract)
    record_activity(db, contract, "electronic_enabled", actor)
    db.commit()
    db.refresh(contract)
    return contract


def save(db: Session, contract: Contract, actor: str | None = None) -> Contract:
    """Finalize the field layout (draft -> saved).

    Raises:
        ValidationError: listing every field problem; the status is unchanged
        InvalidStateError: if the contract is not a draft
    """
    ensure_editable(contract)
    issues = validate_fields(contract.fields)
    if issues:
        logger.info(
            "Contract %s could not be saved: %d validation issue(s)", contract.id, len(issues)
        )
        raise ValidationError("Signature fields are incomplete", issues)
    _transition(contract, WorkflowStatus.saved)
    record_activity(
        db, contract, "fields_saved", actor, f"{len(contract.fields)} signature field(s) defined"
    )
    db.commit()
    db.refresh(contract)
    return contract


def send(db: Session, contract: Contract, dispatched: bool, actor: str | None = None) -> Contract:
    """Mark the contract as sent to its signers (saved -> sent).

    ``dispatched`` comes from the notification service and confirms the
    signers were actually contacted.
    """
    status = _require_electronic(contract)
    if status != WorkflowStatus.saved:
        raise InvalidStateError(
            f"Only saved contracts can be sent (current status: {status.value})"
        )
    if not dispatched:
        raise ValidationError("Signers have not been notified yet; send the invitations first")
    _transition(contract, WorkflowStatus.sent)
    record_activity(db, contract, "contract_sent", actor)
    db.commit()
    db.refresh(contract)
    return contract


def cancel(db: Session, contract: Contract, actor: str | None = None) -> Contract:
    """Cancel the signing workflow. Irreversible."""
    status = _require_electronic(contract)
    if status in TERMINAL_STATES:
        raise InvalidStateError(f"Contract is already {status.value} and cannot be cancelled")
    _transition(contract, WorkflowStatus.cancelled)
    record_activity(db, contract, "contract_cancelled", actor, f"cancelled while {status.value}")
    db.commit()
    db.refresh(contract)
    return contract


def required_fields_signed(contract: Contract) -> bool:
    signed = {audit.field_id for audit in contract.audit_trail}
    return all(field.id in signed for field in contract.fields if field.required)


def reevaluate(contract: Contract) -> WorkflowStatus:
    """Recompute the state after a signature audit was added.

    Does not commit; the caller persists the audit and the new state together.
    """
    ensure_signable(contract)
    if required_fields_signed(contract):
        _transition(contract, WorkflowStatus.completed)
    else:
        _transition(contract, WorkflowStatus.partially_signed)
    return contract.workflow_status
