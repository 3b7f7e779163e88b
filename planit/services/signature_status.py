"""Derived signing status for contracts. Pure functions, no database access."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import NamedTuple

from planit.models.contracts import Contract, SignatureField, SignerRole, WorkflowStatus


class StatusDisplay(NamedTuple):
    label: str
    severity: str


STATUS_DISPLAY: dict[WorkflowStatus | None, StatusDisplay] = {
    WorkflowStatus.draft: StatusDisplay("Draft", "draft"),
    WorkflowStatus.saved: StatusDisplay("Ready to Send", "ready"),
    WorkflowStatus.sent: StatusDisplay("Pending Signature", "pending"),
    WorkflowStatus.partially_signed: StatusDisplay("Partially Signed", "partial"),
    WorkflowStatus.completed: StatusDisplay("Signed", "completed"),
    WorkflowStatus.cancelled: StatusDisplay("Cancelled", "cancelled"),
    # Manually managed contracts
    None: StatusDisplay("Active", "active"),
}

PENDING_STATES = frozenset({WorkflowStatus.sent, WorkflowStatus.partially_signed})


@dataclass
class Signer:
    email: str
    role: SignerRole
    field_ids: list[str] = field(default_factory=list)
    signed: bool = True


@dataclass(frozen=True)
class ContractSummary:
    total: int
    pending: int
    signed: int


def _signed_field_ids(contract: Contract) -> set[str]:
    return {audit.field_id for audit in contract.audit_trail}


def is_field_signed(contract: Contract, field: SignatureField | str) -> bool:
    field_id = field if isinstance(field, str) else field.id
    return field_id in _signed_field_ids(contract)


def is_contract_signed_by_role(contract: Contract, role: SignerRole | str) -> bool:
    """True when every field assigned to ``role`` has an audit record.

    A role with no fields counts as signed.
    """
    role = SignerRole(role)
    signed = _signed_field_ids(contract)
    return all(f.id in signed for f in contract.fields if f.signer_role == role)


def signed_by_role(contract: Contract) -> dict[str, bool]:
    return {role.value: is_contract_signed_by_role(contract, role) for role in SignerRole}


def status_display(workflow_status: WorkflowStatus | str | None) -> StatusDisplay:
    if workflow_status is not None:
        workflow_status = WorkflowStatus(workflow_status)
    return STATUS_DISPLAY[workflow_status]


def contract_status_display(contract: Contract) -> StatusDisplay:
    return status_display(contract.workflow_status if contract.is_electronic else None)


def list_signers(contract: Contract) -> list[Signer]:
    """One entry per assigned email, in field order.

    Fields without an assigned email are skipped. A signer keeps the role
    of the first field they were assigned to.
    """
    signed = _signed_field_ids(contract)
    signers: dict[str, Signer] = {}
    for f in contract.fields:
        email = (f.assigned_email or "").strip()
        if not email:
            continue
        key = email.lower()
        signer = signers.get(key)
        if signer is None:
            signer = signers[key] = Signer(email=email, role=f.signer_role)
        signer.field_ids.append(f.id)
        if f.id not in signed:
            signer.signed = False
    return list(signers.values())


def summarize(contracts: Iterable[Contract]) -> ContractSummary:
    """Counts shown above an event's contract list."""
    total = pending = signed = 0
    for contract in contracts:
        total += 1
        if not contract.is_electronic:
            continue
        if contract.workflow_status in PENDING_STATES:
            pending += 1
        has_client_fields = any(f.signer_role == SignerRole.client for f in contract.fields)
        if has_client_fields and is_contract_signed_by_role(contract, SignerRole.client):
            signed += 1
    return ContractSummary(total=total, pending=pending, signed=signed)
