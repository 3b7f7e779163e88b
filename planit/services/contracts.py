"""Service for the contract aggregate (creation, lookup, deletion, activity log)."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from planit.errors import NotFoundError
from planit.models.contracts import Contract, ContractActivity, WorkflowStatus
from planit.schemas.contracts import ContractCreate
from planit.services.common import apply_pagination, coerce_uuid, utcnow

logger = logging.getLogger(__name__)


def touch(contract: Contract) -> None:
    """Stamp a mutation on the contract."""
    contract.last_edited = utcnow()


def record_activity(
    db: Session,
    contract: Contract,
    action: str,
    actor: str | None = None,
    details: str | None = None,
) -> ContractActivity:
    """Append an entry to the contract's activity log (not committed)."""
    activity = ContractActivity(action=action, actor=actor, details=details)
    contract.activities.append(activity)
    db.add(activity)
    return activity


class Contracts:
    """Service for managing contract documents attached to events."""

    @staticmethod
    def create(db: Session, payload: ContractCreate, actor: str | None = None) -> Contract:
        """Attach a contract document to an event.

        Electronic contracts start in ``draft``; manual ones carry no
        workflow status.
        """
        data = payload.model_dump()
        contract = Contract(**data)
        contract.workflow_status = WorkflowStatus.draft if payload.is_electronic else None
        touch(contract)
        db.add(contract)
        record_activity(db, contract, "contract_created", actor, payload.file_name)
        db.commit()
        db.refresh(contract)
        logger.info("Contract %s created for event %s", contract.id, contract.event_id)
        return contract

    @staticmethod
    def get(db: Session, contract_id) -> Contract:
        """Get a contract by ID.

        Raises:
            NotFoundError: If the contract does not exist
        """
        try:
            key = coerce_uuid(contract_id)
        except ValueError as exc:
            raise NotFoundError(f"Contract {contract_id} not found") from exc
        contract = db.get(Contract, key)
        if not contract:
            raise NotFoundError(f"Contract {contract_id} not found")
        return contract

    @staticmethod
    def list_for_event(
        db: Session, event_id: str, limit: int = 100, offset: int = 0
    ) -> list[Contract]:
        query = (
            db.query(Contract)
            .filter(Contract.event_id == event_id)
            .order_by(Contract.created_at.desc())
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def list_activities(db: Session, contract_id) -> list[ContractActivity]:
        contract = Contracts.get(db, contract_id)
        return list(contract.activities)

    @staticmethod
    def delete(db: Session, contract_id, actor: str | None = None) -> None:
        """Delete a contract together with its fields, audits and activity log."""
        contract = Contracts.get(db, contract_id)
        file_name = contract.file_name
        audit_count = len(contract.audit_trail)
        db.delete(contract)
        db.commit()
        logger.info(
            "Contract %s (%s) deleted by %s; %d signature audit(s) removed",
            contract_id,
            file_name,
            actor or "unknown",
            audit_count,
        )


contracts = Contracts()
