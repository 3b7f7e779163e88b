from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session

from planit.api.deps import actor_of, get_db, get_optional_identity, get_signer_identity
from planit.models.contracts import Contract
from planit.schemas.contracts import (
    ContractActivityRead,
    ContractCreate,
    ContractListRead,
    ContractRead,
    ContractSendRequest,
    ContractStatusRead,
    ContractSummaryRead,
    SignatureAuditRead,
    SignatureCaptureRead,
    SignatureCaptureRequest,
    SignatureDisplayRead,
    SignatureFieldCreate,
    SignatureFieldRead,
    SignatureFieldUpdate,
    SignerRead,
    StatusDisplayRead,
)
from planit.services import signature_capture as capture_service
from planit.services import signature_fields as fields_service
from planit.services import signature_status as status_service
from planit.services import signature_workflow as workflow_service
from planit.services.contracts import contracts as contracts_service
from planit.services.signature_capture import SignerIdentity
from planit.services.signature_storage import SignatureStorage, get_signature_storage

router = APIRouter(tags=["contracts"])


def _status_read(contract: Contract) -> StatusDisplayRead:
    display = status_service.contract_status_display(contract)
    return StatusDisplayRead(label=display.label, severity=display.severity)


def _contract_read(contract: Contract) -> ContractRead:
    return ContractRead.model_validate(contract).model_copy(
        update={"status": _status_read(contract)}
    )


@router.post("/contracts", response_model=ContractRead, status_code=status.HTTP_201_CREATED)
def create_contract(
    payload: ContractCreate,
    db: Session = Depends(get_db),
    identity: SignerIdentity | None = Depends(get_optional_identity),
):
    contract = contracts_service.create(db, payload, actor_of(identity))
    return _contract_read(contract)


@router.get("/contracts/{contract_id}", response_model=ContractRead)
def get_contract(contract_id: str, db: Session = Depends(get_db)):
    return _contract_read(contracts_service.get(db, contract_id))


@router.get("/events/{event_id}/contracts", response_model=ContractListRead)
def list_event_contracts(
    event_id: str,
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    items = contracts_service.list_for_event(db, event_id, limit, offset)
    summary = status_service.summarize(items)
    return ContractListRead(
        items=[_contract_read(contract) for contract in items],
        summary=ContractSummaryRead(
            total=summary.total, pending=summary.pending, signed=summary.signed
        ),
    )


@router.delete("/contracts/{contract_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_contract(
    contract_id: str,
    db: Session = Depends(get_db),
    identity: SignerIdentity | None = Depends(get_optional_identity),
):
    contracts_service.delete(db, contract_id, actor_of(identity))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/contracts/{contract_id}/electronic", response_model=ContractRead)
def enable_electronic(
    contract_id: str,
    db: Session = Depends(get_db),
    identity: SignerIdentity | None = Depends(get_optional_identity),
):
    contract = contracts_service.get(db, contract_id)
    contract = workflow_service.enable_electronic(db, contract, actor_of(identity))
    return _contract_read(contract)


@router.post(
    "/contracts/{contract_id}/fields",
    response_model=SignatureFieldRead,
    status_code=status.HTTP_201_CREATED,
)
def add_field(
    contract_id: str,
    payload: SignatureFieldCreate,
    db: Session = Depends(get_db),
    identity: SignerIdentity | None = Depends(get_optional_identity),
):
    contract = contracts_service.get(db, contract_id)
    return fields_service.add_field(
        db, contract, payload.type, payload.signer_role, payload, actor_of(identity)
    )


@router.patch("/contracts/{contract_id}/fields/{field_id}", response_model=SignatureFieldRead)
def update_field(
    contract_id: str,
    field_id: str,
    payload: SignatureFieldUpdate,
    db: Session = Depends(get_db),
    identity: SignerIdentity | None = Depends(get_optional_identity),
):
    contract = contracts_service.get(db, contract_id)
    return fields_service.update_field(db, contract, field_id, payload, actor_of(identity))


@router.delete(
    "/contracts/{contract_id}/fields/{field_id}", status_code=status.HTTP_204_NO_CONTENT
)
def remove_field(
    contract_id: str,
    field_id: str,
    db: Session = Depends(get_db),
    identity: SignerIdentity | None = Depends(get_optional_identity),
):
    contract = contracts_service.get(db, contract_id)
    fields_service.remove_field(db, contract, field_id, actor_of(identity))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/contracts/{contract_id}/save", response_model=ContractRead)
def save_contract(
    contract_id: str,
    db: Session = Depends(get_db),
    identity: SignerIdentity | None = Depends(get_optional_identity),
):
    contract = contracts_service.get(db, contract_id)
    return _contract_read(workflow_service.save(db, contract, actor_of(identity)))


@router.post("/contracts/{contract_id}/send", response_model=ContractRead)
def send_contract(
    contract_id: str,
    payload: ContractSendRequest,
    db: Session = Depends(get_db),
    identity: SignerIdentity | None = Depends(get_optional_identity),
):
    contract = contracts_service.get(db, contract_id)
    contract = workflow_service.send(db, contract, payload.dispatched, actor_of(identity))
    return _contract_read(contract)


@router.post("/contracts/{contract_id}/cancel", response_model=ContractRead)
def cancel_contract(
    contract_id: str,
    db: Session = Depends(get_db),
    identity: SignerIdentity | None = Depends(get_optional_identity),
):
    contract = contracts_service.get(db, contract_id)
    return _contract_read(workflow_service.cancel(db, contract, actor_of(identity)))


@router.post(
    "/contracts/{contract_id}/fields/{field_id}/signature",
    response_model=SignatureCaptureRead,
    status_code=status.HTTP_201_CREATED,
)
def capture_signature(
    contract_id: str,
    field_id: str,
    payload: SignatureCaptureRequest,
    request: Request,
    db: Session = Depends(get_db),
    identity: SignerIdentity = Depends(get_signer_identity),
    storage: SignatureStorage = Depends(get_signature_storage),
):
    audit = capture_service.capture_signature(
        db,
        contract_id,
        field_id,
        payload.signature_data,
        identity,
        storage=storage,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    display = capture_service.prepare_signature_display(audit)
    return SignatureCaptureRead(
        audit=SignatureAuditRead.model_validate(audit),
        display=(
            SignatureDisplayRead(src=display.src, source=display.source, alt=display.alt)
            if display
            else None
        ),
        workflow_status=audit.contract.workflow_status,
    )


@router.get("/contracts/{contract_id}/status", response_model=ContractStatusRead)
def get_contract_status(contract_id: str, db: Session = Depends(get_db)):
    contract = contracts_service.get(db, contract_id)
    return ContractStatusRead(
        workflow_status=workflow_service.current_status(contract),
        status=_status_read(contract),
        signed_by_role=status_service.signed_by_role(contract),
        signers=[
            SignerRead(
                email=signer.email,
                role=signer.role,
                field_ids=signer.field_ids,
                signed=signer.signed,
            )
            for signer in status_service.list_signers(contract)
        ],
    )


@router.get(
    "/contracts/{contract_id}/activities", response_model=list[ContractActivityRead]
)
def list_contract_activities(contract_id: str, db: Session = Depends(get_db)):
    return contracts_service.list_activities(db, contract_id)
