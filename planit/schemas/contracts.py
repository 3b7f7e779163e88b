"""Pydantic schemas for contracts and electronic signatures."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from planit.models.contracts import (
    FieldType,
    SignerRole,
    StorageMethod,
    WorkflowStatus,
)


class ContractCreate(BaseModel):
    event_id: str = Field(min_length=1, max_length=120)
    vendor_id: str | None = Field(default=None, max_length=120)
    file_name: str = Field(min_length=1, max_length=255)
    contract_url: str = Field(min_length=1)
    client_name: str | None = Field(default=None, max_length=200)
    client_email: EmailStr | None = None
    is_electronic: bool = False


class SignatureFieldCreate(BaseModel):
    type: FieldType
    signer_role: SignerRole
    label: str | None = Field(default=None, max_length=120)
    page: int = Field(default=1, ge=1)
    x: float = Field(default=0.0, ge=0)
    y: float = Field(default=0.0, ge=0)
    width: float | None = Field(default=None, gt=0)
    height: float | None = Field(default=None, gt=0)
    required: bool = True


class SignatureFieldUpdate(BaseModel):
    type: FieldType | None = None
    signer_role: SignerRole | None = None
    label: str | None = Field(default=None, max_length=120)
    page: int | None = Field(default=None, ge=1)
    x: float | None = Field(default=None, ge=0)
    y: float | None = Field(default=None, ge=0)
    width: float | None = Field(default=None, gt=0)
    height: float | None = Field(default=None, gt=0)
    required: bool | None = None
    # Checked for syntax when the contract is saved, not while drafting
    assigned_email: str | None = Field(default=None, max_length=255)


class SignatureFieldRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    type: FieldType
    label: str | None
    page: int
    x: float
    y: float
    width: float | None
    height: float | None
    signer_role: SignerRole
    required: bool
    assigned_email: str


class SignatureAuditRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    field_id: str
    signer_role: SignerRole
    signer_id: str
    signature_url: str | None
    signature_data: str | None
    storage_method: StorageMethod
    signer_name: str
    signer_email: str
    signed_at: datetime
    ip_address: str | None = None
    user_agent: str | None = None


class StatusDisplayRead(BaseModel):
    label: str
    severity: str


class ContractRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    event_id: str
    vendor_id: str | None
    file_name: str
    contract_url: str
    client_name: str | None
    client_email: str | None
    is_electronic: bool
    workflow_status: WorkflowStatus | None
    last_edited: datetime
    created_at: datetime
    fields: list[SignatureFieldRead] = Field(default_factory=list)
    audit_trail: list[SignatureAuditRead] = Field(default_factory=list)
    status: StatusDisplayRead | None = None


class ContractSummaryRead(BaseModel):
    total: int
    pending: int
    signed: int


class ContractListRead(BaseModel):
    items: list[ContractRead]
    summary: ContractSummaryRead


class ContractSendRequest(BaseModel):
    dispatched: bool = Field(..., description="Set by the notification service once signers were emailed")


class SignatureCaptureRequest(BaseModel):
    """Schema for a captured signature submission."""

    signature_data: str = Field(
        ..., min_length=1, description="Image data URL, or the value of a date or text field"
    )


class SignatureDisplayRead(BaseModel):
    src: str
    source: StorageMethod
    alt: str


class SignatureCaptureRead(BaseModel):
    audit: SignatureAuditRead
    display: SignatureDisplayRead | None
    workflow_status: WorkflowStatus | None


class SignerRead(BaseModel):
    email: str
    role: SignerRole
    field_ids: list[str]
    signed: bool


class ContractStatusRead(BaseModel):
    workflow_status: WorkflowStatus | None
    status: StatusDisplayRead
    signed_by_role: dict[str, bool]
    signers: list[SignerRead]


class ContractActivityRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    action: str
    actor: str | None
    details: str | None
    created_at: datetime
