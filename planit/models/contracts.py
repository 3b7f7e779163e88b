"""Contract aggregate for the electronic signature workflow."""

import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from planit.db import Base


class WorkflowStatus(enum.Enum):
    draft = "draft"
    saved = "saved"
    sent = "sent"
    partially_signed = "partially_signed"
    completed = "completed"
    cancelled = "cancelled"


class FieldType(enum.Enum):
    signature = "signature"
    date = "date"
    text = "text"


class SignerRole(enum.Enum):
    vendor = "vendor"
    client = "client"
    planner = "planner"


class StorageMethod(enum.Enum):
    remote = "remote"
    inline = "inline"


def _now() -> datetime:
    return datetime.now(UTC)


class Contract(Base):
    """A contract document attached to an event.

    Manually managed contracts (``is_electronic`` false) carry no workflow
    status and never hold signature audits.
    """

    __tablename__ = "contracts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id: Mapped[str] = mapped_column(String(120), nullable=False, index=True)
    vendor_id: Mapped[str | None] = mapped_column(String(120))
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    contract_url: Mapped[str] = mapped_column(Text, nullable=False)
    client_name: Mapped[str | None] = mapped_column(String(200))
    client_email: Mapped[str | None] = mapped_column(String(255))

    is_electronic: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    workflow_status: Mapped[WorkflowStatus | None] = mapped_column(
        Enum(WorkflowStatus, name="contract_workflow_status")
    )

    last_edited: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)

    fields: Mapped[list["SignatureField"]] = relationship(
        back_populates="contract",
        order_by="SignatureField.position",
        cascade="all, delete-orphan",
    )
    audit_trail: Mapped[list["SignatureAudit"]] = relationship(
        back_populates="contract",
        cascade="all, delete-orphan",
    )
    activities: Mapped[list["ContractActivity"]] = relationship(
        back_populates="contract",
        order_by="ContractActivity.created_at",
        cascade="all, delete-orphan",
    )

    def audit_for(self, field_id: str) -> "SignatureAudit | None":
        for audit in self.audit_trail:
            if audit.field_id == field_id:
                return audit
        return None

    def field_by_id(self, field_id: str) -> "SignatureField | None":
        for field in self.fields:
            if field.id == field_id:
                return field
        return None


class SignatureField(Base):
    """A placeable signature/date/text box on a contract page."""

    __tablename__ = "signature_fields"

    contract_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("contracts.id", ondelete="CASCADE"), primary_key=True
    )
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    type: Mapped[FieldType] = mapped_column(
        Enum(FieldType, name="signature_field_type"), nullable=False
    )
    label: Mapped[str | None] = mapped_column(String(120))

    # Placement on the rendered page, in document units; no rotation
    page: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    x: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    y: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    width: Mapped[float | None] = mapped_column(Float)
    height: Mapped[float | None] = mapped_column(Float)

    signer_role: Mapped[SignerRole] = mapped_column(
        Enum(SignerRole, name="signature_signer_role"), nullable=False
    )
    required: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    assigned_email: Mapped[str] = mapped_column(String(255), default="", nullable=False)

    contract: Mapped[Contract] = relationship(back_populates="fields")


class SignatureAudit(Base):
    """Proof that a field was signed, by whom and when.

    One row per (contract, field). Re-signing replaces the row.
    """

    __tablename__ = "signature_audits"
    __table_args__ = (
        UniqueConstraint("contract_id", "field_id", name="uq_signature_audits_contract_field"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    contract_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("contracts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    field_id: Mapped[str] = mapped_column(String(64), nullable=False)
    signer_role: Mapped[SignerRole] = mapped_column(
        Enum(SignerRole, name="signature_signer_role"), nullable=False
    )
    signer_id: Mapped[str] = mapped_column(String(128), nullable=False)

    signature_url: Mapped[str | None] = mapped_column(Text)
    signature_data: Mapped[str | None] = mapped_column(Text)
    storage_method: Mapped[StorageMethod] = mapped_column(
        Enum(StorageMethod, name="signature_storage_method"), nullable=False
    )

    signer_name: Mapped[str] = mapped_column(String(200), nullable=False)
    signer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    signed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )

    # Digital fingerprint
    ip_address: Mapped[str | None] = mapped_column(String(45))  # IPv6 max length
    user_agent: Mapped[str | None] = mapped_column(String(500))

    contract: Mapped[Contract] = relationship(back_populates="audit_trail")


class ContractActivity(Base):
    __tablename__ = "contract_activities"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    contract_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("contracts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    action: Mapped[str] = mapped_column(String(60), nullable=False)
    actor: Mapped[str | None] = mapped_column(String(255))
    details: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)

    contract: Mapped[Contract] = relationship(back_populates="activities")
