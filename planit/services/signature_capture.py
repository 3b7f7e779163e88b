"""Signature capture pipeline: data URL -> stored artifact -> audit record.

Steps run in order and each one raises its own error:

1. parse the data URL (``InvalidSignatureFormat``)
2. check the signer identity and credential (``AuthenticationRequired``)
3. decode and sniff the image bytes (``DecodeError``)
4. build and validate the audit record (``ValidationError``)
5. upload to signature storage (``UploadFailed``)
6. re-read the contract under a row lock, replace the field's audit and
   re-evaluate the workflow in one commit

Date and text fields skip steps 1, 3 and 5: their value is checked and stored
inline on the audit record.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass
from datetime import UTC, date, datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from planit.config import settings
from planit.errors import (
    AuthenticationRequired,
    DecodeError,
    InvalidSignatureFormat,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from planit.models.contracts import (
    Contract,
    FieldType,
    SignatureAudit,
    SignatureField,
    StorageMethod,
    WorkflowStatus,
)
from planit.services.contracts import Contracts, record_activity
from planit.services.common import utcnow
from planit.services.signature_storage import (
    SignatureArtifact,
    SignatureStorage,
    get_signature_storage,
)
from planit.services.signature_workflow import ensure_signable, reevaluate
from planit.validators.signatures import validate_signature_audit

logger = logging.getLogger(__name__)

DATA_URL_PATTERN = re.compile(
    r"^data:(?P<mime>image/[a-z0-9.+-]+)(?P<params>(?:;[^;,]+)*?);base64,(?P<data>.*)$",
    re.IGNORECASE | re.DOTALL,
)

# Content type -> valid leading bytes
MAGIC_BYTES: dict[str, list[bytes]] = {
    "image/png": [b"\x89PNG\r\n\x1a\n"],
    "image/jpeg": [b"\xff\xd8\xff"],
    "image/gif": [b"GIF87a", b"GIF89a"],
    "image/webp": [b"RIFF"],
}

CONTENT_TYPE_EXTENSIONS: dict[str, str] = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
}

MAX_TEXT_VALUE_LENGTH = 500


@dataclass(frozen=True)
class SignerIdentity:
    """Authenticated signer as provided by the identity provider."""

    signer_id: str
    name: str | None
    email: str | None
    token: str
    expires_at: datetime | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(UTC)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=UTC)
        return expires_at <= now


@dataclass(frozen=True)
class SignaturePayload:
    content_type: str
    encoded: str


@dataclass(frozen=True)
class SignatureDisplay:
    src: str
    source: StorageMethod
    alt: str


def parse_signature_payload(signature_data: str | None) -> SignaturePayload:
    """Split an image data URL into its content type and base64 body."""
    if not isinstance(signature_data, str) or not signature_data.strip():
        raise InvalidSignatureFormat("Signature data is empty")
    match = DATA_URL_PATTERN.match(signature_data.strip())
    if not match:
        raise InvalidSignatureFormat(
            "Invalid signature data format; expected a base64 image data URL"
        )
    content_type = match.group("mime").lower()
    allowed = settings.allowed_signature_types
    if content_type not in allowed:
        raise InvalidSignatureFormat(
            f"Signature image type '{content_type}' not allowed. "
            f"Allowed: {', '.join(sorted(allowed))}"
        )
    encoded = "".join(match.group("data").split())
    if not encoded:
        raise InvalidSignatureFormat("Signature data URL contains no image data")
    return SignaturePayload(content_type=content_type, encoded=encoded)


def require_identity(identity: SignerIdentity | None) -> SignerIdentity:
    if identity is None or not identity.signer_id:
        raise AuthenticationRequired("User must be authenticated to sign")
    if not identity.token:
        raise AuthenticationRequired("A bearer credential is required to upload signatures")
    if identity.is_expired():
        raise AuthenticationRequired("Signer credential has expired; sign in again")
    return identity


def decode_signature(payload: SignaturePayload, max_size: int | None = None) -> bytes:
    """Decode the base64 body and check it really is the declared image type."""
    try:
        data = base64.b64decode(payload.encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"Signature image is not valid base64: {exc}") from exc
    if not data:
        raise DecodeError("Signature image decoded to zero bytes")

    max_size = settings.signature_max_size_bytes if max_size is None else max_size
    if len(data) > max_size:
        raise InvalidSignatureFormat(
            f"Signature image too large ({len(data)} bytes). Maximum size: {max_size} bytes"
        )

    signatures = MAGIC_BYTES.get(payload.content_type)
    if signatures and not any(data[: len(magic)] == magic for magic in signatures):
        raise DecodeError(
            f"Signature image content does not match the declared type {payload.content_type}"
        )
    return data


def _artifact_filename(role: str, content_type: str) -> str:
    stamp = datetime.now(UTC).strftime("%Y%m%d%H%M%S%f")
    return f"{role}_signature_{stamp}{CONTENT_TYPE_EXTENSIONS.get(content_type, '')}"


def parse_field_value(field_type: FieldType, value: str | None) -> str:
    """Normalize the value typed into a date or text field."""
    if not isinstance(value, str) or not value.strip():
        raise InvalidSignatureFormat(f"A value is required for this {field_type.value} field")
    value = value.strip()
    if field_type == FieldType.date:
        try:
            return date.fromisoformat(value).isoformat()
        except ValueError as exc:
            raise InvalidSignatureFormat(
                f"Invalid date '{value}'; expected YYYY-MM-DD"
            ) from exc
    if len(value) > MAX_TEXT_VALUE_LENGTH:
        raise InvalidSignatureFormat(
            f"Text value too long ({len(value)} characters). "
            f"Maximum length: {MAX_TEXT_VALUE_LENGTH}"
        )
    return value


def _build_audit(
    field: SignatureField,
    identity: SignerIdentity,
    value: str,
    storage_method: StorageMethod,
    ip_address: str | None,
    user_agent: str | None,
) -> SignatureAudit:
    audit = SignatureAudit(
        field_id=field.id,
        signer_role=field.signer_role,
        signer_id=identity.signer_id,
        signature_data=value,
        storage_method=storage_method,
        signer_name=(identity.name or "").strip(),
        signer_email=(identity.email or "").strip(),
        signed_at=utcnow(),
        ip_address=ip_address,
        user_agent=user_agent[:500] if user_agent else None,
    )
    issues = validate_signature_audit(audit)
    if issues:
        raise ValidationError("Signature cannot be recorded", issues)
    return audit


def _upload_artifact(
    contract: Contract,
    field: SignatureField,
    audit: SignatureAudit,
    payload: SignaturePayload,
    data: bytes,
    identity: SignerIdentity,
    storage: SignatureStorage | None,
) -> str:
    storage = storage or get_signature_storage()
    artifact = SignatureArtifact(
        data=data,
        content_type=payload.content_type,
        filename=_artifact_filename(field.signer_role.value, payload.content_type),
    )
    return storage.upload_signature(
        str(contract.id),
        field.id,
        artifact,
        identity.token,
        metadata={
            "signerId": audit.signer_id,
            "signerName": audit.signer_name,
            "signerEmail": audit.signer_email,
            "signerRole": audit.signer_role.value,
        },
    )


def _record_audit(
    db: Session, contract: Contract, field: SignatureField, audit: SignatureAudit
) -> WorkflowStatus:
    """Replace the field's audit and re-evaluate the workflow in one commit.

    The contract row is re-read under a row lock first; another request may
    have signed or cancelled it while this one was uploading.
    """
    try:
        db.refresh(contract, with_for_update=True)
        ensure_signable(contract)
        previous = contract.audit_for(field.id)
        if previous is not None:
            contract.audit_trail.remove(previous)
            # the unique (contract, field) row must be gone before the insert
            db.flush()
        contract.audit_trail.append(audit)
        status = reevaluate(contract)
        record_activity(
            db,
            contract,
            "field_signed",
            audit.signer_email,
            f"{field.id} signed as {audit.signer_role.value}"
            + (" (replaced previous signature)" if previous is not None else ""),
        )
        if status == WorkflowStatus.completed:
            record_activity(db, contract, "contract_completed", audit.signer_email)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.error(
            "Failed to persist signature for contract %s field %s; rolled back",
            contract.id,
            field.id,
        )
        raise
    except InvalidStateError:
        db.rollback()
        logger.warning(
            "Contract %s changed state while field %s was being signed", contract.id, field.id
        )
        raise
    return status


def capture_signature(
    db: Session,
    contract_id,
    field_id: str,
    signature_data: str,
    identity: SignerIdentity | None,
    storage: SignatureStorage | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> SignatureAudit:
    """Run the full capture pipeline for one field.

    Signature fields take an image data URL that is uploaded to storage.
    Date and text fields take the value itself, stored inline without an
    upload. Re-signing a field replaces its previous audit record. Nothing
    is written to the database until the upload has succeeded, and a failed
    commit is rolled back and re-raised with the workflow unchanged.
    """
    contract = Contracts.get(db, contract_id)
    ensure_signable(contract)
    field = contract.field_by_id(field_id)
    if field is None:
        raise NotFoundError(f"Signature field {field_id} not found on contract {contract.id}")

    if field.type == FieldType.signature:
        payload = parse_signature_payload(signature_data)
        identity = require_identity(identity)
        data = decode_signature(payload)
        audit = _build_audit(
            field, identity, signature_data.strip(), StorageMethod.remote, ip_address, user_agent
        )
        audit.signature_url = _upload_artifact(
            contract, field, audit, payload, data, identity, storage
        )
    else:
        value = parse_field_value(field.type, signature_data)
        identity = require_identity(identity)
        audit = _build_audit(field, identity, value, StorageMethod.inline, ip_address, user_agent)

    status = _record_audit(db, contract, field, audit)

    db.refresh(audit)
    logger.info(
        "Field %s on contract %s signed by %s; workflow now %s",
        field.id,
        contract.id,
        audit.signer_id,
        status.value,
    )
    return audit


def prepare_signature_display(audit: SignatureAudit | None) -> SignatureDisplay | None:
    """Pick the image source to render for an audit: stored URL first, inline data second."""
    if audit is None:
        return None
    alt = f"Signature of {audit.signer_name}" if audit.signer_name else "Signature"
    if audit.signature_url:
        return SignatureDisplay(src=audit.signature_url, source=StorageMethod.remote, alt=alt)
    if audit.signature_data:
        return SignatureDisplay(src=audit.signature_data, source=StorageMethod.inline, alt=alt)
    return None
