"""Tests for signature field placement."""

import pytest

from planit.errors import InvalidStateError, NotFoundError, ValidationError
from planit.models.contracts import FieldType, SignatureAudit, SignerRole, StorageMethod
from planit.schemas.contracts import SignatureFieldCreate, SignatureFieldUpdate
from planit.services import signature_fields as fields_service
from planit.services import signature_workflow as workflow_service
from planit.services.common import utcnow
from tests.factories import add_assigned_field


class TestAddField:
    def test_appends_field_with_generated_id(self, db_session, draft_contract):
        field = fields_service.add_field(
            db_session, draft_contract, FieldType.signature, SignerRole.vendor
        )
        assert field.id.startswith("field_")
        assert field.assigned_email == ""
        assert field.required is True
        assert draft_contract.fields == [field]

    def test_ids_are_unique_and_order_is_insertion_order(self, db_session, draft_contract):
        created = [
            fields_service.add_field(db_session, draft_contract, FieldType.signature, role)
            for role in (SignerRole.vendor, SignerRole.client, SignerRole.planner)
        ]
        db_session.expire_all()
        assert [f.id for f in draft_contract.fields] == [f.id for f in created]
        assert len({f.id for f in created}) == 3

    def test_applies_placement(self, db_session, draft_contract):
        placement = SignatureFieldCreate(
            type=FieldType.date,
            signer_role=SignerRole.client,
            label="Date signed",
            page=2,
            x=120.5,
            y=640.0,
            width=150,
            height=40,
            required=False,
        )
        field = fields_service.add_field(
            db_session, draft_contract, placement.type, placement.signer_role, placement
        )
        assert field.type == FieldType.date
        assert field.page == 2
        assert (field.x, field.y) == (120.5, 640.0)
        assert field.label == "Date signed"
        assert field.required is False

    def test_rejects_unknown_role(self, db_session, draft_contract):
        with pytest.raises(ValidationError):
            fields_service.add_field(db_session, draft_contract, FieldType.signature, "notary")

    def test_records_activity(self, db_session, draft_contract):
        field = fields_service.add_field(
            db_session, draft_contract, FieldType.signature, SignerRole.vendor
        )
        added = [a for a in draft_contract.activities if a.action == "field_added"]
        assert len(added) == 1
        assert field.id in added[0].details

    def test_rejected_outside_draft(self, db_session, sent_contract):
        with pytest.raises(InvalidStateError):
            fields_service.add_field(
                db_session, sent_contract, FieldType.signature, SignerRole.vendor
            )

    def test_rejected_for_manual_contract(self, db_session, contract_factory):
        contract = contract_factory(is_electronic=False)
        with pytest.raises(InvalidStateError):
            fields_service.add_field(db_session, contract, FieldType.signature, SignerRole.vendor)


class TestUpdateField:
    def test_updates_email_and_strips_whitespace(self, db_session, draft_contract):
        field = fields_service.add_field(
            db_session, draft_contract, FieldType.signature, SignerRole.vendor
        )
        updated = fields_service.update_field(
            db_session,
            draft_contract,
            field.id,
            SignatureFieldUpdate(assigned_email="  vendor@example.com "),
        )
        assert updated.assigned_email == "vendor@example.com"

    def test_accepts_invalid_email_while_drafting(self, db_session, draft_contract):
        field = fields_service.add_field(
            db_session, draft_contract, FieldType.signature, SignerRole.vendor
        )
        updated = fields_service.update_field(
            db_session, draft_contract, field.id, SignatureFieldUpdate(assigned_email="not-an-email")
        )
        assert updated.assigned_email == "not-an-email"

    def test_changes_role_in_draft(self, db_session, draft_contract):
        field = fields_service.add_field(
            db_session, draft_contract, FieldType.signature, SignerRole.vendor
        )
        updated = fields_service.update_field(
            db_session, draft_contract, field.id, SignatureFieldUpdate(signer_role=SignerRole.client)
        )
        assert updated.signer_role == SignerRole.client

    def test_role_change_rejected_once_signed(self, db_session, draft_contract):
        field = add_assigned_field(db_session, draft_contract, SignerRole.vendor, "vendor@example.com")
        draft_contract.audit_trail.append(
            SignatureAudit(
                field_id=field.id,
                signer_role=SignerRole.vendor,
                signer_id="user-1",
                signature_url="https://storage.test/sig.png",
                storage_method=StorageMethod.remote,
                signer_name="Vera Vendor",
                signer_email="vendor@example.com",
                signed_at=utcnow(),
            )
        )
        db_session.commit()

        with pytest.raises(InvalidStateError):
            fields_service.update_field(
                db_session,
                draft_contract,
                field.id,
                SignatureFieldUpdate(signer_role=SignerRole.client),
            )

    def test_unknown_field(self, db_session, draft_contract):
        with pytest.raises(NotFoundError):
            fields_service.update_field(
                db_session, draft_contract, "field_missing", SignatureFieldUpdate(label="x")
            )

    def test_rejected_outside_draft(self, db_session, sent_contract):
        field = sent_contract.fields[0]
        with pytest.raises(InvalidStateError):
            fields_service.update_field(
                db_session, sent_contract, field.id, SignatureFieldUpdate(label="Sign here")
            )


class TestRemoveField:
    def test_removes_field(self, db_session, draft_contract):
        keep = fields_service.add_field(
            db_session, draft_contract, FieldType.signature, SignerRole.vendor
        )
        drop = fields_service.add_field(
            db_session, draft_contract, FieldType.text, SignerRole.client
        )
        fields_service.remove_field(db_session, draft_contract, drop.id)
        assert [f.id for f in draft_contract.fields] == [keep.id]

    def test_unknown_field_is_not_found(self, db_session, draft_contract):
        with pytest.raises(NotFoundError):
            fields_service.remove_field(db_session, draft_contract, "field_missing")

    def test_unknown_field_outside_draft_is_invalid_state(self, db_session, sent_contract):
        with pytest.raises(InvalidStateError):
            fields_service.remove_field(db_session, sent_contract, "field_missing")

    def test_rejected_outside_draft(self, db_session, sent_contract):
        field_id = sent_contract.fields[0].id
        with pytest.raises(InvalidStateError):
            fields_service.remove_field(db_session, sent_contract, field_id)
        assert sent_contract.field_by_id(field_id) is not None


class TestValidateFields:
    def test_no_fields(self):
        assert fields_service.validate_fields([]) == ["Contract needs at least one signature field"]

    def test_reports_every_invalid_field(self, db_session, draft_contract):
        first = fields_service.add_field(
            db_session, draft_contract, FieldType.signature, SignerRole.vendor
        )
        second = fields_service.add_field(
            db_session, draft_contract, FieldType.signature, SignerRole.client
        )
        fields_service.update_field(
            db_session, draft_contract, second.id, SignatureFieldUpdate(assigned_email="bad@")
        )
        valid = add_assigned_field(db_session, draft_contract, SignerRole.planner, "p@example.com")

        issues = fields_service.validate_fields(draft_contract.fields)

        assert len(issues) == 2
        assert first.id in issues[0]
        assert second.id in issues[1]
        assert not any(valid.id in issue for issue in issues)

    def test_valid_fields(self, db_session, draft_contract):
        add_assigned_field(db_session, draft_contract, SignerRole.vendor, "vendor@example.com")
        assert fields_service.validate_fields(draft_contract.fields) == []

    def test_field_edits_after_save_rejected(self, db_session, draft_contract):
        field = add_assigned_field(db_session, draft_contract, SignerRole.vendor, "vendor@example.com")
        workflow_service.save(db_session, draft_contract)
        with pytest.raises(InvalidStateError):
            fields_service.update_field(
                db_session, draft_contract, field.id, SignatureFieldUpdate(signer_role=SignerRole.client)
            )
