"""Tests for signature validation policies."""

from datetime import datetime, timezone

from planit.validators.signatures import (
    email_problem,
    validate_field,
    validate_signature_audit,
)


def _payload(**overrides):
    payload = {
        "signature_url": "https://storage.test/sig.png",
        "signature_data": None,
        "signer_name": "Vera Vendor",
        "signer_email": "vendor@example.com",
        "signed_at": datetime.now(timezone.utc),
    }
    payload.update(overrides)
    return payload


class TestEmailProblem:
    def test_valid(self):
        assert email_problem("planner@example.com") is None

    def test_blank(self):
        assert email_problem("") == "an assigned email is required"
        assert email_problem(None) == "an assigned email is required"

    def test_invalid(self):
        assert "is invalid" in email_problem("planner@@example")


class TestValidateField:
    def test_names_field_and_label(self):
        issues = validate_field(
            {"id": "field_1", "label": "Vendor signature", "signer_role": "vendor", "assigned_email": ""}
        )
        assert issues == ["Field 'field_1' (Vendor signature): an assigned email is required"]

    def test_unknown_role_and_missing_email(self):
        issues = validate_field({"id": "field_2", "signer_role": "notary", "assigned_email": ""})
        assert len(issues) == 2
        assert "unknown signer role 'notary'" in issues[1]


class TestValidateSignatureAudit:
    def test_complete_payload(self):
        assert validate_signature_audit(_payload()) == []

    def test_inline_data_is_enough(self):
        payload = _payload(signature_url=None, signature_data="data:image/png;base64,AAAA")
        assert validate_signature_audit(payload) == []

    def test_missing_payload(self):
        assert validate_signature_audit(None) == ["Signature data is missing"]

    def test_lists_every_missing_item(self):
        payload = _payload(
            signature_url=None, signature_data="", signer_name=" ", signer_email=None, signed_at=None
        )
        assert validate_signature_audit(payload) == [
            "No signature image data found",
            "Signer name is required",
            "Signer email is required",
            "Signature timestamp is missing",
        ]
