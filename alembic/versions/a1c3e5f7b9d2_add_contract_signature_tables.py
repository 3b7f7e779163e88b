"""add contract signature tables

Revision ID: a1c3e5f7b9d2
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ENUM


# revision identifiers, used by Alembic.
revision = "a1c3e5f7b9d2"
down_revision = None
branch_labels = None
depends_on = None


WORKFLOW_STATUS = ENUM(
    "draft",
    "saved",
    "sent",
    "partially_signed",
    "completed",
    "cancelled",
    name="contract_workflow_status",
    create_type=False,
)
FIELD_TYPE = ENUM("signature", "date", "text", name="signature_field_type", create_type=False)
SIGNER_ROLE = ENUM("vendor", "client", "planner", name="signature_signer_role", create_type=False)
STORAGE_METHOD = ENUM("remote", "inline", name="signature_storage_method", create_type=False)


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    existing_tables = set(inspector.get_table_names())

    for enum_type in (WORKFLOW_STATUS, FIELD_TYPE, SIGNER_ROLE, STORAGE_METHOD):
        enum_type.create(bind, checkfirst=True)

    if "contracts" not in existing_tables:
        op.create_table(
            "contracts",
            sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
            sa.Column("event_id", sa.String(length=120), nullable=False),
            sa.Column("vendor_id", sa.String(length=120), nullable=True),
            sa.Column("file_name", sa.String(length=255), nullable=False),
            sa.Column("contract_url", sa.Text(), nullable=False),
            sa.Column("client_name", sa.String(length=200), nullable=True),
            sa.Column("client_email", sa.String(length=255), nullable=True),
            sa.Column("is_electronic", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("workflow_status", WORKFLOW_STATUS, nullable=True),
            sa.Column("last_edited", sa.DateTime(timezone=True), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        )
        op.create_index("ix_contracts_event_id", "contracts", ["event_id"])

    if "signature_fields" not in existing_tables:
        op.create_table(
            "signature_fields",
            sa.Column(
                "contract_id",
                sa.Uuid(),
                sa.ForeignKey("contracts.id", ondelete="CASCADE"),
                primary_key=True,
                nullable=False,
            ),
            sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
            sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("type", FIELD_TYPE, nullable=False),
            sa.Column("label", sa.String(length=120), nullable=True),
            sa.Column("page", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("x", sa.Float(), nullable=False, server_default="0"),
            sa.Column("y", sa.Float(), nullable=False, server_default="0"),
            sa.Column("width", sa.Float(), nullable=True),
            sa.Column("height", sa.Float(), nullable=True),
            sa.Column("signer_role", SIGNER_ROLE, nullable=False),
            sa.Column("required", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("assigned_email", sa.String(length=255), nullable=False, server_default=""),
        )

    if "signature_audits" not in existing_tables:
        op.create_table(
            "signature_audits",
            sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
            sa.Column(
                "contract_id",
                sa.Uuid(),
                sa.ForeignKey("contracts.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("field_id", sa.String(length=64), nullable=False),
            sa.Column("signer_role", SIGNER_ROLE, nullable=False),
            sa.Column("signer_id", sa.String(length=128), nullable=False),
            sa.Column("signature_url", sa.Text(), nullable=True),
            sa.Column("signature_data", sa.Text(), nullable=True),
            sa.Column("storage_method", STORAGE_METHOD, nullable=False),
            sa.Column("signer_name", sa.String(length=200), nullable=False),
            sa.Column("signer_email", sa.String(length=255), nullable=False),
            sa.Column("signed_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("ip_address", sa.String(length=45), nullable=True),
            sa.Column("user_agent", sa.String(length=500), nullable=True),
            sa.UniqueConstraint(
                "contract_id", "field_id", name="uq_signature_audits_contract_field"
            ),
        )
        op.create_index(
            "ix_signature_audits_contract_id", "signature_audits", ["contract_id"]
        )

    if "contract_activities" not in existing_tables:
        op.create_table(
            "contract_activities",
            sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
            sa.Column(
                "contract_id",
                sa.Uuid(),
                sa.ForeignKey("contracts.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("action", sa.String(length=60), nullable=False),
            sa.Column("actor", sa.String(length=255), nullable=True),
            sa.Column("details", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        )
        op.create_index(
            "ix_contract_activities_contract_id", "contract_activities", ["contract_id"]
        )


def downgrade() -> None:
    op.drop_index("ix_contract_activities_contract_id", table_name="contract_activities")
    op.drop_table("contract_activities")
    op.drop_index("ix_signature_audits_contract_id", table_name="signature_audits")
    op.drop_table("signature_audits")
    op.drop_table("signature_fields")
    op.drop_index("ix_contracts_event_id", table_name="contracts")
    op.drop_table("contracts")

    bind = op.get_bind()
    for enum_type in (STORAGE_METHOD, SIGNER_ROLE, FIELD_TYPE, WORKFLOW_STATUS):
        enum_type.drop(bind, checkfirst=True)
