"""Create verification, organisation, subscription plan and staff tables"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_identity_access"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "subscription_plans",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("plan_name", sa.String(length=100), nullable=False),
        sa.Column("features", sa.Text(), nullable=False, server_default=""),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("price_per_month", sa.Numeric(12, 2), nullable=True),
        sa.Column("plan_description", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("plan_name", name="uq_subscription_plans_plan_name"),
    )

    op.create_table(
        "organisations",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("subscription_plan_type", sa.String(length=100), nullable=True),
        sa.Column("organisation_status", sa.String(length=50), nullable=False, server_default="ACTIVE"),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "staff_members",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column(
            "organisation_id",
            sa.String(length=64),
            sa.ForeignKey("organisations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("full_name", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("phone_number", sa.String(length=32), nullable=True),
        sa.Column("role", sa.String(length=50), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_staff_members_organisation_id", "staff_members", ["organisation_id"])

    op.create_table(
        "verification_records",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("subject_id", sa.String(length=64), nullable=False),
        sa.Column("recipient", sa.String(length=320), nullable=False),
        sa.Column("channel", sa.String(length=16), nullable=False),
        sa.Column("code", sa.String(length=6), nullable=False),
        sa.Column("token", sa.String(length=128), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("expires_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_verification_records_subject_id", "verification_records", ["subject_id"])
    op.create_index(
        "ix_verification_records_recipient_channel", "verification_records", ["recipient", "channel"]
    )
    op.create_index(
        "ix_verification_records_status_expires_at", "verification_records", ["status", "expires_at"]
    )


def downgrade() -> None:
    op.drop_index("ix_verification_records_status_expires_at", table_name="verification_records")
    op.drop_index("ix_verification_records_recipient_channel", table_name="verification_records")
    op.drop_index("ix_verification_records_subject_id", table_name="verification_records")
    op.drop_table("verification_records")
    op.drop_index("ix_staff_members_organisation_id", table_name="staff_members")
    op.drop_table("staff_members")
    op.drop_table("organisations")
    op.drop_table("subscription_plans")
