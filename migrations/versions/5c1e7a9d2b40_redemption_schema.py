"""redemption schema

Revision ID: 5c1e7a9d2b40
Revises:
Create Date: 2026-10-19 09:12:44.318205

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5c1e7a9d2b40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create customers, vendors, deals, claims and the attempt log."""
    op.create_table(
        "customer",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("display_name", sa.Text(), nullable=False),
        sa.Column("membership_tier", sa.Text(), nullable=False, server_default="basic"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "vendor",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("owner_customer_id", sa.Integer(), nullable=False),
        sa.Column("business_name", sa.Text(), nullable=False),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("city", sa.Text(), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.ForeignKeyConstraint(["owner_customer_id"], ["customer.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "deal",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("vendor_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("category", sa.Text(), nullable=False, server_default="general"),
        sa.Column("discount_percentage", sa.Integer(), nullable=False),
        sa.Column("valid_from", sa.DateTime(timezone=True), nullable=False),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=False),
        sa.Column("max_redemptions", sa.Integer(), nullable=True),
        sa.Column("current_redemptions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("required_tier", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_approved", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("last_redeemed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("legacy_pin", sa.Text(), nullable=True),
        sa.Column("pin_hash", sa.Text(), nullable=True),
        sa.Column("pin_salt", sa.Text(), nullable=True),
        sa.Column("pin_created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("pin_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("current_redemptions >= 0", name="ck_deal_redemptions_nonnegative"),
        sa.CheckConstraint(
            "max_redemptions IS NULL OR current_redemptions <= max_redemptions",
            name="ck_deal_redemptions_within_cap",
        ),
        sa.CheckConstraint(
            "discount_percentage BETWEEN 0 AND 100",
            name="ck_deal_discount_percentage",
        ),
        sa.ForeignKeyConstraint(["vendor_id"], ["vendor.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_deal_vendor_id", "deal", ["vendor_id"])
    op.create_table(
        "deal_claim",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("deal_id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verified_layer", sa.Text(), nullable=True),
        sa.Column("bill_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("savings_amount", sa.Numeric(10, 2), nullable=True),
        sa.CheckConstraint("status IN ('pending', 'used')", name="ck_deal_claim_status"),
        sa.ForeignKeyConstraint(["customer_id"], ["customer.id"]),
        sa.ForeignKeyConstraint(["deal_id"], ["deal.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("customer_id", "deal_id", name="uq_deal_claim_customer_deal"),
    )
    op.create_index("ix_deal_claim_deal_status", "deal_claim", ["deal_id", "status"])
    op.create_table(
        "verification_attempt",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("claim_id", sa.Integer(), nullable=True),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("deal_id", sa.Integer(), nullable=False),
        sa.Column("attempted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("source_ip", sa.Text(), nullable=False),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("submitted_code", sa.Text(), nullable=False),
        sa.Column("outcome", sa.Text(), nullable=False),
        sa.Column("matched_layer", sa.Text(), nullable=True),
        sa.CheckConstraint(
            "outcome IN ('matched-rotating', 'matched-hashed', 'matched-legacy', "
            "'no-match', 'rate-limited')",
            name="ck_verification_attempt_outcome",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_verification_attempt_user_deal_time",
        "verification_attempt",
        ["customer_id", "deal_id", "attempted_at"],
    )
    op.create_index(
        "ix_verification_attempt_ip_time",
        "verification_attempt",
        ["source_ip", "attempted_at"],
    )


def downgrade() -> None:
    """Drop every redemption table."""
    op.drop_index("ix_verification_attempt_ip_time", table_name="verification_attempt")
    op.drop_index("ix_verification_attempt_user_deal_time", table_name="verification_attempt")
    op.drop_table("verification_attempt")
    op.drop_index("ix_deal_claim_deal_status", table_name="deal_claim")
    op.drop_table("deal_claim")
    op.drop_index("ix_deal_vendor_id", table_name="deal")
    op.drop_table("deal")
    op.drop_table("vendor")
    op.drop_table("customer")
