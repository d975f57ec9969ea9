"""Create referral network tables.

Revision ID: 20261018_000001
Revises:
Create Date: 2026-10-18

Members, the materialized ancestor index, commission ledger, monthly
rollups and campaign links.
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261018_000001"
down_revision = None
branch_labels = None
depends_on = None

MONEY = sa.DECIMAL(precision=18, scale=8)


def upgrade() -> None:
    """Create referral network tables."""
    op.create_table(
        "members",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("referral_code", sa.String(length=16), nullable=False),
        # Sponsorship
        sa.Column("sponsor_id", sa.String(length=64), nullable=True),
        sa.Column("generation", sa.Integer(), nullable=False, server_default="0"),
        # Balances
        sa.Column("available_balance", MONEY, nullable=False, server_default="0"),
        sa.Column("pending_balance", MONEY, nullable=False, server_default="0"),
        sa.Column("lifetime_earned", MONEY, nullable=False, server_default="0"),
        sa.Column("lifetime_withdrawn", MONEY, nullable=False, server_default="0"),
        sa.Column("rank_level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        # Timestamps
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column("suspended_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["sponsor_id"], ["members.id"], ondelete="RESTRICT"),
        sa.CheckConstraint("available_balance >= 0", name="check_member_available_non_negative"),
        sa.CheckConstraint("pending_balance >= 0", name="check_member_pending_non_negative"),
        sa.CheckConstraint("lifetime_earned >= 0", name="check_member_lifetime_earned_non_negative"),
        sa.CheckConstraint("lifetime_withdrawn >= 0", name="check_member_lifetime_withdrawn_non_negative"),
        sa.CheckConstraint(
            "sponsor_id IS NULL OR sponsor_id <> id", name="check_member_not_own_sponsor"
        ),
        sa.CheckConstraint("generation >= 0", name="check_member_generation"),
    )
    op.create_index("ix_members_referral_code", "members", ["referral_code"], unique=True)
    op.create_index("ix_members_sponsor_id", "members", ["sponsor_id"])
    op.create_index("ix_members_status", "members", ["status"])

    op.create_table(
        "referral_edges",
        sa.Column("member_id", sa.String(length=64), nullable=False),
        sa.Column("ancestor_id", sa.String(length=64), nullable=False),
        sa.Column("generation_distance", sa.Integer(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("member_id", "ancestor_id"),
        sa.ForeignKeyConstraint(["member_id"], ["members.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["ancestor_id"], ["members.id"], ondelete="RESTRICT"),
        sa.UniqueConstraint(
            "member_id", "generation_distance", name="uq_referral_edges_member_distance"
        ),
        sa.CheckConstraint("member_id <> ancestor_id", name="check_edge_not_self"),
        sa.CheckConstraint("generation_distance >= 1", name="check_edge_distance_positive"),
    )
    op.create_index(
        "idx_referral_edges_ancestor_distance",
        "referral_edges",
        ["ancestor_id", "generation_distance"],
    )

    op.create_table(
        "commission_records",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("recipient_id", sa.String(length=64), nullable=False),
        sa.Column("source_member_id", sa.String(length=64), nullable=False),
        sa.Column("originating_event_id", sa.String(length=128), nullable=False),
        sa.Column("event_kind", sa.String(length=20), nullable=False),
        sa.Column("commission_type", sa.String(length=20), nullable=False),
        sa.Column("generation_distance", sa.Integer(), nullable=False),
        sa.Column("base_amount", MONEY, nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("rate_applied", sa.DECIMAL(precision=10, scale=4), nullable=False),
        sa.Column("currency", sa.String(length=10), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column("settled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("failure_reason", sa.String(length=255), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["recipient_id"], ["members.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["source_member_id"], ["members.id"], ondelete="RESTRICT"),
        sa.UniqueConstraint(
            "recipient_id",
            "originating_event_id",
            "generation_distance",
            name="uq_commission_recipient_event_distance",
        ),
        sa.CheckConstraint("amount >= 0", name="check_commission_amount"),
        sa.CheckConstraint("generation_distance >= 1", name="check_commission_distance"),
    )
    op.create_index("ix_commission_records_recipient_id", "commission_records", ["recipient_id"])
    op.create_index(
        "ix_commission_records_source_member_id", "commission_records", ["source_member_id"]
    )
    op.create_index(
        "ix_commission_records_originating_event_id",
        "commission_records",
        ["originating_event_id"],
    )
    op.create_index("ix_commission_records_status", "commission_records", ["status"])
    op.create_index("ix_commission_records_created_at", "commission_records", ["created_at"])
    op.create_index(
        "idx_commission_recipient_status_created",
        "commission_records",
        ["recipient_id", "status", "created_at"],
    )

    op.create_table(
        "commission_rollups",
        sa.Column("member_id", sa.String(length=64), nullable=False),
        sa.Column("period", sa.Integer(), nullable=False),  # yyyymm
        sa.Column("earned_total", MONEY, nullable=False, server_default="0"),
        sa.Column("pending_total", MONEY, nullable=False, server_default="0"),
        sa.Column("record_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("member_id", "period"),
        sa.ForeignKeyConstraint(["member_id"], ["members.id"], ondelete="RESTRICT"),
    )

    op.create_table(
        "referral_links",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("owner_id", sa.String(length=64), nullable=False),
        sa.Column("campaign_label", sa.String(length=100), nullable=True),
        sa.Column("link_code", sa.String(length=16), nullable=False),
        sa.Column("click_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["owner_id"], ["members.id"], ondelete="RESTRICT"),
    )
    op.create_index("ix_referral_links_owner_id", "referral_links", ["owner_id"])
    op.create_index("ix_referral_links_link_code", "referral_links", ["link_code"], unique=True)


def downgrade() -> None:
    """Drop referral network tables."""
    op.drop_index("ix_referral_links_link_code", table_name="referral_links")
    op.drop_index("ix_referral_links_owner_id", table_name="referral_links")
    op.drop_table("referral_links")

    op.drop_table("commission_rollups")

    op.drop_index("idx_commission_recipient_status_created", table_name="commission_records")
    op.drop_index("ix_commission_records_created_at", table_name="commission_records")
    op.drop_index("ix_commission_records_status", table_name="commission_records")
    op.drop_index("ix_commission_records_originating_event_id", table_name="commission_records")
    op.drop_index("ix_commission_records_source_member_id", table_name="commission_records")
    op.drop_index("ix_commission_records_recipient_id", table_name="commission_records")
    op.drop_table("commission_records")

    op.drop_index("idx_referral_edges_ancestor_distance", table_name="referral_edges")
    op.drop_table("referral_edges")

    op.drop_index("ix_members_status", table_name="members")
    op.drop_index("ix_members_sponsor_id", table_name="members")
    op.drop_index("ix_members_referral_code", table_name="members")
    op.drop_table("members")
