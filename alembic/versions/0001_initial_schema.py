"""Create users, cases, status history, contributions, updates, and notification tables."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

sqlite_bigint = sa.BigInteger().with_variant(sa.Integer(), "sqlite")
money = sa.Numeric(12, 2)


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    )


def upgrade() -> None:
    """Create the case lifecycle schema."""

    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("display_name", sa.Text(), nullable=True),
        sa.Column("role", sa.Text(), nullable=False, server_default=sa.text("'donor'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.CheckConstraint("role IN ('donor', 'sponsor', 'admin')", name="ck_users_role"),
    )
    op.create_index("ix_users_role_is_active", "users", ["role", "is_active"])

    op.create_table(
        "cases",
        sa.Column("case_id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("title_ar", sa.Text(), nullable=True),
        sa.Column("case_type", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'draft'")),
        sa.Column("target_amount", money, nullable=False),
        sa.Column("current_amount", money, nullable=False, server_default=sa.text("0")),
        sa.Column("created_by", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("assigned_to", sa.Uuid(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("sponsored_by", sa.Uuid(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("beneficiary_name", sa.Text(), nullable=True),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint("case_type IN ('one-time', 'recurring')", name="ck_cases_case_type"),
        sa.CheckConstraint("target_amount >= 0", name="ck_cases_target_amount_non_negative"),
    )
    op.create_index("ix_cases_case_type_status", "cases", ["case_type", "status"])
    op.create_index("ix_cases_created_by", "cases", ["created_by"])

    op.create_table(
        "case_status_history",
        sa.Column("id", sqlite_bigint, primary_key=True, autoincrement=True),
        sa.Column("case_id", sa.Uuid(), sa.ForeignKey("cases.case_id"), nullable=False),
        sa.Column("previous_status", sa.Text(), nullable=True),
        sa.Column("new_status", sa.Text(), nullable=False),
        sa.Column("changed_by", sa.Uuid(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("system_triggered", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("change_reason", sa.Text(), nullable=True),
        _timestamp("changed_at"),
    )
    op.create_index(
        "ix_case_status_history_case_id_changed_at",
        "case_status_history",
        ["case_id", "changed_at"],
    )

    op.create_table(
        "contributions",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("case_id", sa.Uuid(), sa.ForeignKey("cases.case_id"), nullable=False),
        sa.Column("donor_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("amount", money, nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'pending'")),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_contributions_status",
        ),
        sa.CheckConstraint("amount > 0", name="ck_contributions_amount_positive"),
    )
    op.create_index(
        "ix_contributions_case_id_status",
        "contributions",
        ["case_id", "status"],
    )

    op.create_table(
        "case_updates",
        sa.Column("id", sqlite_bigint, primary_key=True, autoincrement=True),
        sa.Column("case_id", sa.Uuid(), sa.ForeignKey("cases.case_id"), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("update_type", sa.Text(), nullable=False),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_by", sa.Uuid(), sa.ForeignKey("users.id"), nullable=True),
        _timestamp("created_at"),
        sa.CheckConstraint(
            "update_type IN ('progress', 'milestone', 'general', 'emergency')",
            name="ck_case_updates_update_type",
        ),
    )
    op.create_index(
        "ix_case_updates_case_id_created_at",
        "case_updates",
        ["case_id", "created_at"],
    )

    op.create_table(
        "notification_rules",
        sa.Column("rule_id", sa.Text(), primary_key=True, nullable=False),
        sa.Column("definition", sa.JSON(), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )

    op.create_table(
        "notifications",
        sa.Column("id", sqlite_bigint, primary_key=True, autoincrement=True),
        sa.Column("recipient_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("notification_type", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("data", sa.JSON(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp("created_at"),
    )
    op.create_index(
        "ix_notifications_recipient_id_created_at",
        "notifications",
        ["recipient_id", "created_at"],
    )


def downgrade() -> None:
    """Drop the case lifecycle schema."""

    op.drop_index("ix_notifications_recipient_id_created_at", table_name="notifications")
    op.drop_table("notifications")
    op.drop_table("notification_rules")
    op.drop_index("ix_case_updates_case_id_created_at", table_name="case_updates")
    op.drop_table("case_updates")
    op.drop_index("ix_contributions_case_id_status", table_name="contributions")
    op.drop_table("contributions")
    op.drop_index("ix_case_status_history_case_id_changed_at", table_name="case_status_history")
    op.drop_table("case_status_history")
    op.drop_index("ix_cases_created_by", table_name="cases")
    op.drop_index("ix_cases_case_type_status", table_name="cases")
    op.drop_table("cases")
    op.drop_index("ix_users_role_is_active", table_name="users")
    op.drop_table("users")
