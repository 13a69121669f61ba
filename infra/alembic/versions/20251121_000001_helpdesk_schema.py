"""Helpdesk schema: branches, users, tickets, history, attachments, notifications, activity logs."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20251121_000001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name: str, *, nullable: bool = False, default: str | None = "CURRENT_TIMESTAMP") -> sa.Column:
    return sa.Column(
        name,
        sa.TIMESTAMP(timezone=True),
        nullable=nullable,
        server_default=sa.text(default) if default else None,
    )


def upgrade() -> None:
    op.create_table(
        "branches",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=150), nullable=False),
        sa.Column("code", sa.String(length=50), nullable=True, unique=True),
        sa.Column("city", sa.String(length=150), nullable=True),
        sa.Column("requires_attachments", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _timestamp("created_at"),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=150), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("branch_id", sa.BigInteger(), sa.ForeignKey("branches.id", ondelete="SET NULL"), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _timestamp("created_at"),
        sa.CheckConstraint("role IN ('operator', 'supervisor', 'admin')", name="users_role_valid"),
    )

    op.create_table(
        "tickets",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("ticket_date", sa.Date(), nullable=False),
        sa.Column("ticket_time", sa.Time(), nullable=True),
        sa.Column("branch_id", sa.BigInteger(), sa.ForeignKey("branches.id"), nullable=False),
        sa.Column("creator_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("status", sa.String(length=30), nullable=False),
        sa.Column("subject", sa.String(length=150), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("supervisor_remarks", sa.Text(), nullable=True),
        _timestamp("closed_at", nullable=True, default=None),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint(
            "status IN ('open', 'pending', 'pending_attachments', 'authorized', 'rejected', 'closed')",
            name="tickets_status_valid",
        ),
        sa.CheckConstraint("(status = 'closed') = (closed_at IS NOT NULL)", name="tickets_closed_at_matches_status"),
    )

    op.create_table(
        "ticket_state_transitions",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("ticket_id", sa.BigInteger(), sa.ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False),
        sa.Column("from_status", sa.String(length=30), nullable=True),
        sa.Column("to_status", sa.String(length=30), nullable=False),
        sa.Column("actor_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        _timestamp("created_at", default="clock_timestamp()"),
    )
    op.create_index(
        "ix_ticket_state_transitions_ticket",
        "ticket_state_transitions",
        ["ticket_id", "created_at", "id"],
    )

    op.create_table(
        "ticket_attachments",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("ticket_id", sa.BigInteger(), sa.ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False),
        sa.Column("kind", sa.String(length=20), nullable=False),
        sa.Column("original_name", sa.String(length=255), nullable=False),
        sa.Column("storage_path", sa.String(length=500), nullable=False),
        sa.Column("mime_type", sa.String(length=255), nullable=True),
        sa.Column("size_bytes", sa.BigInteger(), nullable=False),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _timestamp("created_at", default="clock_timestamp()"),
        sa.CheckConstraint("kind IN ('image', 'spreadsheet', 'pdf', 'other')", name="ticket_attachments_kind_valid"),
    )
    op.create_index(
        "ux_ticket_attachments_primary",
        "ticket_attachments",
        ["ticket_id"],
        unique=True,
        postgresql_where=sa.text("is_primary"),
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("ticket_id", sa.BigInteger(), sa.ForeignKey("tickets.id", ondelete="CASCADE"), nullable=True),
        sa.Column("origin_user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column(
            "destination_user_id",
            sa.BigInteger(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("channel", sa.String(length=20), nullable=False),
        sa.Column("subject", sa.String(length=255), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("delivery_state", sa.String(length=20), nullable=False),
        _timestamp("created_at", default="clock_timestamp()"),
        _timestamp("sent_at", nullable=True, default=None),
        _timestamp("read_at", nullable=True, default=None),
        sa.CheckConstraint("channel IN ('internal', 'email', 'other')", name="notifications_channel_valid"),
        sa.CheckConstraint("delivery_state IN ('pending', 'sent', 'error')", name="notifications_delivery_state_valid"),
    )
    op.create_index("ix_notifications_destination", "notifications", ["destination_user_id", "read_at"])
    op.create_index(
        "ix_notifications_pending_email",
        "notifications",
        ["ticket_id"],
        postgresql_where=sa.text("channel = 'email' AND delivery_state = 'pending'"),
    )

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), nullable=True),
        sa.Column("module", sa.String(length=50), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("entity", sa.String(length=50), nullable=True),
        sa.Column("entity_id", sa.BigInteger(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("ip", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        _timestamp("created_at"),
    )


def downgrade() -> None:
    op.drop_table("activity_logs")
    op.drop_index("ix_notifications_pending_email", table_name="notifications")
    op.drop_index("ix_notifications_destination", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ux_ticket_attachments_primary", table_name="ticket_attachments")
    op.drop_table("ticket_attachments")
    op.drop_index("ix_ticket_state_transitions_ticket", table_name="ticket_state_transitions")
    op.drop_table("ticket_state_transitions")
    op.drop_table("tickets")
    op.drop_table("users")
    op.drop_table("branches")
