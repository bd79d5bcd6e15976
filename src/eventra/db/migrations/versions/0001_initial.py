"""Initial schema: events, webhooks, deliveries, rate limits, aggregate views.

Revision ID: 0001_initial
Revises:
Create Date: 2025-06-02
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

# Narrow projections of ``events``; bucketing happens at query time with
# date_bin() anchored at the requested start, so one projection per
# interval keeps each refresh independent.
AGGREGATE_VIEWS = ("events_1m", "events_5m", "events_15m", "events_1h", "events_1d")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "events",
        sa.Column("event_id", sa.String(128), primary_key=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("event_type", sa.String(255), nullable=False),
        sa.Column("source", sa.String(255), nullable=False),
        sa.Column("user_id", sa.String(255), nullable=True),
        sa.Column("session_id", sa.String(255), nullable=True),
        sa.Column("duration", sa.Integer, nullable=True),
        sa.Column("priority", sa.Integer, nullable=False, server_default="1"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("tags", sa.JSON, nullable=False),
        sa.Column("data", sa.JSON, nullable=False),
        sa.Column("metadata", sa.JSON, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_events_timestamp", "events", ["timestamp"])
    op.create_index("ix_events_source", "events", ["source"])
    op.create_index("ix_events_user_id", "events", ["user_id"])
    op.create_index("ix_events_status", "events", ["status"])
    op.create_index("ix_events_type_timestamp", "events", ["event_type", "timestamp"])

    op.create_table(
        "webhooks",
        sa.Column("webhook_id", sa.String(128), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("url", sa.String(2048), nullable=False),
        sa.Column("secret", sa.String(64), nullable=False),
        sa.Column("events", sa.JSON, nullable=False),
        sa.Column("headers", sa.JSON, nullable=True),
        sa.Column("enabled", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("retry_count", sa.Integer, nullable=False, server_default="3"),
        *_timestamps(),
    )
    op.create_index("ix_webhooks_enabled", "webhooks", ["enabled"])

    op.create_table(
        "webhook_deliveries",
        sa.Column("delivery_record_id", sa.String(128), primary_key=True),
        sa.Column(
            "webhook_id",
            sa.String(128),
            sa.ForeignKey("webhooks.webhook_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("delivery_id", sa.String(128), nullable=False),
        sa.Column("event_type", sa.String(255), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("status_code", sa.Integer, nullable=True),
        sa.Column("response", sa.JSON, nullable=True),
        sa.Column("error", sa.Text, nullable=True),
        sa.Column("retry_count", sa.Integer, nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_webhook_deliveries_webhook_id", "webhook_deliveries", ["webhook_id"])
    op.create_index("ix_webhook_deliveries_status", "webhook_deliveries", ["status"])
    op.create_index("ix_webhook_deliveries_created_at", "webhook_deliveries", ["created_at"])

    op.create_table(
        "rate_limits",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("key", sa.String(255), nullable=False),
        sa.Column("endpoint", sa.String(255), nullable=False),
        sa.Column("count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("reset_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("key", "endpoint", name="uq_rate_limits_key_endpoint"),
    )
    op.create_index("ix_rate_limits_key", "rate_limits", ["key"])
    op.create_index("ix_rate_limits_reset_at", "rate_limits", ["reset_at"])

    for view in AGGREGATE_VIEWS:
        op.execute(
            f"CREATE MATERIALIZED VIEW {view} AS "
            "SELECT timestamp, event_type, source, status, duration, user_id, session_id "
            "FROM events WITH DATA"
        )
        op.execute(f"CREATE INDEX ix_{view}_timestamp ON {view} (timestamp)")
        op.execute(f"CREATE INDEX ix_{view}_type_timestamp ON {view} (event_type, timestamp)")


def downgrade() -> None:
    for view in reversed(AGGREGATE_VIEWS):
        op.execute(f"DROP MATERIALIZED VIEW IF EXISTS {view}")
    op.drop_table("rate_limits")
    op.drop_table("webhook_deliveries")
    op.drop_table("webhooks")
    op.drop_table("events")
