"""Initial schema for the alert engine.

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """
    PURPOSE: Create the alert log, weight catalogue, strategies and actions.
    """
    # Alerts Table (append-only)
    op.create_table(
        "alerts",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("ticker", sa.String(length=20), nullable=False),
        sa.Column("timeframe", sa.String(length=10), nullable=True),
        sa.Column("indicator", sa.String(length=100), nullable=False),
        sa.Column("trigger", sa.String(length=255), nullable=False),
        sa.Column("weight", sa.Numeric(6, 2), nullable=True),
        sa.Column("price", sa.Float(), nullable=True),
        sa.Column("htf", sa.Text(), nullable=True),
        sa.Column("is_test", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("rsi_value", sa.Float(), nullable=True),
        sa.Column("rsi_status", sa.String(length=20), nullable=True),
        sa.Column("adx_value", sa.Float(), nullable=True),
        sa.Column("adx_strength", sa.String(length=20), nullable=True),
        sa.Column("adx_direction", sa.String(length=20), nullable=True),
        sa.Column("vwap_value", sa.Float(), nullable=True),
        sa.Column("htf_status", sa.String(length=50), nullable=True),
        sa.Column("volume_amount", sa.String(length=20), nullable=True),
        sa.Column("volume_change", sa.Float(), nullable=True),
        sa.Column("volume_level", sa.String(length=10), nullable=True),
        sa.Column("raw_body", sa.Text(), nullable=True),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_alerts_ticker_timestamp", "alerts", ["ticker", "timestamp"])

    # Available Alerts Table (weight catalogue)
    op.create_table(
        "available_alerts",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("indicator", sa.String(length=100), nullable=False),
        sa.Column("trigger", sa.String(length=255), nullable=False),
        sa.Column("weight", sa.Numeric(6, 2), nullable=False, server_default="0"),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("tooltip", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("indicator", "trigger", name="uq_available_alerts_indicator_trigger"),
    )

    # Strategies Table
    op.create_table(
        "strategies",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("timeframe", sa.Integer(), nullable=False, server_default="60"),
        sa.Column("threshold", sa.Numeric(8, 2), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("rule_groups", sa.JSON(), nullable=False),
        sa.Column("inter_group_operator", sa.String(length=3), nullable=False, server_default="AND"),
        sa.Column("tickers", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )

    # Actions Table
    op.create_table(
        "actions",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("strategy_id", sa.String(length=36), nullable=False),
        sa.Column("strategy_name", sa.String(length=100), nullable=False),
        sa.Column("ticker", sa.String(length=20), nullable=False),
        sa.Column("action", sa.String(length=4), nullable=False),
        sa.Column("score", sa.Numeric(8, 2), nullable=False),
        sa.Column("matched_alerts", sa.JSON(), nullable=False),
        sa.Column("missing_alerts", sa.JSON(), nullable=False),
        sa.Column("match_signature", sa.String(length=64), nullable=False),
        sa.Column("anchor_at", sa.DateTime(), nullable=False),
        sa.Column("dedupe_key", sa.String(length=64), nullable=False),
        sa.Column("is_test", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["strategy_id"], ["strategies.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("dedupe_key"),
    )
    op.create_index("ix_actions_strategy_id", "actions", ["strategy_id"])
    op.create_index("ix_actions_strategy_ticker_anchor", "actions", ["strategy_id", "ticker", "anchor_at"])
    op.create_index("ix_actions_timestamp", "actions", ["timestamp"])


def downgrade() -> None:
    """
    PURPOSE: Drop every table created by upgrade(), dependents first.
    """
    op.drop_index("ix_actions_timestamp", table_name="actions")
    op.drop_index("ix_actions_strategy_ticker_anchor", table_name="actions")
    op.drop_index("ix_actions_strategy_id", table_name="actions")
    op.drop_table("actions")
    op.drop_table("strategies")
    op.drop_table("available_alerts")
    op.drop_index("ix_alerts_ticker_timestamp", table_name="alerts")
    op.drop_table("alerts")
