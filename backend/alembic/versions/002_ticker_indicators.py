"""Per-ticker indicator view and action anchor fingerprint.

Revision ID: 002
Revises: 001
Create Date: 2026-10-20 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    """
    PURPOSE: Add the latest-readings table and the redelivery fingerprint on actions.
    """
    op.add_column("actions", sa.Column("anchor_fingerprint", sa.String(length=64), nullable=True))

    # Ticker Indicators Table (one row per ticker)
    op.create_table(
        "ticker_indicators",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("ticker", sa.String(length=20), nullable=False),
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
        sa.Column("last_alert_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("ticker"),
    )
    op.create_index("ix_ticker_indicators_updated_at", "ticker_indicators", ["updated_at"])


def downgrade() -> None:
    """
    PURPOSE: Drop the ticker view and the fingerprint column.
    """
    op.drop_index("ix_ticker_indicators_updated_at", table_name="ticker_indicators")
    op.drop_table("ticker_indicators")
    op.drop_column("actions", "anchor_fingerprint")
