"""Initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 00:00:00
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "participants",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("telegram_id", sa.BigInteger(), nullable=False),
        sa.Column("telegram_username", sa.String(), nullable=True),
        sa.Column("display_name", sa.String(), nullable=True),
        sa.Column("has_private_chat", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_participants_telegram_id", "participants", ["telegram_id"], unique=True)

    op.create_table(
        "gift_exchanges",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("telegram_chat_id", sa.BigInteger(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("draft", "participants_added", "assigned", "completed", name="exchange_status"),
            nullable=False,
            server_default="draft",
        ),
        sa.Column("created_by_telegram_id", sa.BigInteger(), nullable=True),
        sa.Column("last_assignment_seed", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_gift_exchanges_telegram_chat_id", "gift_exchanges", ["telegram_chat_id"], unique=True)

    op.create_table(
        "exchange_participants",
        sa.Column("participant_id", sa.Integer(), nullable=False),
        sa.Column("exchange_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["exchange_id"], ["gift_exchanges.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["participant_id"], ["participants.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("participant_id", "exchange_id"),
        sa.UniqueConstraint(
            "participant_id", "exchange_id", name="uq_exchange_participants_participant_exchange"
        ),
    )

    op.create_table(
        "exclusion_rules",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("exchange_id", sa.Integer(), nullable=False),
        sa.Column("excluder_id", sa.Integer(), nullable=False),
        sa.Column("excluded_id", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["exchange_id"], ["gift_exchanges.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["excluder_id"], ["participants.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["excluded_id"], ["participants.id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "exchange_id", "excluder_id", "excluded_id", name="uq_exclusion_rules_exchange_pair"
        ),
    )

    op.create_table(
        "assignments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("exchange_id", sa.Integer(), nullable=False),
        sa.Column("giver_id", sa.Integer(), nullable=False),
        sa.Column("receiver_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["exchange_id"], ["gift_exchanges.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["giver_id"], ["participants.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["receiver_id"], ["participants.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("exchange_id", "giver_id", name="uq_assignments_exchange_giver"),
    )


def downgrade() -> None:
    op.drop_table("assignments")
    op.drop_table("exclusion_rules")
    op.drop_table("exchange_participants")
    op.drop_index("ix_gift_exchanges_telegram_chat_id", table_name="gift_exchanges")
    op.drop_table("gift_exchanges")
    op.drop_index("ix_participants_telegram_id", table_name="participants")
    op.drop_table("participants")
    sa.Enum(name="exchange_status").drop(op.get_bind(), checkfirst=True)
