"""Create the queue table

Revision ID: 001
Revises:
Create Date: 2024-04-09 20:06:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "queue",
        sa.Column("id", sa.Integer, autoincrement=True, nullable=False),
        sa.Column("channel", sa.String(255), nullable=False),
        sa.Column("payload", sa.LargeBinary, nullable=False),
        sa.Column("pushed_at", sa.Integer, nullable=False),
        sa.Column("ttr", sa.Integer, nullable=False),
        sa.Column("delay", sa.Integer, nullable=False, server_default="0"),
        sa.Column("priority", sa.Integer, nullable=False, server_default="1024"),
        sa.Column("reserved_at", sa.Integer, nullable=True),
        sa.Column("attempt", sa.Integer, nullable=True),
        sa.Column("done_at", sa.Integer, nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("priority >= 0", name="ck_queue_priority_unsigned"),
        sqlite_autoincrement=True,
    )

    # Reservation filters by channel and reserved_at and orders by priority;
    # the sweep filters by reserved_at
    op.create_index("ix_queue_channel", "queue", ["channel"])
    op.create_index("ix_queue_reserved_at", "queue", ["reserved_at"])
    op.create_index("ix_queue_priority", "queue", ["priority"])


def downgrade() -> None:
    op.drop_index("ix_queue_priority", table_name="queue")
    op.drop_index("ix_queue_reserved_at", table_name="queue")
    op.drop_index("ix_queue_channel", table_name="queue")
    op.drop_table("queue")
