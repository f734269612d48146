"""
SQLAlchemy database models.
Defines the queue table holding one row per job.
"""

from sqlalchemy import CheckConstraint, Index, Integer, LargeBinary, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from tablequeue.constants import (
    DEFAULT_DELAY_SECONDS,
    DEFAULT_PRIORITY,
    QUEUE_TABLE,
    JobStatus,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class QueueJob(Base):
    """
    A job row in the queue table.

    State is never stored directly; it is derived from the timestamps:
    - waiting: reserved_at is NULL
    - reserved: reserved_at is set and done_at is NULL
    - done: done_at is set (or the row is gone under delete-on-release)

    All times are unix seconds. The id doubles as the FIFO tie-break key
    among jobs of equal priority.
    """

    __tablename__ = QUEUE_TABLE

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    channel: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    payload: Mapped[bytes] = mapped_column(
        LargeBinary,
        nullable=False,
    )
    pushed_at: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    ttr: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    delay: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=DEFAULT_DELAY_SECONDS,
        server_default=str(DEFAULT_DELAY_SECONDS),
    )
    # Lower value = higher priority
    priority: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=DEFAULT_PRIORITY,
        server_default=str(DEFAULT_PRIORITY),
    )

    # Lease management
    reserved_at: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )
    attempt: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )
    done_at: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )

    __table_args__ = (
        CheckConstraint("priority >= 0", name="ck_queue_priority_unsigned"),
        # These three back the reservation and sweep queries
        Index("ix_queue_channel", "channel"),
        Index("ix_queue_reserved_at", "reserved_at"),
        Index("ix_queue_priority", "priority"),
        # Never reuse the id of a deleted row
        {"sqlite_autoincrement": True},
    )

    @property
    def status(self) -> JobStatus:
        """Derive the lifecycle state from the row timestamps."""
        if self.reserved_at is None:
            return JobStatus.WAITING
        if self.done_at is None:
            return JobStatus.RESERVED
        return JobStatus.DONE

    def is_visible(self, now: int) -> bool:
        """Check whether the visibility delay has elapsed."""
        return self.pushed_at + self.delay <= now

    def is_lease_expired(self, now: int) -> bool:
        """Check whether a reserved job has outlived its time-to-run."""
        if self.reserved_at is None or self.done_at is not None:
            return False
        return now - self.reserved_at >= self.ttr

    def __repr__(self) -> str:
        return (
            f"QueueJob(id={self.id}, channel={self.channel}, "
            f"status={self.status}, priority={self.priority}, attempt={self.attempt})"
        )
