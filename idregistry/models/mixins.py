from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func


class AuditMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
    created_by: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="system@local",
        server_default=text("'system@local'"),
    )
    modified_by: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="system@local",
        server_default=text("'system@local'"),
    )


class LedgerCountersMixin:
    """Counter columns shared by every range ledger row.

    At rest `free + taken + canceled (+ deleted)` equals the capacity of the
    row; every mutation moves exactly one unit between two counters.
    """

    range_begin: Mapped[str] = mapped_column(String(10), nullable=False)
    range_end: Mapped[str] = mapped_column(String(10), nullable=False)
    next: Mapped[str] = mapped_column(String(10), nullable=False)
    free: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    taken: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    canceled: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_closed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    @property
    def has_available(self) -> bool:
        return self.free > 0 or self.canceled > 0

    @property
    def is_exhausted(self) -> bool:
        return self.free == 0 and self.canceled == 0
