from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from idregistry.db.base import Base
from idregistry.models.mixins import AuditMixin, LedgerCountersMixin


class IssnRange(AuditMixin, LedgerCountersMixin, Base):
    """Master ISSN block.

    range_begin, range_end and next hold the last four ISSN characters
    (three digit base plus check character); next is "" once exhausted.
    """

    __tablename__ = "issn_range"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    block: Mapped[str] = mapped_column(String(4), nullable=False)

    def format_issn(self, tail: str) -> str:
        return f"{self.block}-{tail}"


class IssnUsed(Base):
    __tablename__ = "issn_used"
    __table_args__ = (UniqueConstraint("issn", name="uq_issn_used_issn"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    issn: Mapped[str] = mapped_column(String(9), nullable=False)
    issn_range_id: Mapped[int] = mapped_column(ForeignKey("issn_range.id"), nullable=False, index=True)
    publication_id: Mapped[int] = mapped_column(
        ForeignKey("publication_issn.id"), nullable=False, index=True
    )
    created_by: Mapped[str] = mapped_column(String(255), nullable=False, default="system@local")
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=func.now())


class IssnCanceled(Base):
    __tablename__ = "issn_canceled"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    issn: Mapped[str] = mapped_column(String(9), nullable=False)
    issn_range_id: Mapped[int] = mapped_column(ForeignKey("issn_range.id"), nullable=False, index=True)
    canceled_by: Mapped[str] = mapped_column(String(255), nullable=False, default="system@local")
    canceled_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=func.now())


class PublisherIssn(AuditMixin, Base):
    __tablename__ = "publisher_issn"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    official_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")


class IssnForm(AuditMixin, Base):
    __tablename__ = "issn_form"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    publisher_id: Mapped[int | None] = mapped_column(
        ForeignKey("publisher_issn.id"), nullable=True, index=True
    )
    publication_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    publication_count_issn: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="NOT_HANDLED")


class PublicationIssn(AuditMixin, Base):
    __tablename__ = "publication_issn"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    publisher_id: Mapped[int] = mapped_column(ForeignKey("publisher_issn.id"), nullable=False, index=True)
    form_id: Mapped[int] = mapped_column(ForeignKey("issn_form.id"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    medium: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    issn: Mapped[str] = mapped_column(String(9), nullable=False, default="")
    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default="NO_PREPUBLICATION_RECORD"
    )
