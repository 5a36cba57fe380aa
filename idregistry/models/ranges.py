from __future__ import annotations

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from idregistry.db.base import Base
from idregistry.models.mixins import AuditMixin, LedgerCountersMixin


class IsbnRange(AuditMixin, LedgerCountersMixin, Base):
    __tablename__ = "isbn_range"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    prefix: Mapped[int] = mapped_column(Integer, nullable=False)
    lang_group: Mapped[int] = mapped_column(Integer, nullable=False)
    # Width in digits of the publisher part carved out of this range.
    category: Mapped[int] = mapped_column(Integer, nullable=False)

    def format_publisher_identifier(self, digits: str) -> str:
        return f"{self.prefix}-{self.lang_group}-{digits}"

    def scope_key(self) -> tuple:
        return (self.prefix, self.lang_group)


class IsmnRange(AuditMixin, LedgerCountersMixin, Base):
    __tablename__ = "ismn_range"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    prefix: Mapped[str] = mapped_column(String(10), nullable=False, default="979-0")
    category: Mapped[int] = mapped_column(Integer, nullable=False)

    def format_publisher_identifier(self, digits: str) -> str:
        return f"{self.prefix}-{digits}"

    def scope_key(self) -> tuple:
        return (self.prefix,)


class IsbnSubRange(AuditMixin, LedgerCountersMixin, Base):
    __tablename__ = "isbn_sub_range"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    publisher_id: Mapped[int] = mapped_column(
        ForeignKey("publisher_isbn.id"), nullable=False, index=True
    )
    range_id: Mapped[int] = mapped_column(ForeignKey("isbn_range.id"), nullable=False, index=True)
    publisher_identifier: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    # Width in digits of the item part minted from this sub-range.
    category: Mapped[int] = mapped_column(Integer, nullable=False)
    deleted: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class IsmnSubRange(AuditMixin, LedgerCountersMixin, Base):
    __tablename__ = "ismn_sub_range"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    publisher_id: Mapped[int] = mapped_column(
        ForeignKey("publisher_isbn.id"), nullable=False, index=True
    )
    range_id: Mapped[int] = mapped_column(ForeignKey("ismn_range.id"), nullable=False, index=True)
    publisher_identifier: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    category: Mapped[int] = mapped_column(Integer, nullable=False)
    deleted: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class IsbnSubRangeCanceled(AuditMixin, Base):
    __tablename__ = "isbn_sub_range_canceled"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    identifier: Mapped[str] = mapped_column(String(20), nullable=False)
    range_id: Mapped[int] = mapped_column(ForeignKey("isbn_range.id"), nullable=False, index=True)
    category: Mapped[int] = mapped_column(Integer, nullable=False)


class IsmnSubRangeCanceled(AuditMixin, Base):
    __tablename__ = "ismn_sub_range_canceled"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    identifier: Mapped[str] = mapped_column(String(20), nullable=False)
    range_id: Mapped[int] = mapped_column(ForeignKey("ismn_range.id"), nullable=False, index=True)
    category: Mapped[int] = mapped_column(Integer, nullable=False)
