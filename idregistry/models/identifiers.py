from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from idregistry.db.base import Base


class IdentifierBatch(Base):
    __tablename__ = "identifier_batch"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    identifier_type: Mapped[str] = mapped_column(String(4), nullable=False, index=True)
    # Newly minted identifiers.
    identifier_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Identifiers reissued from the canceled pool.
    identifier_canceled_used_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    identifier_canceled_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    identifier_deleted_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    publisher_id: Mapped[int] = mapped_column(
        ForeignKey("publisher_isbn.id"), nullable=False, index=True
    )
    # None for identifier lists not bound to a publication.
    publication_id: Mapped[int | None] = mapped_column(
        ForeignKey("publication_isbn.id"), nullable=True, index=True
    )
    # Primary sub-range; lives in isbn_sub_range or ismn_sub_range by identifier_type.
    subrange_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False, default="system@local")
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=func.now())

    @property
    def total_count(self) -> int:
        return self.identifier_count + self.identifier_canceled_used_count

    @property
    def retired_count(self) -> int:
        return self.identifier_canceled_count + self.identifier_deleted_count


class Identifier(Base):
    __tablename__ = "identifier"
    __table_args__ = (UniqueConstraint("identifier", name="uq_identifier_identifier"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    identifier: Mapped[str] = mapped_column(String(20), nullable=False)
    subrange_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    identifier_batch_id: Mapped[int] = mapped_column(
        ForeignKey("identifier_batch.id"), nullable=False, index=True
    )
    publication_type: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=func.now())


class IdentifierCanceled(Base):
    __tablename__ = "identifier_canceled"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    identifier: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    identifier_type: Mapped[str] = mapped_column(String(4), nullable=False)
    category: Mapped[int] = mapped_column(Integer, nullable=False)
    publisher_id: Mapped[int] = mapped_column(
        ForeignKey("publisher_isbn.id"), nullable=False, index=True
    )
    subrange_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    canceled_by: Mapped[str] = mapped_column(String(255), nullable=False, default="system@local")
    canceled_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=func.now())


class IdentifierBatchDownload(Base):
    __tablename__ = "identifier_batch_download"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    batch_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    sha256sum: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=func.now())
