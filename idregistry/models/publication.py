from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from idregistry.db.base import Base
from idregistry.models.mixins import AuditMixin


class PublicationIsbn(AuditMixin, Base):
    __tablename__ = "publication_isbn"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    publisher_id: Mapped[int | None] = mapped_column(
        ForeignKey("publisher_isbn.id"), nullable=True, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    publication_type: Mapped[str] = mapped_column(String(20), nullable=False, default="BOOK")
    publication_format: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    # Comma separated print types, e.g. "PAPERBACK,HARDBACK".
    type: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    # Comma separated electronical types, e.g. "PDF,EPUB".
    fileformat: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    # JSON object mapping identifier -> type label, or "" when empty.
    publication_identifier_print: Mapped[str] = mapped_column(Text, nullable=False, default="")
    publication_identifier_electronical: Mapped[str] = mapped_column(Text, nullable=False, default="")
    publication_identifier_type: Mapped[str] = mapped_column(String(4), nullable=False, default="")
    on_process: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    no_identifier_granted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    publications_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    publications_intra: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class MessageIsbn(Base):
    __tablename__ = "message_isbn"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    recipient: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    subject: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    publisher_id: Mapped[int | None] = mapped_column(
        ForeignKey("publisher_isbn.id"), nullable=True, index=True
    )
    batch_id: Mapped[int | None] = mapped_column(
        ForeignKey("identifier_batch.id"), nullable=True, index=True
    )
    sent_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=func.now())
