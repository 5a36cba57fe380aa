from __future__ import annotations

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from idregistry.db.base import Base
from idregistry.models.mixins import AuditMixin


class PublisherIsbn(AuditMixin, Base):
    __tablename__ = "publisher_isbn"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    official_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    has_quitted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Formatted publisher identifier of the active sub-range, "" when none.
    active_identifier_isbn: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    active_identifier_ismn: Mapped[str] = mapped_column(String(20), nullable=False, default="")
