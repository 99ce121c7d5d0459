"""Portal documents stored as key-value JSON rows.

Each row holds one whole document (``users``, ``applications``,
``settings`` or ``chats``).  Writes overwrite the full value; there are no
partial updates.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, Integer, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from portal.models.db.base import Base

__all__ = ["PortalDocument"]


class PortalDocument(Base):
    """A single named JSON document."""

    __tablename__ = "portal_documents"

    key: Mapped[str] = mapped_column(Text, primary_key=True)
    value: Mapped[Any] = mapped_column(JSON, nullable=True)
    schema_version: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default="1"
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=True,
    )
