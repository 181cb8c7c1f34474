# src/upsuider/models/salt.py
"""SQLAlchemy model for per-viewer zkLogin salts."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from upsuider.db.session import Base
from upsuider.db.time import utcnow


class ViewerSalt(Base):
    """Secret salt blended into a viewer's address derivation."""

    __tablename__ = "viewer_salts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    twitch_id: Mapped[str] = mapped_column(Text, unique=True, nullable=False, index=True)
    # Decimal string; must stay in (0, BN254 modulus).
    salt: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )
