# src/upsuider/models/wallet.py
"""SQLAlchemy model for the viewer wallet directory."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from upsuider.db.session import Base
from upsuider.db.time import utcnow


class ZkLoginWallet(Base):
    """Mapping from a Twitch user to the zkLogin address they registered."""

    __tablename__ = "zklogin_wallets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    wallet_address: Mapped[str] = mapped_column(Text, unique=True, nullable=False, index=True)
    twitch_user_id: Mapped[str] = mapped_column(Text, unique=True, nullable=False, index=True)
    provider: Mapped[str] = mapped_column(Text, nullable=False, default="twitch")
    audience: Mapped[str | None] = mapped_column(Text, nullable=True)
    registered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )
