"""Data access helpers for the viewer wallet directory."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from upsuider.db.time import utcnow
from upsuider.models.wallet import ZkLoginWallet

__all__ = ["WalletRepository"]


class WalletRepository:
    """Thin wrapper around database access for wallet records."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def find_by_twitch_user_id(self, twitch_user_id: str) -> ZkLoginWallet | None:
        """Return the wallet registered for a Twitch user."""
        result = self.session.execute(
            select(ZkLoginWallet).where(ZkLoginWallet.twitch_user_id == twitch_user_id)
        )
        return result.scalars().first()

    def find_by_address(self, wallet_address: str) -> ZkLoginWallet | None:
        """Return the wallet record for an address."""
        result = self.session.execute(
            select(ZkLoginWallet).where(ZkLoginWallet.wallet_address == wallet_address)
        )
        return result.scalars().first()

    def lookup(self, twitch_user_id: str) -> str | None:
        """Resolve a Twitch user to their bound address, or None when unknown."""
        wallet = self.find_by_twitch_user_id(twitch_user_id)
        return wallet.wallet_address if wallet is not None else None

    def upsert(
        self,
        *,
        wallet_address: str,
        twitch_user_id: str,
        provider: str = "twitch",
        audience: str | None = None,
        registered_at: datetime | None = None,
    ) -> tuple[ZkLoginWallet, bool]:
        """Create or update the record keyed by ``wallet_address``.

        Returns:
            Tuple of (wallet, created).
        """
        wallet = self.find_by_address(wallet_address)
        created = wallet is None
        if wallet is None:
            wallet = ZkLoginWallet(wallet_address=wallet_address, twitch_user_id=twitch_user_id)
            self.session.add(wallet)
        wallet.twitch_user_id = twitch_user_id
        wallet.provider = provider
        wallet.audience = audience
        wallet.registered_at = registered_at or utcnow()
        wallet.updated_at = utcnow()
        self.session.flush()
        return wallet, created
