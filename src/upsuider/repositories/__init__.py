"""Persistence adapters for salts and the wallet directory."""

from .salt_repo import SqlSaltStore
from .wallet_repo import WalletRepository

__all__ = ["SqlSaltStore", "WalletRepository"]
