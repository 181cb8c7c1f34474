# src/upsuider/models/__init__.py
"""SQLAlchemy models for the Upsuider backend."""

from .salt import ViewerSalt
from .wallet import ZkLoginWallet

__all__ = ["ViewerSalt", "ZkLoginWallet"]
