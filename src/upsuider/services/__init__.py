"""Business logic services for the Upsuider backend."""

from .crypto import CryptoService, Ed25519Keypair
from .eventsub import WebhookAuthenticator
from .replay import ReplayCache
from .salts import SaltRegistry

__all__ = [
    "CryptoService",
    "Ed25519Keypair",
    "ReplayCache",
    "SaltRegistry",
    "WebhookAuthenticator",
]
