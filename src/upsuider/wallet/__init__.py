"""Session-side zkLogin wallet: login, account storage and transaction signing."""

from .accounts import Account, AccountStore
from .channel import ChannelResponse, SessionChannel
from .config import ZkLoginConfig, merge_config
from .login import IdentityBindingService
from .signer import SignatureAssembler

__all__ = [
    "Account",
    "AccountStore",
    "ChannelResponse",
    "IdentityBindingService",
    "SessionChannel",
    "SignatureAssembler",
    "ZkLoginConfig",
    "merge_config",
]
