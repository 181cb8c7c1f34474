"""Per-session zkLogin account storage."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from threading import Lock
from typing import Any

from upsuider.services.crypto import Ed25519Keypair

logger = logging.getLogger(__name__)

AccountObserver = Callable[[list["Account"]], None]


@dataclass(frozen=True)
class Account:
    """An identity bound to a zkLogin address for the lifetime of one session.

    The ephemeral keypair never leaves the session: it is excluded from ``repr``
    and from ``public_view``.
    """

    provider: str
    address: str
    salt: str = field(repr=False)
    subject: str
    audience: str
    issuer: str
    max_epoch: int
    randomness: str = field(repr=False)
    zk_proof: Mapping[str, Any] = field(repr=False)
    ephemeral_keypair: Ed25519Keypair = field(repr=False)

    def public_view(self) -> dict[str, Any]:
        """Return the fields safe to hand to UI code."""
        return {
            "provider": self.provider,
            "address": self.address,
            "sub": self.subject,
            "aud": self.audience,
            "iss": self.issuer,
            "maxEpoch": self.max_epoch,
        }


class AccountStore:
    """Ordered account list, newest login first, one entry per address."""

    def __init__(self) -> None:
        self._accounts: list[Account] = []
        self._observers: list[AccountObserver] = []
        self._lock = Lock()

    def subscribe(self, observer: AccountObserver) -> None:
        """Register a callback invoked with the account list after every change."""
        self._observers.append(observer)

    def _notify(self, snapshot: list[Account]) -> None:
        for observer in list(self._observers):
            try:
                observer(snapshot)
            except Exception:  # pragma: no cover
                logger.exception("Account observer failed")

    def all(self) -> list[Account]:
        with self._lock:
            return list(self._accounts)

    def get(self, address: str) -> Account | None:
        with self._lock:
            return next((acct for acct in self._accounts if acct.address == address), None)

    def add(self, account: Account) -> None:
        """Store ``account`` first, evicting any earlier login for the same address."""
        with self._lock:
            self._accounts = [
                account,
                *(existing for existing in self._accounts if existing.address != account.address),
            ]
            snapshot = list(self._accounts)
        self._notify(snapshot)

    def remove(self, address: str) -> bool:
        with self._lock:
            before = len(self._accounts)
            self._accounts = [acct for acct in self._accounts if acct.address != address]
            removed = len(self._accounts) != before
            snapshot = list(self._accounts)
        if removed:
            self._notify(snapshot)
        return removed

    def clear(self) -> None:
        with self._lock:
            self._accounts = []
        self._notify([])

    def __len__(self) -> int:
        with self._lock:
            return len(self._accounts)
