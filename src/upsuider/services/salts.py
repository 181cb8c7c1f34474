# src/upsuider/services/salts.py
"""Per-subject salt registry.

A salt is one input to zkLogin address derivation, so it must stay stable for a
subject across logins: changing it silently moves the viewer to a different
address. The registry therefore never regenerates an existing salt, even when the
stored value turns out to be invalid; that case is surfaced as
``SaltInvalidError`` and fixed explicitly with ``replace_salt``.
"""

from __future__ import annotations

import logging
import re
import secrets
from collections.abc import Callable
from threading import Lock
from typing import Protocol

from upsuider.core.errors import SaltInvalidError
from upsuider.utils.poseidon import FIELD_MODULUS

logger = logging.getLogger(__name__)

SALT_BYTES = 32
_DECIMAL = re.compile(r"[0-9]+")
_MAX_SALT_DIGITS = len(str(FIELD_MODULUS))


class SaltStore(Protocol):
    """Persistence seam for ``subject -> salt`` records."""

    def get(self, subject: str) -> str | None: ...

    def put(self, subject: str, salt: str) -> bool:
        """Insert or overwrite a salt; return True if a new record was created."""
        ...


class MemorySaltStore:
    """Process-local salt store, used for session-local salts and tests."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._salts: dict[str, str] = dict(initial or {})
        self._lock = Lock()

    def get(self, subject: str) -> str | None:
        with self._lock:
            return self._salts.get(subject)

    def put(self, subject: str, salt: str) -> bool:
        with self._lock:
            created = subject not in self._salts
            self._salts[subject] = salt
            return created


def is_valid_salt(salt: str) -> bool:
    """Return True if ``salt`` is a decimal integer with ``0 < salt < FIELD_MODULUS``."""
    if len(salt) > _MAX_SALT_DIGITS or not _DECIMAL.fullmatch(salt):
        return False
    return 0 < int(salt) < FIELD_MODULUS


class SaltRegistry:
    """Service owning per-subject salts."""

    def __init__(
        self,
        store: SaltStore,
        random_bytes: Callable[[int], bytes] = secrets.token_bytes,
    ) -> None:
        self._store = store
        self._random_bytes = random_bytes

    @staticmethod
    def is_valid(salt: str) -> bool:
        return is_valid_salt(salt)

    def generate_salt(self) -> str:
        """Draw a uniform salt in ``[1, FIELD_MODULUS)``.

        A draw that reduces to exactly zero is remapped to 1. This biases the
        distribution by a negligible amount and keeps the result non-zero.
        """
        value = int.from_bytes(self._random_bytes(SALT_BYTES), "big") % FIELD_MODULUS
        if value == 0:
            value = 1
        return str(value)

    def ensure_salt(self, subject: str) -> tuple[str, bool]:
        """Return the subject's salt, creating one on first use.

        Returns:
            Tuple of (salt, created).

        Raises:
            SaltInvalidError: If a stored salt exists but is outside the field.
        """
        existing = self._store.get(subject)
        if existing is not None:
            if not self.is_valid(existing):
                logger.error("Stored salt for a subject failed validation; refusing to regenerate")
                raise SaltInvalidError(subject)
            return existing, False

        salt = self.generate_salt()
        self._store.put(subject, salt)
        logger.info("Created new salt record")
        return salt, True

    def verify(self, subject: str, candidate: str) -> bool:
        """Return True iff the stored salt equals ``candidate`` exactly."""
        stored = self._store.get(subject)
        if stored is None:
            return False
        return secrets.compare_digest(stored.encode(), candidate.encode())

    def exists(self, subject: str) -> bool:
        return self._store.get(subject) is not None

    def replace_salt(self, subject: str, salt: str) -> bool:
        """Overwrite a subject's salt (operator recovery path).

        Returns:
            True if no record existed before.

        Raises:
            ValueError: If ``salt`` is not a valid field element.
        """
        if not self.is_valid(salt):
            raise ValueError("Salt must be in BN254 field range")
        created = self._store.put(subject, salt)
        logger.warning("Salt record %s explicitly", "created" if created else "replaced")
        return created
