"""Salt sources for the login flow: session-local or the backend salt service."""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from upsuider.core.errors import (
    AuthenticationFlowError,
    ConfigurationError,
    FlowTimeoutError,
    SaltInvalidError,
)
from upsuider.services.salts import MemorySaltStore, SaltRegistry, is_valid_salt
from upsuider.wallet.config import ZkLoginConfig

logger = logging.getLogger(__name__)

ENSURE_PATH = "/api/v1/salts/ensure"
HTTP_CONFLICT = 409


class SaltProvider(Protocol):
    async def ensure_salt(self, subject: str, id_token: str) -> str: ...


class LocalSaltProvider:
    """Keeps salts in the session, backed by a ``SaltRegistry``."""

    def __init__(self, registry: SaltRegistry | None = None) -> None:
        self.registry = registry or SaltRegistry(MemorySaltStore())

    async def ensure_salt(self, subject: str, id_token: str) -> str:
        salt, _ = self.registry.ensure_salt(subject)
        return salt


class RemoteSaltProvider:
    """Asks the backend for the subject's salt, authenticating with the identity token."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = base_url.rstrip("/") + ENSURE_PATH
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def ensure_salt(self, subject: str, id_token: str) -> str:
        """Return the backend-held salt.

        Raises:
            SaltInvalidError: The backend reports an invalid stored salt, or
                returned one outside the field.
            AuthenticationFlowError: The backend rejected the request.
            FlowTimeoutError: The backend did not answer in time.
        """
        async with httpx.AsyncClient(
            timeout=self.timeout_seconds,
            transport=self._transport,
        ) as client:
            try:
                response = await client.post(self.url, json={"jwt": id_token})
            except httpx.TimeoutException as err:
                raise FlowTimeoutError("Salt service timed out") from err
            except httpx.HTTPError as err:
                raise AuthenticationFlowError(
                    f"Salt service unreachable: {err}",
                    reason="salt_service",
                ) from err

        if response.status_code == HTTP_CONFLICT:
            raise SaltInvalidError(subject)
        if not response.is_success:
            logger.warning("Salt service answered %s", response.status_code)
            raise AuthenticationFlowError(
                f"Salt service request failed ({response.status_code})",
                reason="salt_service",
            )
        try:
            salt = str(response.json()["salt"])
        except (ValueError, KeyError, TypeError) as err:
            raise AuthenticationFlowError(
                "Salt service returned an unexpected payload",
                reason="salt_service",
            ) from err
        if not is_valid_salt(salt):
            raise SaltInvalidError(subject)
        return salt


def salt_provider_for(config: ZkLoginConfig, local: LocalSaltProvider | None = None) -> SaltProvider:
    """Pick the salt source named by ``config``."""
    if config.salt_service == "remote":
        if not config.salt_service_url:
            raise ConfigurationError("saltServiceUrl is required for the remote salt service")
        return RemoteSaltProvider(config.salt_service_url)
    return local or LocalSaltProvider()
