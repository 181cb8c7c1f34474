"""Session-side zkLogin configuration."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from upsuider.core.errors import ConfigurationError
from upsuider.core.settings import FULLNODE_URLS

SupportedProvider = Literal["twitch"]

DEFAULT_PROVER_URL = "https://prover-dev.mystenlabs.com/v1"
DEFAULT_SCOPES: dict[str, str] = {"twitch": "openid user:read:email"}


class ZkLoginConfig(BaseModel):
    """Configuration of the login flow, stored per session and merged over defaults."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    network: Literal["devnet", "testnet", "mainnet"] = "devnet"
    prover_url: str = Field(default=DEFAULT_PROVER_URL, alias="proverUrl")
    salt_service: Literal["local", "remote"] = Field(default="local", alias="saltService")
    salt_service_url: str | None = Field(default=None, alias="saltServiceUrl")
    max_epoch_offset: int = Field(default=2, ge=0, alias="maxEpochOffset")
    client_ids: dict[str, str] = Field(default_factory=lambda: {"twitch": ""}, alias="clientIds")
    scopes: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_SCOPES))

    @property
    def fullnode_url(self) -> str:
        return FULLNODE_URLS[self.network]

    def client_id(self, provider: str) -> str:
        """Return the OAuth client id for ``provider``.

        Raises:
            ConfigurationError: If none is configured.
        """
        client_id = (self.client_ids.get(provider) or "").strip()
        if not client_id:
            raise ConfigurationError(f"No client id configured for {provider}.")
        return client_id

    def scope(self, provider: str) -> str:
        return self.scopes.get(provider) or "openid"


def _by_alias(values: Mapping[str, Any]) -> dict[str, Any]:
    """Normalize field names to their aliases so either spelling is accepted."""
    normalized = dict(values)
    for name, info in ZkLoginConfig.model_fields.items():
        if info.alias and name != info.alias and name in normalized:
            normalized[info.alias] = normalized.pop(name)
    return normalized


def merge_config(
    base: ZkLoginConfig | None = None,
    override: Mapping[str, Any] | None = None,
) -> ZkLoginConfig:
    """Overlay a partial configuration on ``base`` (defaults when omitted).

    Top-level keys replace; ``clientIds`` and ``scopes`` are merged per provider.
    """
    current = (base or ZkLoginConfig()).model_dump(by_alias=True)
    if not override:
        return ZkLoginConfig.model_validate(current)

    patch = _by_alias(override)
    merged = {**current, **patch}
    for key in ("clientIds", "scopes"):
        merged[key] = {**current[key], **dict(patch.get(key) or {})}
    return ZkLoginConfig.model_validate(merged)
