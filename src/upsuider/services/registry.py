# src/upsuider/services/registry.py
"""Process-lifetime service container.

One ``ServiceContainer`` is created at application startup and closed at
shutdown. Shared state that used to be module-global (the replay cache, the RPC
client, the server keypair) lives here, and lazily-built members are guarded so
concurrent first use builds them exactly once.
"""

from __future__ import annotations

import logging
from threading import Lock

from upsuider.core.settings import Settings
from upsuider.services.chain import SuiRpcClient
from upsuider.services.eventsub import WebhookAuthenticator
from upsuider.services.replay import ReplayCache
from upsuider.services.rewards import MintMetadata, RewardDispatcher

logger = logging.getLogger(__name__)


class ServiceContainer:
    """Holds the backend's shared services."""

    def __init__(self, settings: Settings, *, rpc: SuiRpcClient | None = None) -> None:
        self.settings = settings
        self.replay_cache = ReplayCache(
            window_seconds=settings.eventsub_replay_window_seconds,
            max_size=settings.eventsub_replay_cache_size,
        )
        self._rpc = rpc
        self._authenticator: WebhookAuthenticator | None = None
        self._dispatcher: RewardDispatcher | None = None
        self._lock = Lock()

    def authenticator(self) -> WebhookAuthenticator:
        """Return the webhook authenticator (raises ``ConfigurationError`` without a secret)."""
        with self._lock:
            if self._authenticator is None:
                self._authenticator = WebhookAuthenticator(
                    self.settings.twitch_eventsub_secret,
                    replay_cache=self.replay_cache,
                )
            return self._authenticator

    def rpc(self) -> SuiRpcClient:
        with self._lock:
            if self._rpc is None:
                self._rpc = SuiRpcClient(
                    self.settings.fullnode_url,
                    timeout_seconds=self.settings.sui_http_timeout_seconds,
                )
            return self._rpc

    def reward_dispatcher(self) -> RewardDispatcher | None:
        """Return the mint dispatcher, or None when minting is disabled."""
        if not self.settings.reward_mint_enabled:
            return None
        return self.server_dispatcher()

    def server_dispatcher(self) -> RewardDispatcher:
        """Return the dispatcher that signs with the server keypair."""
        rpc = self.rpc()
        with self._lock:
            if self._dispatcher is None:
                self._dispatcher = RewardDispatcher(
                    rpc,
                    package_id=self.settings.upsuider_package_id,
                    module=self.settings.upsuider_module_name,
                    function=self.settings.upsuider_mint_function,
                    secret_key=self.settings.sui_keypair,
                    gas_budget=self.settings.mint_gas_budget,
                )
            return self._dispatcher

    def mint_metadata(self) -> MintMetadata:
        return MintMetadata(
            name=self.settings.upsuider_nft_name,
            description=self.settings.upsuider_nft_description,
            image_url=self.settings.upsuider_nft_image_url,
        )

    async def close(self) -> None:
        """Release network clients."""
        with self._lock:
            rpc, self._rpc = self._rpc, None
            self._dispatcher = None
        if rpc is not None:
            await rpc.close()
            logger.info("Closed Sui RPC client")
