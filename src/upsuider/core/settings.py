"""Application settings and configuration.

This module defines all configuration options for the Upsuider backend.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

FULLNODE_URLS: dict[str, str] = {
    "mainnet": "https://fullnode.mainnet.sui.io:443",
    "testnet": "https://fullnode.testnet.sui.io:443",
    "devnet": "https://fullnode.devnet.sui.io:443",
    "localnet": "http://127.0.0.1:9000",
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Upsuider", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")

    # Database configuration (salts and the wallet directory)
    database_url: str = Field(default="sqlite:///./upsuider.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Sui full node
    sui_network: str = Field(default="testnet", alias="SUI_NETWORK")
    sui_fullnode_url: str | None = Field(default=None, alias="SUI_FULLNODE_URL")
    sui_keypair: str | None = Field(default=None, alias="SUI_KEYPAIR")
    sui_http_timeout_seconds: float = Field(default=30.0, alias="SUI_HTTP_TIMEOUT_SECONDS")

    # Twitch EventSub
    twitch_eventsub_secret: str = Field(default="", alias="TWITCH_EVENTSUB_SECRET")
    twitch_client_id: str | None = Field(default=None, alias="TWITCH_CLIENT_ID")
    eventsub_replay_window_seconds: int = Field(
        default=600,
        alias="EVENTSUB_REPLAY_WINDOW_SECONDS",
    )
    eventsub_replay_cache_size: int = Field(default=2000, alias="EVENTSUB_REPLAY_CACHE_SIZE")

    # Reward minting
    reward_mint_enabled: bool = Field(default=False, alias="REWARD_MINT_ENABLED")
    upsuider_package_id: str = Field(
        default="0x23ff897d65d1d6bb3b7ec5c428cd219514955c2939cdc0e6c022610c3e844da1",
        alias="UPSUIDER_PACKAGE_ID",
    )
    upsuider_module_name: str = Field(default="upsuider_contract", alias="UPSUIDER_MODULE_NAME")
    upsuider_mint_function: str = Field(default="mint", alias="UPSUIDER_MINT_FUNCTION")
    upsuider_nft_name: str = Field(default="Upsuider", alias="UPSUIDER_NFT_NAME")
    upsuider_nft_description: str = Field(
        default="Channel points reward",
        alias="UPSUIDER_NFT_DESCRIPTION",
    )
    upsuider_nft_image_url: str = Field(default="", alias="UPSUIDER_NFT_IMAGE_URL")
    mint_gas_budget: int = Field(default=20_000_000, alias="MINT_GAS_BUDGET")

    # Server-funded SUI transfers; off unless the endpoint is protected upstream
    server_transfers_enabled: bool = Field(default=False, alias="SERVER_TRANSFERS_ENABLED")

    # CORS configuration for the extension and overlay
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def fullnode_url(self) -> str:
        """Return the JSON-RPC endpoint, preferring an explicit URL over the network name."""
        if self.sui_fullnode_url:
            return self.sui_fullnode_url
        try:
            return FULLNODE_URLS[self.sui_network]
        except KeyError as err:
            raise ValueError(f"Unknown Sui network: {self.sui_network}") from err


settings = Settings()
