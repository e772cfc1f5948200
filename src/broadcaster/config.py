"""
Configuration management for the Solana Broadcaster.

Supports configuration via environment variables and .env files.
"""

from enum import Enum
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class NetworkType(str, Enum):
    """Solana cluster types."""
    MAINNET = "mainnet"
    DEVNET = "devnet"
    TESTNET = "testnet"
    LOCAL = "local"


class Commitment(str, Enum):
    """Commitment levels understood by the RPC node."""
    PROCESSED = "processed"
    CONFIRMED = "confirmed"
    FINALIZED = "finalized"


class BroadcasterConfig(BaseSettings):
    """
    Configuration settings for the Solana Broadcaster.

    All settings can be configured via environment variables with the BROADCASTER_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="BROADCASTER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Network settings
    network: NetworkType = Field(
        default=NetworkType.DEVNET,
        description="Solana cluster to connect to"
    )
    rpc_url: Optional[str] = Field(
        default=None,
        description="Custom JSON-RPC endpoint (derived from network if not set)"
    )
    ws_url: Optional[str] = Field(
        default=None,
        description="Custom WebSocket endpoint (derived from rpc_url if not set)"
    )

    # Wallet settings
    wallets_file: str = Field(
        default="config.yaml",
        description="YAML file listing sender wallets and receivers"
    )

    # Transfer parameters
    amount_lamports: int = Field(
        default=2_000_000,
        ge=0,
        lt=2**64,
        description="Lamports moved by every transfer unless overridden"
    )
    acceptance_commitment: Commitment = Field(
        default=Commitment.CONFIRMED,
        description="Commitment at which a submitted transaction counts as accepted"
    )

    # Dispatch settings
    max_concurrency: Optional[int] = Field(
        default=None,
        ge=1,
        description="Upper bound on in-flight transfers (unbounded if not set)"
    )
    fetch_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for fetching a fresh blockhash"
    )
    submit_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Timeout for submission and acceptance"
    )
    status_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for the single finalization status poll"
    )
    acceptance_poll_interval_seconds: float = Field(
        default=0.5,
        gt=0,
        description="Delay between signature status polls while awaiting acceptance"
    )
    http_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout applied by the HTTP client to every RPC request"
    )
    health_check_interval_seconds: float = Field(
        default=3.0,
        ge=0,
        description="Delay between node health checks"
    )
    health_check_attempts: int = Field(
        default=10,
        ge=1,
        description="Health checks before giving up on the node"
    )

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format"
    )

    @property
    def rpc_endpoint(self) -> str:
        """Get the JSON-RPC URL based on network."""
        if self.rpc_url:
            return self.rpc_url

        network_urls = {
            NetworkType.MAINNET: "https://api.mainnet-beta.solana.com",
            NetworkType.DEVNET: "https://api.devnet.solana.com",
            NetworkType.TESTNET: "https://api.testnet.solana.com",
            NetworkType.LOCAL: "http://127.0.0.1:8899",
        }
        return network_urls.get(self.network, "https://api.devnet.solana.com")

    @property
    def ws_endpoint(self) -> str:
        """Get the WebSocket URL, derived from the RPC URL unless set."""
        if self.ws_url:
            return self.ws_url

        if self.network == NetworkType.LOCAL and not self.rpc_url:
            return "ws://127.0.0.1:8900"

        endpoint = self.rpc_endpoint
        if endpoint.startswith("https://"):
            return "wss://" + endpoint[len("https://"):]
        if endpoint.startswith("http://"):
            return "ws://" + endpoint[len("http://"):]
        return endpoint


# Global config instance
_config: Optional[BroadcasterConfig] = None


def get_config() -> BroadcasterConfig:
    """Get or create the global configuration instance."""
    global _config
    if _config is None:
        _config = BroadcasterConfig()
    return _config


def set_config(config: BroadcasterConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
