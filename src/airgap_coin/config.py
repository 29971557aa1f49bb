"""Library configuration using pydantic-settings.

Node and indexer endpoints per chain. Values come from environment
variables prefixed with AIRGAP_ or from a local .env file.
"""

import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="AIRGAP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Environment
    # ======================
    debug: bool = Field(default=False, description="Enable debug logging")
    log_level: str = Field(default="INFO", description="Log level when debug is off")

    # ======================
    # HTTP
    # ======================
    http_timeout: float = Field(default=30.0, description="Timeout in seconds for node requests")

    # ======================
    # Tezos
    # ======================
    tezos_rpc_url: str = Field(default="https://rpc.tezrpc.me", description="Tezos node RPC URL")
    tezos_indexer_url: str = Field(
        default="https://api6.tzscan.io", description="Tezos operation history API URL"
    )

    # ======================
    # Aeternity
    # ======================
    aeternity_rpc_url: str = Field(
        default="https://sdk-edgenet.aepps.com", description="Aeternity node URL"
    )
    aeternity_network_id: str = Field(default="ae_mainnet", description="Aeternity network id")

    # ======================
    # Ethereum
    # ======================
    ethereum_rpc_url: str = Field(default="https://eth.llamarpc.com", description="Ethereum RPC URL")
    ethereum_chain_id: int = Field(default=1, description="EIP-155 chain id")
    ethereum_explorer_url: str = Field(
        default="https://api.etherscan.io", description="Etherscan-compatible API root"
    )
    etherscan_api_key: str = Field(default="", description="Etherscan API key")

    def get_rpc_url(self, identifier: str) -> str:
        """Get the node URL for a protocol identifier."""
        rpc_map = {
            "xtz": self.tezos_rpc_url,
            "ae": self.aeternity_rpc_url,
            "eth": self.ethereum_rpc_url,
        }
        return rpc_map.get(identifier.lower(), "")

    def get_indexer_url(self, identifier: str) -> str:
        """Get the history API URL for a protocol identifier."""
        indexer_map = {
            "xtz": self.tezos_indexer_url,
            "eth": self.ethereum_explorer_url,
        }
        return indexer_map.get(identifier.lower(), "")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Configure root logging for applications embedding the library."""
    settings = settings or get_settings()
    log_level = logging.DEBUG if settings.debug else getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
