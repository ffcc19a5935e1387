"""Application configuration using pydantic-settings.

Values come from environment variables or a local .env file. Key material
for the three chain families is read here and nowhere else.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Cross-chain API
    # ======================
    api_base_url: str = Field(
        default="https://ag.kanalabs.io",
        description="Base URL of the quoting/status service",
    )
    api_key: str = Field(default="", description="API key sent as x-api-key")
    quote_endpoint: str = Field(default="/v2/cross-chain/quote", description="Quote path")
    status_endpoint: str = Field(default="/v2/cross-chain/status", description="Status path")
    http_timeout: float = Field(default=30.0, description="Per-request HTTP timeout in seconds")

    # ======================
    # Chain RPC Endpoints
    # ======================
    solana_rpc: Optional[str] = Field(default=None, description="Solana RPC URL override")
    aptos_rpc: Optional[str] = Field(default=None, description="Aptos fullnode URL override")
    polygon_rpc: Optional[str] = Field(default=None, description="Polygon RPC URL override")
    ethereum_rpc: Optional[str] = Field(default=None, description="Ethereum RPC URL override")
    arbitrum_rpc: Optional[str] = Field(default=None, description="Arbitrum RPC URL override")
    avalanche_rpc: Optional[str] = Field(default=None, description="Avalanche RPC URL override")
    base_rpc: Optional[str] = Field(default=None, description="Base RPC URL override")

    # ======================
    # Key material
    # ======================
    evm_main_private_key: str = Field(default="", description="Hex private key for EVM chains")
    solana_private_key: str = Field(default="", description="Base58 64-byte Solana secret key")
    aptos_private_key: str = Field(default="", description="Hex Ed25519 private key for Aptos")

    # ======================
    # Polling
    # ======================
    poll_max_attempts: int = Field(default=200, ge=1, description="Status poll attempt budget")
    confirmation_timeout: float = Field(
        default=120.0, description="Seconds to wait for an EVM or Aptos receipt"
    )

    # ======================
    # Environment
    # ======================
    debug: bool = Field(default=False, description="Enable debug logging")

    def get_rpc_override(self, name: str) -> Optional[str]:
        """Get the RPC override for a chain by lowercase registry name."""
        rpc_map = {
            "solana": self.solana_rpc,
            "aptos": self.aptos_rpc,
            "polygon": self.polygon_rpc,
            "ethereum": self.ethereum_rpc,
            "arbitrum": self.arbitrum_rpc,
            "avalanche": self.avalanche_rpc,
            "base": self.base_rpc,
        }
        return rpc_map.get(name.lower())

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "api_base_url": self.api_base_url,
            "api_key": "***" if self.api_key else "(not set)",
            "http_timeout": self.http_timeout,
            "debug": self.debug,
            "keys": {
                "evm": "***" if self.evm_main_private_key else "(not set)",
                "solana": "***" if self.solana_private_key else "(not set)",
                "aptos": "***" if self.aptos_private_key else "(not set)",
            },
            "polling": {"max_attempts": self.poll_max_attempts},
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
