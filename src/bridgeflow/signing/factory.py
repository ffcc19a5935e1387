"""Capability table of chain signers, keyed by execution family.

Each family maps to a builder taking a ChainConfig. Signers are built on
first request for a chain and cached for the life of the table.
"""

import logging
from typing import Callable, Optional

from bridgeflow.chains import ChainConfig, ChainRegistry, ExecutionFamily
from bridgeflow.config import Settings, get_settings
from bridgeflow.errors import ConfigurationError
from bridgeflow.signing.base import ChainSigner

logger = logging.getLogger(__name__)

SignerBuilder = Callable[[ChainConfig], ChainSigner]


def default_builders(settings: Settings) -> dict[ExecutionFamily, SignerBuilder]:
    """Builders reading key material from settings."""

    def build_evm(chain: ChainConfig) -> ChainSigner:
        from bridgeflow.signing.evm import EVMSigner
        return EVMSigner(
            chain,
            settings.evm_main_private_key,
            confirmation_timeout=settings.confirmation_timeout,
            request_timeout=settings.http_timeout,
        )

    def build_solana(chain: ChainConfig) -> ChainSigner:
        from bridgeflow.signing.solana import SolanaSigner
        return SolanaSigner(chain, settings.solana_private_key, request_timeout=settings.http_timeout)

    def build_aptos(chain: ChainConfig) -> ChainSigner:
        from bridgeflow.signing.aptos import AptosSigner
        return AptosSigner(chain, settings.aptos_private_key, confirmation_timeout=settings.confirmation_timeout)

    return {
        ExecutionFamily.ACCOUNT: build_evm,
        ExecutionFamily.INSTRUCTION: build_solana,
        ExecutionFamily.MODULE: build_aptos,
    }


class SignerTable:
    """Per-family signing capabilities for every chain in a registry."""

    def __init__(
        self,
        registry: ChainRegistry,
        builders: Optional[dict[ExecutionFamily, SignerBuilder]] = None,
        settings: Optional[Settings] = None,
    ):
        self.registry = registry
        if builders is None:
            builders = default_builders(settings or get_settings())
        self._builders = builders
        self._signers: dict[int, ChainSigner] = {}

    def get(self, chain_id: int) -> ChainSigner:
        """Get the signer for a chain.

        Raises:
            ConfigurationError: Unknown chain or no builder for its family
        """
        chain = self.registry.get(chain_id)
        signer = self._signers.get(chain.chain_id)
        if signer is not None:
            return signer

        builder = self._builders.get(chain.family)
        if builder is None:
            raise ConfigurationError(f"Unsupported chain type: {chain.family.value}")

        logger.debug(f"Initializing {chain.family.value} signer for {chain.name}")
        signer = builder(chain)
        self._signers[chain.chain_id] = signer
        return signer

    def address_of(self, chain_id: int) -> str:
        """Get the local account address on a chain."""
        return self.get(chain_id).address

    async def close(self) -> None:
        """Close every signer that was built."""
        for signer in self._signers.values():
            await signer.close()
        self._signers.clear()
