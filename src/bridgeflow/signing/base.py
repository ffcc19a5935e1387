"""Base interface for per-family chain signers.

A signer is the capability the dispatcher and the auth signer work through:
it knows its address, signs raw bytes, formats an auth proof, and commits a
transaction plan of its own family on-chain.

Key material is parsed lazily, on first use, so a transfer that never
touches a family never needs that family's key.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Awaitable, Callable

from bridgeflow.chains import ChainConfig, ExecutionFamily
from bridgeflow.contracts import AuthProof
from bridgeflow.errors import ConfigurationError

logger = logging.getLogger(__name__)


class ChainSigner(ABC):
    """Signing and sending capability for one chain."""

    family: ExecutionFamily
    # Verifier cannot recover the signer from the signature alone
    requires_public_key: bool = False

    def __init__(
        self,
        chain: ChainConfig,
        private_key: str,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        if chain.family != self.family:
            raise ConfigurationError(
                f"{self.__class__.__name__} cannot sign for {chain.name} ({chain.family.value})"
            )
        self.chain = chain
        self._private_key = (private_key or "").strip()
        self._sleep = sleep
        self._clock = clock

    def _require_key(self, env_name: str) -> str:
        if not self._private_key:
            raise ConfigurationError(f"{env_name} not found in environment variables")
        return self._private_key

    @property
    @abstractmethod
    def address(self) -> str:
        """Account address on this chain."""
        pass

    @abstractmethod
    def sign(self, data: bytes) -> bytes:
        """Sign raw bytes with the family's native scheme."""
        pass

    @abstractmethod
    def sign_message(self, message: str) -> AuthProof:
        """Sign a text challenge and encode the proof for the status endpoint."""
        pass

    @abstractmethod
    async def send_and_confirm(self, plan) -> str:
        """Commit a plan on-chain and return the confirmed transaction id.

        Must only return after confirmation, never after mere broadcast.
        """
        pass

    @abstractmethod
    async def get_balance(self) -> Decimal:
        """Native currency balance in whole units."""
        pass

    async def close(self) -> None:
        """Release network resources."""
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(chain={self.chain.name})"
