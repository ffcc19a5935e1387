"""Static registry of supported chains.

Chain ids are the quoting service's own identifiers, not EVM chain ids.
Each chain belongs to one execution family:
- EVM (account/balance based): Polygon, Ethereum, Base, Avalanche, Arbitrum
- SVM (instruction blobs): Solana
- MVM (Move module invocation): Aptos
"""

from dataclasses import dataclass, field, replace
from enum import Enum, IntEnum
from typing import Optional

from bridgeflow.errors import ConfigurationError


class ExecutionFamily(str, Enum):
    """Virtual-machine family a chain executes transactions with."""
    ACCOUNT = "EVM"
    INSTRUCTION = "SVM"
    MODULE = "MVM"


class ChainID(IntEnum):
    """Chain identifiers used by the quoting service."""
    SOLANA = 1
    APTOS = 2
    POLYGON = 3
    ETHEREUM = 6
    BASE = 7
    AVALANCHE = 10
    ARBITRUM = 11


@dataclass(frozen=True)
class NativeCurrency:
    """Native gas currency of a chain."""
    name: str
    symbol: str
    decimals: int


@dataclass(frozen=True)
class TokenConfig:
    """A token deployed on a chain."""
    address: str
    symbol: str
    decimals: int
    name: str


@dataclass(frozen=True)
class ChainConfig:
    """Configuration for a blockchain."""

    chain_id: int
    name: str
    family: ExecutionFamily
    rpc_url: str
    native_currency: NativeCurrency
    tokens: dict[str, TokenConfig] = field(default_factory=dict)

    def get_token(self, symbol: str) -> Optional[TokenConfig]:
        """Get token config by symbol."""
        return self.tokens.get(symbol.upper())


def _usdc(address: str) -> TokenConfig:
    return TokenConfig(address=address, symbol="USDC", decimals=6, name="USD Coin")


APTOS_COIN = TokenConfig(
    address="0x1::aptos_coin::AptosCoin",
    symbol="APT",
    decimals=8,
    name="Aptos Coin",
)


# ======================
# Chain Configurations
# ======================

CHAINS: dict[int, ChainConfig] = {
    ChainID.SOLANA: ChainConfig(
        chain_id=ChainID.SOLANA,
        name="Solana",
        family=ExecutionFamily.INSTRUCTION,
        rpc_url="https://api.mainnet-beta.solana.com",
        native_currency=NativeCurrency("Solana", "SOL", 9),
        tokens={"USDC": _usdc("EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v")},
    ),
    ChainID.APTOS: ChainConfig(
        chain_id=ChainID.APTOS,
        name="Aptos",
        family=ExecutionFamily.MODULE,
        rpc_url="https://fullnode.mainnet.aptoslabs.com/v1",
        native_currency=NativeCurrency("Aptos", "APT", 8),
        tokens={
            "USDC": _usdc("0xbae207659db88bea0cbead6da0ed00aac12edcdda169e591cd41c94180b46f3b"),
            "APT": APTOS_COIN,
        },
    ),
    ChainID.POLYGON: ChainConfig(
        chain_id=ChainID.POLYGON,
        name="Polygon",
        family=ExecutionFamily.ACCOUNT,
        rpc_url="https://polygon-rpc.com",
        native_currency=NativeCurrency("MATIC", "MATIC", 18),
        tokens={"USDC": _usdc("0x2791bca1f2de4661ed88a30c99a7a9449aa84174")},
    ),
    ChainID.ETHEREUM: ChainConfig(
        chain_id=ChainID.ETHEREUM,
        name="Ethereum",
        family=ExecutionFamily.ACCOUNT,
        rpc_url="https://eth.llamarpc.com",
        native_currency=NativeCurrency("Ether", "ETH", 18),
        tokens={"USDC": _usdc("0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48")},
    ),
    ChainID.BASE: ChainConfig(
        chain_id=ChainID.BASE,
        name="Base",
        family=ExecutionFamily.ACCOUNT,
        rpc_url="https://mainnet.base.org",
        native_currency=NativeCurrency("Ether", "ETH", 18),
        tokens={"USDC": _usdc("0x833589fcd6edb6e08f4c7c32d4f71b54bda02913")},
    ),
    ChainID.AVALANCHE: ChainConfig(
        chain_id=ChainID.AVALANCHE,
        name="Avalanche",
        family=ExecutionFamily.ACCOUNT,
        rpc_url="https://api.avax.network/ext/bc/C/rpc",
        native_currency=NativeCurrency("Avalanche", "AVAX", 18),
        tokens={"USDC": _usdc("0xb97ef9ef8734c71904d8002f8b6bc66dd9c48a6e")},
    ),
    ChainID.ARBITRUM: ChainConfig(
        chain_id=ChainID.ARBITRUM,
        name="Arbitrum",
        family=ExecutionFamily.ACCOUNT,
        rpc_url="https://arb1.arbitrum.io/rpc",
        native_currency=NativeCurrency("Ether", "ETH", 18),
        tokens={"USDC": _usdc("0xaf88d065e77c8cc2239327c5edb3a432268e5831")},
    ),
}


class ChainRegistry:
    """Lookup from chain id to chain configuration.

    RPC overrides (usually from settings) replace the default endpoint of the
    named chain; nothing else about a chain can change after construction.
    """

    def __init__(
        self,
        chains: Optional[dict[int, ChainConfig]] = None,
        rpc_overrides: Optional[dict[int, str]] = None,
    ):
        self._chains = dict(chains if chains is not None else CHAINS)
        for chain_id, url in (rpc_overrides or {}).items():
            if url and chain_id in self._chains:
                self._chains[chain_id] = replace(self._chains[chain_id], rpc_url=url)

    @classmethod
    def from_settings(cls, settings) -> "ChainRegistry":
        """Build a registry applying RPC overrides from settings."""
        overrides = {
            chain_id: settings.get_rpc_override(config.name)
            for chain_id, config in CHAINS.items()
        }
        return cls(rpc_overrides={k: v for k, v in overrides.items() if v})

    def get(self, chain_id: int) -> ChainConfig:
        """Get chain configuration.

        Raises:
            ConfigurationError: If the chain is not supported
        """
        try:
            return self._chains[int(chain_id)]
        except (KeyError, TypeError, ValueError):
            raise ConfigurationError(f"Chain {chain_id} not found in configuration")

    def family_of(self, chain_id: int) -> ExecutionFamily:
        """Get the execution family of a chain."""
        return self.get(chain_id).family

    def token_address(self, chain_id: int, symbol: str = "USDC") -> str:
        """Get a token address on a chain.

        Raises:
            ConfigurationError: If the token is not configured for the chain
        """
        chain = self.get(chain_id)
        token = chain.get_token(symbol)
        if token is None:
            raise ConfigurationError(f"Token {symbol} not configured on {chain.name}")
        return token.address

    def all(self) -> list[ChainConfig]:
        """List all configured chains."""
        return list(self._chains.values())
