"""Pytest configuration and fixtures."""

import os
from decimal import Decimal

import pytest

# Set test environment before settings are read
os.environ["API_KEY"] = "test-key"
os.environ["API_BASE_URL"] = "https://bridge.test"
os.environ["EVM_MAIN_PRIVATE_KEY"] = ""
os.environ["SOLANA_PRIVATE_KEY"] = ""
os.environ["APTOS_PRIVATE_KEY"] = ""

from bridgeflow.chains import ChainRegistry, ExecutionFamily
from bridgeflow.config import get_settings
from bridgeflow.contracts import AuthProof
from bridgeflow.signing.base import ChainSigner
from bridgeflow.signing.factory import SignerTable
from bridgeflow.utils.locks import clear_account_locks

EVM_TO = "0x" + "ab" * 20
EVM_SPENDER = "0x" + "cd" * 20


class FakeSigner(ChainSigner):
    """In-memory signer recording what it was asked to send."""

    def __init__(self, chain, tx_hash: str = "0xtx", requires_public_key: bool = False):
        self.family = chain.family
        self.requires_public_key = requires_public_key
        super().__init__(chain, "fake-key")
        self.tx_hash = tx_hash
        self.sent = []

    @property
    def address(self) -> str:
        return f"{self.chain.name.lower()}-user"

    def sign(self, data: bytes) -> bytes:
        return b"signed:" + data

    def sign_message(self, message: str) -> AuthProof:
        return AuthProof(signature=f"sig({message})", public_key="pub")

    async def send_and_confirm(self, plan) -> str:
        self.sent.append(plan)
        return self.tx_hash

    async def get_balance(self) -> Decimal:
        return Decimal("1.5")


class FakeClock:
    """Monotonic clock advanced only by its own sleep()."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture(autouse=True)
def _reset_state():
    """Fresh settings and locks for every test."""
    get_settings.cache_clear()
    clear_account_locks()
    yield
    get_settings.cache_clear()


@pytest.fixture
def registry() -> ChainRegistry:
    return ChainRegistry()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def _evm_step(to: str, data: str) -> dict:
    return {
        "description": "call",
        "data": {"to": to, "data": data, "value": "0", "chainId": 11},
    }


@pytest.fixture
def quote_payload():
    """Factory for quoting-service response payloads."""

    def make(
        kind: str = "evm",
        source: int = 11,
        target: int = 3,
        approval: bool = False,
        auth: str | None = "Sign in to track request req-1",
        amount_out: str = "0099850",
        request_id: str = "req-1",
    ) -> dict:
        if kind == "evm":
            transaction = {
                "kind": "evm",
                "approval": _evm_step(EVM_SPENDER, "0x095ea7b3") if approval else None,
                "execution": _evm_step(EVM_TO, "0x1234"),
            }
        elif kind == "solana":
            transaction = {"kind": "solana", "execution": {"description": "bridge", "data": {"instruction": "AQ=="}}}
        elif kind == "aptos":
            transaction = {
                "kind": "aptos",
                "execution": {
                    "description": "bridge",
                    "data": {
                        "function": "0x1::aptos_account::transfer",
                        "type_arguments": [],
                        "arguments": ["0x1", "1000"],
                    },
                },
            }
        else:
            transaction = {
                "kind": "aptos-serialized",
                "execution": {"description": "bridge", "data": {"raw_transaction": "0xdeadbeef"}},
            }

        data = {
            "requestId": request_id,
            "quoteId": "quote-1",
            "integrator": "relay",
            "chains": {"source": source, "target": target},
            "tokens": {
                "sourceAddress": "src-token",
                "targetAddress": "dst-token",
                "sourceSymbol": "USDC",
                "targetSymbol": "USDC",
                "sourceDecimals": 6,
                "targetDecimals": 6,
            },
            "amounts": {
                "amountIn": "100000",
                "amountOut": amount_out,
                "amountInFormatted": "0.1",
                "amountOutFormatted": "0.09985",
            },
            "fees": {"gas": None, "relayer": "150", "currency": "USDC", "totalUsd": 0.15},
            "transaction": transaction,
        }
        if auth is not None:
            data["auth"] = {"message": auth}
        return {"status": "success", "message": "ok", "data": data}

    return make


@pytest.fixture
def status_payload():
    """Factory for status endpoint response payloads."""

    def make(status: str = "INITIATED", tx_hash: str = "0xsrc", message: str = "ok") -> dict:
        return {
            "success": True,
            "message": message,
            "data": {
                "transactionId": "tx-1",
                "txHash": tx_hash,
                "sourceChain": "arbitrum",
                "targetChain": "polygon",
                "status": status,
                "steps": [
                    {"name": "Source", "status": "COMPLETED", "description": "sent", "txHash": "0xsrc"},
                    {"name": "Relay", "status": "IN_PROGRESS", "description": "relaying"},
                ],
            },
        }

    return make


@pytest.fixture
def signers(registry) -> SignerTable:
    """Signer table backed by FakeSigner for every family."""
    return SignerTable(registry, builders={
        ExecutionFamily.ACCOUNT: FakeSigner,
        ExecutionFamily.INSTRUCTION: FakeSigner,
        ExecutionFamily.MODULE: lambda chain: FakeSigner(chain, requires_public_key=True),
    })
