"""Signer for Solana (Instruction family).

The quoting service hands over a fully built versioned transaction. We add
our signature in the slot reserved for our public key, submit it once, and
poll signature status until it reaches `confirmed` or `finalized`.
"""

import base64
import logging
from decimal import Decimal
from typing import Optional

import base58
import httpx
from nacl.signing import SigningKey
from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.core import RPCException
from solana.rpc.types import TxOpts
from solders.keypair import Keypair
from solders.message import to_bytes_versioned
from solders.signature import Signature
from solders.transaction import VersionedTransaction
from solders.transaction_status import TransactionConfirmationStatus

from bridgeflow.chains import ExecutionFamily
from bridgeflow.contracts import AuthProof, InstructionPlan
from bridgeflow.errors import (
    ConfigurationError,
    ConfirmationTimeout,
    TransactionFailed,
    ValidationError,
)
from bridgeflow.signing.base import ChainSigner

logger = logging.getLogger(__name__)

CONFIRMATION_TIMEOUT = 60.0
CONFIRMATION_POLL_INTERVAL = 2.0

ACCEPTED_COMMITMENTS = (
    TransactionConfirmationStatus.Confirmed,
    TransactionConfirmationStatus.Finalized,
)


class SolanaSigner(ChainSigner):
    """Signer for Solana transactions."""

    family = ExecutionFamily.INSTRUCTION

    def __init__(self, chain, private_key: str, rpc: Optional[AsyncClient] = None,
                 confirmation_timeout: float = CONFIRMATION_TIMEOUT,
                 poll_interval: float = CONFIRMATION_POLL_INTERVAL,
                 request_timeout: float = 30.0, **kwargs):
        super().__init__(chain, private_key, **kwargs)
        self._rpc = rpc
        self._keypair: Optional[Keypair] = None
        self.confirmation_timeout = confirmation_timeout
        self.poll_interval = poll_interval
        self.request_timeout = request_timeout

    @property
    def rpc(self) -> AsyncClient:
        """Lazy load the RPC client."""
        if self._rpc is None:
            self._rpc = AsyncClient(self.chain.rpc_url, commitment=Confirmed, timeout=self.request_timeout)
        return self._rpc

    @property
    def keypair(self) -> Keypair:
        """Keypair from a base58 encoded 64-byte secret key."""
        if self._keypair is None:
            secret = self._require_key("SOLANA_PRIVATE_KEY")
            try:
                self._keypair = Keypair.from_bytes(base58.b58decode(secret))
            except ValueError as e:
                raise ConfigurationError(f"Invalid Solana private key: {e}") from e
        return self._keypair

    @property
    def address(self) -> str:
        return str(self.keypair.pubkey())

    def sign(self, data: bytes) -> bytes:
        """Detached Ed25519 signature."""
        signing_key = SigningKey(bytes(self.keypair)[:32])
        return signing_key.sign(data).signature

    def sign_message(self, message: str) -> AuthProof:
        """Ed25519 signature over the UTF-8 challenge, base58 encoded."""
        signature = self.sign(message.encode("utf-8"))
        return AuthProof(signature=base58.b58encode(signature).decode("ascii"))

    def cosign(self, blob: str) -> VersionedTransaction:
        """Deserialize a base64 versioned transaction and add our signature.

        Raises:
            ValidationError: Blob is malformed or does not expect our signature
        """
        try:
            unsigned = VersionedTransaction.from_bytes(base64.b64decode(blob))
        except ValueError as e:
            raise ValidationError(f"Malformed Solana transaction blob: {e}") from e

        message = unsigned.message
        signer_count = message.header.num_required_signatures
        signers = list(message.account_keys[:signer_count])
        pubkey = self.keypair.pubkey()
        if pubkey not in signers:
            raise ValidationError(f"Transaction does not require a signature from {pubkey}")

        signatures = list(unsigned.signatures)
        if len(signatures) < signer_count:
            signatures.extend([Signature.default()] * (signer_count - len(signatures)))
        signatures[signers.index(pubkey)] = self.keypair.sign_message(to_bytes_versioned(message))
        return VersionedTransaction.populate(message, signatures)

    async def _signature_status(self, signature: Signature):
        resp = await self.rpc.get_signature_statuses([signature])
        return resp.value[0] if resp.value else None

    async def _wait_for_confirmation(self, signature: Signature) -> None:
        """Poll signature status every 2s until confirmed or the deadline passes."""
        deadline = self._clock() + self.confirmation_timeout

        while self._clock() < deadline:
            try:
                status = await self._signature_status(signature)
            except (SolanaRpcException, httpx.HTTPError) as e:
                logger.warning(f"Signature status query failed, retrying: {e}")
                status = None

            if status is not None:
                if status.err is not None:
                    raise TransactionFailed(
                        f"Solana transaction failed: {status.err}",
                        payload={"signature": str(signature), "err": str(status.err)},
                    )
                if status.confirmation_status in ACCEPTED_COMMITMENTS:
                    return

            await self._sleep(self.poll_interval)

        raise ConfirmationTimeout(
            f"Transaction {signature} not confirmed within {self.confirmation_timeout:g}s",
            payload={"signature": str(signature)},
        )

    async def send_and_confirm(self, plan: InstructionPlan) -> str:
        """Cosign, submit once, and wait for confirmation."""
        logger.info(f"Sending transaction on {self.chain.name}...")
        tx = self.cosign(plan.execution.data.instruction)
        signature = tx.signatures[0]

        opts = TxOpts(skip_preflight=False, preflight_commitment=Confirmed)
        try:
            await self.rpc.send_raw_transaction(bytes(tx), opts=opts)
        except RPCException as e:
            raise TransactionFailed(f"Solana transaction rejected: {e}", payload={"signature": str(signature)}) from e
        except (SolanaRpcException, httpx.HTTPError) as e:
            # Never resubmit: only continue if the cluster has already seen it
            try:
                seen = await self._signature_status(signature)
            except (SolanaRpcException, httpx.HTTPError):
                seen = None
            if seen is None:
                raise TransactionFailed(
                    f"Failed to send Solana transaction: {e}", payload={"signature": str(signature)}
                ) from e
            logger.warning(f"Send failed but {signature} is already known, waiting for it")

        logger.info(f"Transaction sent: {signature}")
        logger.info("Waiting for confirmation (polling)...")
        await self._wait_for_confirmation(signature)
        logger.info("Transaction confirmed!")
        return str(signature)

    async def get_balance(self) -> Decimal:
        resp = await self.rpc.get_balance(self.keypair.pubkey())
        return Decimal(resp.value) / Decimal(10 ** self.chain.native_currency.decimals)

    async def close(self) -> None:
        if self._rpc is not None:
            await self._rpc.close()
            self._rpc = None
