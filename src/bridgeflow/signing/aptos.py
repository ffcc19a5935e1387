"""Signer for Aptos (Module family).

Plans arrive either as an entry-function invocation or as a hex encoded BCS
raw transaction. Both are signed locally with the Ed25519 account key,
submitted, and checked for `success` once they leave the pending state.
"""

import logging
import time
from decimal import Decimal
from typing import Optional

import httpx
from aptos_sdk.account import Account
from aptos_sdk.async_client import ApiError as AptosApiError
from aptos_sdk.async_client import ClientConfig, RestClient
from aptos_sdk.authenticator import Authenticator, Ed25519Authenticator
from aptos_sdk.bcs import Deserializer
from aptos_sdk.transactions import RawTransaction, SignedTransaction

from bridgeflow.chains import ExecutionFamily
from bridgeflow.contracts import AuthProof, ModulePlan
from bridgeflow.errors import (
    ConfigurationError,
    ConfirmationTimeout,
    TransactionFailed,
    ValidationError,
)
from bridgeflow.signing.base import ChainSigner

logger = logging.getLogger(__name__)

# Gas options used for entry-function submissions
GAS_UNIT_PRICE = 100
MAX_GAS_AMOUNT = 4000

AIP80_PREFIX = "ed25519-priv-"


def _strip_hex(value: str) -> str:
    return value[2:] if value.lower().startswith("0x") else value


class AptosSigner(ChainSigner):
    """Signer for Aptos transactions."""

    family = ExecutionFamily.MODULE
    requires_public_key = True

    def __init__(self, chain, private_key: str, rpc: Optional[RestClient] = None,
                 confirmation_timeout: float = 120.0, poll_interval: float = 1.0, **kwargs):
        super().__init__(chain, private_key, **kwargs)
        self._rpc = rpc
        self._account: Optional[Account] = None
        self.confirmation_timeout = confirmation_timeout
        self.poll_interval = poll_interval

    @property
    def rpc(self) -> RestClient:
        """Lazy load the fullnode REST client."""
        if self._rpc is None:
            config = ClientConfig(max_gas_amount=MAX_GAS_AMOUNT, gas_unit_price=GAS_UNIT_PRICE)
            self._rpc = RestClient(self.chain.rpc_url, client_config=config)
        return self._rpc

    @property
    def account(self) -> Account:
        """Account from a hex Ed25519 key, with or without the AIP-80 prefix."""
        if self._account is None:
            key = self._require_key("APTOS_PRIVATE_KEY")
            if key.startswith(AIP80_PREFIX):
                key = key[len(AIP80_PREFIX):]
            try:
                self._account = Account.load_key(key)
            except ValueError as e:
                raise ConfigurationError(f"Invalid Aptos private key: {e}") from e
        return self._account

    @property
    def address(self) -> str:
        return str(self.account.address())

    @property
    def public_key(self) -> str:
        return str(self.account.public_key())

    def sign(self, data: bytes) -> bytes:
        return self.account.sign(data).data()

    def sign_message(self, message: str) -> AuthProof:
        """Detached Ed25519 signature plus public key, both 0x hex."""
        signature = self.account.sign(message.encode("utf-8"))
        return AuthProof(signature=str(signature), public_key=self.public_key)

    def sign_raw_transaction(self, raw_hex: str) -> SignedTransaction:
        """Deserialize a hex BCS raw transaction and sign it.

        Raises:
            ValidationError: Bytes are malformed or the sender is not us
        """
        try:
            raw_txn = RawTransaction.deserialize(Deserializer(bytes.fromhex(_strip_hex(raw_hex))))
        except Exception as e:
            raise ValidationError(f"Malformed Aptos raw transaction: {e}") from e

        if raw_txn.sender != self.account.address():
            raise ValidationError(
                f"Raw transaction sender {raw_txn.sender} does not match {self.address}"
            )

        signature = self.account.sign(raw_txn.keyed())
        authenticator = Authenticator(Ed25519Authenticator(self.account.public_key(), signature))
        return SignedTransaction(raw_txn, authenticator)

    async def _post_json(self, path: str, body: dict):
        response = await self.rpc.client.post(f"{self.rpc.base_url}/{path}", json=body)
        if response.status_code >= 400:
            raise AptosApiError(response.text, response.status_code)
        return response.json()

    async def submit_entry_function(self, plan: ModulePlan) -> str:
        """Sign and submit an entry-function payload in the fullnode JSON format.

        The fullnode encodes the JSON arguments against the module ABI and
        returns the signing message, so no local ABI handling is needed.
        """
        address = self.account.address()
        sequence_number = await self.rpc.account_sequence_number(address)
        expiration = int(time.time()) + self.rpc.client_config.expiration_ttl

        request = {
            "sender": str(address),
            "sequence_number": str(sequence_number),
            "max_gas_amount": str(MAX_GAS_AMOUNT),
            "gas_unit_price": str(GAS_UNIT_PRICE),
            "expiration_timestamp_secs": str(expiration),
            "payload": plan.entry_function_payload(),
        }
        signing_message = await self._post_json("transactions/encode_submission", request)
        signature = self.account.sign(bytes.fromhex(_strip_hex(signing_message)))

        request["signature"] = {
            "type": "ed25519_signature",
            "public_key": self.public_key,
            "signature": str(signature),
        }
        submitted = await self._post_json("transactions", request)
        return submitted["hash"]

    async def _submit(self, plan: ModulePlan) -> str:
        try:
            if plan.is_serialized:
                logger.info("Submitting serialized transaction...")
                signed = self.sign_raw_transaction(plan.execution.data.raw_transaction)
                return await self.rpc.submit_bcs_transaction(signed)

            logger.info("Signing and submitting transaction...")
            return await self.submit_entry_function(plan)
        except (AptosApiError, httpx.HTTPError) as e:
            raise TransactionFailed(f"Aptos submission failed: {e}", payload={"kind": plan.kind}) from e

    async def _is_pending(self, tx_hash: str) -> bool:
        try:
            return await self.rpc.transaction_pending(tx_hash)
        except (AptosApiError, httpx.HTTPError) as e:
            logger.warning(f"Pending check for {tx_hash} failed, retrying: {e}")
            return True

    async def wait_for_success(self, tx_hash: str) -> dict:
        """Wait until the transaction leaves the pending state, then check success.

        Failed pending checks are retried until the deadline.

        Raises:
            ConfirmationTimeout: Still pending after the timeout, or the
                result could not be fetched
            TransactionFailed: Executed with success=false
        """
        deadline = self._clock() + self.confirmation_timeout
        while await self._is_pending(tx_hash):
            if self._clock() >= deadline:
                raise ConfirmationTimeout(
                    f"Transaction {tx_hash} still pending after {self.confirmation_timeout:g}s",
                    payload={"hash": tx_hash},
                )
            await self._sleep(self.poll_interval)

        try:
            txn = await self.rpc.transaction_by_hash(tx_hash)
        except (AptosApiError, httpx.HTTPError) as e:
            raise ConfirmationTimeout(
                f"Could not fetch result of {tx_hash}: {e}", payload={"hash": tx_hash}
            ) from e
        if not txn.get("success"):
            raise TransactionFailed(
                f"Aptos transaction failed: {txn.get('vm_status')}",
                payload={"hash": tx_hash, "vm_status": txn.get("vm_status")},
            )
        return txn

    async def send_and_confirm(self, plan: ModulePlan) -> str:
        logger.info(f"Sending transaction on {self.chain.name}...")
        tx_hash = await self._submit(plan)
        logger.info(f"Transaction sent: {tx_hash}")
        logger.info("Waiting for confirmation...")
        await self.wait_for_success(tx_hash)
        logger.info(f"Aptos transaction confirmed: {tx_hash}")
        return tx_hash

    async def get_balance(self) -> Decimal:
        octas = await self.rpc.account_balance(self.account.address())
        return Decimal(octas) / Decimal(10 ** self.chain.native_currency.decimals)

    async def close(self) -> None:
        if self._rpc is not None:
            await self._rpc.close()
            self._rpc = None
