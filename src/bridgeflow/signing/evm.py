"""Signer for EVM chains (Account family).

Transactions are signed locally with eth_account and sent through a web3
HTTP provider. Blocking web3 calls run in a worker thread.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Optional

from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted, TransactionNotFound

from bridgeflow.chains import ExecutionFamily
from bridgeflow.contracts import AccountPlan, AuthProof, EvmTxData
from bridgeflow.errors import BridgeError, ConfigurationError, ConfirmationTimeout, TransactionFailed
from bridgeflow.signing.base import ChainSigner

logger = logging.getLogger(__name__)

# Pause between a confirmed approval and the execution call
APPROVAL_SETTLE_SECONDS = 3.0


def _to_int(value: Optional[str]) -> int:
    """Parse a decimal or 0x-prefixed integer string."""
    if value is None or value == "":
        return 0
    value = str(value)
    if value.lower().startswith("0x"):
        return int(value, 16)
    return int(value)


class EVMSigner(ChainSigner):
    """Signer for EVM-compatible chains."""

    family = ExecutionFamily.ACCOUNT

    def __init__(self, chain, private_key: str, web3: Optional[Web3] = None,
                 confirmation_timeout: float = 120.0, request_timeout: float = 30.0, **kwargs):
        super().__init__(chain, private_key, **kwargs)
        self._web3 = web3
        self._account = None
        self.confirmation_timeout = confirmation_timeout
        self.request_timeout = request_timeout

    @property
    def web3(self) -> Web3:
        """Lazy load web3 instance."""
        if self._web3 is None:
            self._web3 = Web3(Web3.HTTPProvider(
                self.chain.rpc_url,
                request_kwargs={"timeout": self.request_timeout},
            ))
        return self._web3

    @property
    def account(self):
        """Lazy load the local account from key material."""
        if self._account is None:
            key = self._require_key("EVM_MAIN_PRIVATE_KEY")
            try:
                self._account = Account.from_key(key)
            except (ValueError, TypeError) as e:
                raise ConfigurationError(f"Invalid EVM private key: {e}") from e
        return self._account

    @property
    def address(self) -> str:
        return self.account.address

    def sign(self, data: bytes) -> bytes:
        return bytes(self.account.sign_message(encode_defunct(primitive=data)).signature)

    def sign_message(self, message: str) -> AuthProof:
        """EIP-191 personal message signature; the verifier recovers the signer."""
        signed = self.account.sign_message(encode_defunct(text=message))
        return AuthProof(signature=Web3.to_hex(signed.signature))

    def _dynamic_fees(self, tx: EvmTxData) -> dict:
        """EIP-1559 fee pair, filling whichever half the plan left out."""
        if tx.max_fee_per_gas:
            max_fee = _to_int(tx.max_fee_per_gas)
            if tx.max_priority_fee_per_gas:
                priority = _to_int(tx.max_priority_fee_per_gas)
            else:
                priority = min(self.web3.eth.max_priority_fee, max_fee)
        else:
            priority = _to_int(tx.max_priority_fee_per_gas)
            base_fee = self.web3.eth.get_block("latest")["baseFeePerGas"]
            max_fee = 2 * base_fee + priority
        return {"maxFeePerGas": max_fee, "maxPriorityFeePerGas": priority}

    def _build_transaction(self, tx: EvmTxData) -> dict:
        """Fill nonce, chain id and gas fields for a plan call."""
        address = self.address
        params = {
            "from": address,
            "to": Web3.to_checksum_address(tx.to),
            "data": tx.data,
            "value": _to_int(tx.value),
            "nonce": self.web3.eth.get_transaction_count(address, "pending"),
            # Plan chain ids are quoting-service ids; the node knows the real one
            "chainId": self.web3.eth.chain_id,
        }

        if tx.max_fee_per_gas or tx.max_priority_fee_per_gas:
            params.update(self._dynamic_fees(tx))
        else:
            params["gasPrice"] = self.web3.eth.gas_price

        if tx.gas_limit:
            params["gas"] = _to_int(tx.gas_limit)
        else:
            try:
                params["gas"] = self.web3.eth.estimate_gas(params)
            except ContractLogicError as e:
                raise TransactionFailed(f"Gas estimation reverted: {e}", payload={"to": tx.to}) from e

        return params

    def _is_known(self, tx_hash: str) -> bool:
        try:
            self.web3.eth.get_transaction(tx_hash)
            return True
        except TransactionNotFound:
            return False
        except Exception as e:
            logger.warning(f"Could not look up {tx_hash}: {e}")
            return False

    async def send_transaction(self, tx: EvmTxData) -> str:
        """Sign, send and wait for one call. Returns its hash once mined.

        Raises:
            TransactionFailed: Could not be built, rejected on submit, or
                reverted on-chain
            ConfirmationTimeout: Receipt not available within the timeout
        """
        try:
            params = await asyncio.to_thread(self._build_transaction, tx)
        except BridgeError:
            raise
        except Exception as e:
            logger.error(f"Could not prepare transaction: {e}")
            raise TransactionFailed(f"Could not prepare transaction: {e}", payload={"to": tx.to}) from e
        gas = params.get("gas", "default")
        logger.info(f"Sending tx on {self.chain.name} (gas: {gas})...")

        signed = self.account.sign_transaction(params)
        raw_tx = getattr(signed, "raw_transaction", None) or signed.rawTransaction
        tx_hash = Web3.to_hex(signed.hash)

        try:
            await asyncio.to_thread(self.web3.eth.send_raw_transaction, raw_tx)
        except Exception as e:
            # Never resubmit: only continue if the node already has this exact tx
            known = await asyncio.to_thread(self._is_known, tx_hash)
            if not known:
                logger.error(f"Transaction failed: {e}")
                raise TransactionFailed(f"Transaction rejected: {e}", payload={"tx_hash": tx_hash}) from e
            logger.warning(f"Send raised {type(e).__name__} but {tx_hash} is already known, waiting for it")

        logger.info(f"Sent: {tx_hash}")

        try:
            receipt = await asyncio.to_thread(
                self.web3.eth.wait_for_transaction_receipt,
                tx_hash,
                timeout=self.confirmation_timeout,
            )
        except TimeExhausted as e:
            raise ConfirmationTimeout(
                f"Transaction {tx_hash} not confirmed after {self.confirmation_timeout:g}s",
                payload={"tx_hash": tx_hash},
            ) from e
        except Exception as e:
            logger.error(f"Receipt lookup for {tx_hash} failed: {e}")
            raise ConfirmationTimeout(
                f"Could not confirm {tx_hash}: {e}", payload={"tx_hash": tx_hash}
            ) from e

        if receipt["status"] == 0:
            raise TransactionFailed(
                f"Transaction {tx_hash} failed (reverted)",
                payload={
                    "tx_hash": tx_hash,
                    "block_number": receipt.get("blockNumber"),
                    "gas_used": receipt.get("gasUsed"),
                    "status": 0,
                },
            )

        logger.info(f"Confirmed in block {receipt.get('blockNumber')} (used {receipt.get('gasUsed')} gas)")
        return tx_hash

    async def send_and_confirm(self, plan: AccountPlan) -> str:
        """Send the approval (if any) and then the execution call, in order."""
        if plan.approval is not None:
            logger.info("Sending token approval...")
            await self.send_transaction(plan.approval.data)
            logger.info("Approval confirmed")
            # Let the allowance propagate before the execution call
            await self._sleep(APPROVAL_SETTLE_SECONDS)
        else:
            logger.info("No approval needed")

        return await self.send_transaction(plan.execution.data)

    async def get_balance(self) -> Decimal:
        wei = await asyncio.to_thread(self.web3.eth.get_balance, self.address)
        return Decimal(wei) / Decimal(10 ** self.chain.native_currency.decimals)
