"""Sequences one transfer: quote -> dispatch -> sign -> poll.

Each step consumes the previous step's result; nothing runs concurrently
within a transfer. Dispatch and signing hold the source account's lock.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from bridgeflow.api.client import CrossChainAPIClient
from bridgeflow.chains import ChainRegistry
from bridgeflow.contracts import AuthProof, QuoteParams, StatusParams, StatusSnapshot, TransferRequest
from bridgeflow.dispatch import TransactionDispatcher
from bridgeflow.polling import StatusPoller
from bridgeflow.signing.auth import AuthSigner
from bridgeflow.signing.factory import SignerTable
from bridgeflow.utils.locks import account_lock

logger = logging.getLogger(__name__)


@dataclass
class TransferResult:
    """Outcome of a completed transfer."""
    request: TransferRequest
    tx_hash: str
    auth: Optional[AuthProof]
    status: StatusSnapshot


class TransferOrchestrator:
    """Glue between the quoting service and the dispatch/sign/poll engine."""

    def __init__(
        self,
        api_client: CrossChainAPIClient,
        registry: ChainRegistry,
        signers: SignerTable,
        dispatcher: Optional[TransactionDispatcher] = None,
        auth_signer: Optional[AuthSigner] = None,
        poller: Optional[StatusPoller] = None,
    ):
        self.api_client = api_client
        self.registry = registry
        self.signers = signers
        self.dispatcher = dispatcher or TransactionDispatcher(registry, signers)
        self.auth_signer = auth_signer or AuthSigner(signers)
        self.poller = poller or StatusPoller(api_client)

    async def request_transfer(
        self,
        source_chain_id: int,
        target_chain_id: int,
        amount: str,
        recipient_address: Optional[str] = None,
        source_token_address: Optional[str] = None,
        target_token_address: Optional[str] = None,
        exact_out: bool = False,
    ) -> TransferRequest:
        """Fetch a quote and turn it into a transfer request.

        Tokens default to USDC on both chains. The recipient defaults to the
        local account on the target chain.
        """
        source = self.registry.get(source_chain_id)
        target = self.registry.get(target_chain_id)

        user_address = self.signers.address_of(source.chain_id)
        recipient = recipient_address or self.signers.address_of(target.chain_id)

        logger.info(f"Route: {source.name} ({source.chain_id}) -> {target.name} ({target.chain_id})")
        logger.info(f"User Address: {user_address}")
        logger.info(f"Recipient: {recipient}")

        params = QuoteParams(
            user_address=user_address,
            amount=amount,
            source_chain_id=source.chain_id,
            target_chain_id=target.chain_id,
            source_token_address=source_token_address or self.registry.token_address(source.chain_id),
            target_token_address=target_token_address or self.registry.token_address(target.chain_id),
            recipient_address=recipient,
            exact_out=exact_out,
        )
        quote = await self.api_client.get_quote(params)
        return TransferRequest.from_quote(quote.data, user_address, recipient)

    async def execute(self, request: TransferRequest) -> TransferResult:
        """Dispatch, sign the challenge if one was issued, and poll to completion."""
        family = self.registry.family_of(request.source_chain_id)

        async with account_lock(family.value, request.user_address, operation=f"transfer {request.request_id}"):
            tx_hash = await self.dispatcher.dispatch(request)

            auth: Optional[AuthProof] = None
            if request.auth_challenge is not None:
                logger.info("Signing auth message for status polling...")
                auth = self.auth_signer.sign(request.source_chain_id, request.auth_challenge)
            else:
                logger.info("Quote carries no auth challenge, polling without signature")

        params = StatusParams.for_transfer(request, tx_hash, auth)
        final = await self.poller.poll(params)

        logger.info(f"Transaction ID: {final.transaction_id}")
        logger.info(f"Final Tx Hash: {final.tx_hash}")
        return TransferResult(request=request, tx_hash=tx_hash, auth=auth, status=final)

    async def run(self, source_chain_id: int, target_chain_id: int, amount: str, **kwargs) -> TransferResult:
        """Quote and execute a transfer in one call."""
        request = await self.request_transfer(source_chain_id, target_chain_id, amount, **kwargs)
        logger.info(f"Quote received. Request ID: {request.request_id}")
        return await self.execute(request)
