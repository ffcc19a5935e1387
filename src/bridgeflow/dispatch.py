"""Transaction dispatch across execution families.

The dispatcher checks a request against the chain registry before touching
the network, then hands the plan to the signer registered for the source
chain's family. It returns only once the transaction is confirmed.
"""

import logging

from bridgeflow.chains import ChainConfig, ChainRegistry
from bridgeflow.contracts import TransferRequest
from bridgeflow.errors import ValidationError
from bridgeflow.signing.factory import SignerTable

logger = logging.getLogger(__name__)


class TransactionDispatcher:
    """Commits a transfer's transaction plan on its source chain."""

    def __init__(self, registry: ChainRegistry, signers: SignerTable):
        self.registry = registry
        self.signers = signers
        self._dispatched: set[str] = set()

    def validate(self, request: TransferRequest) -> ChainConfig:
        """Check chain support, plan/family match and single use.

        Raises:
            ConfigurationError: Source chain not supported
            ValidationError: Plan kind does not match the chain family, or the
                request was already dispatched
        """
        chain = self.registry.get(request.source_chain_id)
        plan = request.plan

        if plan.family != chain.family:
            raise ValidationError(
                f"Expected {chain.family.value} transaction for {chain.name}, got {plan.kind}",
                payload={
                    "request_id": request.request_id,
                    "source_chain_id": request.source_chain_id,
                    "expected_family": chain.family.value,
                    "plan_kind": plan.kind,
                },
            )

        if request.request_id in self._dispatched:
            raise ValidationError(f"Request {request.request_id} was already dispatched")

        return chain

    async def dispatch(self, request: TransferRequest) -> str:
        """Commit the request's plan on-chain and return the confirmed tx id.

        A request is consumed by its first dispatch attempt, successful or
        not; it is never submitted a second time.
        """
        chain = self.validate(request)
        signer = self.signers.get(chain.chain_id)

        self._dispatched.add(request.request_id)
        logger.info(f"Dispatching {request.plan.kind} plan for request {request.request_id} on {chain.name}")
        tx_hash = await signer.send_and_confirm(request.plan)
        logger.info(f"Transaction confirmed on {chain.name}: {tx_hash}")
        return tx_hash
