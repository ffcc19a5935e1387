"""Tests for transaction dispatch and auth signing."""

from unittest.mock import AsyncMock

import pytest

from bridgeflow.chains import ChainRegistry, ExecutionFamily
from bridgeflow.contracts import QuoteResponse, TransferRequest
from bridgeflow.dispatch import TransactionDispatcher
from bridgeflow.errors import ConfigurationError, MissingAuthChallenge, TransactionFailed, ValidationError
from bridgeflow.signing.auth import AuthSigner
from bridgeflow.signing.factory import SignerTable


def _request(quote_payload, **kwargs) -> TransferRequest:
    quote = QuoteResponse.model_validate(quote_payload(**kwargs))
    return TransferRequest.from_quote(quote.data, "user", "recipient")


class TestTransactionDispatcher:
    """Tests for plan validation and dispatch."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind,source", [("evm", 11), ("solana", 1), ("aptos", 2), ("aptos-serialized", 2)])
    async def test_dispatch_to_matching_family(self, registry, signers, quote_payload, kind, source):
        request = _request(quote_payload, kind=kind, source=source)
        dispatcher = TransactionDispatcher(registry, signers)

        tx_hash = await dispatcher.dispatch(request)

        assert tx_hash == "0xtx"
        assert signers.get(source).sent == [request.plan]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind,source", [("evm", 1), ("solana", 2), ("aptos", 6), ("aptos-serialized", 1)])
    async def test_family_mismatch_rejected_before_network(self, registry, signers, quote_payload, kind, source):
        request = _request(quote_payload, kind=kind, source=source)
        dispatcher = TransactionDispatcher(registry, signers)

        with pytest.raises(ValidationError) as exc_info:
            await dispatcher.dispatch(request)

        assert exc_info.value.payload["plan_kind"] == kind
        assert exc_info.value.payload["expected_family"] == registry.family_of(source).value
        assert signers.get(source).sent == []

    @pytest.mark.asyncio
    async def test_unsupported_chain(self, registry, signers, quote_payload):
        request = _request(quote_payload, source=999)

        with pytest.raises(ConfigurationError):
            await TransactionDispatcher(registry, signers).dispatch(request)

    @pytest.mark.asyncio
    async def test_request_dispatched_once(self, registry, signers, quote_payload):
        request = _request(quote_payload)
        dispatcher = TransactionDispatcher(registry, signers)

        await dispatcher.dispatch(request)
        with pytest.raises(ValidationError):
            await dispatcher.dispatch(request)

        assert len(signers.get(11).sent) == 1

    @pytest.mark.asyncio
    async def test_failed_dispatch_consumes_request(self, registry, signers, quote_payload):
        request = _request(quote_payload)
        signers.get(11).send_and_confirm = AsyncMock(side_effect=TransactionFailed("reverted"))
        dispatcher = TransactionDispatcher(registry, signers)

        with pytest.raises(TransactionFailed):
            await dispatcher.dispatch(request)
        with pytest.raises(ValidationError, match="already dispatched"):
            await dispatcher.dispatch(request)

        signers.get(11).send_and_confirm.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_family_without_signer(self, registry, quote_payload):
        request = _request(quote_payload)
        table = SignerTable(registry, builders={})

        with pytest.raises(ConfigurationError, match="Unsupported chain type"):
            await TransactionDispatcher(registry, table).dispatch(request)


class TestAuthSigner:
    """Tests for auth challenge signing."""

    def test_account_proof_has_no_public_key(self, signers):
        proof = AuthSigner(signers).sign(11, "challenge")

        assert proof.signature == "sig(challenge)"
        assert proof.public_key is None

    def test_instruction_proof_has_no_public_key(self, signers):
        assert AuthSigner(signers).sign(1, "challenge").public_key is None

    def test_module_proof_has_public_key(self, signers):
        proof = AuthSigner(signers).sign(2, "challenge")

        assert proof.public_key == "pub"

    @pytest.mark.parametrize("challenge", [None, ""])
    def test_missing_challenge(self, signers, challenge):
        with pytest.raises(MissingAuthChallenge, match="Auth message not found"):
            AuthSigner(signers).sign(11, challenge)

    def test_unsupported_chain(self, signers):
        with pytest.raises(ConfigurationError):
            AuthSigner(signers).sign(42, "challenge")


class TestSignerTable:
    """Tests for the per-family signer table."""

    def test_signers_cached_per_chain(self, signers):
        assert signers.get(11) is signers.get(11)
        assert signers.get(11) is not signers.get(3)

    def test_signer_matches_chain_family(self, signers):
        assert signers.get(1).family == ExecutionFamily.INSTRUCTION
        assert signers.address_of(2) == "aptos-user"

    @pytest.mark.asyncio
    async def test_close_drops_signers(self, signers):
        first = signers.get(6)

        await signers.close()

        assert signers.get(6) is not first

    def test_default_builders_are_lazy(self):
        table = SignerTable(ChainRegistry())

        # Building never parses keys; only using the address does
        signer = table.get(1)
        with pytest.raises(ConfigurationError, match="SOLANA_PRIVATE_KEY"):
            _ = signer.address
