"""Quote, transaction plan and status contracts.

Wire payloads from the quoting service are parsed into pydantic models.
Field names follow Python conventions; the camelCase wire names are aliases.
Minor-unit amounts stay strings end to end and are never reformatted.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, ClassVar, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from bridgeflow.chains import ExecutionFamily


class WireModel(BaseModel):
    """Base model accepting both field names and camelCase aliases."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ======================
# Transaction plans
# ======================

class EvmTxData(WireModel):
    """A single EVM call to sign and send."""

    to: str
    data: str = "0x"
    value: str = "0"
    chain_id: Optional[int] = Field(None, alias="chainId")
    gas_limit: Optional[str] = Field(None, alias="gasLimit")
    max_fee_per_gas: Optional[str] = Field(None, alias="maxFeePerGas")
    max_priority_fee_per_gas: Optional[str] = Field(None, alias="maxPriorityFeePerGas")


class EvmTxStep(WireModel):
    description: str = ""
    data: EvmTxData


class AccountPlan(WireModel):
    """EVM plan: optional token approval, then the bridge call."""

    family: ClassVar[ExecutionFamily] = ExecutionFamily.ACCOUNT

    kind: Literal["evm"] = "evm"
    approval: Optional[EvmTxStep] = None
    execution: EvmTxStep


class SolanaTxData(WireModel):
    instruction: str = Field(..., description="Base64 serialized versioned transaction")


class SolanaExecution(WireModel):
    description: str = ""
    data: SolanaTxData


class InstructionPlan(WireModel):
    """Solana plan: one pre-built versioned transaction to cosign."""

    family: ClassVar[ExecutionFamily] = ExecutionFamily.INSTRUCTION

    kind: Literal["solana"] = "solana"
    execution: SolanaExecution


class AptosTxData(WireModel):
    """Either an entry-function invocation or a hex BCS raw transaction."""

    function: Optional[str] = None
    type_arguments: list[str] = Field(default_factory=list)
    arguments: list[Any] = Field(default_factory=list)
    raw_transaction: Optional[str] = None


class AptosExecution(WireModel):
    description: str = ""
    data: AptosTxData


class ModulePlan(WireModel):
    """Aptos plan, structured (`aptos`) or pre-serialized (`aptos-serialized`)."""

    family: ClassVar[ExecutionFamily] = ExecutionFamily.MODULE

    kind: Literal["aptos", "aptos-serialized"]
    execution: AptosExecution

    @model_validator(mode="after")
    def _check_payload(self) -> "ModulePlan":
        data = self.execution.data
        if self.kind == "aptos-serialized" and not data.raw_transaction:
            raise ValueError("aptos-serialized plan requires execution.data.raw_transaction")
        if self.kind == "aptos" and not data.function:
            raise ValueError("aptos plan requires execution.data.function")
        return self

    @property
    def is_serialized(self) -> bool:
        return self.kind == "aptos-serialized"

    def entry_function_payload(self) -> dict:
        """Payload in the fullnode JSON entry-function format."""
        data = self.execution.data
        return {
            "type": "entry_function_payload",
            "function": data.function,
            "type_arguments": list(data.type_arguments),
            "arguments": list(data.arguments),
        }


TransactionPlan = Annotated[
    Union[AccountPlan, InstructionPlan, ModulePlan],
    Field(discriminator="kind"),
]


# ======================
# Quote
# ======================

class QuoteChains(WireModel):
    source: int
    target: int


class QuoteTokens(WireModel):
    source_address: str = Field(..., alias="sourceAddress")
    target_address: str = Field(..., alias="targetAddress")
    source_symbol: str = Field("", alias="sourceSymbol")
    target_symbol: str = Field("", alias="targetSymbol")
    source_decimals: Optional[int] = Field(None, alias="sourceDecimals")
    target_decimals: Optional[int] = Field(None, alias="targetDecimals")


class QuoteAmounts(WireModel):
    amount_in: str = Field(..., alias="amountIn")
    amount_out: str = Field(..., alias="amountOut")
    amount_in_formatted: str = Field("", alias="amountInFormatted")
    amount_out_formatted: str = Field("", alias="amountOutFormatted")


class QuoteFees(WireModel):
    gas: Optional[str] = None
    relayer: Optional[str] = None
    currency: Optional[str] = None
    total_usd: Optional[float] = Field(None, alias="totalUsd")


class AuthChallenge(WireModel):
    message: str


class QuoteData(WireModel):
    """Execution plan returned by the quoting service."""

    request_id: str = Field(..., alias="requestId")
    quote_id: str = Field(..., alias="quoteId")
    integrator: Optional[str] = None
    chains: QuoteChains
    tokens: QuoteTokens
    amounts: QuoteAmounts
    fees: Optional[QuoteFees] = None
    transaction: TransactionPlan
    auth: Optional[AuthChallenge] = None


class QuoteResponse(WireModel):
    status: Optional[str] = None
    message: str = ""
    data: QuoteData


# ======================
# Status
# ======================

class TransferStatus(str, Enum):
    """Known values of the remote status machine."""
    INITIATED = "INITIATED"
    PROCESSING_RELAY_POLL = "PROCESSING_RELAY_POLL"
    PROCESSING_CCTP_QUOTE = "PROCESSING_CCTP_QUOTE"
    PROCESSING_CCTP_PAYLOAD = "PROCESSING_CCTP_PAYLOAD"
    PROCESSING_RELAYER_CLAIM = "PROCESSING_RELAYER_CLAIM"
    PROCESSING_RELAYER_POLL = "PROCESSING_RELAYER_POLL"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


TERMINAL_STATUSES = frozenset({TransferStatus.COMPLETED.value, TransferStatus.FAILED.value})


class StepStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class TransferStep(WireModel):
    name: str
    status: str
    description: str = ""
    tx_hash: Optional[str] = Field(None, alias="txHash")


class StatusSnapshot(WireModel):
    """One observation of the remote transfer state.

    `status` is kept as a plain string so values added server-side are
    accepted as opaque non-terminal states.
    """

    transaction_id: Optional[str] = Field(None, alias="transactionId")
    tx_hash: Optional[str] = Field(None, alias="txHash")
    source_chain: Optional[str] = Field(None, alias="sourceChain")
    target_chain: Optional[str] = Field(None, alias="targetChain")
    status: str
    steps: list[TransferStep] = Field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_completed(self) -> bool:
        return self.status == TransferStatus.COMPLETED.value

    @property
    def is_failed(self) -> bool:
        return self.status == TransferStatus.FAILED.value


class StatusResponse(WireModel):
    success: bool = True
    message: str = ""
    data: StatusSnapshot


# ======================
# Request / proof
# ======================

@dataclass
class QuoteParams:
    """Parameters for a quote request."""
    user_address: str
    amount: str
    source_chain_id: int
    target_chain_id: int
    source_token_address: str
    target_token_address: str
    recipient_address: str
    exact_out: bool = False

    def to_query(self) -> dict[str, str]:
        query = {
            "userAddress": self.user_address,
            "amount": self.amount,
            "sourceChainId": str(self.source_chain_id),
            "targetChainId": str(self.target_chain_id),
            "sourceTokenAddress": self.source_token_address,
            "targetTokenAddress": self.target_token_address,
            "recipientAddress": self.recipient_address,
        }
        if self.exact_out:
            query["swapMode"] = "ExactOut"
        return query


@dataclass(frozen=True)
class AuthProof:
    """Signature over the auth challenge.

    `public_key` is set only when the verifier cannot recover the signer
    from the signature (Module family).
    """
    signature: str
    public_key: Optional[str] = None


@dataclass
class TransferRequest:
    """A single transfer, created once from a quote and dispatched once."""

    request_id: str
    quote_id: str
    source_chain_id: int
    target_chain_id: int
    source_token_address: str
    target_token_address: str
    amount_in: str
    amount_out: str
    user_address: str
    recipient_address: str
    plan: TransactionPlan
    auth_challenge: Optional[str] = None
    metadata: dict = field(default_factory=dict)

    @classmethod
    def from_quote(cls, quote: QuoteData, user_address: str, recipient_address: str) -> "TransferRequest":
        """Build a request from quote data. Amounts are copied verbatim."""
        return cls(
            request_id=quote.request_id,
            quote_id=quote.quote_id,
            source_chain_id=quote.chains.source,
            target_chain_id=quote.chains.target,
            source_token_address=quote.tokens.source_address,
            target_token_address=quote.tokens.target_address,
            amount_in=quote.amounts.amount_in,
            amount_out=quote.amounts.amount_out,
            user_address=user_address,
            recipient_address=recipient_address,
            plan=quote.transaction,
            auth_challenge=quote.auth.message if quote.auth else None,
            metadata={"integrator": quote.integrator},
        )


@dataclass
class StatusParams:
    """Parameters for a status query."""
    request_id: str
    tx_hash: str
    user_address: str
    recipient_address: str
    amount: str
    source_chain_id: int
    target_chain_id: int
    target_token_address: str
    auth: Optional[AuthProof] = None

    @classmethod
    def for_transfer(cls, request: TransferRequest, tx_hash: str, auth: Optional[AuthProof]) -> "StatusParams":
        return cls(
            request_id=request.request_id,
            tx_hash=tx_hash,
            user_address=request.user_address,
            recipient_address=request.recipient_address,
            amount=request.amount_out,
            source_chain_id=request.source_chain_id,
            target_chain_id=request.target_chain_id,
            target_token_address=request.target_token_address,
            auth=auth,
        )

    def to_query(self) -> dict[str, str]:
        query = {
            "requestId": self.request_id,
            "txHash": self.tx_hash,
            "userAddress": self.user_address,
            "recipientAddress": self.recipient_address,
            "amount": self.amount,
            "sourceChainId": str(self.source_chain_id),
            "targetChainId": str(self.target_chain_id),
            "targetTokenAddress": self.target_token_address,
        }
        if self.auth is not None:
            query["authSignature"] = self.auth.signature
            if self.auth.public_key:
                query["authPublicKey"] = self.auth.public_key
        return query
