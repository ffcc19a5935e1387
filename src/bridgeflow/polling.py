"""Status polling with an explicit retry policy.

`poll_until_terminal` is the one generic wait loop. `StatusPoller` feeds it
the status query and interprets the terminal snapshot.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, TypeVar

from bridgeflow.contracts import StatusParams, StatusSnapshot, StepStatus
from bridgeflow.errors import PollingTimeout, TransferFailed, TransientQueryError, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


def _is_transient_query_error(exc: BaseException) -> bool:
    return isinstance(exc, TransientQueryError)


@dataclass(frozen=True)
class RetryPolicy:
    """Timing and classification rules for a poll loop.

    Attributes:
        schedule: (first_attempt, interval_seconds) pairs in ascending order.
            The interval for an attempt is taken from the last pair whose
            first_attempt is <= the attempt index.
        max_attempts: Attempt budget, failures included
        transient_delay: Seconds to wait after a transient query failure
        is_transient: Classifier for query exceptions; anything it rejects
            propagates immediately
    """
    schedule: tuple[tuple[int, float], ...] = ((0, 3.0), (10, 5.0), (40, 10.0))
    max_attempts: int = 200
    transient_delay: float = 5.0
    is_transient: Callable[[BaseException], bool] = field(default=_is_transient_query_error)

    def interval_for(self, attempt: int) -> float:
        """Get the sleep interval after a non-terminal result at `attempt`."""
        interval = self.schedule[0][1]
        for first_attempt, seconds in self.schedule:
            if attempt >= first_attempt:
                interval = seconds
            else:
                break
        return interval

    def worst_case_seconds(self) -> float:
        """Total sleep time if every attempt is non-terminal."""
        return sum(self.interval_for(a) for a in range(self.max_attempts))


DEFAULT_STATUS_POLICY = RetryPolicy()


async def poll_until_terminal(
    query: Callable[[], Awaitable[T]],
    is_terminal: Callable[[T], bool],
    policy: RetryPolicy = DEFAULT_STATUS_POLICY,
    sleep: Sleep = asyncio.sleep,
    on_result: Optional[Callable[[int, T], None]] = None,
    label: str = "poll",
) -> T:
    """Run `query` until it yields a terminal result.

    Every iteration consumes one attempt, including iterations whose query
    raised a transient error.

    Args:
        query: Zero-argument coroutine factory performing one query
        is_terminal: Predicate deciding whether a result ends the loop
        policy: Interval schedule, budget and transient classifier
        sleep: Awaitable sleep (injected by tests)
        on_result: Optional callback receiving (attempt, result) per success
        label: Name used in log messages

    Returns:
        The first terminal result

    Raises:
        PollingTimeout: If the attempt budget runs out
        Exception: Any query error the policy does not classify as transient
    """
    for attempt in range(policy.max_attempts):
        try:
            result = await query()
        except Exception as e:
            if not policy.is_transient(e):
                raise
            logger.warning(
                f"{label} error (attempt {attempt + 1}/{policy.max_attempts}), "
                f"retrying in {policy.transient_delay:g}s: {e}"
            )
            await sleep(policy.transient_delay)
            continue

        if on_result is not None:
            on_result(attempt, result)

        if is_terminal(result):
            return result

        interval = policy.interval_for(attempt)
        logger.info(f"Waiting {interval:g}s before next {label}...")
        await sleep(interval)

    raise PollingTimeout(
        f"{label} timeout after {policy.max_attempts} attempts - transaction status unknown"
    )


_STEP_MARKERS = {
    StepStatus.COMPLETED.value: "[done]",
    StepStatus.IN_PROGRESS.value: "[busy]",
    StepStatus.FAILED.value: "[fail]",
}


class StatusPoller:
    """Drives the remote transfer status machine to COMPLETED or FAILED.

    Only one poll sequence may be outstanding per request id.
    """

    def __init__(
        self,
        api_client,
        policy: RetryPolicy = DEFAULT_STATUS_POLICY,
        sleep: Sleep = asyncio.sleep,
    ):
        self.api_client = api_client
        self.policy = policy
        self._sleep = sleep
        self._active: set[str] = set()

    def _log_snapshot(self, attempt: int, snapshot: StatusSnapshot) -> None:
        logger.info(f"Status: {snapshot.status} (Attempt {attempt + 1}/{self.policy.max_attempts})")
        for index, step in enumerate(snapshot.steps, start=1):
            marker = _STEP_MARKERS.get(step.status, "[wait]")
            logger.info(f"  {marker} Step {index}: {step.name} - {step.status}")

    async def poll(self, params: StatusParams) -> StatusSnapshot:
        """Poll until the transfer reaches a terminal status.

        Returns:
            The COMPLETED snapshot

        Raises:
            TransferFailed: Remote status is FAILED (carries the server message)
            PollingTimeout: Attempt budget exhausted, outcome unknown
            ValidationError: The same request id is already being polled
        """
        request_id = params.request_id
        if request_id in self._active:
            raise ValidationError(f"Status polling already in progress for request {request_id}")

        self._active.add(request_id)
        last_message = {"text": ""}

        async def query() -> StatusSnapshot:
            response = await self.api_client.get_status(params)
            last_message["text"] = response.message
            return response.data

        logger.info(
            f"Starting status polling for {request_id} "
            f"(up to {self.policy.max_attempts} attempts, {self.policy.worst_case_seconds():g}s)..."
        )
        try:
            snapshot = await poll_until_terminal(
                query,
                lambda s: s.is_terminal,
                policy=self.policy,
                sleep=self._sleep,
                on_result=self._log_snapshot,
                label="status poll",
            )
        finally:
            self._active.discard(request_id)

        if snapshot.is_failed:
            logger.error("Transaction failed!")
            raise TransferFailed(
                f"Transaction failed: {last_message['text']}",
                payload=snapshot.model_dump(by_alias=True),
            )

        logger.info("Transaction completed successfully!")
        return snapshot
