"""
Retry policy with exponential backoff and jitter.

The policy is an immutable value passed explicitly to every call site;
the executor applies it to one logical operation at a time.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field, fields
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from gemini_ai.errors import (
    Cancelled,
    ErrorKind,
    GenerationError,
    RateLimitExceeded,
    ValidationError,
)
from gemini_ai.telemetry import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from gemini_ai.client.cancel import CancelToken

T = TypeVar("T")

logger = get_logger(__name__)

DEFAULT_RETRYABLE_KINDS: frozenset[ErrorKind] = frozenset(
    {ErrorKind.TRANSPORT, ErrorKind.RATE_LIMITED, ErrorKind.HTTP_STATUS}
)
DEFAULT_RETRYABLE_STATUS: frozenset[int] = frozenset({429, *range(500, 600)})


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff policy.

    The delay before retry ``n`` (1-based) is
    ``min(max_delay, base_delay * multiplier ** (n - 1))``, spread by a
    uniform jitter of ``±jitter_fraction`` of that value and clamped to
    be non-negative. A ``retry_after`` hint on a rate-limit error raises
    the delay to at least the hint.

    Attributes:
        max_attempts: Total attempts including the first (1 = no retries)
        base_delay: First backoff delay in seconds
        multiplier: Growth factor between consecutive delays
        max_delay: Upper bound for the computed delay in seconds
        jitter_fraction: Relative jitter in [0, 1]
        retryable_kinds: Error kinds that may be retried
        retryable_status: HTTP statuses retried for HTTP_STATUS errors
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 30.0
    jitter_fraction: float = 0.1
    retryable_kinds: frozenset[ErrorKind] = DEFAULT_RETRYABLE_KINDS
    retryable_status: frozenset[int] = DEFAULT_RETRYABLE_STATUS

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "retryable_kinds", frozenset(ErrorKind(k) for k in self.retryable_kinds)
        )
        object.__setattr__(self, "retryable_status", frozenset(self.retryable_status))

        if self.max_attempts < 1:
            raise ValidationError(
                "max_attempts must be at least 1",
                field="max_attempts", expected=">= 1", actual=self.max_attempts,
            )
        if self.base_delay <= 0:
            raise ValidationError(
                "base_delay must be positive",
                field="base_delay", expected="> 0", actual=self.base_delay,
            )
        if self.multiplier < 1:
            raise ValidationError(
                "multiplier must be at least 1",
                field="multiplier", expected=">= 1", actual=self.multiplier,
            )
        if self.max_delay < self.base_delay:
            raise ValidationError(
                "max_delay must not be smaller than base_delay",
                field="max_delay", expected=f">= {self.base_delay}", actual=self.max_delay,
            )
        if not 0 <= self.jitter_fraction <= 1:
            raise ValidationError(
                "jitter_fraction must be within [0, 1]",
                field="jitter_fraction", expected="0..1", actual=self.jitter_fraction,
            )
        if ErrorKind.CANCELLED in self.retryable_kinds:
            raise ValidationError(
                "Cancelled calls can never be retried", field="retryable_kinds"
            )

    @classmethod
    def no_retry(cls) -> RetryPolicy:
        """Create a policy that makes exactly one attempt."""
        return cls(max_attempts=1)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> RetryPolicy:
        """Create a policy from a config mapping.

        Args:
            data: Mapping with any of the attribute names; kinds and
                statuses may be given as lists

        Returns:
            RetryPolicy instance

        Raises:
            ValidationError: On unknown keys or invalid values
        """
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValidationError(
                f"Unknown retry settings: {', '.join(unknown)}",
                field="retry", expected=sorted(known), actual=unknown,
            )
        values = dict(data)
        try:
            if "retryable_kinds" in values:
                values["retryable_kinds"] = frozenset(
                    ErrorKind(str(k).lower()) for k in values["retryable_kinds"]
                )
            if "retryable_status" in values:
                values["retryable_status"] = frozenset(int(s) for s in values["retryable_status"])
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid retry setting: {e}", field="retry") from e
        return cls(**values)

    def backoff(self, attempt: int) -> float:
        """Un-jittered delay after the given failed attempt (1-based)."""
        return min(self.max_delay, self.base_delay * self.multiplier ** (attempt - 1))

    def is_retryable(self, error: BaseException) -> bool:
        """Whether the policy allows retrying after this error."""
        if not isinstance(error, GenerationError):
            return False
        if error.kind not in self.retryable_kinds:
            return False
        if error.kind == ErrorKind.HTTP_STATUS:
            return error.status_code in self.retryable_status
        return True


@dataclass
class RetryResult(Generic[T]):
    """Result of a retried operation.

    Attributes:
        success: Whether the operation succeeded
        value: The result value (if success)
        error: The terminal error (if failed)
        attempts: Number of attempts made
        delays: Backoff delays waited, in seconds
    """

    success: bool
    value: T | None = None
    error: GenerationError | None = None
    attempts: int = 0
    delays: list[float] = field(default_factory=list)

    @property
    def total_delay(self) -> float:
        return sum(self.delays)

    def unwrap(self) -> T:
        """Return the value or raise the terminal error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


class RetryExecutor:
    """Runs one logical operation under a RetryPolicy.

    Only GenerationError failures are considered; any other exception
    propagates unchanged from the attempt that raised it.

    Example:
        >>> executor = RetryExecutor(RetryPolicy(max_attempts=5))
        >>> result = await executor.execute(lambda: transport.send(request))
        >>> if not result.success:
        ...     print(result.error.kind, result.attempts)
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        *,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            policy: Retry policy (default policy if None)
            sleep: Async sleep function, injectable for tests
            rng: Random source for jitter
        """
        self._policy = policy or RetryPolicy()
        self._sleep = sleep or asyncio.sleep
        self._rng = rng or random.Random()

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    def compute_delay(self, attempt: int, error: GenerationError | None = None) -> float:
        """Delay to wait after the given failed attempt.

        Args:
            attempt: Failed attempt number (1-based)
            error: The failure, consulted for a retry-after hint

        Returns:
            Delay in seconds
        """
        delay = self._policy.backoff(attempt)
        jitter = self._policy.jitter_fraction
        if jitter:
            delay += delay * self._rng.uniform(-jitter, jitter)
        delay = max(0.0, delay)

        if isinstance(error, RateLimitExceeded) and error.retry_after is not None:
            delay = max(delay, error.retry_after)
        return delay

    async def execute(
        self,
        attempt_fn: Callable[[], Awaitable[T]],
        *,
        cancel_token: CancelToken | None = None,
        on_retry: Callable[[int, GenerationError, float], Any] | None = None,
    ) -> RetryResult[T]:
        """Execute an operation with retry.

        Args:
            attempt_fn: Zero-argument coroutine factory, called once per attempt
            cancel_token: Token aborting further attempts and backoff waits
            on_retry: Callback ``(attempt, error, delay)`` before each wait

        Returns:
            RetryResult with the value or the terminal error
        """
        delays: list[float] = []
        attempt = 0

        while True:
            if cancel_token is not None and cancel_token.is_cancelled:
                return RetryResult(
                    success=False, error=cancel_token.to_error(), attempts=attempt, delays=delays
                )

            attempt += 1
            try:
                value = await attempt_fn()
            except GenerationError as e:
                if not self._policy.is_retryable(e) or attempt >= self._policy.max_attempts:
                    if self._policy.is_retryable(e):
                        logger.warning(
                            "Retry attempts exhausted",
                            attempt=attempt,
                            kind=e.kind.value,
                            status_code=e.status_code,
                        )
                    return RetryResult(success=False, error=e, attempts=attempt, delays=delays)

                delay = self.compute_delay(attempt, e)
                logger.warning(
                    "Retrying after failure",
                    attempt=attempt,
                    kind=e.kind.value,
                    status_code=e.status_code,
                    delay=round(delay, 3),
                )
                if on_retry is not None:
                    on_retry(attempt, e, delay)

                try:
                    await self._wait(delay, cancel_token)
                except Cancelled as c:
                    return RetryResult(success=False, error=c, attempts=attempt, delays=delays)
                delays.append(delay)
            else:
                return RetryResult(success=True, value=value, attempts=attempt, delays=delays)

    async def _wait(self, delay: float, cancel_token: CancelToken | None) -> None:
        """Backoff wait that ends early when the token is cancelled.

        Raises:
            Cancelled: If the token fired before the delay elapsed
        """
        if cancel_token is None:
            await self._sleep(delay)
            return
        if cancel_token.is_cancelled:
            raise cancel_token.to_error()

        sleeper = asyncio.ensure_future(self._sleep(delay))
        waiter = asyncio.ensure_future(cancel_token.wait())
        try:
            await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            pending = [t for t in (sleeper, waiter) if not t.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        if cancel_token.is_cancelled:
            raise cancel_token.to_error()


async def with_retry(
    attempt_fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    *,
    cancel_token: CancelToken | None = None,
    on_retry: Callable[[int, GenerationError, float], Any] | None = None,
    sleep: Callable[[float], Awaitable[Any]] | None = None,
) -> T:
    """Execute an operation with retry, raising on failure.

    Args:
        attempt_fn: Zero-argument coroutine factory
        policy: Retry policy
        cancel_token: Optional cancellation token
        on_retry: Optional callback called before each backoff wait
        sleep: Optional sleep override

    Returns:
        Operation result

    Raises:
        GenerationError: The terminal error if all attempts fail
    """
    executor = RetryExecutor(policy, sleep=sleep)
    result = await executor.execute(attempt_fn, cancel_token=cancel_token, on_retry=on_retry)
    return result.unwrap()
