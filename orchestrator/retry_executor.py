import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, TypeVar

from models.errors import error_kind_of
from utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    backoff_base: float = 2.0
    delay_unit_s: float = 1.0

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.backoff_base < 1:
            raise ValueError(f"backoff_base must be >= 1, got {self.backoff_base}")
        if self.delay_unit_s < 0:
            raise ValueError(f"delay_unit_s must be >= 0, got {self.delay_unit_s}")

    def delay_before(self, retry_number: int) -> float:
        """Delay before retry k (k >= 1): base**k time units."""
        return (self.backoff_base**retry_number) * self.delay_unit_s


@dataclass(frozen=True)
class RetryResult(Generic[T]):
    """Tagged outcome: either value is set (ok) or error is."""

    value: T | None = None
    error: BaseException | None = None
    attempts: int = 0
    delays: tuple[float, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def error_kind(self) -> str | None:
        return error_kind_of(self.error) if self.error is not None else None

    @property
    def reason(self) -> str | None:
        return getattr(self.error, "reason", None) if self.error is not None else None

    @property
    def message(self) -> str | None:
        if self.error is None:
            return None
        return getattr(self.error, "message", None) or str(self.error)


class RetryExecutor:
    """
    Runs a zero-argument coroutine factory with bounded exponential backoff.

    The same executor is shared by fetch and generation call sites. Cancellation
    is never retried: asyncio.CancelledError propagates out of the backoff sleep.
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    async def execute(self, operation: Callable[[], Awaitable[T]], label: str = "") -> RetryResult[T]:
        last_error: BaseException | None = None
        delays: list[float] = []
        total_attempts = 1 + self.policy.max_retries

        for attempt in range(total_attempts):
            if attempt > 0:
                delay = self.policy.delay_before(attempt)
                delays.append(delay)
                await self._sleep(delay)
            try:
                value = await operation()
            except Exception as e:
                last_error = e
                logger.warning(
                    f"Attempt {attempt + 1}/{total_attempts} failed for {label or 'operation'}: {e}",
                    extra={
                        "extra_fields": {
                            "label": label,
                            "attempt": attempt + 1,
                            "error_kind": error_kind_of(e),
                            "error_type": type(e).__name__,
                        }
                    },
                )
                continue
            return RetryResult(value=value, attempts=attempt + 1, delays=tuple(delays))

        return RetryResult(error=last_error, attempts=total_attempts, delays=tuple(delays))
