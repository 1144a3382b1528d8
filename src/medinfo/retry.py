"""
Retry/timeout executor for outbound service calls.

Every call to an external service runs through `with_retry`:
- each attempt races the operation against a deadline; the loser is cancelled
- retryable failures (429, 5xx, connection reset, timeouts) back off
  exponentially (base * 2**attempt, no jitter) up to `max_retries`
- everything else surfaces immediately as a TerminalServiceError
"""

from __future__ import annotations

import asyncio
import errno
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx
import openai
import structlog

from src.medinfo.errors import (
    ServiceError,
    StageTimeoutError,
    TerminalServiceError,
    TransientServiceError,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")

_RETRYABLE_CODES = {"ECONNRESET", "ETIMEDOUT"}
_RETRYABLE_ERRNOS = {errno.ECONNRESET, errno.ETIMEDOUT}
# Reset or timed-out connections only. Refused connections and DNS failures are
# terminal.
_RETRYABLE_TYPES: tuple[type[BaseException], ...] = (
    ConnectionResetError,
    TimeoutError,
    openai.APITimeoutError,
    httpx.TimeoutException,
    httpx.RemoteProtocolError,
)


@dataclass(frozen=True)
class RetryPolicy:
    """Attempts = max_retries + 1. Delays and timeout are in seconds."""

    max_retries: int = 2
    base_delay: float = 0.6
    timeout: float = 15.0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.base_delay < 0:
            raise ValueError(f"base_delay must be >= 0, got {self.base_delay}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self.timeout}")

    def delay_for(self, attempt_index: int) -> float:
        """Backoff before retrying after the failed attempt `attempt_index` (0-based)."""
        return self.base_delay * (2 ** attempt_index)


def _status_of(exc: BaseException) -> Optional[int]:
    for attr in ("status_code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def is_retryable(exc: BaseException) -> bool:
    """Classify a failure as transient (worth another attempt) or not."""
    if isinstance(exc, TransientServiceError):
        return True
    if isinstance(exc, ServiceError):
        return False

    status = _status_of(exc)
    if status is not None and (status == 429 or status >= 500):
        return True

    # SDK errors wrap the transport error; look through the chain.
    if any(_is_reset_or_timeout(e) for e in _exception_chain(exc)):
        return True

    return "timed out" in str(exc).lower()


def _exception_chain(exc: BaseException, limit: int = 5):
    seen = 0
    current: Optional[BaseException] = exc
    while current is not None and seen < limit:
        yield current
        current = current.__cause__ or current.__context__
        seen += 1


def _is_reset_or_timeout(exc: BaseException) -> bool:
    if isinstance(exc, _RETRYABLE_TYPES):
        return True
    if getattr(exc, "code", None) in _RETRYABLE_CODES:
        return True
    return getattr(exc, "errno", None) in _RETRYABLE_ERRNOS


def _surface(exc: BaseException, label: str, attempts: int) -> ServiceError:
    if isinstance(exc, ServiceError):
        exc.label = exc.label or label
        exc.attempts = attempts
        return exc

    cls = TransientServiceError if is_retryable(exc) else TerminalServiceError
    return cls(
        f"{label} failed: {exc}",
        label=label,
        attempts=attempts,
        status=_status_of(exc),
    )


async def _attempt(operation: Callable[[], Awaitable[T]], label: str, timeout: float) -> T:
    task = asyncio.ensure_future(operation())
    try:
        done, _pending = await asyncio.wait({task}, timeout=timeout)
    except asyncio.CancelledError:
        task.cancel()
        raise

    if task in done:
        return task.result()

    # Deadline won: abandon the in-flight call. Whatever it produces is discarded.
    task.cancel()
    task.add_done_callback(_discard_result)
    raise StageTimeoutError(label, timeout)


def _discard_result(task: "asyncio.Future[Any]") -> None:
    if not task.cancelled():
        task.exception()


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    label: str,
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Run `operation` under `policy`.

    Args:
        operation: Zero-argument coroutine factory; called once per attempt
        label: Diagnostic label (e.g. "STT", "translate")
        policy: Retry count, backoff base and per-attempt timeout
        sleep: Backoff sleeper (injectable for tests)

    Returns:
        The operation's result

    Raises:
        TransientServiceError: retryable failure after all attempts were used
        TerminalServiceError: non-retryable failure, raised on first occurrence
    """
    attempts = policy.max_retries + 1

    for attempt in range(attempts):
        try:
            return await _attempt(operation, label, policy.timeout)
        except asyncio.CancelledError:
            raise
        except StageTimeoutError as e:
            logger.warning(
                "External call timed out",
                label=label,
                attempt=attempt + 1,
                timeout_ms=round(e.timeout * 1000),
            )
            last_error: BaseException = e
        except Exception as e:
            last_error = e

        if attempt + 1 >= attempts or not is_retryable(last_error):
            surfaced = _surface(last_error, label, attempt + 1)
            if surfaced is last_error:
                raise surfaced
            raise surfaced from last_error

        delay = policy.delay_for(attempt)
        logger.warning(
            "Retrying external call",
            label=label,
            attempt=attempt + 1,
            delay_ms=round(delay * 1000),
            error=str(last_error),
        )
        await sleep(delay)

    raise AssertionError("unreachable")  # pragma: no cover


@dataclass(frozen=True)
class PipelineOperation:
    """A labelled unit of outbound work with its own policy. Built fresh per call."""

    label: str
    operation: Callable[[], Awaitable[Any]]
    policy: RetryPolicy

    async def run(self, *, sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep) -> Any:
        return await with_retry(self.operation, self.label, self.policy, sleep=sleep)
