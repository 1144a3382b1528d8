"""
Typed failures for outbound service calls.

Every failure carries an explicit `kind` so callers can decide between retrying,
falling back ("could you repeat that?") or stopping, without parsing messages.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    TRANSIENT = "transient"
    TERMINAL = "terminal"
    FATAL = "fatal"


class ServiceError(Exception):
    """Base class for failures surfaced by a pipeline stage."""

    kind: ErrorKind = ErrorKind.TERMINAL

    def __init__(
        self,
        message: str,
        *,
        label: str = "",
        attempts: int = 0,
        status: Optional[int] = None,
    ):
        super().__init__(message)
        self.label = label
        self.attempts = attempts
        self.status = status


class TransientServiceError(ServiceError):
    """Rate limit, 5xx, connection reset or timeout. Retried before surfacing."""

    kind = ErrorKind.TRANSIENT


class StageTimeoutError(TransientServiceError):
    """The per-attempt deadline fired before the call completed."""

    def __init__(self, label: str, timeout: float):
        super().__init__(f"{label} timed out after {timeout * 1000:.0f}ms", label=label)
        self.timeout = timeout


class TerminalServiceError(ServiceError):
    """Malformed request, auth failure, unexpected response shape. Never retried."""

    kind = ErrorKind.TERMINAL


class StartupFatalError(ServiceError):
    """The process cannot serve any turn (e.g. product document unreadable)."""

    kind = ErrorKind.FATAL
