"""Best-effort side effects.

Notifications, vendor-order cancellation before a resubmission, billing
lookups and interaction logging must never fail the primary operation.
``best_effort`` runs such a call, logs any exception it raises and hands
back the outcome instead of raising.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class BestEffortResult(Generic[T]):
    ok: bool
    value: Optional[T] = None
    error: Optional[BaseException] = None


def best_effort(
    event: str,
    func: Callable[..., T],
    *args: Any,
    on_error: Optional[Callable[[Exception], Any]] = None,
    **kwargs: Any,
) -> BestEffortResult[T]:
    """Call ``func(*args, **kwargs)``; never raise.

    *event* names the structured log line emitted on failure.  *on_error*
    (typically a process-log writer) receives the exception; if it fails
    too, that is logged and ignored.
    """
    try:
        return BestEffortResult(ok=True, value=func(*args, **kwargs))
    except Exception as exc:
        logger.exception(event, error=str(exc), error_type=type(exc).__name__)
        if on_error is not None:
            try:
                on_error(exc)
            except Exception:
                logger.exception(f"{event}.audit_failed")
        return BestEffortResult(ok=False, error=exc)
