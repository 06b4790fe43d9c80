"""Print-order domain exceptions.

Raised by the service layer, the vendor client and the webhook ingestor.
The API layer (views) catches these and translates them into HTTP
responses.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional, Sequence

if TYPE_CHECKING:
    from modules.print_orders.vendor.interactions import InteractionRecord


class PrintOrderNotFound(Exception):
    """The requested print order does not exist."""


class InvalidOrderStatus(Exception):
    """The action is not allowed from the order's current fulfillment status."""


class RejectionReasonRequired(Exception):
    """A rejection was attempted without a reason."""


class PrintOrderValidationFailed(Exception):
    """Printable assets failed validation; the order was left untouched."""

    def __init__(self, errors: Sequence[str]) -> None:
        self.errors: List[str] = list(errors)
        super().__init__("; ".join(self.errors) or "Validation failed.")


class VendorAPIError(Exception):
    """A call to the print vendor failed.

    ``transient`` is ``True`` for timeouts, network errors, rate limiting
    and 5xx responses.  ``interactions`` carries the redacted exchange so
    callers can audit failed calls too.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        transient: bool = False,
        interactions: Optional[Sequence[InteractionRecord]] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.transient = transient
        self.interactions = list(interactions or [])


class VendorSubmissionFailed(Exception):
    """Submission to the vendor failed and the order was parked ``on_hold``."""

    def __init__(self, message: str, *, transient: bool = False) -> None:
        super().__init__(message)
        self.transient = transient


class VendorCancellationRefused(Exception):
    """The vendor refused to cancel the order (already in production)."""


class WebhookSignatureError(Exception):
    """The webhook signature is missing or does not match the raw body."""


class WebhookConfigurationError(Exception):
    """The webhook shared secret is not configured."""
