"""Fulfillment configuration injected into services.

Read from Django settings once per request by ``FulfillmentConfig.from_settings``
so services never touch ``django.conf.settings`` themselves.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from django.conf import settings

from modules.print_orders.dtos import BillingAddressDTO


class BillingAddressNotConfigured(Exception):
    """No account billing address is configured."""


@dataclass(frozen=True)
class FulfillmentConfig:
    webhook_secret: str = ""
    billing_address: Optional[Dict[str, Any]] = None
    payment_method: str = "ACCOUNT"
    status_callback_url: str = ""
    notify_emails: List[str] = field(default_factory=list)

    @classmethod
    def from_settings(cls) -> FulfillmentConfig:
        return cls(
            webhook_secret=settings.MIXAM_WEBHOOK_SECRET,
            billing_address=settings.PRINT_BILLING_ADDRESS,
            payment_method=settings.MIXAM_PAYMENT_METHOD,
            status_callback_url=settings.MIXAM_STATUS_CALLBACK_URL,
            notify_emails=list(settings.PRINT_ORDER_NOTIFY_EMAILS),
        )

    def resolve_billing_address(self) -> BillingAddressDTO:
        """Parse the configured billing address.

        Raises:
            BillingAddressNotConfigured: nothing configured.
            pydantic.ValidationError: the configured value is malformed.
        """
        if not self.billing_address:
            raise BillingAddressNotConfigured("PRINT_BILLING_ADDRESS is not set.")
        return BillingAddressDTO.model_validate(self.billing_address)
