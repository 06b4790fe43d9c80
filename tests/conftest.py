import pytest

from django.conf import settings
from django.contrib.auth import get_user_model

from rest_framework.test import APIClient

from modules.print_orders.config import FulfillmentConfig
from modules.print_orders.constants import FulfillmentStatus
from modules.print_orders.exceptions import VendorAPIError
from modules.print_orders.models import PrintOrder
from modules.print_orders.notifications import INotificationSink
from modules.print_orders.vendor.client import (
    IVendorClient,
    VendorCallResult,
    VendorOrder,
    VendorOrderStatus,
)
from modules.print_orders.vendor.interactions import InteractionRecord

User = get_user_model()

VALID_FILES = {
    "cover_pdf_url": "https://cdn.storybook.test/books/1/cover.pdf",
    "interior_pdf_url": "https://cdn.storybook.test/books/1/interior.pdf",
}

VALID_METADATA = {
    "interior_page_count": 24,
    "cover_page_count": 4,
    "binding_type": "case",
    "trim_size": "A4",
    "padding_page_count": 0,
}

SHIPPING_ADDRESS = {
    "name": "Ada Lovelace",
    "line1": "12 Story Lane",
    "line2": "",
    "city": "Manchester",
    "state": "",
    "postal_code": "M1 1AE",
    "country": "GB",
}


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class FakeVendorClient(IVendorClient):
    """In-memory vendor.  Records every call in ``calls`` as (name, arg)."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.submit_error: VendorAPIError | None = None
        self.cancel_error: VendorAPIError | None = None
        self.status_error: VendorAPIError | None = None
        self.status = VendorOrderStatus(status="PENDING")
        self._next = 1000

    def submit_order(self, document, *, external_order_id=""):
        self.calls.append(("submit_order", external_order_id))
        self.last_document = document
        if self.submit_error is not None:
            raise self.submit_error
        self._next += 1
        order = VendorOrder(
            order_id=f"MX-{self._next}",
            job_number=f"JOB-{self._next}",
            status="PENDING",
        )
        return VendorCallResult(
            order,
            [
                InteractionRecord(
                    action="submit_order",
                    method="POST",
                    endpoint="/api/public/orders",
                    status_code=200,
                    response_body={"order": {"id": order.order_id}},
                    vendor_order_id=order.order_id,
                )
            ],
        )

    def cancel_order(self, vendor_order_id):
        self.calls.append(("cancel_order", vendor_order_id))
        if self.cancel_error is not None:
            raise self.cancel_error
        return VendorCallResult(
            None,
            [
                InteractionRecord(
                    action="cancel_order",
                    method="PUT",
                    endpoint=f"/api/public/orders/{vendor_order_id}/status",
                    status_code=200,
                    vendor_order_id=vendor_order_id,
                )
            ],
        )

    def get_order_status(self, vendor_order_id):
        self.calls.append(("get_order_status", vendor_order_id))
        if self.status_error is not None:
            raise self.status_error
        return VendorCallResult(self.status, [])


class RecordingNotifier(INotificationSink):
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.status_changes: list[tuple[str, str, str]] = []
        self.rejections: list[tuple[str, str]] = []

    def notify_status_changed(self, order, previous_status, new_status):
        if self.fail:
            raise RuntimeError("mail server down")
        self.status_changes.append((str(order.id), previous_status, new_status))

    def notify_rejected(self, order, reason):
        if self.fail:
            raise RuntimeError("mail server down")
        self.rejections.append((str(order.id), reason))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


@pytest.fixture()
def parent_user():
    return User.objects.create_user(username="parent", password="testpass123")


@pytest.fixture()
def admin_user():
    return User.objects.create_user(
        username="printops", password="testpass123", is_staff=True
    )


@pytest.fixture()
def parent_client(parent_user):
    client = APIClient()
    client.force_authenticate(user=parent_user)
    return client


@pytest.fixture()
def admin_client(admin_user):
    client = APIClient()
    client.force_authenticate(user=admin_user)
    return client


@pytest.fixture()
def fake_vendor():
    return FakeVendorClient()


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def failing_notifier():
    return RecordingNotifier(fail=True)


@pytest.fixture()
def fulfillment_config():
    return FulfillmentConfig(
        webhook_secret=settings.MIXAM_WEBHOOK_SECRET,
        billing_address=settings.PRINT_BILLING_ADDRESS,
        payment_method="ACCOUNT",
        status_callback_url=settings.MIXAM_STATUS_CALLBACK_URL,
        notify_emails=list(settings.PRINT_ORDER_NOTIFY_EMAILS),
    )


@pytest.fixture()
def make_order():
    """Factory for print orders; defaults to a valid order ready to submit."""

    def _make(**overrides) -> PrintOrder:
        data = {
            "parent_uid": "parent-1",
            "story_id": "story-1",
            "book_id": "book-1",
            "fulfillment_status": FulfillmentStatus.READY_TO_SUBMIT,
            "printable_files": dict(VALID_FILES),
            "printable_metadata": dict(VALID_METADATA),
            "shipping_address": dict(SHIPPING_ADDRESS),
            "contact_email": "ada@example.com",
            "quantity": 1,
        }
        data.update(overrides)
        return PrintOrder.objects.create(**data)

    return _make
