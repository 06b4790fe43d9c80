"""Integration tests for the parent print-order API (/api/v1/print-orders/).

Covers:
- Creation: 201 in ``validating``, owner taken from the authenticated
  user, ``order_created`` process-log entry, no history row.
- Input validation: 400 on bad address / quantity / binding.
- Listing and retrieval are scoped to the caller.
- Payment by the owner, by staff, and refused for other parents.
- Parents never see vendor internals.
"""

from __future__ import annotations

import copy

import pytest

from django.contrib.auth import get_user_model

from rest_framework.test import APIClient

from modules.print_orders.constants import FulfillmentStatus, PaymentStatus
from modules.print_orders.models import (
    PrintOrder,
    PrintOrderProcessLog,
    PrintOrderStatusHistory,
)

pytestmark = pytest.mark.integration

User = get_user_model()
BASE = "/api/v1/print-orders/"

SHIPPING_ADDRESS = {
    "name": "Ada Lovelace",
    "line1": "12 Story Lane",
    "city": "Manchester",
    "postal_code": "M1 1AE",
    "country": "GB",
}
VALID_METADATA = {"interior_page_count": 24, "binding_type": "case", "trim_size": "A4"}

PAYLOAD = {
    "story_id": "story-42",
    "book_id": "book-42",
    "shipping_address": SHIPPING_ADDRESS,
    "contact_email": "ada@example.com",
    "printable_files": {
        "cover_pdf_url": "https://cdn.storybook.test/books/42/cover.pdf",
        "interior_pdf_url": "https://cdn.storybook.test/books/42/interior.pdf",
    },
    "printable_metadata": VALID_METADATA,
}


def _payload(**overrides):
    data = copy.deepcopy(PAYLOAD)
    data.update(overrides)
    return data


@pytest.fixture()
def other_client():
    user = User.objects.create_user(username="other-parent", password="testpass123")
    client = APIClient()
    client.force_authenticate(user=user)
    return client


# ===========================================================================
# Create
# ===========================================================================


class TestCreate:
    def test_create(self, parent_client, parent_user):
        response = parent_client.post(BASE, _payload(), format="json")

        assert response.status_code == 201
        assert response.data["fulfillment_status"] == FulfillmentStatus.VALIDATING
        assert response.data["payment_status"] == PaymentStatus.UNPAID

        order = PrintOrder.objects.get(id=response.data["id"])
        assert order.parent_uid == str(parent_user.pk)
        assert order.printable_metadata["interior_page_count"] == 24
        assert not PrintOrderStatusHistory.objects.filter(order=order).exists()
        created = PrintOrderProcessLog.objects.get(order=order, event="order_created")
        assert created.source == "parent"

    def test_vendor_fields_hidden(self, parent_client):
        response = parent_client.post(BASE, _payload(), format="json")

        assert "mixam_order_id" not in response.data
        assert "printable_files" not in response.data

    def test_requires_authentication(self, api_client):
        response = api_client.post(BASE, _payload(), format="json")
        assert response.status_code == 401

    def test_zero_quantity_rejected(self, parent_client):
        response = parent_client.post(BASE, _payload(quantity=0), format="json")
        assert response.status_code == 400

    def test_blank_address_field_rejected(self, parent_client):
        address = dict(SHIPPING_ADDRESS, city="   ")

        response = parent_client.post(
            BASE, _payload(shipping_address=address), format="json"
        )

        assert response.status_code == 400
        assert not PrintOrder.objects.exists()

    def test_unknown_binding_rejected(self, parent_client):
        metadata = dict(VALID_METADATA, binding_type="spiral")

        response = parent_client.post(
            BASE, _payload(printable_metadata=metadata), format="json"
        )

        assert response.status_code == 400


# ===========================================================================
# Read
# ===========================================================================


class TestRead:
    def test_list_only_own_orders(self, parent_client, parent_user, make_order):
        mine = make_order(parent_uid=str(parent_user.pk))
        make_order(parent_uid="someone-else")

        response = parent_client.get(BASE)

        assert response.status_code == 200
        assert response.data["count"] == 1
        assert response.data["results"][0]["id"] == str(mine.id)

    def test_retrieve_own(self, parent_client, parent_user, make_order):
        order = make_order(parent_uid=str(parent_user.pk), tracking_number="TRK1")

        response = parent_client.get(f"{BASE}{order.id}/")

        assert response.status_code == 200
        assert response.data["tracking_number"] == "TRK1"

    def test_other_parents_order_is_404(self, parent_client, make_order):
        order = make_order(parent_uid="someone-else")

        response = parent_client.get(f"{BASE}{order.id}/")

        assert response.status_code == 404

    def test_invalid_id_is_404(self, parent_client):
        response = parent_client.get(f"{BASE}not-a-uuid/")
        assert response.status_code == 404


# ===========================================================================
# Payment
# ===========================================================================


class TestPay:
    def test_owner_marks_paid(self, parent_client, parent_user, make_order):
        order = make_order(parent_uid=str(parent_user.pk))

        response = parent_client.post(f"{BASE}{order.id}/pay/")

        assert response.status_code == 200
        assert response.data["payment_status"] == PaymentStatus.PAID
        order.refresh_from_db()
        assert order.payment_marked_by == str(parent_user.pk)
        log = PrintOrderProcessLog.objects.get(order=order, event="payment_marked")
        assert log.source == "parent"

    def test_other_parent_cannot_pay(self, other_client, make_order):
        order = make_order(parent_uid="parent-1")

        response = other_client.post(f"{BASE}{order.id}/pay/")

        assert response.status_code == 404
        order.refresh_from_db()
        assert order.payment_status == PaymentStatus.UNPAID

    def test_staff_can_pay_any_order(self, admin_client, make_order):
        order = make_order(parent_uid="parent-1")

        response = admin_client.post(f"{BASE}{order.id}/pay/")

        assert response.status_code == 200
        log = PrintOrderProcessLog.objects.get(order=order, event="payment_marked")
        assert log.source == "admin"
