"""Unit tests for BaseModel and AppendOnlyModel.

Exercised through the concrete print-order models:
- ``PrintOrder`` for UUIDv7 keys and timestamp bookkeeping.
- ``PrintOrderStatusHistory`` / ``PrintOrderProcessLog`` for the
  append-only guarantees of the audit trails.
"""

from __future__ import annotations

import uuid

import pytest
from freezegun import freeze_time

from modules.core.models import AppendOnlyError
from modules.print_orders.constants import FulfillmentStatus
from modules.print_orders.models import PrintOrderProcessLog, PrintOrderStatusHistory

pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def order(make_order):
    return make_order()


@pytest.fixture()
def history_row(order):
    return PrintOrderStatusHistory.objects.create(
        order=order,
        old_status=FulfillmentStatus.VALIDATING,
        status=FulfillmentStatus.READY_TO_SUBMIT,
        note="validated",
    )


# ---------------------------------------------------------------------------
# BaseModel tests
# ---------------------------------------------------------------------------


class TestBaseModel:
    def test_id_is_uuid_version_7(self, order):
        assert isinstance(order.id, uuid.UUID)
        assert order.id.version == 7

    def test_ids_are_unique(self, make_order):
        first = make_order()
        second = make_order()
        assert first.id != second.id

    def test_update_fields_refreshes_updated_at(self, make_order):
        with freeze_time("2026-01-01 10:00:00"):
            order = make_order()
        with freeze_time("2026-01-02 10:00:00"):
            order.carrier = "Royal Mail"
            order.save(update_fields=["carrier"])
        order.refresh_from_db()
        assert order.updated_at > order.created_at
        assert order.carrier == "Royal Mail"


# ---------------------------------------------------------------------------
# AppendOnlyModel tests
# ---------------------------------------------------------------------------


class TestAppendOnlyModel:
    def test_insert_is_allowed(self, history_row):
        assert PrintOrderStatusHistory.objects.filter(id=history_row.id).exists()

    def test_resave_raises(self, history_row):
        history_row.note = "rewritten"
        with pytest.raises(AppendOnlyError):
            history_row.save()

    def test_instance_delete_raises(self, history_row):
        with pytest.raises(AppendOnlyError):
            history_row.delete()

    def test_queryset_update_raises(self, history_row):
        with pytest.raises(AppendOnlyError):
            PrintOrderStatusHistory.objects.filter(id=history_row.id).update(
                note="rewritten"
            )

    def test_queryset_delete_raises(self, history_row):
        with pytest.raises(AppendOnlyError):
            PrintOrderStatusHistory.objects.all().delete()

    def test_process_log_is_append_only(self, order):
        entry = PrintOrderProcessLog.objects.create(order=order, event="order_created")
        with pytest.raises(AppendOnlyError):
            entry.delete()
        assert PrintOrderProcessLog.objects.filter(order=order).count() == 1
