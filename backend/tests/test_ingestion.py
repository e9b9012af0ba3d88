"""Webhook ingestion: idempotency, atomicity, cancellation."""

import pytest

from stitchline.extensions import db
from stitchline.models import LineItem, Order
from stitchline.services import fulfillment_service, ingestion_service
from stitchline.services.ingestion_service import (
    StorageConflict,
    ingest_order_created,
    ingest_order_updated,
)
from stitchline.services.payloads import MalformedPayload
from tests.conftest import make_line_item, make_order_payload


def _items(order):
    return db.session.query(LineItem).filter_by(order_id=order.id).order_by(LineItem.id).all()


class TestCreate:

    def test_creates_order_and_line_items(self, db_session):
        order = ingest_order_created(make_order_payload())

        assert order.source_order_id == "5550001"
        assert order.order_number == "1001"
        assert order.orderer_name == "Jane Doe"
        assert order.status == "pending"
        assert order.total_wallets == 1
        assert order.total_accessories == 1
        assert order.points == 5
        assert order.wallet_type_summary == "rio-grande"
        assert order.source_metadata["tags"] == ["vip", "rush"]

        wallet, accessory = _items(order)
        assert wallet.item_type == "wallet"
        assert wallet.wallet_type == "rio-grande"
        assert wallet.points == 5
        assert wallet.status == "pending"
        assert wallet.wallet_attributes["monogram_text"] == "JD"
        assert wallet.source_line_item["title"] == "Rio Grande"
        assert accessory.item_type == "accessory"
        assert accessory.points == 0
        assert accessory.wallet_attributes is None

    def test_summary_lists_distinct_types_in_order(self, db_session):
        order = ingest_order_created(make_order_payload(line_items=[
            make_line_item(1, "Big Bend"),
            make_line_item(2, "Peyton"),
            make_line_item(3, "Big Bend - Brown"),
        ]))
        assert order.wallet_type_summary == "big-bend, peyton"
        assert order.points == 14
        assert order.total_wallets == 3

    def test_unresolved_wallet_is_stored_for_remediation(self, db_session):
        order = ingest_order_created(make_order_payload(line_items=[make_line_item(1, "Austin Bifold")]))
        (item,) = _items(order)
        assert item.item_type == "wallet"
        assert item.wallet_type is None
        assert item.points == 0
        assert order.points == 0
        assert order.wallet_type_summary is None

    def test_quantity_kept_on_single_row(self, db_session):
        order = ingest_order_created(make_order_payload(line_items=[make_line_item(1, "Peyton", quantity=3)]))
        (item,) = _items(order)
        assert item.quantity == 3
        assert item.points == 2

    def test_malformed_body_writes_nothing(self, db_session):
        with pytest.raises(MalformedPayload):
            ingest_order_created({"order_number": 1001, "line_items": []})
        assert db.session.query(Order).count() == 0

    def test_already_cancelled_order_is_created_void(self, db_session):
        order = ingest_order_created(make_order_payload(cancelled_at="2026-10-01T11:00:00-05:00"))
        assert order.status == "cancelled"
        assert {li.status for li in _items(order)} == {"void"}


class TestIdempotency:

    def test_double_create_is_one_order(self, db_session):
        first = ingest_order_created(make_order_payload())
        second = ingest_order_created(make_order_payload())

        assert first.id == second.id
        assert db.session.query(Order).count() == 1
        assert db.session.query(LineItem).count() == 2

    def test_update_for_unknown_order_creates_it(self, db_session):
        order = ingest_order_updated(make_order_payload())
        assert db.session.query(Order).count() == 1
        assert len(_items(order)) == 2

    def test_update_refreshes_metadata_only(self, db_session):
        order = ingest_order_created(make_order_payload())
        updated = ingest_order_updated(make_order_payload(
            financial_status="refunded",
            tags="vip",
            line_items=[make_line_item(1, "Big Bend")],
        ))

        assert updated.id == order.id
        assert updated.source_metadata["financial_status"] == "refunded"
        assert updated.source_metadata["tags"] == ["vip"]
        assert "ingested_updated_at" in updated.source_metadata
        assert [li.wallet_type for li in _items(updated)] == ["rio-grande", None]
        assert updated.points == 5

    def test_sparse_update_keeps_known_statuses(self, db_session):
        ingest_order_created(make_order_payload(fulfillment_status="partial"))
        sparse = {"id": 5550001, "order_number": 1001, "updated_at": "2026-10-03T08:00:00Z"}
        updated = ingest_order_updated(sparse)

        assert updated.source_metadata["financial_status"] == "paid"
        assert updated.source_metadata["fulfillment_status"] == "partial"
        assert updated.source_metadata["updated_at"] == "2026-10-03T08:00:00Z"

    def test_lost_insert_race_routes_to_update(self, db_session, monkeypatch):
        ingest_order_created(make_order_payload())

        real_find = ingestion_service.find_order
        calls = []

        def stale_find(source_order_id):
            calls.append(source_order_id)
            # First lookup misses, as if another worker inserted in between
            if len(calls) == 1:
                return None
            return real_find(source_order_id)

        monkeypatch.setattr(ingestion_service, "find_order", stale_find)
        order = ingest_order_created(make_order_payload(financial_status="partially_refunded"))

        assert db.session.query(Order).count() == 1
        assert order.source_metadata["financial_status"] == "partially_refunded"

    def test_order_number_reused_by_other_source_order(self, db_session):
        ingest_order_created(make_order_payload(order_id=1, order_number=1001))
        with pytest.raises(StorageConflict):
            ingest_order_created(make_order_payload(order_id=2, order_number=1001))
        assert db.session.query(Order).count() == 1


class TestAtomicity:

    def test_line_item_failure_rolls_back_order(self, db_session, monkeypatch):
        def boom(order, item, result):
            raise RuntimeError("disk full")

        monkeypatch.setattr(ingestion_service, "_build_line_item", boom)
        with pytest.raises(RuntimeError):
            ingest_order_created(make_order_payload())

        assert db.session.query(Order).count() == 0
        assert db.session.query(LineItem).count() == 0


class TestCancellation:

    def _payload(self, **extra):
        return make_order_payload(line_items=[
            make_line_item(1, "Rio Grande"),
            make_line_item(2, "Big Bend"),
            make_line_item(3, "Gift Wrap Service"),
        ], **extra)

    def test_cancel_voids_only_pending(self, db_session):
        order = ingest_order_created(self._payload())
        claimed, pending, accessory = _items(order)
        assert fulfillment_service.claim(claimed.id, "alice", "Alice").ok

        ingest_order_updated(self._payload(cancelled_at="2026-10-02T09:00:00Z", cancel_reason="customer"))

        order = db.session.get(Order, order.id)
        db.session.refresh(order)
        statuses = {li.id: li.status for li in _items(order)}
        assert order.status == "cancelled"
        assert order.cancelled_at == "2026-10-02T09:00:00Z"
        assert order.source_metadata["cancel_reason"] == "customer"
        assert statuses[claimed.id] == "claimed"
        assert statuses[pending.id] == "void"
        assert statuses[accessory.id] == "void"

    def test_cancellation_is_sticky(self, db_session):
        order = ingest_order_created(self._payload(cancelled_at="2026-10-02T09:00:00Z"))
        again = ingest_order_updated(self._payload(cancelled_at=None))

        assert again.id == order.id
        assert again.status == "cancelled"
        assert again.cancelled_at == "2026-10-02T09:00:00Z"

    def test_void_items_cannot_be_claimed(self, db_session):
        order = ingest_order_created(self._payload())
        ingest_order_updated(self._payload(cancelled_at="2026-10-02T09:00:00Z"))

        wallet = _items(order)[0]
        result = fulfillment_service.claim(wallet.id, "alice")
        assert result.outcome.value == "invalid_transition"
