"""Claim / start / complete transitions and the points credit on completion."""

from datetime import date

import pytest
from sqlalchemy.exc import SQLAlchemyError

from stitchline.extensions import db
from stitchline.models import DailyPointsRecord, LineItem
from stitchline.services import fulfillment_service, points_service
from stitchline.services.fulfillment_service import TransitionOutcome
from stitchline.services.ingestion_service import ingest_order_created
from stitchline.services.points_service import LedgerCreditFailure
from stitchline.time_utils import utc_today
from tests.conftest import make_line_item, make_order_payload


@pytest.fixture
def order(db_session):
    return ingest_order_created(make_order_payload(line_items=[
        make_line_item(1, "Sugar Land Clutch"),
        make_line_item(2, "Peyton"),
        make_line_item(3, "Gift Wrap Service"),
    ]))


def _line_items(order):
    return db.session.query(LineItem).filter_by(order_id=order.id).order_by(LineItem.id).all()


class TestClaim:

    def test_claim_pending_wallet(self, order):
        clutch = _line_items(order)[0]
        result = fulfillment_service.claim(clutch.id, "alice", "Alice")

        assert result.ok
        assert result.line_item.status == "claimed"
        assert result.line_item.claimed_by == "alice"
        assert result.line_item.claimed_by_name == "Alice"
        assert result.line_item.claimed_at is not None

    def test_second_claim_loses(self, order):
        clutch = _line_items(order)[0]
        fulfillment_service.claim(clutch.id, "alice")
        result = fulfillment_service.claim(clutch.id, "bob")

        assert result.outcome is TransitionOutcome.ALREADY_CLAIMED
        assert result.line_item.claimed_by == "alice"

    def test_accessory_cannot_be_claimed(self, order):
        accessory = _line_items(order)[2]
        result = fulfillment_service.claim(accessory.id, "alice")

        assert result.outcome is TransitionOutcome.INVALID_TRANSITION
        db.session.refresh(accessory)
        assert accessory.status == "pending"
        assert accessory.claimed_by is None

    def test_unknown_line_item(self, db_session):
        assert fulfillment_service.claim(999999, "alice").outcome is TransitionOutcome.NOT_FOUND

    def test_staff_required(self, order):
        with pytest.raises(ValueError):
            fulfillment_service.claim(_line_items(order)[0].id, "")

    def test_claim_all_takes_every_pending_wallet(self, order):
        result = fulfillment_service.claim_all(order.id, "alice")

        clutch, peyton, accessory = _line_items(order)
        assert sorted(result.claimed_ids) == [clutch.id, peyton.id]
        assert result.skipped_ids == []
        assert accessory.status == "pending"

    def test_claim_all_skips_taken_wallets(self, order):
        clutch, peyton, _ = _line_items(order)
        fulfillment_service.claim(clutch.id, "bob")

        result = fulfillment_service.claim_all(order.id, "alice")
        assert result.claimed_ids == [peyton.id]
        db.session.refresh(clutch)
        assert clutch.claimed_by == "bob"

    def test_claim_all_unknown_order(self, db_session):
        with pytest.raises(LookupError):
            fulfillment_service.claim_all(424242, "alice")

    def test_claim_many_partial(self, order):
        clutch, peyton, accessory = _line_items(order)
        fulfillment_service.claim(clutch.id, "bob")

        result = fulfillment_service.claim_many([clutch.id, peyton.id, accessory.id, peyton.id], "alice")
        assert result.claimed_ids == [peyton.id]
        assert result.skipped_ids == [clutch.id, accessory.id]


class TestWorkAndComplete:

    def test_start_requires_claim(self, order):
        clutch = _line_items(order)[0]
        assert fulfillment_service.start_work(clutch.id).outcome is TransitionOutcome.INVALID_TRANSITION

        fulfillment_service.claim(clutch.id, "alice")
        result = fulfillment_service.start_work(clutch.id)
        assert result.ok
        assert result.line_item.status == "in_progress"

    def test_complete_from_claimed_or_in_progress(self, order):
        clutch, peyton, _ = _line_items(order)
        fulfillment_service.claim(clutch.id, "alice")
        fulfillment_service.claim(peyton.id, "alice")
        fulfillment_service.start_work(peyton.id)

        assert fulfillment_service.complete(clutch.id).ok
        assert fulfillment_service.complete(peyton.id).ok

    def test_complete_pending_is_invalid(self, order):
        clutch = _line_items(order)[0]
        result = fulfillment_service.complete(clutch.id)
        assert result.outcome is TransitionOutcome.INVALID_TRANSITION
        assert points_service.get_daily_points() == []

    def test_complete_credits_once(self, order):
        clutch = _line_items(order)[0]
        fulfillment_service.claim(clutch.id, "alice", "Alice")
        fulfillment_service.start_work(clutch.id)

        first = fulfillment_service.complete(clutch.id)
        second = fulfillment_service.complete(clutch.id)

        assert first.ok and first.ledger_credited
        assert first.line_item.completed_at is not None
        assert second.outcome is TransitionOutcome.INVALID_TRANSITION
        assert not second.ledger_credited

        record = points_service.get_record("alice")
        assert record.points == 5
        assert record.orders_completed == 1
        assert record.staff_name == "Alice"

    def test_ledger_failure_keeps_completion(self, order, monkeypatch):
        clutch = _line_items(order)[0]
        fulfillment_service.claim(clutch.id, "alice")

        def failing_credit(*args, **kwargs):
            raise LedgerCreditFailure("ledger offline", details={"staff_id": "alice"})

        monkeypatch.setattr(points_service, "credit_completion", failing_credit)
        result = fulfillment_service.complete(clutch.id)

        assert result.ok
        assert not result.ledger_credited
        assert result.warnings and "ledger offline" in result.warnings[0]
        assert result.line_item.status == "completed"
        assert db.session.query(DailyPointsRecord).count() == 0

    def test_record_reload_failure_after_credit(self, order, monkeypatch):
        clutch = _line_items(order)[0]
        fulfillment_service.claim(clutch.id, "alice")

        def unreadable(*args, **kwargs):
            raise SQLAlchemyError("connection reset")

        monkeypatch.setattr(points_service, "get_record", unreadable)
        result = fulfillment_service.complete(clutch.id)

        assert result.ok
        assert result.ledger_credited
        record = db.session.query(DailyPointsRecord).filter_by(staff_id="alice").one()
        assert record.points == 5


class TestWorkQueues:

    def test_available_wallets_excludes_claimed_and_accessories(self, order):
        clutch, peyton, _ = _line_items(order)
        fulfillment_service.claim(clutch.id, "alice")

        available = fulfillment_service.list_available_wallets()
        assert [li.id for li in available] == [peyton.id]

    def test_staff_queue_filters_by_status(self, order):
        clutch, peyton, _ = _line_items(order)
        fulfillment_service.claim_all(order.id, "alice")
        fulfillment_service.complete(clutch.id)

        assert {li.id for li in fulfillment_service.list_staff_line_items("alice")} == {clutch.id, peyton.id}
        assert [li.id for li in fulfillment_service.list_staff_line_items("alice", "claimed")] == [peyton.id]
        assert fulfillment_service.list_staff_line_items("bob") == []


def test_wallet_lifecycle_end_to_end(db_session):
    """One clutch and one gift wrap: the sewer earns the clutch's points only."""
    order = ingest_order_created(make_order_payload(line_items=[
        make_line_item(1, "Sugar Land Clutch", properties=[{"name": "Has Monogram", "value": "AB"}]),
        make_line_item(2, "Gift Wrap Service", price="5.00"),
    ]))
    wallet, accessory = _line_items(order)
    assert wallet.wallet_type == "sugar-land-clutch"

    assert fulfillment_service.claim(wallet.id, "alice", "Alice").ok
    assert fulfillment_service.start_work(wallet.id).ok
    assert fulfillment_service.complete(wallet.id).ok

    (record,) = points_service.get_daily_points(utc_today())
    assert (record.staff_id, record.points, record.orders_completed) == ("alice", 5, 1)
    assert isinstance(record.date, date)

    db.session.refresh(accessory)
    assert accessory.status == "pending"
    assert accessory.claimed_by is None
