# Overview: Service-layer operations for the wallet claim/work/complete lifecycle.

"""
Fulfillment State Machine

================================================================================
STATE MACHINE (wallet line items only):
    pending -> claimed -> in_progress -> completed
    pending -> void            (order cancellation, see ingestion_service)

    claim:       pending               -> claimed       (stamps claimed_by/at)
    start_work:  claimed               -> in_progress
    complete:    claimed | in_progress -> completed     (stamps completed_at,
                                                         credits points once)
================================================================================

RULES:
1. Every transition is a single UPDATE guarded by the current status. No locks
   are held between statements; whoever's UPDATE matches the row wins.
2. Losing a race is an expected outcome, not a fault: callers get a
   TransitionResult, never an exception.
3. Accessories are never claimed or completed.
4. Completion is committed before the ledger credit. A failed credit leaves the
   wallet completed but uncredited and is reported as a warning; a physically
   finished wallet cannot be un-completed.
5. There is no release/unclaim transition.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..models import LineItem, Order
from ..models.orders import (
    ITEM_TYPE_WALLET,
    STATUS_CLAIMED,
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    STATUS_PENDING,
)
from stitchline.time_utils import utcnow
from . import points_service
from .concurrency import run_with_retry
from .points_service import LedgerCreditFailure


class TransitionOutcome(str, enum.Enum):
    OK = "ok"
    ALREADY_CLAIMED = "already_claimed"
    INVALID_TRANSITION = "invalid_transition"
    NOT_FOUND = "not_found"


@dataclass
class TransitionResult:
    outcome: TransitionOutcome
    line_item: LineItem | None = None
    warnings: list[str] = field(default_factory=list)
    ledger_credited: bool = False

    @property
    def ok(self) -> bool:
        return self.outcome is TransitionOutcome.OK

    def to_dict(self) -> dict:
        return {
            "outcome": self.outcome.value,
            "line_item": self.line_item.to_dict() if self.line_item else None,
            "warnings": list(self.warnings),
            "ledger_credited": self.ledger_credited,
        }


@dataclass
class ClaimBatchResult:
    claimed: list[LineItem] = field(default_factory=list)
    skipped_ids: list[int] = field(default_factory=list)

    @property
    def claimed_ids(self) -> list[int]:
        return [li.id for li in self.claimed]

    def to_dict(self) -> dict:
        return {
            "claimed": [li.to_dict() for li in self.claimed],
            "claimed_count": len(self.claimed),
            "skipped_ids": list(self.skipped_ids),
        }


def _conditional_update(line_item_id: int, from_statuses, values: dict, *, wallets_only: bool = True) -> int:
    """
    UPDATE order_line_items SET ... WHERE id = ? AND status IN (...)

    Returns affected row count: 1 means this caller won the transition.
    """
    conditions = [
        LineItem.id == line_item_id,
        LineItem.status.in_(list(from_statuses)),
    ]
    if wallets_only:
        conditions.append(LineItem.item_type == ITEM_TYPE_WALLET)

    stmt = (
        update(LineItem)
        .where(*conditions)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return db.session.execute(stmt).rowcount


def _reload(line_item_id: int) -> LineItem | None:
    item = db.session.get(LineItem, line_item_id)
    if item is not None:
        db.session.refresh(item)
    return item


def _claim_values(staff_id: str, staff_name: str | None, claimed_at) -> dict:
    return {
        "status": STATUS_CLAIMED,
        "claimed_by": staff_id,
        "claimed_by_name": staff_name,
        "claimed_at": claimed_at,
    }


def _loser_outcome(item: LineItem | None) -> TransitionOutcome:
    if item is None:
        return TransitionOutcome.NOT_FOUND
    if item.is_wallet and item.status in (STATUS_CLAIMED, STATUS_IN_PROGRESS, STATUS_COMPLETED):
        return TransitionOutcome.ALREADY_CLAIMED
    # accessories, void items
    return TransitionOutcome.INVALID_TRANSITION


def claim(line_item_id: int, staff_id: str, staff_name: str | None = None) -> TransitionResult:
    """
    Claim one pending wallet for a sewer.

    Exactly one of any number of concurrent callers gets OK; the rest get
    ALREADY_CLAIMED. Accessories and void items give INVALID_TRANSITION.
    """
    if not staff_id:
        raise ValueError("staff_id is required")

    def _op() -> int:
        rows = _conditional_update(line_item_id, (STATUS_PENDING,), _claim_values(staff_id, staff_name, utcnow()))
        db.session.commit()
        return rows

    rows = run_with_retry(_op)
    item = _reload(line_item_id)

    if rows:
        current_app.logger.info("Line item %s claimed by %s", line_item_id, staff_id)
        return TransitionResult(TransitionOutcome.OK, item)

    return TransitionResult(_loser_outcome(item), item)


def _claim_each(candidate_ids, staff_id: str, staff_name: str | None) -> ClaimBatchResult:
    """Apply the single-row claim to each id inside one transaction."""
    claimed_at = utcnow()

    def _op() -> tuple[list[int], list[int]]:
        won, lost = [], []
        for line_item_id in candidate_ids:
            if _conditional_update(line_item_id, (STATUS_PENDING,), _claim_values(staff_id, staff_name, claimed_at)):
                won.append(line_item_id)
            else:
                lost.append(line_item_id)
        db.session.commit()
        return won, lost

    won, lost = run_with_retry(_op)
    claimed = []
    for line_item_id in won:
        item = _reload(line_item_id)
        if item is not None:
            claimed.append(item)

    if won:
        current_app.logger.info("%s line items claimed by %s", len(won), staff_id)
    return ClaimBatchResult(claimed=claimed, skipped_ids=lost)


def claim_many(line_item_ids, staff_id: str, staff_name: str | None = None) -> ClaimBatchResult:
    """Claim a chosen subset of wallets; rows already taken are skipped, not errors."""
    if not staff_id:
        raise ValueError("staff_id is required")
    ids = list(dict.fromkeys(int(i) for i in line_item_ids or []))
    return _claim_each(ids, staff_id, staff_name)


def claim_all(order_id: int, staff_id: str, staff_name: str | None = None) -> ClaimBatchResult:
    """Claim every pending wallet of an order."""
    if not staff_id:
        raise ValueError("staff_id is required")
    if db.session.get(Order, order_id) is None:
        raise LookupError(f"Order {order_id} not found")

    candidate_ids = [
        row.id
        for row in db.session.query(LineItem.id)
        .filter(
            LineItem.order_id == order_id,
            LineItem.item_type == ITEM_TYPE_WALLET,
            LineItem.status == STATUS_PENDING,
        )
        .order_by(LineItem.id.asc())
        .all()
    ]
    return _claim_each(candidate_ids, staff_id, staff_name)


def start_work(line_item_id: int) -> TransitionResult:
    def _op() -> int:
        rows = _conditional_update(line_item_id, (STATUS_CLAIMED,), {"status": STATUS_IN_PROGRESS})
        db.session.commit()
        return rows

    rows = run_with_retry(_op)
    item = _reload(line_item_id)
    if rows:
        return TransitionResult(TransitionOutcome.OK, item)
    if item is None:
        return TransitionResult(TransitionOutcome.NOT_FOUND)
    return TransitionResult(TransitionOutcome.INVALID_TRANSITION, item)


def complete(line_item_id: int) -> TransitionResult:
    """
    Finish a claimed or in-progress wallet and credit its sewer.

    The points credit happens at most once per line item because only the caller
    whose UPDATE moved the row to 'completed' reaches the credit step.
    """
    def _op() -> int:
        rows = _conditional_update(
            line_item_id,
            (STATUS_CLAIMED, STATUS_IN_PROGRESS),
            {"status": STATUS_COMPLETED, "completed_at": utcnow()},
        )
        db.session.commit()
        return rows

    rows = run_with_retry(_op)
    item = _reload(line_item_id)
    if not rows:
        if item is None:
            return TransitionResult(TransitionOutcome.NOT_FOUND)
        return TransitionResult(TransitionOutcome.INVALID_TRANSITION, item)

    result = TransitionResult(TransitionOutcome.OK, item)
    current_app.logger.info("Line item %s completed by %s", line_item_id, item.claimed_by)

    if item.points > 0 and item.claimed_by:
        try:
            points_service.credit_completion(item.claimed_by, item.claimed_by_name, item.points)
            result.ledger_credited = True
        except LedgerCreditFailure as exc:
            current_app.logger.warning(
                "Line item %s completed but not credited (%s); needs manual reconciliation: %s",
                line_item_id, exc, exc.details,
            )
            result.warnings.append(f"Points not credited: {exc}")
            result.line_item = _reload(line_item_id)

    return result


# =============================================================================
# Work queues
# =============================================================================

def list_available_wallets(limit: int | None = None) -> list[LineItem]:
    """Pending wallets across all orders, newest first."""
    q = (
        db.session.query(LineItem)
        .join(Order, Order.id == LineItem.order_id)
        .filter(LineItem.item_type == ITEM_TYPE_WALLET, LineItem.status == STATUS_PENDING)
        .order_by(LineItem.created_at.desc(), LineItem.id.desc())
    )
    if limit:
        q = q.limit(limit)
    return q.all()


def list_order_line_items(order_id: int) -> list[LineItem]:
    return (
        db.session.query(LineItem)
        .filter(LineItem.order_id == order_id)
        .order_by(LineItem.created_at.asc(), LineItem.id.asc())
        .all()
    )


def list_staff_line_items(staff_id: str, status: str | None = None) -> list[LineItem]:
    q = db.session.query(LineItem).filter(LineItem.claimed_by == staff_id)
    if status:
        q = q.filter(LineItem.status == status)
    return q.order_by(LineItem.claimed_at.desc(), LineItem.id.desc()).all()
