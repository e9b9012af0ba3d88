# Overview: Service-layer operations for the daily points ledger.

"""
Points Ledger

INVARIANTS:
- One DailyPointsRecord per (staff_id, date); created lazily on first credit.
- Increment-only. Credits are applied as an atomic delta
  (points = points + :credit) so two completions by the same sewer on the same
  day can never overwrite each other.
- orders_completed counts completed line items.
- Dates are UTC calendar days.
"""

from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import DailyPointsRecord
from stitchline.time_utils import utc_today
from .concurrency import run_with_retry


class LedgerCreditFailure(Exception):
    """Raised when a completion could not be credited to the ledger."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _increment(staff_id: str, on_date: date, points: int) -> int:
    stmt = (
        update(DailyPointsRecord)
        .where(
            DailyPointsRecord.staff_id == staff_id,
            DailyPointsRecord.date == on_date,
        )
        .values(
            points=DailyPointsRecord.points + points,
            orders_completed=DailyPointsRecord.orders_completed + 1,
        )
        .execution_options(synchronize_session=False)
    )
    return db.session.execute(stmt).rowcount


def credit_completion(
    staff_id: str,
    staff_name: str | None,
    points: int,
    *,
    on_date: date | None = None,
) -> DailyPointsRecord | None:
    """
    Credit one completed line item to a sewer's daily record.

    Commits on success. Any storage failure is rolled back and re-raised as
    LedgerCreditFailure; there is no queue or deferred retry. Returns None when
    the credit committed but the updated record could not be read back.
    """
    if not staff_id:
        raise LedgerCreditFailure("staff_id is required")
    if points < 0:
        raise LedgerCreditFailure("points must be >= 0", details={"points": points})

    on_date = on_date or utc_today()

    def _op() -> None:
        if _increment(staff_id, on_date, points):
            return

        record = DailyPointsRecord(
            staff_id=staff_id,
            staff_name=staff_name,
            date=on_date,
            points=points,
            orders_completed=1,
        )
        db.session.add(record)
        try:
            db.session.flush()
        except IntegrityError:
            # Another completion created today's row first
            db.session.rollback()
            if not _increment(staff_id, on_date, points):
                raise

    try:
        run_with_retry(_op)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise LedgerCreditFailure(
            f"Could not credit {points} points to {staff_id}",
            details={"staff_id": staff_id, "date": on_date.isoformat(), "points": points},
        ) from exc

    try:
        return get_record(staff_id, on_date)
    except SQLAlchemyError:
        # The credit is committed; only the read-back failed
        db.session.rollback()
        current_app.logger.warning(
            "Credited %s points to %s on %s but could not reload the record", points, staff_id, on_date
        )
        return None


def get_record(staff_id: str, on_date: date | None = None) -> DailyPointsRecord | None:
    on_date = on_date or utc_today()
    record = db.session.query(DailyPointsRecord).filter_by(staff_id=staff_id, date=on_date).first()
    if record is not None:
        # Delta updates bypass the identity map
        db.session.refresh(record)
    return record


def get_daily_points(on_date: date | None = None, staff_id: str | None = None) -> list[DailyPointsRecord]:
    """Leaderboard for one day, highest points first."""
    on_date = on_date or utc_today()
    q = db.session.query(DailyPointsRecord).filter(DailyPointsRecord.date == on_date)
    if staff_id:
        q = q.filter(DailyPointsRecord.staff_id == staff_id)
    return q.order_by(DailyPointsRecord.points.desc(), DailyPointsRecord.staff_id.asc()).all()


def get_staff_points(staff_id: str, start: date, end: date) -> dict:
    """Per-day rows plus totals for one sewer over an inclusive date range."""
    rows = (
        db.session.query(DailyPointsRecord)
        .filter(
            DailyPointsRecord.staff_id == staff_id,
            DailyPointsRecord.date >= start,
            DailyPointsRecord.date <= end,
        )
        .order_by(DailyPointsRecord.date.asc())
        .all()
    )
    return {
        "staff_id": staff_id,
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
        "total_points": sum(r.points for r in rows),
        "total_completed": sum(r.orders_completed for r in rows),
        "days": [r.to_dict() for r in rows],
    }
