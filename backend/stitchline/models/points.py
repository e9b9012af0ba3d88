from __future__ import annotations

from ..extensions import db
from stitchline.time_utils import to_utc_z


class DailyPointsRecord(db.Model):
    """
    Per-staff, per-day running totals of credited points.

    Materialized view over completions, not a source of truth: rows are created
    lazily on the first credit of the day and only ever incremented.

    orders_completed counts completed line items, not orders.
    """
    __tablename__ = "daily_points"
    __table_args__ = (
        db.UniqueConstraint("staff_id", "date", name="uq_daily_points_staff_date"),
        db.Index("ix_daily_points_date", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    staff_id = db.Column(db.String(64), nullable=False, index=True)
    staff_name = db.Column(db.String(255), nullable=True)
    date = db.Column(db.Date, nullable=False)

    points = db.Column(db.Integer, nullable=False, default=0)
    orders_completed = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "staff_id": self.staff_id,
            "staff_name": self.staff_name,
            "date": self.date.isoformat(),
            "points": self.points,
            "orders_completed": self.orders_completed,
            "created_at": to_utc_z(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<DailyPointsRecord {self.staff_id} {self.date} {self.points}pts>"
