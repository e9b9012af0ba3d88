# Overview: Flask API routes for the daily points ledger.

from flask import Blueprint, request, jsonify

from ..services import points_service
from stitchline.time_utils import parse_iso_date, utc_today


points_bp = Blueprint("points", __name__, url_prefix="/api/points")


@points_bp.get("/daily")
def daily_points_route():
    try:
        on_date = parse_iso_date(request.args.get("date")) or utc_today()
    except ValueError:
        return jsonify({"error": "date must be YYYY-MM-DD"}), 400

    staff_id = request.args.get("staff_id")
    rows = points_service.get_daily_points(on_date, staff_id=staff_id)
    return jsonify({"date": on_date.isoformat(), "items": [r.to_dict() for r in rows]}), 200


@points_bp.get("/staff/<staff_id>")
def staff_points_route(staff_id: str):
    try:
        end = parse_iso_date(request.args.get("end_date")) or utc_today()
        start = parse_iso_date(request.args.get("start_date")) or end
    except ValueError:
        return jsonify({"error": "start_date and end_date must be YYYY-MM-DD"}), 400

    if start > end:
        return jsonify({"error": "start_date must be on or before end_date"}), 400

    return jsonify(points_service.get_staff_points(staff_id, start, end)), 200
