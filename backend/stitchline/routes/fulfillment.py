# Overview: Flask API routes for the sewer work queue; claim, start and complete wallets.

"""
Fulfillment Routes

Transition endpoints always answer with the typed outcome:
- 200 ok
- 404 not_found
- 409 already_claimed / invalid_transition

Batch claims are 200 even when some rows were skipped; skipped ids are listed.
"""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_staff
from ..models.orders import LINE_ITEM_STATUSES
from ..services import fulfillment_service, remediation_service
from ..services.classifier_service import ClassificationUnresolved
from ..services.fulfillment_service import TransitionOutcome


fulfillment_bp = Blueprint("fulfillment", __name__, url_prefix="/api")

OUTCOME_STATUS = {
    TransitionOutcome.OK: 200,
    TransitionOutcome.NOT_FOUND: 404,
    TransitionOutcome.ALREADY_CLAIMED: 409,
    TransitionOutcome.INVALID_TRANSITION: 409,
}


def _transition_response(result):
    return jsonify(result.to_dict()), OUTCOME_STATUS[result.outcome]


@fulfillment_bp.get("/wallets/available")
def list_available_wallets_route():
    limit = request.args.get("limit", type=int)
    items = fulfillment_service.list_available_wallets(limit=limit)
    return jsonify({
        "items": [
            {**li.to_dict(), "order": {"order_number": li.order.order_number, "source_metadata": li.order.source_metadata}}
            for li in items
        ],
        "count": len(items),
    }), 200


@fulfillment_bp.get("/orders/<int:order_id>/line-items")
def list_order_line_items_route(order_id: int):
    items = fulfillment_service.list_order_line_items(order_id)
    return jsonify({"items": [li.to_dict() for li in items]}), 200


@fulfillment_bp.get("/staff/<staff_id>/line-items")
def list_staff_line_items_route(staff_id: str):
    status = request.args.get("status")
    if status and status not in LINE_ITEM_STATUSES:
        return jsonify({"error": f"status must be one of: {', '.join(sorted(LINE_ITEM_STATUSES))}"}), 400
    items = fulfillment_service.list_staff_line_items(staff_id, status=status)
    return jsonify({"items": [li.to_dict() for li in items]}), 200


@fulfillment_bp.post("/line-items/<int:line_item_id>/claim")
@require_staff
def claim_route(line_item_id: int, staff_id: str, staff_name: str | None):
    result = fulfillment_service.claim(line_item_id, staff_id, staff_name)
    return _transition_response(result)


@fulfillment_bp.post("/line-items/claim")
@require_staff
def claim_many_route(staff_id: str, staff_name: str | None):
    data = request.get_json(silent=True) or {}
    line_item_ids = data.get("line_item_ids")
    if not isinstance(line_item_ids, list) or not line_item_ids:
        return jsonify({"error": "line_item_ids must be a non-empty list"}), 400

    try:
        result = fulfillment_service.claim_many(line_item_ids, staff_id, staff_name)
    except (TypeError, ValueError):
        return jsonify({"error": "line_item_ids must be integers"}), 400
    return jsonify(result.to_dict()), 200


@fulfillment_bp.post("/orders/<int:order_id>/claim")
@require_staff
def claim_order_route(order_id: int, staff_id: str, staff_name: str | None):
    try:
        result = fulfillment_service.claim_all(order_id, staff_id, staff_name)
    except LookupError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(result.to_dict()), 200


@fulfillment_bp.post("/line-items/<int:line_item_id>/start")
def start_work_route(line_item_id: int):
    return _transition_response(fulfillment_service.start_work(line_item_id))


@fulfillment_bp.post("/line-items/<int:line_item_id>/complete")
def complete_route(line_item_id: int):
    return _transition_response(fulfillment_service.complete(line_item_id))


# =============================================================================
# Remediation
# =============================================================================

@fulfillment_bp.get("/line-items/unmapped")
def list_unmapped_route():
    items = remediation_service.list_unmapped_line_items()
    return jsonify({"items": [li.to_dict() for li in items], "count": len(items)}), 200


@fulfillment_bp.post("/line-items/unmapped/classify")
def classify_unmapped_route():
    try:
        report = remediation_service.classify_unmapped_line_items()
    except Exception:
        current_app.logger.exception("Failed to classify unmapped line items")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(report.to_dict()), 200


@fulfillment_bp.post("/line-items/<int:line_item_id>/assign-wallet-type")
def assign_wallet_type_route(line_item_id: int):
    try:
        item = remediation_service.assign_wallet_type(line_item_id)
    except LookupError as e:
        return jsonify({"error": str(e)}), 404
    except ClassificationUnresolved as e:
        return jsonify({"error": str(e)}), 422
    return jsonify({"line_item": item.to_dict()}), 200
