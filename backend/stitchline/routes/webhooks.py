# Overview: Storefront webhook endpoint; verifies signatures and hands order bodies to ingestion.

"""
Webhook Routes

RESPONSE CONTRACT:
- 405 for anything but POST
- 401 when the signature check fails (nothing is ingested)
- 400 when the body is not JSON
- 200 for every other authenticated request, even when ingestion fails,
  so the storefront does not start a redelivery storm. Failures are logged.
- Unknown topics are acknowledged and ignored.
"""

import json

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_webhook_signature
from ..services import ingestion_service
from ..services.payloads import MalformedPayload


TOPIC_HEADER = "X-Shopify-Topic"

TOPIC_HANDLERS = {
    "orders/create": ingestion_service.ingest_order_created,
    "orders/updated": ingestion_service.ingest_order_updated,
}

webhooks_bp = Blueprint("webhooks", __name__, url_prefix="/api/webhooks")


def _parse_body(raw_body: bytes):
    try:
        return json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedPayload(f"Body is not valid JSON: {e}") from e


@webhooks_bp.route(
    "/shopify",
    methods=["GET", "PUT", "PATCH", "DELETE", "OPTIONS"],
    provide_automatic_options=False,
)
def shopify_webhook_wrong_method():
    return jsonify({"error": "Method not allowed"}), 405


@webhooks_bp.post("/shopify", provide_automatic_options=False)
@require_webhook_signature
def shopify_webhook():
    topic = request.headers.get(TOPIC_HEADER, "")

    try:
        body = _parse_body(request.get_data(cache=True))
    except MalformedPayload as e:
        current_app.logger.warning("Malformed webhook body for topic %s: %s", topic, e)
        return jsonify({"error": "Malformed payload"}), 400

    handler = TOPIC_HANDLERS.get(topic)
    if handler is None:
        current_app.logger.info("Unhandled webhook topic: %s", topic)
        return jsonify({"received": True, "ignored": True}), 200

    try:
        order = handler(body)
    except MalformedPayload as e:
        current_app.logger.warning("Webhook %s rejected by ingestion: %s", topic, e)
        return jsonify({"received": True, "error": str(e)}), 200
    except Exception:
        current_app.logger.exception("Webhook %s failed", topic)
        return jsonify({"received": True, "error": "Processing failed"}), 200

    return jsonify({"received": True, "order_id": order.id, "order_number": order.order_number}), 200
