# Overview: Request decorators for API routes.

import base64
import hashlib
import hmac
from functools import wraps

from flask import request, jsonify, current_app


SIGNATURE_HEADER = "X-Shopify-Hmac-Sha256"


class AuthenticationFailure(Exception):
    """Webhook signature missing, malformed, or not matching the shared secret."""
    pass


def compute_webhook_signature(raw_body: bytes, secret: str) -> str:
    """base64(HMAC-SHA256(secret, raw_body))"""
    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_webhook_signature(raw_body: bytes, provided: str | None, secret: str | None) -> None:
    """
    Raise AuthenticationFailure unless `provided` is the signature of the exact
    raw bytes. The body must not have been parsed and re-serialized first.
    """
    if not secret:
        raise AuthenticationFailure("Webhook secret is not configured")
    if not provided:
        raise AuthenticationFailure("Missing webhook signature")

    expected = compute_webhook_signature(raw_body, secret)
    if not hmac.compare_digest(expected.encode("ascii"), provided.strip().encode("ascii", "ignore")):
        raise AuthenticationFailure("Webhook signature mismatch")


def require_webhook_signature(f):
    """
    Reject unsigned or mis-signed storefront webhooks with 401.

    SECURITY:
    - Reads the raw body (cached on the request) before anything parses it
    - Fails closed when SHOPIFY_WEBHOOK_SECRET is unset
    - The wrapped view never runs on failure, so nothing is ingested
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw_body = request.get_data(cache=True)
        try:
            verify_webhook_signature(
                raw_body,
                request.headers.get(SIGNATURE_HEADER),
                current_app.config.get("SHOPIFY_WEBHOOK_SECRET"),
            )
        except AuthenticationFailure as e:
            current_app.logger.warning(
                "Rejected webhook from %s: %s", request.remote_addr, e
            )
            return jsonify({"error": "Unauthorized"}), 401

        return f(*args, **kwargs)

    return decorated_function


def require_staff(f):
    """
    Require a sewer identity in the JSON body (staff_id, optional staff_name).

    Sets request-scoped kwargs staff_id / staff_name on the view.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        data = request.get_json(silent=True) or {}
        staff_id = data.get("staff_id")
        if staff_id is None or str(staff_id).strip() == "":
            return jsonify({"error": "staff_id is required"}), 400

        kwargs["staff_id"] = str(staff_id).strip()
        kwargs["staff_name"] = data.get("staff_name")
        return f(*args, **kwargs)

    return decorated_function
