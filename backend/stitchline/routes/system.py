# backend/stitchline/routes/system.py
"""
System health and version endpoints.

Provides health checks for the database and the work queue, and version
information for deployment debugging.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Order, LineItem
from ..models.orders import ITEM_TYPE_WALLET, STATUS_PENDING
from ..services.catalog import DEFAULT_CATALOG
from stitchline.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        order_count = db.session.query(Order).count()
        line_item_count = db.session.query(LineItem).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "orders": order_count,
                "line_items": line_item_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_work_queue_health() -> dict:
    """
    Degraded when wallets are waiting on catalog remediation or the webhook
    secret is missing (every delivery would be rejected).
    """
    start_time = time.time()
    try:
        pending_wallets = db.session.query(LineItem).filter(
            LineItem.item_type == ITEM_TYPE_WALLET,
            LineItem.status == STATUS_PENDING,
        ).count()
        unmapped_wallets = db.session.query(LineItem).filter(
            LineItem.item_type == ITEM_TYPE_WALLET,
            LineItem.wallet_type.is_(None),
        ).count()

        elapsed_ms = (time.time() - start_time) * 1000
        details = {
            "pending_wallets": pending_wallets,
            "unmapped_wallets": unmapped_wallets,
            "catalog_size": len(DEFAULT_CATALOG),
        }

        warnings = []
        if unmapped_wallets:
            warnings.append(f"{unmapped_wallets} wallets need a wallet type")
        if not current_app.config.get("SHOPIFY_WEBHOOK_SECRET"):
            warnings.append("SHOPIFY_WEBHOOK_SECRET is not set; webhooks will be rejected")

        if warnings:
            return {
                "status": "degraded",
                "latency_ms": round(elapsed_ms, 2),
                "warning": "; ".join(warnings),
                "details": details,
            }

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": details,
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Work queue health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Work queue error"
        }


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy or degraded (still operational)
    - 503: one or more checks unhealthy
    """
    start_time = time.time()

    database_health = check_database_health()
    queue_health = check_work_queue_health()

    all_checks = [database_health, queue_health]
    unhealthy_count = sum(1 for check in all_checks if check["status"] == "unhealthy")
    degraded_count = sum(1 for check in all_checks if check["status"] == "degraded")

    if unhealthy_count > 0:
        overall_status = "unhealthy"
        http_status = 503
    elif degraded_count > 0:
        overall_status = "degraded"
        http_status = 200  # Degraded is still operational
    else:
        overall_status = "healthy"
        http_status = 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "work_queue": queue_health,
        }
    }

    return response, http_status


@system_bp.get("/version")
def version():
    """
    Version endpoint for deployment debugging.

    Does NOT expose secrets, database credentials or internal paths.
    """
    import sys

    env = "production" if not current_app.debug else "development"

    return {
        "api_version": "0.1.0",
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": utcnow().isoformat() + "Z",
    }
