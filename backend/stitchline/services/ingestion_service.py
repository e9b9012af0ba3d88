# Overview: Service-layer operations for order webhook ingestion; normalizes, classifies, persists.

"""
Order Ingestion Pipeline

WHY: The storefront redelivers webhooks on any non-2xx and sends many
"orders/updated" events per order. Every entry point here must be safe to run
any number of times for the same source order id.

IDEMPOTENCY:
- source_order_id is unique at the storage layer.
- create on an existing source_order_id is routed to update.
- a concurrent duplicate create that loses the insert race (IntegrityError)
  is rolled back and routed to update.
- update on an unknown source_order_id degrades to create.

ATOMICITY:
- The Order row and all of its LineItem rows are committed together; a failure
  on either rolls back both and propagates to the caller. No automatic retry of
  failed writes happens here; redelivery is the storefront's job.

CANCELLATION:
- When cancelled_at first appears, pending line items become 'void'.
  Claimed / in-progress / completed items are left alone.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import LineItem, Order
from ..models.orders import (
    ORDER_STATUS_CANCELLED,
    ORDER_STATUS_PENDING,
    STATUS_PENDING,
    STATUS_VOID,
)
from stitchline.time_utils import utcnow
from .catalog import DEFAULT_CATALOG, WalletCatalog
from .classifier_service import Classification, classify, is_accessory_name
from .concurrency import run_with_retry
from .payloads import OrderPayload


class StorageConflict(Exception):
    """Unique-constraint violation while creating an order that already exists."""
    pass


def find_order(source_order_id: str) -> Order | None:
    return db.session.query(Order).filter_by(source_order_id=str(source_order_id)).first()


def summarize_wallet_types(classifications) -> str | None:
    """Distinct resolved wallet type ids in first-seen order, comma-joined."""
    seen = []
    for result in classifications:
        if result.is_wallet and result.wallet_type and result.wallet_type not in seen:
            seen.append(result.wallet_type)
    return ", ".join(seen) if seen else None


def _build_line_item(order: Order, item, result: Classification) -> LineItem:
    return LineItem(
        order_id=order.id,
        order_number=order.order_number,
        item_type=result.item_type,
        source_line_item_id=item.id,
        product_id=item.product_id,
        variant_id=item.variant_id,
        sku=item.sku,
        product_name=item.title,
        variant_name=item.variant_title,
        quantity=item.quantity,
        price=item.price,
        wallet_type=result.wallet_type,
        points=result.points,
        wallet_attributes=result.attributes,
        status=STATUS_PENDING,
        source_line_item=item.audit_blob(),
    )


def _insert_order(payload: OrderPayload, catalog: WalletCatalog) -> Order:
    classified = [(item, classify(item.title, item.properties, catalog)) for item in payload.line_items]
    results = [result for _, result in classified]

    for item, result in classified:
        if result.unresolved:
            current_app.logger.warning(
                "Order %s: no wallet type for %r; flagged for remediation", payload.order_number, item.title
            )
        elif not result.is_wallet and not is_accessory_name(item.title):
            current_app.logger.info(
                "Order %s: unrecognized product %r treated as accessory", payload.order_number, item.title
            )

    order = Order(
        order_number=payload.order_number,
        source_order_id=payload.id,
        status=ORDER_STATUS_PENDING,
        orderer_name=payload.customer_name,
        points=sum(r.points for r in results),
        wallet_type_summary=summarize_wallet_types(results),
        total_wallets=sum(1 for r in results if r.is_wallet),
        total_accessories=sum(1 for r in results if not r.is_wallet),
        source_metadata=payload.metadata(),
    )
    if payload.cancelled_at:
        # First sighting is already cancelled: nothing is claimable
        order.status = ORDER_STATUS_CANCELLED
    db.session.add(order)
    try:
        db.session.flush()
    except IntegrityError as exc:
        raise StorageConflict(f"Order {payload.id} already exists") from exc

    items = [_build_line_item(order, item, result) for item, result in classified]
    if payload.cancelled_at:
        voided_at = utcnow()
        for line_item in items:
            line_item.status = STATUS_VOID
            line_item.voided_at = voided_at
    db.session.add_all(items)
    db.session.flush()
    return order


def ingest_order_created(raw_order, *, catalog: WalletCatalog = DEFAULT_CATALOG) -> Order:
    """
    Ingest an "orders/create" body. Returns the (possibly pre-existing) Order.

    Raises MalformedPayload for bodies missing identifiers; storage errors
    other than the duplicate-order conflict propagate after rollback.
    """
    payload = raw_order if isinstance(raw_order, OrderPayload) else OrderPayload.from_dict(raw_order)

    if find_order(payload.id) is not None:
        current_app.logger.info("Order %s already ingested; treating create as update", payload.order_number)
        return ingest_order_updated(payload, catalog=catalog)

    try:
        order = _insert_order(payload, catalog)
        db.session.commit()
    except StorageConflict:
        db.session.rollback()
        current_app.logger.info("Order %s created concurrently; routing to update", payload.order_number)
        return ingest_order_updated(payload, catalog=catalog, create_missing=False)
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        "Order %s ingested: %s wallets, %s accessories, %s points",
        order.order_number, order.total_wallets, order.total_accessories, order.points,
    )
    return order


def ingest_order_updated(raw_order, *, catalog: WalletCatalog = DEFAULT_CATALOG, create_missing: bool = True) -> Order:
    """
    Ingest an "orders/updated" body: refresh metadata, propagate cancellation.

    Falls back to ingest_order_created when the order is unknown. With
    create_missing=False (used after an insert conflict) an unknown order means
    the conflict was on something other than source_order_id, e.g. an
    order_number reused by a different source order.
    """
    payload = raw_order if isinstance(raw_order, OrderPayload) else OrderPayload.from_dict(raw_order)

    def _op() -> tuple[int | None, int]:
        order = find_order(payload.id)
        if order is None:
            return None, 0

        previous = dict(order.source_metadata or {})
        incoming = payload.metadata()
        refreshed = dict(previous)
        refreshed.update(
            financial_status=incoming["financial_status"] or previous.get("financial_status"),
            fulfillment_status=incoming["fulfillment_status"] or previous.get("fulfillment_status"),
            tags=incoming["tags"],
            updated_at=incoming["updated_at"] or previous.get("updated_at"),
        )
        # Cancellation is sticky; a later body without cancelled_at does not undo it
        if payload.cancelled_at:
            refreshed["cancelled_at"] = payload.cancelled_at
            refreshed["cancel_reason"] = payload.cancel_reason
        refreshed["ingested_updated_at"] = utcnow().isoformat()
        # Reassign (not mutate) so the JSON column is marked dirty
        order.source_metadata = refreshed

        voided = 0
        newly_cancelled = bool(payload.cancelled_at) and not previous.get("cancelled_at")
        if newly_cancelled:
            order.status = ORDER_STATUS_CANCELLED
            voided = void_pending_line_items(order.id)

        db.session.commit()
        return order.id, voided

    try:
        order_id, voided = run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise

    if order_id is None:
        if not create_missing:
            raise StorageConflict(
                f"Order number {payload.order_number} is already used by another source order"
            )
        current_app.logger.info("Order %s not found for update; creating", payload.order_number)
        return ingest_order_created(payload, catalog=catalog)

    if voided:
        current_app.logger.info("Order %s cancelled: %s pending line items voided", payload.order_number, voided)
    else:
        current_app.logger.info("Order %s updated", payload.order_number)
    return db.session.get(Order, order_id)


def void_pending_line_items(order_id: int) -> int:
    """Void every still-pending line item of an order. Caller commits."""
    stmt = (
        update(LineItem)
        .where(LineItem.order_id == order_id, LineItem.status == STATUS_PENDING)
        .values(status=STATUS_VOID, voided_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    return db.session.execute(stmt).rowcount


def recompute_order_aggregates(order: Order) -> Order:
    """
    Re-derive points and wallet_type_summary from the stored line items.

    Only used after operator remediation assigns a wallet type; ingestion itself
    sums per-item classification once. Caller commits.
    """
    items = db.session.query(LineItem).filter_by(order_id=order.id).order_by(LineItem.id.asc()).all()
    wallets = [li for li in items if li.is_wallet]
    order.points = sum(li.points for li in wallets)
    seen = []
    for li in wallets:
        if li.wallet_type and li.wallet_type not in seen:
            seen.append(li.wallet_type)
    order.wallet_type_summary = ", ".join(seen) if seen else None
    return order
