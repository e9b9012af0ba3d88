# Overview: Operator remediation for wallets the catalog could not type at ingestion.

"""
Unmapped wallet remediation

A wallet line item with wallet_type NULL earns no points and is waiting for a
human: usually a new product the catalog does not list yet, or a line item
written by some path other than the webhook pipeline. Once the catalog is
updated, these helpers assign the type/points and fix the order aggregates.

Items that were already completed keep whatever was credited at the time;
remediation does not back-credit the ledger.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app

from ..extensions import db
from ..models import LineItem, Order
from ..models.orders import ITEM_TYPE_WALLET
from .catalog import DEFAULT_CATALOG, WalletCatalog
from .classifier_service import ClassificationUnresolved
from .ingestion_service import recompute_order_aggregates


@dataclass
class RemediationReport:
    resolved_ids: list[int] = field(default_factory=list)
    unresolved_ids: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "resolved_ids": list(self.resolved_ids),
            "unresolved_ids": list(self.unresolved_ids),
            "resolved_count": len(self.resolved_ids),
            "unresolved_count": len(self.unresolved_ids),
        }


def list_unmapped_line_items() -> list[LineItem]:
    return (
        db.session.query(LineItem)
        .filter(LineItem.item_type == ITEM_TYPE_WALLET, LineItem.wallet_type.is_(None))
        .order_by(LineItem.created_at.asc(), LineItem.id.asc())
        .all()
    )


def _assign(item: LineItem, catalog: WalletCatalog) -> None:
    wallet_type = catalog.resolve(item.product_name)
    if wallet_type is None:
        raise ClassificationUnresolved(f"No wallet type matches {item.product_name!r}")
    item.wallet_type = wallet_type.id
    item.points = wallet_type.points


def assign_wallet_type(line_item_id: int, *, catalog: WalletCatalog = DEFAULT_CATALOG) -> LineItem:
    """
    Resolve one wallet against the catalog and refresh its order's aggregates.

    Raises:
        LookupError: line item not found
        ClassificationUnresolved: not a wallet, or still no catalog match
    """
    item = db.session.get(LineItem, line_item_id)
    if item is None:
        raise LookupError(f"Line item {line_item_id} not found")
    if not item.is_wallet:
        raise ClassificationUnresolved(f"Line item {line_item_id} is not a wallet")

    try:
        _assign(item, catalog)
        recompute_order_aggregates(db.session.get(Order, item.order_id))
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("Line item %s assigned %s (%s pts)", item.id, item.wallet_type, item.points)
    return item


def classify_unmapped_line_items(*, catalog: WalletCatalog = DEFAULT_CATALOG) -> RemediationReport:
    """Batch pass over every unmapped wallet; one commit for the whole pass."""
    report = RemediationReport()
    touched_orders = set()

    try:
        for item in list_unmapped_line_items():
            try:
                _assign(item, catalog)
            except ClassificationUnresolved:
                current_app.logger.warning("Still unmapped: line item %s %r", item.id, item.product_name)
                report.unresolved_ids.append(item.id)
                continue
            report.resolved_ids.append(item.id)
            touched_orders.add(item.order_id)

        db.session.flush()
        for order_id in sorted(touched_orders):
            recompute_order_aggregates(db.session.get(Order, order_id))
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        "Remediation pass: %s resolved, %s unresolved", len(report.resolved_ids), len(report.unresolved_ids)
    )
    return report
