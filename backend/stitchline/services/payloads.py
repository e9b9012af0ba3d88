from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any


class MalformedPayload(ValueError):
    """Order webhook body is unparseable or lacks a required identifier."""
    pass


def _to_int(value: Any, default: int | None = None) -> int | None:
    if value is None or value == "":
        return default
    if isinstance(value, int):
        return int(value)
    try:
        return int(float(str(value).strip()))
    except (ValueError, OverflowError):
        # blank, NaN, infinity
        return default


def _to_decimal(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    text = str(value).strip().replace("$", "").replace(",", "")
    if not text:
        return None
    try:
        amount = Decimal(text)
    except InvalidOperation:
        raise MalformedPayload(f"Invalid monetary amount: {value!r}")
    if not amount.is_finite():
        raise MalformedPayload(f"Invalid monetary amount: {value!r}")
    return amount


def _to_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def _require_id(value: Any, label: str) -> str:
    text = _to_text(value)
    if text is None:
        raise MalformedPayload(f"{label} is required")
    return text


def split_tags(value: Any) -> list[str]:
    """'vip, rush ,' -> ['vip', 'rush']"""
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        return [str(t).strip() for t in value if str(t).strip()]
    return [t.strip() for t in str(value).split(",") if t.strip()]


@dataclass(frozen=True)
class LineItemProperty:
    name: str
    value: Any

    def to_dict(self) -> dict:
        return {"name": self.name, "value": self.value}


@dataclass(frozen=True)
class LineItemPayload:
    id: str
    title: str | None
    variant_title: str | None = None
    product_id: str | None = None
    variant_id: str | None = None
    sku: str | None = None
    quantity: int = 1
    price: Decimal | None = None
    vendor: str | None = None
    product_type: str | None = None
    properties: tuple[LineItemProperty, ...] = ()
    raw: dict = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_dict(cls, data: Any, position: int) -> "LineItemPayload":
        if not isinstance(data, dict):
            raise MalformedPayload(f"line_items[{position}] must be an object")

        properties = []
        for prop in data.get("properties") or []:
            if isinstance(prop, dict) and prop.get("name"):
                properties.append(LineItemProperty(name=str(prop["name"]), value=prop.get("value")))

        return cls(
            id=_require_id(data.get("id"), f"line_items[{position}].id"),
            title=_to_text(data.get("title")),
            variant_title=_to_text(data.get("variant_title")),
            product_id=_to_text(data.get("product_id")),
            variant_id=_to_text(data.get("variant_id")),
            sku=_to_text(data.get("sku")),
            quantity=_to_int(data.get("quantity"), default=1),
            price=_to_decimal(data.get("price")),
            vendor=_to_text(data.get("vendor")),
            product_type=_to_text(data.get("product_type")),
            properties=tuple(properties),
            raw=data,
        )

    def audit_blob(self) -> dict:
        """Pass-through copy kept on the LineItem row for audit."""
        return {
            "id": self.raw.get("id"),
            "product_id": self.raw.get("product_id"),
            "variant_id": self.raw.get("variant_id"),
            "sku": self.raw.get("sku"),
            "title": self.raw.get("title"),
            "variant_title": self.raw.get("variant_title"),
            "quantity": self.raw.get("quantity"),
            "price": self.raw.get("price"),
            "properties": [p.to_dict() for p in self.properties],
            "vendor": self.raw.get("vendor"),
            "product_type": self.raw.get("product_type"),
        }


@dataclass(frozen=True)
class OrderPayload:
    """
    Normalized view over a storefront order webhook body.

    Only id, order_number and each line item id are required; everything else
    is defaulted so a sparse "orders/updated" body still parses.
    """
    id: str
    order_number: str
    customer_name: str
    customer_email: str | None
    tags: tuple[str, ...]
    financial_status: str | None
    fulfillment_status: str | None
    note: str | None
    note_attributes: list
    total_price: str | None
    currency: str | None
    created_at: str | None
    updated_at: str | None
    cancelled_at: str | None
    cancel_reason: str | None
    shipping_address: dict | None
    line_items: tuple[LineItemPayload, ...]

    @classmethod
    def from_dict(cls, data: Any) -> "OrderPayload":
        if not isinstance(data, dict):
            raise MalformedPayload("Order payload must be a JSON object")

        order_id = _require_id(data.get("id"), "id")
        order_number = _to_text(data.get("order_number")) or _to_text(data.get("name"))
        if order_number is None:
            raise MalformedPayload("order_number is required")

        raw_items = data.get("line_items") or []
        if not isinstance(raw_items, list):
            raise MalformedPayload("line_items must be a list")

        customer = data.get("customer") if isinstance(data.get("customer"), dict) else None

        return cls(
            id=order_id,
            order_number=order_number.lstrip("#"),
            customer_name=resolve_customer_name(data),
            customer_email=_to_text((customer or {}).get("email")) or _to_text(data.get("contact_email")),
            tags=tuple(split_tags(data.get("tags"))),
            financial_status=_to_text(data.get("financial_status")),
            fulfillment_status=_to_text(data.get("fulfillment_status")),
            note=_to_text(data.get("note")),
            note_attributes=list(data.get("note_attributes") or []),
            total_price=_to_text(data.get("total_price")),
            currency=_to_text(data.get("currency")),
            created_at=_to_text(data.get("created_at")),
            updated_at=_to_text(data.get("updated_at")),
            cancelled_at=_to_text(data.get("cancelled_at")),
            cancel_reason=_to_text(data.get("cancel_reason")),
            shipping_address=data.get("shipping_address") if isinstance(data.get("shipping_address"), dict) else None,
            line_items=tuple(LineItemPayload.from_dict(item, i) for i, item in enumerate(raw_items)),
        )

    def metadata(self) -> dict:
        return {
            "source_order_id": self.id,
            "order_number": self.order_number,
            "customer_email": self.customer_email,
            "customer_name": self.customer_name,
            "tags": list(self.tags),
            "financial_status": self.financial_status,
            "fulfillment_status": self.fulfillment_status,
            "note": self.note,
            "note_attributes": self.note_attributes,
            "total_price": self.total_price,
            "currency": self.currency,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "cancelled_at": self.cancelled_at,
            "cancel_reason": self.cancel_reason,
            "shipping_address": self.shipping_address,
        }


def resolve_customer_name(data: dict) -> str:
    """customer first+last -> billing address name -> 'Unknown'"""
    customer = data.get("customer")
    if isinstance(customer, dict):
        full = " ".join(
            part for part in (_to_text(customer.get("first_name")), _to_text(customer.get("last_name"))) if part
        )
        if full:
            return full

    billing = data.get("billing_address")
    if isinstance(billing, dict):
        name = _to_text(billing.get("name"))
        if name:
            return name

    return "Unknown"
