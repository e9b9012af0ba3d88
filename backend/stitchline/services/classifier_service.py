# Overview: Pure product classification; wallet vs accessory, wallet type, points, customizations.

"""
Classifier

classify() is a pure function of (product name, properties, catalog). Identical
inputs always give identical output, which is what lets a redelivered webhook
be ingested without changing anything.

CANONICAL RULE: the wallet/accessory decision is made on the product name.
Property names only feed attribute extraction.

    1. catalog resolves a wallet type, or a generic wallet keyword is in the
       name                                   -> wallet
    2. an accessory keyword is in the name    -> accessory
    3. anything else                          -> accessory (never blocks wallets)

A wallet the catalog cannot resolve keeps wallet_type=None and points=0 and is
left for operator remediation instead of being rejected.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..models.orders import ITEM_TYPE_ACCESSORY, ITEM_TYPE_WALLET
from .catalog import DEFAULT_CATALOG, WalletCatalog


# Generic terms that mark a product as a fulfillable wallet even when the
# catalog has no entry for it yet.
WALLET_KEYWORDS = (
    "peyton", "richmond", "keller", "georgetown", "pflugerville",
    "badge", "western", "passport", "victory", "tyler", "mansfield",
    "federal", "houstonian", "sugar land", "trinity", "rio grande",
    "big bend", "glory", "bifold", "trifold", "clutch", "long wallet",
    "vertical wallet", "money clip", "minimalist",
)

ACCESSORY_KEYWORDS = (
    "monogram",
    "special engraving",
    "monogram_font",
    "engraving_font",
    "engraving_location",
    "customer_note",
    "custom_logo",
    "add custom id",
    "badge type",
    "add custom badge cutout",
    "rfid cards",
    "extra",
)


class ClassificationUnresolved(ValueError):
    """Raised when an operator asks to resolve a wallet the catalog cannot match."""
    pass


@dataclass(frozen=True)
class Classification:
    item_type: str
    wallet_type: str | None
    points: int
    attributes: dict | None

    @property
    def is_wallet(self) -> bool:
        return self.item_type == ITEM_TYPE_WALLET

    @property
    def unresolved(self) -> bool:
        return self.is_wallet and self.wallet_type is None


def is_wallet_name(product_name: str | None, catalog: WalletCatalog = DEFAULT_CATALOG) -> bool:
    if not product_name:
        return False
    name = product_name.lower()
    if catalog.resolve(name) is not None:
        return True
    return any(keyword in name for keyword in WALLET_KEYWORDS)


def is_accessory_name(product_name: str | None) -> bool:
    if not product_name:
        return False
    name = product_name.lower()
    return any(keyword in name for keyword in ACCESSORY_KEYWORDS)


def empty_wallet_attributes() -> dict:
    return {
        "color": None,
        "leather_type": None,
        "thread_color": None,
        "has_monogram": False,
        "monogram_text": None,
        "monogram_font": None,
        "has_special_engraving": False,
        "special_engraving_text": None,
        "engraving_font": None,
        "engraving_location": None,
        "has_custom_id": False,
        "custom_id_text": None,
        "has_custom_logo": False,
        "custom_logo_details": None,
        "has_badge_cutout": False,
        "badge_type": None,
        "customer_note": None,
        "other_customizations": [],
    }


def _apply_color(attrs, key, value):
    if "thread" in key:
        attrs["thread_color"] = value
    else:
        attrs["color"] = value
        attrs["leather_type"] = value


def _apply_monogram(attrs, key, value):
    attrs["has_monogram"] = True
    if "font" in key:
        attrs["monogram_font"] = value
    else:
        attrs["monogram_text"] = value


def _apply_special_engraving(attrs, key, value):
    attrs["has_special_engraving"] = True
    attrs["special_engraving_text"] = value


def _apply_engraving_font(attrs, key, value):
    attrs["engraving_font"] = value


def _apply_engraving_location(attrs, key, value):
    attrs["engraving_location"] = value


def _apply_custom_id(attrs, key, value):
    attrs["has_custom_id"] = True
    attrs["custom_id_text"] = value


def _apply_badge_type(attrs, key, value):
    attrs["badge_type"] = value


def _apply_badge_cutout(attrs, key, value):
    attrs["has_badge_cutout"] = True
    if value and value != "Yes":
        attrs["badge_type"] = value


def _apply_custom_logo(attrs, key, value):
    attrs["has_custom_logo"] = True
    attrs["custom_logo_details"] = value


def _apply_customer_note(attrs, key, value):
    attrs["customer_note"] = value


# Ordered: first rule whose substrings appear in the lowercased property name wins.
ATTRIBUTE_RULES = (
    (("color", "leather"), _apply_color),
    (("monogram",), _apply_monogram),
    (("special engraving",), _apply_special_engraving),
    (("engraving_font",), _apply_engraving_font),
    (("engraving_location",), _apply_engraving_location),
    (("custom id", "add custom id"), _apply_custom_id),
    (("badge type",), _apply_badge_type),
    (("badge cutout", "add custom badge cutout"), _apply_badge_cutout),
    (("custom_logo", "custom logo"), _apply_custom_logo),
    (("customer_note", "customer note"), _apply_customer_note),
)


def extract_wallet_attributes(properties) -> dict:
    """
    Map storefront line-item properties onto the wallet customization record.

    properties: iterable of objects with .name/.value, or {"name", "value"} dicts.
    Unmatched properties are kept verbatim in other_customizations.
    """
    attrs = empty_wallet_attributes()
    for prop in properties or ():
        if isinstance(prop, dict):
            name, value = prop.get("name"), prop.get("value")
        else:
            name, value = prop.name, prop.value
        if not name:
            continue

        key = str(name).lower()
        for needles, apply in ATTRIBUTE_RULES:
            if any(needle in key for needle in needles):
                apply(attrs, key, value)
                break
        else:
            attrs["other_customizations"].append({"name": name, "value": value})
    return attrs


def classify(product_name: str | None, properties=None, catalog: WalletCatalog = DEFAULT_CATALOG) -> Classification:
    """Classify one storefront line item."""
    if not is_wallet_name(product_name, catalog):
        # Accessory keywords and the fail-safe default land in the same place;
        # the distinction only matters for reporting.
        return Classification(item_type=ITEM_TYPE_ACCESSORY, wallet_type=None, points=0, attributes=None)

    wallet_type = catalog.resolve(product_name)
    return Classification(
        item_type=ITEM_TYPE_WALLET,
        wallet_type=wallet_type.id if wallet_type else None,
        points=wallet_type.points if wallet_type else 0,
        attributes=extract_wallet_attributes(properties),
    )


def check_catalog(product_names, catalog: WalletCatalog = DEFAULT_CATALOG) -> list[dict]:
    """Dry-run names against the catalog (used by `flask catalog check`)."""
    rows = []
    for name in product_names:
        result = classify(name, (), catalog)
        rows.append({
            "product_name": name,
            "item_type": result.item_type,
            "wallet_type": result.wallet_type,
            "points": result.points,
            "matched": result.wallet_type is not None,
        })
    return rows
