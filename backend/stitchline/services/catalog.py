# Overview: Wallet catalog; immutable product-name keyword table with point values.

"""
Wallet Catalog

A catalog is an ordered tuple of WalletType entries. It is built once and
passed into the classifier explicitly, so tests (and future product lines) can
swap in an alternate table without touching module state.

RESOLUTION ORDER:
    Entries are tried by the length of their longest keyword phrase, longest
    first. "Badge Trifold Wallet" therefore resolves to badge-trifold before
    the shorter badge-vertical or minimalist-badge phrases get a chance.
    Ties keep declaration order.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class WalletType:
    id: str
    keywords: tuple[str, ...]
    points: int

    @property
    def longest_keyword(self) -> int:
        return max((len(k) for k in self.keywords), default=0)

    @property
    def display_name(self) -> str:
        return wallet_display_name(self.id)

    def matches(self, lowered_name: str) -> bool:
        return any(k.lower() in lowered_name for k in self.keywords)


class WalletCatalog:
    """Read-only lookup over an ordered set of wallet types."""

    def __init__(self, entries):
        self._entries = tuple(entries)
        ids = [e.id for e in self._entries]
        if len(ids) != len(set(ids)):
            raise ValueError("Wallet catalog ids must be unique")
        self._by_id = {e.id: e for e in self._entries}
        # sorted() is stable, so equal lengths keep declaration order
        self._resolution_order = tuple(
            sorted(self._entries, key=lambda e: e.longest_keyword, reverse=True)
        )

    def __iter__(self):
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, wallet_type_id: str | None) -> WalletType | None:
        if not wallet_type_id:
            return None
        return self._by_id.get(wallet_type_id)

    def resolve(self, product_name: str | None) -> WalletType | None:
        """Return the first wallet type (longest keyword first) contained in the name."""
        if not product_name:
            return None
        name = product_name.lower()
        for entry in self._resolution_order:
            if entry.matches(name):
                return entry
        return None


def wallet_display_name(wallet_type_id: str) -> str:
    """'badge-trifold' -> 'Badge Trifold'"""
    return " ".join(word[:1].upper() + word[1:] for word in wallet_type_id.split("-"))


def _w(wallet_type_id: str, points: int, *keywords: str) -> WalletType:
    return WalletType(id=wallet_type_id, keywords=tuple(keywords), points=points)


DEFAULT_CATALOG = WalletCatalog((
    # 2 POINTS
    _w("peyton", 2, "peyton"),
    _w("richmond", 2, "richmond"),
    _w("keller-money-clip", 2, "keller money clip", "keller"),
    _w("georgetown", 2, "georgetown"),
    _w("pflugerville", 2, "pflugerville"),
    _w("minimalist-badge", 2, "minimalist badge wallet", "minimalist badge"),
    _w("knife-sheath", 2, "knife sheath"),
    _w("keychain", 2, "keychain"),

    # 3 POINTS
    _w("passport-holder", 3, "passport holder", "passport"),
    _w("victory", 3, "victory"),
    _w("western-vertical", 3, "western vertical wallet", "western vertical"),
    _w("valet-tray", 3, "valet tray"),
    _w("tyler-vertical", 3, "tyler vertical wallet", "tyler vertical"),
    _w("mansfield", 3, "mansfield"),
    _w("field-notes-cover", 3, "leather field notes cover", "field notes cover", "field notes"),
    _w("badge-vertical", 3, "badge vertical wallet", "badge vertical"),
    _w("apple-watch-band", 3, "apple watch leather band", "apple watch band", "watch band"),

    # 4 POINTS
    _w("glory-snap", 4, "glory snap"),
    _w("federal-badge-small", 4, "federal badge wallet small", "federal badge small"),
    _w("western-long", 4, "western long wallet", "western long"),
    _w("houstonian-long", 4, "houstonian long wallet", "houstonian long", "houstonian"),
    _w("badge-long", 4, "badge long wallet", "badge long"),

    # 5 POINTS
    _w("sugar-land-clutch", 5, "sugar land clutch", "sugar land"),
    _w("western-bifold", 5, "western bifold wallet", "western bifold"),
    _w("trinity-trifold", 5, "trinity trifold wallet", "trinity trifold", "trinity"),
    _w("rio-grande", 5, "rio grande"),
    _w("badge-bifold", 5, "badge bifold wallet", "badge bifold"),

    # 6 POINTS
    _w("badge-clutch", 6, "badge clutch wallet", "badge clutch"),
    _w("western-trifold", 6, "western trifold wallet", "western trifold"),
    _w("big-bend", 6, "big bend"),
    _w("badge-trifold", 6, "badge trifold wallet", "badge trifold"),
))
