"""Offer evaluation data model.

Plain value types consumed by the offer processor:
- Offer: a promotional rule definition (thresholds, window, flags, rules)
- OfferItem / OfferContext: the order snapshot an offer is evaluated against
- CandidateOffer / OfferQualification / OfferAdjustment: evaluation results

Everything here is built fresh per evaluation request and never mutated,
so a single context can be read by the processor without locking.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Mapping


class OfferType(str, Enum):
    """Marketing mechanism of an offer."""

    PERCENTAGE_OFF = "PERCENTAGE_OFF"
    AMOUNT_OFF = "AMOUNT_OFF"
    BOGO = "BOGO"  # Buy One Get One


class OfferAdjustmentType(str, Enum):
    """Where the resulting adjustment is recorded."""

    ORDER_ITEM_OFFER = "ORDER_ITEM_OFFER"
    ORDER_OFFER = "ORDER_OFFER"


class OfferDiscountType(str, Enum):
    """Discount arithmetic (distinct from OfferType)."""

    FIX_PRICE = "FIX_PRICE"
    PERCENT_DISCOUNT = "PERCENT_DISCOUNT"
    AMOUNT_OFF = "AMOUNT_OFF"


DEFAULT_OFFER_PRIORITY = 50


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class Offer:
    """A promotional offer definition."""

    id: int
    name: str
    offer_type: OfferType
    adjustment_type: OfferAdjustmentType
    # Kept as a plain string when unknown so a misconfigured offer surfaces
    # as an unsupported discount type instead of failing to load.
    discount_type: OfferDiscountType | str
    value: Decimal
    start_date: datetime
    end_date: datetime | None = None
    order_min_total: Decimal = Decimal("0")
    qualifying_item_min_total: Decimal = Decimal("0")
    max_uses: int | None = None
    max_uses_per_customer: int | None = None
    item_qualifier_rule: str = ""
    item_target_rule: str = ""
    offer_qualifier_rule: str = ""
    combinable: bool = True
    totalitarian: bool = False
    automatically_added: bool = False
    apply_to_sale_price: bool = False
    archived: bool = False
    priority: int = DEFAULT_OFFER_PRIORITY
    description: str = ""
    marketing_message: str = ""

    def __post_init__(self) -> None:
        if self.value < 0:
            raise ValueError(f"Offer value cannot be negative (offer {self.id})")
        # Naive datetimes are treated as UTC.
        object.__setattr__(self, "start_date", _as_utc(self.start_date))
        if self.end_date is not None:
            object.__setattr__(self, "end_date", _as_utc(self.end_date))


@dataclass(frozen=True)
class OfferAdjustment:
    """Discount produced by applying one offer."""

    offer_id: int
    offer_name: str
    adjustment_type: OfferAdjustmentType
    value: Decimal
    applied_at: datetime


@dataclass(frozen=True)
class OfferItem:
    """One order line as seen by offer evaluation."""

    item_id: str
    sku_id: str
    price: Decimal
    quantity: int
    subtotal: Decimal
    category_id: str | None = None
    sale_price: Decimal | None = None
    product_id: str | None = None
    adjustments: tuple[OfferAdjustment, ...] = ()

    def effective_price(self, apply_to_sale_price: bool) -> Decimal:
        """Sale price when requested and present, else regular price."""
        if apply_to_sale_price and self.sale_price is not None:
            return self.sale_price
        return self.price

    def line_total(self, apply_to_sale_price: bool) -> Decimal:
        return self.effective_price(apply_to_sale_price) * self.quantity

    def adjusted_price(self) -> Decimal:
        """Subtotal minus every adjustment already applied to this line."""
        price = self.subtotal
        for adjustment in self.adjustments:
            price -= adjustment.value
        return price


def _frozen_mapping(value: Mapping[int, int] | None) -> Mapping[int, int]:
    return MappingProxyType(dict(value or {}))


@dataclass(frozen=True)
class OfferContext:
    """Order snapshot for one evaluation pass."""

    order_subtotal: Decimal
    order_total: Decimal
    customer_id: str | None = None
    items: tuple[OfferItem, ...] = ()
    applied_offers: tuple[OfferAdjustment, ...] = ()
    available_offers: tuple[Offer, ...] = ()
    customer_usage_count: Mapping[int, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Callers may hand in lists/dicts; store read-only copies.
        object.__setattr__(self, "items", tuple(self.items))
        object.__setattr__(self, "applied_offers", tuple(self.applied_offers))
        object.__setattr__(self, "available_offers", tuple(self.available_offers))
        object.__setattr__(
            self, "customer_usage_count", _frozen_mapping(self.customer_usage_count)
        )

    def usage_count(self, offer_id: int) -> int:
        return self.customer_usage_count.get(offer_id, 0)


@dataclass(frozen=True)
class OfferQualification:
    """Outcome of qualifying one offer (not an error when it fails)."""

    offer: Offer
    qualifies: bool
    reason: str


@dataclass(frozen=True)
class CandidateOffer:
    """A qualifying offer with its computed discount, pending selection."""

    offer: Offer
    discount_amount: Decimal
    target_item_ids: tuple[str, ...] = ()

    @property
    def priority(self) -> int:
        return self.offer.priority


@dataclass(frozen=True)
class OfferCode:
    """A promotional code that unlocks an offer."""

    id: int
    offer_id: int
    code: str
    uses: int = 0
    max_uses: int | None = None
    email_address: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    archived: bool = False

    def __post_init__(self) -> None:
        if self.start_date is not None:
            object.__setattr__(self, "start_date", _as_utc(self.start_date))
        if self.end_date is not None:
            object.__setattr__(self, "end_date", _as_utc(self.end_date))

    def is_active(self, now: datetime) -> bool:
        if self.archived:
            return False
        if self.max_uses is not None and self.uses >= self.max_uses:
            return False
        if self.start_date is not None and now < self.start_date:
            return False
        if self.end_date is not None and now > self.end_date:
            return False
        return True
