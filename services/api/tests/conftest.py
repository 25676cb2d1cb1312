"""Shared builders for offer tests."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from promo_engine.services.offer_model import (
    Offer,
    OfferAdjustmentType,
    OfferContext,
    OfferDiscountType,
    OfferItem,
    OfferType,
)
from promo_engine.services.offer_processor import OfferProcessor

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_offer(**overrides) -> Offer:
    fields = dict(
        id=1,
        name="Summer sale",
        offer_type=OfferType.PERCENTAGE_OFF,
        adjustment_type=OfferAdjustmentType.ORDER_ITEM_OFFER,
        discount_type=OfferDiscountType.PERCENT_DISCOUNT,
        value=Decimal("10"),
        start_date=datetime(2024, 1, 1, tzinfo=timezone.utc),
        end_date=datetime(2024, 12, 31, tzinfo=timezone.utc),
        automatically_added=True,
    )
    fields.update(overrides)
    return Offer(**fields)


def make_item(item_id: str = "item-1", price: str = "20.00", quantity: int = 1, **overrides) -> OfferItem:
    fields = dict(
        item_id=item_id,
        sku_id=f"SKU-{item_id}",
        price=Decimal(price),
        quantity=quantity,
        subtotal=Decimal(price) * quantity,
    )
    fields.update(overrides)
    return OfferItem(**fields)


def make_context(items=(), subtotal: str | None = None, **overrides) -> OfferContext:
    items = tuple(items)
    if subtotal is None:
        order_subtotal = sum((item.subtotal for item in items), Decimal("0"))
    else:
        order_subtotal = Decimal(subtotal)
    fields = dict(
        order_subtotal=order_subtotal,
        order_total=order_subtotal,
        customer_id="cust-1",
        items=items,
    )
    fields.update(overrides)
    return OfferContext(**fields)


@pytest.fixture
def processor() -> OfferProcessor:
    """Processor with a fixed clock."""
    return OfferProcessor(clock=lambda: NOW)


class FakeStore:
    """In-memory stand-in for OfferStore."""

    def __init__(self, offers=(), codes=(), usage=None) -> None:
        self.offers = {offer.id: offer for offer in offers}
        self.codes = {code.code: code for code in codes}
        self.usage = usage or {}
        self.incremented: list[int] = []
        self.replaced: list[tuple[int, list, list]] = []
        self.deleted: list[tuple[int, int]] = []

    async def find_active_offers(self, now: datetime):
        return list(self.offers.values())

    async def find_offer(self, offer_id: int):
        return self.offers.get(offer_id)

    async def find_offer_code(self, code: str):
        return self.codes.get(code)

    async def increment_code_uses(self, code_id: int) -> None:
        self.incremented.append(code_id)

    async def customer_usage_counts(self, customer_id):
        return dict(self.usage) if customer_id else {}

    async def replace_adjustments(self, order_id, order_rows, item_rows) -> None:
        self.replaced.append((order_id, list(order_rows), list(item_rows)))

    async def delete_offer_adjustments(self, order_id: int, offer_id: int) -> int:
        self.deleted.append((order_id, offer_id))
        return 2
