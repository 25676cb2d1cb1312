from datetime import datetime, timezone
from decimal import Decimal

import pytest

from conftest import NOW, FakeStore, make_offer
from promo_engine.services.offer_model import (
    OfferAdjustmentType,
    OfferCode,
    OfferDiscountType,
)
from promo_engine.services.offer_processing import OfferProcessingService, preview_rule
from promo_engine.services.offer_processor import OfferProcessor
from promo_engine.services.rule_expression import RuleError
from promo_engine.schemas import (
    ApplyOfferCodeRequest,
    OrderItemData,
    ProcessOffersRequest,
    RuleEvaluationRequest,
)
from promo_engine.settings import Settings


def make_service(store: FakeStore) -> OfferProcessingService:
    return OfferProcessingService(
        store,
        processor=OfferProcessor(clock=lambda: NOW),
        settings=Settings(),
    )


def order_items() -> list[OrderItemData]:
    return [
        OrderItemData(item_id="a", sku_id="SKU-A", price=Decimal("20.00"), quantity=2, category_id="SHOES"),
        OrderItemData(item_id="b", sku_id="SKU-B", price=Decimal("30.00"), quantity=1, category_id="HATS"),
    ]


def process_request(**overrides) -> ProcessOffersRequest:
    fields = dict(
        order_subtotal=Decimal("70.00"),
        order_total=Decimal("70.00"),
        customer_id="cust-1",
        items=order_items(),
    )
    fields.update(overrides)
    return ProcessOffersRequest(**fields)


@pytest.mark.asyncio
async def test_process_applies_percent_offer_per_item():
    store = FakeStore(offers=[make_offer(id=1, value=Decimal("10"))])
    response = await make_service(store).process_order_offers(42, process_request())

    assert response.order_id == 42
    assert response.total_discount == Decimal("7.00")
    assert response.adjusted_subtotal == Decimal("63.00")
    assert [o.offer_id for o in response.applied_offers] == [1]
    assert {a.item_id: a.adjustment_value for a in response.item_adjustments} == {
        "a": Decimal("4.00"),
        "b": Decimal("3.00"),
    }
    assert response.order_adjustments == []
    assert store.replaced == []


@pytest.mark.asyncio
async def test_process_records_order_level_adjustment():
    offer = make_offer(
        id=3,
        discount_type=OfferDiscountType.AMOUNT_OFF,
        adjustment_type=OfferAdjustmentType.ORDER_OFFER,
        value=Decimal("5"),
    )
    response = await make_service(FakeStore(offers=[offer])).process_order_offers(1, process_request())
    assert response.total_discount == Decimal("5.00")
    assert len(response.order_adjustments) == 1
    assert response.order_adjustments[0].adjustment_reason == "OFFER_DISCOUNT"
    assert response.item_adjustments == []


@pytest.mark.asyncio
async def test_amount_off_split_sums_to_total():
    offer = make_offer(id=4, discount_type=OfferDiscountType.AMOUNT_OFF, value=Decimal("10"))
    items = [
        OrderItemData(item_id=item_id, sku_id=item_id, price=Decimal("10.00"), quantity=1)
        for item_id in ("x", "y", "z")
    ]
    request = process_request(items=items, order_subtotal=Decimal("30"), order_total=Decimal("30"))
    response = await make_service(FakeStore(offers=[offer])).process_order_offers(1, request)

    shares = [a.adjustment_value for a in response.item_adjustments]
    assert shares == [Decimal("3.34"), Decimal("3.33"), Decimal("3.33")]
    assert sum(shares) == Decimal("10.00")


@pytest.mark.asyncio
async def test_tiny_lines_never_get_a_negative_share():
    # 5 x 0.005 rounds to 0.03 overall while every line rounds to 0.01.
    items = [
        OrderItemData(item_id=f"t{n}", sku_id="TINY", price=Decimal("0.05"), quantity=1)
        for n in range(5)
    ]
    request = process_request(items=items, order_subtotal=Decimal("0.25"), order_total=Decimal("0.25"))
    response = await make_service(FakeStore(offers=[make_offer(id=1)])).process_order_offers(1, request)

    shares = [a.adjustment_value for a in response.item_adjustments]
    assert response.total_discount == Decimal("0.03")
    assert sum(shares) == Decimal("0.03")
    assert all(share >= 0 for share in shares)
    assert shares == [Decimal("0.01")] * 3 + [Decimal("0.00")] * 2


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "discount_type,value",
    [
        (OfferDiscountType.PERCENT_DISCOUNT, Decimal("33")),
        (OfferDiscountType.AMOUNT_OFF, Decimal("0.07")),
        (OfferDiscountType.FIX_PRICE, Decimal("0.99")),
    ],
)
async def test_item_adjustments_are_never_negative(discount_type, value):
    items = [
        OrderItemData(item_id="zero-price", sku_id="Z", price=Decimal("0"), quantity=3),
        OrderItemData(item_id="zero-qty", sku_id="Q", price=Decimal("5.00"), quantity=0),
        OrderItemData(item_id="cheap", sku_id="C", price=Decimal("0.50"), quantity=1),
        OrderItemData(item_id="odd", sku_id="O", price=Decimal("1.01"), quantity=3),
        OrderItemData(item_id="odd-2", sku_id="O2", price=Decimal("1.01"), quantity=1),
    ]
    offer = make_offer(id=1, discount_type=discount_type, value=value)
    request = process_request(items=items, order_subtotal=Decimal("4.54"), order_total=Decimal("4.54"))
    response = await make_service(FakeStore(offers=[offer])).process_order_offers(1, request)

    assert response.total_discount >= 0
    assert response.item_adjustments
    assert all(a.adjustment_value >= 0 for a in response.item_adjustments)
    assert sum(a.adjustment_value for a in response.item_adjustments) == response.total_discount


@pytest.mark.asyncio
async def test_process_skips_unqualified_and_broken_offers():
    offers = [
        make_offer(id=1, value=Decimal("10"), priority=10),
        make_offer(id=2, order_min_total=Decimal("500"), priority=20),
        make_offer(id=3, item_qualifier_rule="item.Nope == 1", qualifying_item_min_total=Decimal("1")),
        make_offer(id=4, automatically_added=False),
        make_offer(id=5, item_target_rule="item.CategoryID == 'NONE'"),
    ]
    response = await make_service(FakeStore(offers=offers)).process_order_offers(1, process_request())

    assert [o.offer_id for o in response.applied_offers] == [1]
    skipped = {s.offer_id: s.reason for s in response.skipped_offers}
    assert set(skipped) == {2, 3, 5}
    assert "minimum" in skipped[2]
    assert "item qualifier rule" in skipped[3]
    assert skipped[5] == "Offer does not provide any discount for this order"


@pytest.mark.asyncio
async def test_process_honors_selection_rules():
    offers = [
        make_offer(id=1, priority=10, combinable=False, value=Decimal("10")),
        make_offer(id=2, priority=20, value=Decimal("50")),
    ]
    response = await make_service(FakeStore(offers=offers)).process_order_offers(1, process_request())
    assert [o.offer_id for o in response.applied_offers] == [1]
    assert response.total_discount == Decimal("7.00")


@pytest.mark.asyncio
async def test_process_persists_when_requested():
    store = FakeStore(offers=[make_offer(id=1)])
    await make_service(store).process_order_offers(9, process_request(persist=True))

    assert len(store.replaced) == 1
    order_id, order_rows, item_rows = store.replaced[0]
    assert order_id == 9
    assert order_rows == []
    assert sorted(row.item_id for row in item_rows) == ["a", "b"]
    assert all(row.applied_at == NOW for row in item_rows)


@pytest.mark.asyncio
async def test_usage_counts_feed_qualification():
    store = FakeStore(offers=[make_offer(id=1, max_uses_per_customer=1)], usage={1: 1})
    response = await make_service(store).process_order_offers(1, process_request())
    assert response.applied_offers == []
    assert response.skipped_offers[0].reason == "Customer has exceeded maximum uses for this offer"


def code_request(code: str = "SAVE10") -> ApplyOfferCodeRequest:
    return ApplyOfferCodeRequest(
        offer_code=code,
        order_subtotal=Decimal("70.00"),
        order_total=Decimal("70.00"),
        customer_id="cust-1",
        items=order_items(),
    )


@pytest.mark.asyncio
async def test_apply_code_success_increments_uses():
    offer = make_offer(id=1, automatically_added=False)
    store = FakeStore(offers=[offer], codes=[OfferCode(id=5, offer_id=1, code="SAVE10")])
    response = await make_service(store).apply_offer_code(1, code_request(" SAVE10 "))

    assert response.success is True
    assert response.discount_amount == Decimal("7.00")
    assert response.offer is not None and response.offer.id == 1
    assert store.incremented == [5]


@pytest.mark.asyncio
async def test_apply_unknown_code():
    response = await make_service(FakeStore()).apply_offer_code(1, code_request("NOPE"))
    assert response.success is False
    assert response.message == "Offer code not found"


@pytest.mark.asyncio
async def test_apply_exhausted_or_expired_code():
    codes = [
        OfferCode(id=1, offer_id=1, code="USED", uses=3, max_uses=3),
        OfferCode(id=2, offer_id=1, code="OLD", end_date=datetime(2024, 1, 1, tzinfo=timezone.utc)),
    ]
    store = FakeStore(offers=[make_offer(id=1)], codes=codes)
    service = make_service(store)
    for code in ("USED", "OLD"):
        response = await service.apply_offer_code(1, code_request(code))
        assert response.success is False
        assert response.message == "Offer code is not currently active"
    assert store.incremented == []


@pytest.mark.asyncio
async def test_apply_code_that_does_not_qualify():
    offer = make_offer(id=1, order_min_total=Decimal("100"))
    store = FakeStore(offers=[offer], codes=[OfferCode(id=5, offer_id=1, code="BIG")])
    response = await make_service(store).apply_offer_code(1, code_request("BIG"))
    assert response.success is False
    assert "minimum" in response.message
    assert store.incremented == []


@pytest.mark.asyncio
async def test_apply_code_with_missing_offer():
    store = FakeStore(codes=[OfferCode(id=5, offer_id=404, code="GHOST")])
    response = await make_service(store).apply_offer_code(1, code_request("GHOST"))
    assert response.message == "Associated offer not found"


@pytest.mark.asyncio
async def test_remove_offer_and_lookup_by_code():
    store = FakeStore(offers=[make_offer(id=1)], codes=[OfferCode(id=5, offer_id=1, code="SAVE10")])
    service = make_service(store)

    assert await service.remove_offer_from_order(3, 1) == 2
    assert store.deleted == [(3, 1)]

    summary = await service.get_offer_by_code("SAVE10")
    assert summary is not None and summary.name == "Summer sale"
    assert await service.get_offer_by_code("missing") is None


def test_preview_rule_with_and_without_item():
    item = order_items()[0]
    request = RuleEvaluationRequest(expression="item.CategoryID == 'SHOES'", item=item)
    assert preview_rule(request).result is True

    request = RuleEvaluationRequest(expression="order.OrderSubtotal > 10", order_subtotal=Decimal("5"))
    assert preview_rule(request).result is False

    with pytest.raises(RuleError):
        preview_rule(RuleEvaluationRequest(expression="item.Price > 1"))
