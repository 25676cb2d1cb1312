"""Offer processing service (application layer).

Bridges API schemas and the offer processor:
- Builds an OfferContext from the request's order/item snapshot
- Loads the active catalog and customer usage counts from the OfferStore
- Runs qualify -> calculate -> select, skipping offers that fail to evaluate
- Converts the selection into order-level / item-level adjustments
- Persists adjustments (delete-then-insert in the store's transaction)

Money is rounded once here (ROUND_HALF_UP to `currency_decimal_places`);
the processor itself works on unrounded Decimals.
"""

from __future__ import annotations

from datetime import datetime
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
import logging
from typing import Iterable

from promo_engine.models import OrderAdjustmentRecord, OrderItemAdjustmentRecord
from promo_engine.schemas.offers import ApplyOfferCodeResponse, OfferSummary
from promo_engine.schemas.orders import (
    AppliedOffer,
    ApplyOfferCodeRequest,
    OrderAdjustmentData,
    OrderItemAdjustmentData,
    OrderItemData,
    ProcessOffersRequest,
    ProcessOffersResponse,
    SkippedOffer,
)
from promo_engine.schemas.rules import RuleEvaluationRequest, RuleEvaluationResponse
from promo_engine.services.offer_model import (
    CandidateOffer,
    Offer,
    OfferAdjustmentType,
    OfferContext,
    OfferItem,
)
from promo_engine.services.offer_processor import OfferProcessingError, OfferProcessor
from promo_engine.services.rule_expression import RuleContext, evaluate_rule
from promo_engine.settings import Settings, get_settings
from promo_engine.stores.offers import OfferStore

logger = logging.getLogger("uvicorn.error")

ADJUSTMENT_REASON_OFFER = "OFFER_DISCOUNT"


# ============================================================
# Request -> evaluation types
# ============================================================


def to_offer_item(item: OrderItemData) -> OfferItem:
    subtotal = item.subtotal if item.subtotal is not None else item.price * item.quantity
    return OfferItem(
        item_id=item.item_id,
        sku_id=item.sku_id,
        category_id=item.category_id,
        product_id=item.product_id,
        price=item.price,
        sale_price=item.sale_price,
        quantity=item.quantity,
        subtotal=subtotal,
    )


def build_offer_context(
    *,
    order_subtotal: Decimal,
    order_total: Decimal,
    customer_id: str | None,
    items: Iterable[OrderItemData],
    available_offers: Iterable[Offer] = (),
    usage_counts: dict[int, int] | None = None,
) -> OfferContext:
    return OfferContext(
        order_subtotal=order_subtotal,
        order_total=order_total,
        customer_id=customer_id,
        items=tuple(to_offer_item(item) for item in items),
        available_offers=tuple(available_offers),
        customer_usage_count=usage_counts or {},
    )


def preview_rule(request: RuleEvaluationRequest) -> RuleEvaluationResponse:
    """Evaluate a rule against a sample item/order (admin dry-run).

    Raises:
        RuleError: the expression is malformed or references unknown fields.
    """
    order = build_offer_context(
        order_subtotal=request.order_subtotal,
        order_total=request.order_total,
        customer_id=request.customer_id,
        items=[request.item] if request.item else [],
    )
    if request.item is not None:
        context = RuleContext.for_item(order.items[0], order)
    else:
        context = RuleContext.for_order(order)
    return RuleEvaluationResponse(
        expression=request.expression,
        result=evaluate_rule(request.expression, context),
    )


# ============================================================
# Service
# ============================================================


class OfferProcessingService:
    """Processes offers for orders on top of an OfferStore."""

    def __init__(
        self,
        store: OfferStore,
        processor: OfferProcessor | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.store = store
        self.processor = processor or OfferProcessor()
        self.settings = settings or get_settings()
        self._quantum = Decimal(1).scaleb(-self.settings.currency_decimal_places)

    def _round(self, amount: Decimal) -> Decimal:
        return amount.quantize(self._quantum, rounding=ROUND_HALF_UP)

    async def process_order_offers(
        self,
        order_id: int,
        request: ProcessOffersRequest,
    ) -> ProcessOffersResponse:
        """Find, select and apply every automatically added offer for an order."""
        now = self.processor.clock()
        active_offers = await self.store.find_active_offers(now)
        usage_counts = await self.store.customer_usage_counts(request.customer_id)

        ctx = build_offer_context(
            order_subtotal=request.order_subtotal,
            order_total=request.order_total,
            customer_id=request.customer_id,
            items=request.items,
            available_offers=active_offers,
            usage_counts=usage_counts,
        )

        candidates: list[CandidateOffer] = []
        skipped: list[SkippedOffer] = []
        for offer in active_offers:
            if not offer.automatically_added:
                continue

            try:
                qualification = self.processor.qualify_offer(offer, ctx)
                if not qualification.qualifies:
                    skipped.append(SkippedOffer(offer_id=offer.id, reason=qualification.reason))
                    continue
                amount, target_ids = self.processor.calculate_discount(offer, ctx)
            except OfferProcessingError as e:
                # One broken offer must not block the rest of the order.
                logger.warning(f"Skipping offer {offer.id} for order {order_id}: {e}")
                skipped.append(SkippedOffer(offer_id=offer.id, reason=str(e)))
                continue

            amount = self._round(amount)
            if amount <= 0:
                skipped.append(
                    SkippedOffer(
                        offer_id=offer.id,
                        reason="Offer does not provide any discount for this order",
                    )
                )
                continue

            candidates.append(
                CandidateOffer(offer=offer, discount_amount=amount, target_item_ids=tuple(target_ids))
            )

        selected = self.processor.select_best_offers(candidates)
        response = self._build_response(order_id, request.order_subtotal, ctx, selected)
        response.skipped_offers = skipped

        logger.info(
            f"Order {order_id}: {len(candidates)} candidate offers, "
            f"{len(selected)} applied, total discount {response.total_discount}"
        )

        if request.persist:
            await self.persist_adjustments(order_id, response)
        return response

    def _build_response(
        self,
        order_id: int,
        order_subtotal: Decimal,
        ctx: OfferContext,
        selected: list[CandidateOffer],
    ) -> ProcessOffersResponse:
        quantities = {item.item_id: item.quantity for item in ctx.items}
        response = ProcessOffersResponse(
            order_id=order_id,
            original_subtotal=order_subtotal,
            total_discount=Decimal("0"),
            adjusted_subtotal=order_subtotal,
        )

        for candidate in selected:
            adjustment = self.processor.apply_offer(candidate.offer, candidate.discount_amount)
            response.total_discount += adjustment.value
            response.applied_offers.append(
                AppliedOffer(
                    offer_id=adjustment.offer_id,
                    offer_name=adjustment.offer_name,
                    discount_amount=adjustment.value,
                    priority=candidate.priority,
                )
            )

            if adjustment.adjustment_type == OfferAdjustmentType.ORDER_OFFER:
                response.order_adjustments.append(
                    OrderAdjustmentData(
                        offer_id=adjustment.offer_id,
                        offer_name=adjustment.offer_name,
                        adjustment_value=adjustment.value,
                        adjustment_reason=ADJUSTMENT_REASON_OFFER,
                    )
                )
                continue

            shares = self._split_exact(
                self.processor.allocate_item_discounts(candidate, ctx),
                adjustment.value,
            )
            for item_id, share in shares.items():
                response.item_adjustments.append(
                    OrderItemAdjustmentData(
                        item_id=item_id,
                        offer_id=adjustment.offer_id,
                        offer_name=adjustment.offer_name,
                        adjustment_value=share,
                        quantity=quantities.get(item_id, 1),
                    )
                )

        response.adjusted_subtotal = order_subtotal - response.total_discount
        return response

    def _split_exact(self, shares: dict[str, Decimal], total: Decimal) -> dict[str, Decimal]:
        """Round shares so they sum to `total` without any share going negative.

        Shares are truncated to the currency quantum, then the missing cents
        are handed out one at a time, largest truncation first (ties keep
        item order).
        """
        if not shares:
            return {}
        quantum = self._quantum
        rounded = {
            item_id: max(share.quantize(quantum, rounding=ROUND_DOWN), Decimal("0"))
            for item_id, share in shares.items()
        }
        by_error = sorted(shares, key=lambda item_id: shares[item_id] - rounded[item_id], reverse=True)

        remainder = total - sum(rounded.values(), Decimal("0"))
        while remainder >= quantum:
            for item_id in by_error:
                if remainder < quantum:
                    break
                rounded[item_id] += quantum
                remainder -= quantum

        # Only reachable when `total` is below the truncated shares.
        while remainder <= -quantum:
            givers = [item_id for item_id in reversed(by_error) if rounded[item_id] >= quantum]
            if not givers:
                break
            for item_id in givers:
                if remainder > -quantum:
                    break
                rounded[item_id] -= quantum
                remainder += quantum
        return rounded

    async def apply_offer_code(
        self,
        order_id: int,
        request: ApplyOfferCodeRequest,
    ) -> ApplyOfferCodeResponse:
        """Apply a customer-entered code to an order."""
        code = request.offer_code.strip()
        offer_code = await self.store.find_offer_code(code)
        if offer_code is None:
            return ApplyOfferCodeResponse(success=False, message="Offer code not found")

        now = self.processor.clock()
        if not offer_code.is_active(now):
            return ApplyOfferCodeResponse(
                success=False, message="Offer code is not currently active"
            )

        offer = await self.store.find_offer(offer_code.offer_id)
        if offer is None:
            return ApplyOfferCodeResponse(success=False, message="Associated offer not found")

        usage_counts = await self.store.customer_usage_counts(request.customer_id)
        ctx = build_offer_context(
            order_subtotal=request.order_subtotal,
            order_total=request.order_total,
            customer_id=request.customer_id,
            items=request.items,
            available_offers=[offer],
            usage_counts=usage_counts,
        )

        try:
            qualification = self.processor.qualify_offer(offer, ctx)
            if not qualification.qualifies:
                return ApplyOfferCodeResponse(
                    success=False,
                    message=qualification.reason,
                    offer=OfferSummary.from_offer(offer),
                )
            amount, _ = self.processor.calculate_discount(offer, ctx)
        except OfferProcessingError as e:
            logger.warning(f"Offer code {code!r} on order {order_id} failed to evaluate: {e}")
            return ApplyOfferCodeResponse(
                success=False,
                message="Offer could not be evaluated for this order",
                offer=OfferSummary.from_offer(offer),
            )

        amount = self._round(amount)
        if amount <= 0:
            return ApplyOfferCodeResponse(
                success=False,
                message="Offer does not provide any discount for this order",
                offer=OfferSummary.from_offer(offer),
            )

        await self.store.increment_code_uses(offer_code.id)
        logger.info(f"Offer code {code!r} applied to order {order_id}: discount {amount}")
        return ApplyOfferCodeResponse(
            success=True,
            message="Offer code applied successfully",
            offer=OfferSummary.from_offer(offer),
            discount_amount=amount,
        )

    async def remove_offer_from_order(self, order_id: int, offer_id: int) -> int:
        removed = await self.store.delete_offer_adjustments(order_id, offer_id)
        logger.info(f"Removed {removed} adjustments of offer {offer_id} from order {order_id}")
        return removed

    async def persist_adjustments(
        self,
        order_id: int,
        response: ProcessOffersResponse,
        applied_at: datetime | None = None,
    ) -> None:
        """Replace the order's stored adjustments with `response`'s."""
        applied_at = applied_at or self.processor.clock()
        order_rows = [
            OrderAdjustmentRecord(
                order_id=order_id,
                offer_id=adj.offer_id,
                offer_name=adj.offer_name,
                adjustment_value=adj.adjustment_value,
                adjustment_reason=adj.adjustment_reason,
                applied_at=applied_at,
            )
            for adj in response.order_adjustments
        ]
        item_rows = [
            OrderItemAdjustmentRecord(
                order_id=order_id,
                item_id=adj.item_id,
                offer_id=adj.offer_id,
                offer_name=adj.offer_name,
                adjustment_value=adj.adjustment_value,
                quantity=adj.quantity,
                applied_at=applied_at,
            )
            for adj in response.item_adjustments
        ]
        await self.store.replace_adjustments(order_id, order_rows, item_rows)

    async def get_offer_by_code(self, code: str) -> OfferSummary | None:
        offer_code = await self.store.find_offer_code(code.strip())
        if offer_code is None:
            return None
        offer = await self.store.find_offer(offer_code.offer_id)
        if offer is None:
            return None
        return OfferSummary.from_offer(offer)
