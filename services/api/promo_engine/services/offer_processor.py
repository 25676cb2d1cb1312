"""Offer processor: qualification, discount calculation and selection.

Pipeline for one order:
1. qualify_offer: archived / window / thresholds / usage caps / rules
2. calculate_discount: target items + discount arithmetic per discount type
3. select_best_offers: greedy priority walk honoring totalitarian and
   combinable flags (deterministic, not a discount-maximizing search)
4. apply_offer: turn a selected offer into an adjustment

The processor holds no per-order state; everything it needs comes in through
the (frozen) OfferContext, so one instance can serve concurrent requests.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable

from promo_engine.services.offer_model import (
    CandidateOffer,
    Offer,
    OfferAdjustment,
    OfferContext,
    OfferDiscountType,
    OfferItem,
    OfferQualification,
)
from promo_engine.services.rule_expression import (
    RuleContext,
    RuleError,
    RuleEvaluator,
    RuleExpressionEvaluator,
)

logger = logging.getLogger("uvicorn.error")

HUNDRED = Decimal("100")


class OfferProcessingError(RuntimeError):
    """An offer could not be evaluated (broken rule, bad configuration)."""

    def __init__(self, offer_id: int, check: str, message: str) -> None:
        super().__init__(f"offer {offer_id}: {check}: {message}")
        self.offer_id = offer_id
        self.check = check


class UnsupportedDiscountTypeError(RuntimeError):
    pass


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class OfferProcessor:
    """Qualifies offers against an order and computes their discounts."""

    def __init__(
        self,
        evaluator: RuleEvaluator | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.evaluator = evaluator or RuleExpressionEvaluator()
        self.clock = clock

    # ============================================================
    # Qualification
    # ============================================================

    def qualify_offer(self, offer: Offer, ctx: OfferContext) -> OfferQualification:
        """Decide whether `offer` is eligible for the order in `ctx`.

        Checks short-circuit on the first failure; the reason names the check.

        Raises:
            OfferProcessingError: a qualifier rule could not be evaluated.
        """
        if offer.archived:
            return OfferQualification(offer, False, "Offer is archived")

        now = self.clock()
        if now < offer.start_date:
            return OfferQualification(offer, False, "Offer has not started yet")
        if offer.end_date is not None and now > offer.end_date:
            return OfferQualification(offer, False, "Offer has expired")

        if offer.order_min_total > 0 and ctx.order_subtotal < offer.order_min_total:
            return OfferQualification(
                offer,
                False,
                f"Order subtotal below minimum of {offer.order_min_total:.2f}",
            )

        # Global max_uses is intentionally not enforced here: total usage
        # lives outside the order snapshot.

        if offer.max_uses_per_customer is not None and ctx.customer_id is not None:
            if ctx.usage_count(offer.id) >= offer.max_uses_per_customer:
                return OfferQualification(
                    offer, False, "Customer has exceeded maximum uses for this offer"
                )

        if not offer.combinable and ctx.applied_offers:
            return OfferQualification(offer, False, "Offer cannot be combined with other offers")

        if offer.qualifying_item_min_total > 0:
            qualifying_total = self.qualifying_item_total(offer, ctx)
            if qualifying_total < offer.qualifying_item_min_total:
                return OfferQualification(
                    offer,
                    False,
                    f"Qualifying items total below minimum of {offer.qualifying_item_min_total:.2f}",
                )

        if offer.offer_qualifier_rule:
            try:
                matched = self.evaluator.evaluate(
                    offer.offer_qualifier_rule, RuleContext.for_order(ctx)
                )
            except RuleError as exc:
                raise OfferProcessingError(
                    offer.id, "offer qualifier rule", f"failed to evaluate qualifier rule: {exc}"
                ) from exc
            if not matched:
                return OfferQualification(offer, False, "Custom qualifier rule did not match")

        return OfferQualification(offer, True, "Offer qualifies")

    def qualifying_item_total(self, offer: Offer, ctx: OfferContext) -> Decimal:
        """Sum of line totals over items matching the item qualifier rule."""
        total = Decimal("0")
        for item in ctx.items:
            if offer.item_qualifier_rule:
                try:
                    matched = self.evaluator.evaluate(
                        offer.item_qualifier_rule, RuleContext.for_item(item, ctx)
                    )
                except RuleError as exc:
                    raise OfferProcessingError(
                        offer.id,
                        "item qualifier rule",
                        f"failed to evaluate rule for item {item.item_id}: {exc}",
                    ) from exc
                if not matched:
                    continue
            total += item.line_total(offer.apply_to_sale_price)
        return total

    # ============================================================
    # Discount calculation
    # ============================================================

    def find_target_items(self, offer: Offer, ctx: OfferContext) -> list[OfferItem]:
        """Items receiving the discount. A failing target rule excludes the item."""
        if not offer.item_target_rule:
            return list(ctx.items)

        targets: list[OfferItem] = []
        for item in ctx.items:
            try:
                matched = self.evaluator.evaluate(
                    offer.item_target_rule, RuleContext.for_item(item, ctx)
                )
            except RuleError as exc:
                logger.warning(
                    f"Target rule for offer {offer.id} failed on item {item.item_id}, excluding item: {exc}"
                )
                continue
            if matched:
                targets.append(item)
        return targets

    def calculate_discount(self, offer: Offer, ctx: OfferContext) -> tuple[Decimal, list[str]]:
        """Compute the discount amount and the ids of the items it targets.

        Raises:
            OfferProcessingError: wrapping UnsupportedDiscountTypeError.
        """
        targets = self.find_target_items(offer, ctx)
        if not targets:
            return Decimal("0"), []

        use_sale = offer.apply_to_sale_price

        if offer.discount_type == OfferDiscountType.PERCENT_DISCOUNT:
            target_total = sum((item.line_total(use_sale) for item in targets), Decimal("0"))
            return target_total * (offer.value / HUNDRED), [item.item_id for item in targets]

        if offer.discount_type == OfferDiscountType.AMOUNT_OFF:
            return offer.value, [item.item_id for item in targets]

        if offer.discount_type == OfferDiscountType.FIX_PRICE:
            discount = Decimal("0")
            target_ids: list[str] = []
            for item in targets:
                current = item.effective_price(use_sale)
                if current > offer.value:
                    discount += (current - offer.value) * item.quantity
                    target_ids.append(item.item_id)
            return discount, target_ids

        error = UnsupportedDiscountTypeError(f"unsupported discount type: {offer.discount_type}")
        raise OfferProcessingError(offer.id, "discount", str(error)) from error

    def allocate_item_discounts(
        self,
        candidate: CandidateOffer,
        ctx: OfferContext,
    ) -> dict[str, Decimal]:
        """Split a candidate's discount across its target items.

        Percent and fix-price offers give each item its own share; amount-off
        offers are split pro-rata by line total. Shares sum to the discount.
        """
        offer = candidate.offer
        use_sale = offer.apply_to_sale_price
        by_id = {item.item_id: item for item in ctx.items}
        targets = [by_id[item_id] for item_id in candidate.target_item_ids if item_id in by_id]
        if not targets:
            return {}

        if offer.discount_type == OfferDiscountType.PERCENT_DISCOUNT:
            rate = offer.value / HUNDRED
            return {item.item_id: item.line_total(use_sale) * rate for item in targets}

        if offer.discount_type == OfferDiscountType.FIX_PRICE:
            return {
                item.item_id: (item.effective_price(use_sale) - offer.value) * item.quantity
                for item in targets
            }

        weights = {item.item_id: item.line_total(use_sale) for item in targets}
        total_weight = sum(weights.values(), Decimal("0"))
        if total_weight <= 0:
            share = candidate.discount_amount / len(targets)
            return {item.item_id: share for item in targets}
        return {
            item_id: candidate.discount_amount * weight / total_weight
            for item_id, weight in weights.items()
        }

    # ============================================================
    # Selection
    # ============================================================

    def select_best_offers(self, candidates: list[CandidateOffer]) -> list[CandidateOffer]:
        """Pick a non-conflicting subset of candidates.

        Order: priority ascending, then discount descending. The first
        totalitarian candidate replaces everything selected so far and ends
        the walk. Otherwise the first candidate is taken, and later ones only
        when they and every selected offer are combinable.
        """
        ordered = sorted(candidates, key=lambda c: (c.priority, -c.discount_amount))

        selected: list[CandidateOffer] = []
        for candidate in ordered:
            if candidate.offer.totalitarian:
                return [candidate]

            if not selected:
                selected.append(candidate)
                continue

            if candidate.offer.combinable and all(s.offer.combinable for s in selected):
                selected.append(candidate)

        return selected

    # ============================================================
    # Application
    # ============================================================

    def apply_offer(self, offer: Offer, discount_amount: Decimal) -> OfferAdjustment:
        return OfferAdjustment(
            offer_id=offer.id,
            offer_name=offer.name,
            adjustment_type=offer.adjustment_type,
            value=discount_amount,
            applied_at=self.clock(),
        )
