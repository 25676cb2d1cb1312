"""Offer persistence: catalog reads, codes, usage counts, adjustments.

The store converts ORM rows into the frozen evaluation types of
services/offer_model.py so nothing downstream touches a live session.

The active catalog is cached in Redis when available; a missing or broken
cache silently falls back to Postgres.
"""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from decimal import Decimal
import logging
from typing import Any, Sequence

from redis.exceptions import RedisError
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from promo_engine.models import (
    OfferCodeRecord,
    OfferRecord,
    OfferUsageRecord,
    OrderAdjustmentRecord,
    OrderItemAdjustmentRecord,
)
from promo_engine.services.offer_model import (
    Offer,
    OfferAdjustmentType,
    OfferCode,
    OfferDiscountType,
    OfferType,
)
from promo_engine.stores.redis import get_offer_catalog_cache, set_offer_catalog_cache

logger = logging.getLogger("uvicorn.error")

_DECIMAL_FIELDS = ("value", "order_min_total", "qualifying_item_min_total")
_DATE_FIELDS = ("start_date", "end_date")


# ============================================================
# Row / payload conversion
# ============================================================


def _discount_type(raw: str) -> OfferDiscountType | str:
    try:
        return OfferDiscountType(raw)
    except ValueError:
        # Unknown types are surfaced by the processor as a hard failure.
        return raw


def offer_from_record(record: OfferRecord) -> Offer:
    """Build an evaluation Offer from an ORM row.

    Raises:
        ValueError: unknown offer/adjustment type or negative value.
    """
    return Offer(
        id=record.id,
        name=record.name,
        offer_type=OfferType(record.offer_type),
        adjustment_type=OfferAdjustmentType(record.adjustment_type),
        discount_type=_discount_type(record.discount_type),
        value=Decimal(record.value),
        start_date=record.start_date,
        end_date=record.end_date,
        order_min_total=Decimal(record.order_min_total or 0),
        qualifying_item_min_total=Decimal(record.qualifying_item_min_total or 0),
        max_uses=record.max_uses,
        max_uses_per_customer=record.max_uses_per_customer,
        item_qualifier_rule=record.item_qualifier_rule or "",
        item_target_rule=record.item_target_rule or "",
        offer_qualifier_rule=record.offer_qualifier_rule or "",
        combinable=record.combinable,
        totalitarian=record.totalitarian,
        automatically_added=record.automatically_added,
        apply_to_sale_price=record.apply_to_sale_price,
        archived=record.archived,
        priority=record.priority,
        description=record.description or "",
        marketing_message=record.marketing_message or "",
    )


def offer_code_from_record(record: OfferCodeRecord) -> OfferCode:
    return OfferCode(
        id=record.id,
        offer_id=record.offer_id,
        code=record.code,
        uses=record.uses,
        max_uses=record.max_uses,
        email_address=record.email_address,
        start_date=record.start_date,
        end_date=record.end_date,
        archived=record.archived,
    )


def offer_to_payload(offer: Offer) -> dict[str, Any]:
    """JSON-safe dict for the catalog cache."""
    data = asdict(offer)
    for key in _DECIMAL_FIELDS:
        data[key] = str(data[key])
    for key in _DATE_FIELDS:
        data[key] = data[key].isoformat() if data[key] is not None else None
    for key in ("offer_type", "adjustment_type", "discount_type"):
        data[key] = str(getattr(data[key], "value", data[key]))
    return data


def offer_from_payload(data: dict[str, Any]) -> Offer:
    fields = dict(data)
    for key in _DECIMAL_FIELDS:
        fields[key] = Decimal(fields[key])
    for key in _DATE_FIELDS:
        fields[key] = datetime.fromisoformat(fields[key]) if fields.get(key) else None
    fields["offer_type"] = OfferType(fields["offer_type"])
    fields["adjustment_type"] = OfferAdjustmentType(fields["adjustment_type"])
    fields["discount_type"] = _discount_type(fields["discount_type"])
    return Offer(**fields)


# ============================================================
# Store
# ============================================================


class OfferStore:
    """Offer persistence bound to one session (one transaction)."""

    def __init__(self, session: AsyncSession, *, catalog_cache_ttl: int = 0) -> None:
        self.session = session
        self.catalog_cache_ttl = catalog_cache_ttl

    async def find_active_offers(self, now: datetime) -> list[Offer]:
        """All non-archived offers whose window contains `now`.

        The processor re-checks archived/window itself, so a slightly stale
        cached catalog is harmless.
        """
        if self.catalog_cache_ttl > 0:
            cached = await self._try_get_cached_catalog()
            if cached is not None:
                return cached

        result = await self.session.execute(
            select(OfferRecord)
            .where(OfferRecord.archived.is_(False))
            .where(OfferRecord.start_date <= now)
            .where(or_(OfferRecord.end_date.is_(None), OfferRecord.end_date >= now))
            .order_by(OfferRecord.priority.asc(), OfferRecord.id.asc())
        )
        offers: list[Offer] = []
        for record in result.scalars().all():
            try:
                offers.append(offer_from_record(record))
            except ValueError as e:
                logger.warning(f"Skipping misconfigured offer {record.id}: {e}")

        if self.catalog_cache_ttl > 0:
            await self._try_set_cached_catalog(offers)
        return offers

    async def find_offer(self, offer_id: int) -> Offer | None:
        record = await self.session.get(OfferRecord, offer_id)
        if record is None:
            return None
        return offer_from_record(record)

    async def find_offer_code(self, code: str) -> OfferCode | None:
        result = await self.session.execute(
            select(OfferCodeRecord).where(OfferCodeRecord.code == code)
        )
        record = result.scalar_one_or_none()
        if record is None:
            return None
        return offer_code_from_record(record)

    async def increment_code_uses(self, code_id: int) -> None:
        await self.session.execute(
            update(OfferCodeRecord)
            .where(OfferCodeRecord.id == code_id)
            .values(uses=OfferCodeRecord.uses + 1)
        )

    async def customer_usage_counts(self, customer_id: str | None) -> dict[int, int]:
        """Offer id -> number of prior uses by this customer."""
        if not customer_id:
            return {}
        result = await self.session.execute(
            select(OfferUsageRecord.offer_id, func.count(OfferUsageRecord.id))
            .where(OfferUsageRecord.customer_id == customer_id)
            .group_by(OfferUsageRecord.offer_id)
        )
        return {offer_id: count for offer_id, count in result.all()}

    async def replace_adjustments(
        self,
        order_id: int,
        order_rows: Sequence[OrderAdjustmentRecord],
        item_rows: Sequence[OrderItemAdjustmentRecord],
    ) -> None:
        """Delete the order's adjustments and insert the new set.

        Runs in the caller's session, so the swap commits atomically.
        """
        await self.session.execute(
            delete(OrderAdjustmentRecord).where(OrderAdjustmentRecord.order_id == order_id)
        )
        await self.session.execute(
            delete(OrderItemAdjustmentRecord).where(OrderItemAdjustmentRecord.order_id == order_id)
        )
        self.session.add_all([*order_rows, *item_rows])
        await self.session.flush()

    async def delete_offer_adjustments(self, order_id: int, offer_id: int) -> int:
        """Remove one offer's adjustments from an order. Returns rows removed."""
        removed = 0
        for model in (OrderAdjustmentRecord, OrderItemAdjustmentRecord):
            result = await self.session.execute(
                delete(model).where(model.order_id == order_id).where(model.offer_id == offer_id)
            )
            removed += result.rowcount or 0
        return removed

    async def _try_get_cached_catalog(self) -> list[Offer] | None:
        try:
            payload = await get_offer_catalog_cache()
        except RuntimeError:
            return None
        except RedisError as e:
            logger.warning(f"Offer catalog cache read failed, using Postgres: {e}")
            return None
        if not payload:
            return None

        try:
            return [offer_from_payload(item) for item in payload.get("offers", [])]
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring unreadable offer catalog cache: {e}")
            return None

    async def _try_set_cached_catalog(self, offers: list[Offer]) -> None:
        payload = {"offers": [offer_to_payload(offer) for offer in offers]}
        try:
            await set_offer_catalog_cache(payload, ttl=self.catalog_cache_ttl)
        except RuntimeError:
            # Redis may be unavailable in tests/local minimal env.
            return
        except RedisError as e:
            logger.warning(f"Offer catalog cache write failed: {e}")
