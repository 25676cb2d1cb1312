#!/usr/bin/env python3
"""Seed database with sample offers and codes.

Creates:
- Automatic offers covering each discount type (percent, fix price, amount off)
- A totalitarian clearance offer and a non-combinable VIP offer
- Offer codes for the code-only offers

Seed script is idempotent: offers are matched by name, codes by code.

Usage:
    cd services/api
    python -m scripts.seed_offers
"""

import asyncio
import os
import sys
from datetime import datetime, timezone
from decimal import Decimal

# Add parent to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from promo_engine.models import OfferCodeRecord, OfferRecord
from promo_engine.services.offer_model import (
    DEFAULT_OFFER_PRIORITY,
    OfferAdjustmentType,
    OfferDiscountType,
    OfferType,
)
from promo_engine.settings import get_settings

load_dotenv()

SEASON_START = datetime(2024, 1, 1, tzinfo=timezone.utc)

OFFER_DEFAULTS = {
    "start_date": SEASON_START,
    "archived": False,
    "order_min_total": Decimal("0"),
    "qualifying_item_min_total": Decimal("0"),
    "combinable": True,
    "totalitarian": False,
    "automatically_added": False,
    "apply_to_sale_price": False,
    "priority": DEFAULT_OFFER_PRIORITY,
}

# ============================================================
# Offer Definitions
# ============================================================

OFFERS = [
    {
        "name": "10% off shoes",
        "offer_type": OfferType.PERCENTAGE_OFF,
        "adjustment_type": OfferAdjustmentType.ORDER_ITEM_OFFER,
        "discount_type": OfferDiscountType.PERCENT_DISCOUNT,
        "value": Decimal("10"),
        "item_target_rule": "item.CategoryID == 'SHOES'",
        "priority": 20,
        "automatically_added": True,
        "marketing_message": "Save 10% on all shoes",
    },
    {
        "name": "Any tee for 15",
        "offer_type": OfferType.AMOUNT_OFF,
        "adjustment_type": OfferAdjustmentType.ORDER_ITEM_OFFER,
        "discount_type": OfferDiscountType.FIX_PRICE,
        "value": Decimal("15.00"),
        "item_target_rule": "item.CategoryID == 'TEES' and item.Quantity >= 1",
        "priority": 30,
        "automatically_added": True,
    },
    {
        "name": "5 off orders over 50",
        "offer_type": OfferType.AMOUNT_OFF,
        "adjustment_type": OfferAdjustmentType.ORDER_OFFER,
        "discount_type": OfferDiscountType.AMOUNT_OFF,
        "value": Decimal("5.00"),
        "order_min_total": Decimal("50.00"),
        "priority": 40,
        "automatically_added": True,
    },
    {
        "name": "Clearance 50%",
        "offer_type": OfferType.PERCENTAGE_OFF,
        "adjustment_type": OfferAdjustmentType.ORDER_ITEM_OFFER,
        "discount_type": OfferDiscountType.PERCENT_DISCOUNT,
        "value": Decimal("50"),
        "item_target_rule": "item.SKUID in ['CLR-001', 'CLR-002']",
        "priority": 5,
        "totalitarian": True,
        "automatically_added": True,
        "apply_to_sale_price": True,
    },
    {
        "name": "VIP 20% (code)",
        "offer_type": OfferType.PERCENTAGE_OFF,
        "adjustment_type": OfferAdjustmentType.ORDER_ITEM_OFFER,
        "discount_type": OfferDiscountType.PERCENT_DISCOUNT,
        "value": Decimal("20"),
        "qualifying_item_min_total": Decimal("100.00"),
        "max_uses_per_customer": 1,
        "priority": 10,
        "combinable": False,
        "code": "VIP20",
    },
    {
        "name": "Welcome 10 (code)",
        "offer_type": OfferType.AMOUNT_OFF,
        "adjustment_type": OfferAdjustmentType.ORDER_OFFER,
        "discount_type": OfferDiscountType.AMOUNT_OFF,
        "value": Decimal("10.00"),
        "order_min_total": Decimal("40.00"),
        "priority": 60,
        "code": "WELCOME10",
        "code_max_uses": 1000,
    },
]


async def seed_database() -> None:
    """Seed database with sample offers."""
    settings = get_settings()
    engine = create_async_engine(
        settings.async_database_url,
        echo=False,
        connect_args=settings.asyncpg_connect_args,
    )
    async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with async_session() as session:
        print("🌱 Seeding offers...")
        offer_map = await seed_offers(session)

        print("\n🏷️  Creating offer codes...")
        await seed_offer_codes(session, offer_map)

        await session.commit()
        print("\n✅ Offers seeded successfully!")

    await engine.dispose()


async def seed_offers(session: AsyncSession) -> dict[str, int]:
    """Insert missing offers. Returns name -> offer id."""
    offer_map: dict[str, int] = {}
    code_fields = ("code", "code_max_uses")

    for offer_def in OFFERS:
        result = await session.execute(select(OfferRecord).where(OfferRecord.name == offer_def["name"]))
        existing = result.scalar_one_or_none()
        if existing:
            offer_map[existing.name] = existing.id
            print(f"  ⏭️  {existing.name} (exists)")
            continue

        fields = dict(OFFER_DEFAULTS)
        for key, value in offer_def.items():
            if key in code_fields:
                continue
            # Enums are stored as their string values
            fields[key] = getattr(value, "value", value)
        offer = OfferRecord(**fields)
        session.add(offer)
        await session.flush()
        offer_map[offer.name] = offer.id
        print(f"  ✅ {offer.name} ({offer.discount_type} {offer.value}, priority {offer.priority})")

    return offer_map


async def seed_offer_codes(session: AsyncSession, offer_map: dict[str, int]) -> None:
    for offer_def in OFFERS:
        code = offer_def.get("code")
        if not code:
            continue

        result = await session.execute(select(OfferCodeRecord).where(OfferCodeRecord.code == code))
        if result.scalar_one_or_none():
            print(f"  ⏭️  {code} (exists)")
            continue

        session.add(
            OfferCodeRecord(
                offer_id=offer_map[offer_def["name"]],
                code=code,
                uses=0,
                max_uses=offer_def.get("code_max_uses"),
                archived=False,
            )
        )
        print(f"  ✅ {code} -> {offer_def['name']}")


if __name__ == "__main__":
    asyncio.run(seed_database())
