"""SQLAlchemy ORM models.

Models represent database tables:
- offers: Promotional offer definitions
- offer_codes: Codes that unlock offers
- offer_usages: Per-customer usage ledger
- order_adjustments / order_item_adjustments: Applied discounts
"""

from promo_engine.models.offer import OfferRecord
from promo_engine.models.offer_code import OfferCodeRecord
from promo_engine.models.offer_usage import OfferUsageRecord
from promo_engine.models.order_adjustment import OrderAdjustmentRecord, OrderItemAdjustmentRecord

__all__ = [
    "OfferRecord",
    "OfferCodeRecord",
    "OfferUsageRecord",
    "OrderAdjustmentRecord",
    "OrderItemAdjustmentRecord",
]
