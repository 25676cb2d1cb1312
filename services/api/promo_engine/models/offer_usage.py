"""Offer usage model.

One row per successful use of an offer by a customer. Written by checkout
(outside this service); read here to build per-customer usage counts.
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column

from promo_engine.stores.postgres import Base


class OfferUsageRecord(Base):
    """Customer offer usage ledger row."""

    __tablename__ = "offer_usages"

    id: Mapped[int] = mapped_column(primary_key=True)
    offer_id: Mapped[int] = mapped_column(ForeignKey("offers.id"), index=True)
    customer_id: Mapped[str] = mapped_column(String(100), index=True)
    order_id: Mapped[int | None] = mapped_column()

    used_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
