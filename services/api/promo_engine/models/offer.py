"""Offer model.

Represents a promotional offer definition: discount arithmetic, activity
window, thresholds, usage caps, item rules and conflict-resolution flags.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from promo_engine.stores.postgres import Base


class OfferRecord(Base):
    """Promotional offer row."""

    __tablename__ = "offers"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text)
    marketing_message: Mapped[str | None] = mapped_column(Text)

    # Discount mechanics (stored as plain strings; validated at evaluation time)
    offer_type: Mapped[str] = mapped_column(String(50))
    adjustment_type: Mapped[str] = mapped_column(String(50))
    discount_type: Mapped[str] = mapped_column(String(50))
    value: Mapped[Decimal] = mapped_column(Numeric(19, 5))

    # Activity window
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), index=True)
    archived: Mapped[bool] = mapped_column(default=False, index=True)

    # Thresholds
    order_min_total: Mapped[Decimal] = mapped_column(Numeric(19, 5), default=0)
    qualifying_item_min_total: Mapped[Decimal] = mapped_column(Numeric(19, 5), default=0)

    # Usage caps
    max_uses: Mapped[int | None] = mapped_column()
    max_uses_per_customer: Mapped[int | None] = mapped_column()

    # Rule expressions
    item_qualifier_rule: Mapped[str | None] = mapped_column(Text)
    item_target_rule: Mapped[str | None] = mapped_column(Text)
    offer_qualifier_rule: Mapped[str | None] = mapped_column(Text)

    # Conflict resolution
    priority: Mapped[int] = mapped_column(default=50)
    combinable: Mapped[bool] = mapped_column(default=True)
    totalitarian: Mapped[bool] = mapped_column(default=False)
    automatically_added: Mapped[bool] = mapped_column(default=False)
    apply_to_sale_price: Mapped[bool] = mapped_column(default=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return f"<Offer {self.id} {self.name!r} {self.discount_type}={self.value}>"
