"""Order and order item adjustment models.

Persisted results of applying offers to an order. Rows for an order are
replaced as a whole whenever offers are re-processed.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from promo_engine.stores.postgres import Base


class OrderAdjustmentRecord(Base):
    """Order-level discount."""

    __tablename__ = "order_adjustments"

    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[int] = mapped_column(index=True)
    offer_id: Mapped[int] = mapped_column(ForeignKey("offers.id"), index=True)
    offer_name: Mapped[str] = mapped_column(String(255))
    adjustment_value: Mapped[Decimal] = mapped_column(Numeric(19, 5))
    adjustment_reason: Mapped[str] = mapped_column(String(50))  # OFFER_DISCOUNT, MANUAL_ADJUSTMENT
    applied_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<OrderAdjustment order={self.order_id} offer={self.offer_id} {self.adjustment_value}>"


class OrderItemAdjustmentRecord(Base):
    """Discount applied to a single order line."""

    __tablename__ = "order_item_adjustments"

    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[int] = mapped_column(index=True)
    item_id: Mapped[str] = mapped_column(String(100), index=True)
    offer_id: Mapped[int] = mapped_column(ForeignKey("offers.id"), index=True)
    offer_name: Mapped[str] = mapped_column(String(255))
    adjustment_value: Mapped[Decimal] = mapped_column(Numeric(19, 5))
    quantity: Mapped[int] = mapped_column()
    applied_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<OrderItemAdjustment order={self.order_id} item={self.item_id} {self.adjustment_value}>"
