"""Offer code model.

A code a customer enters to unlock a (usually not automatically added) offer.
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column

from promo_engine.stores.postgres import Base


class OfferCodeRecord(Base):
    """Promotional code row."""

    __tablename__ = "offer_codes"

    id: Mapped[int] = mapped_column(primary_key=True)
    offer_id: Mapped[int] = mapped_column(ForeignKey("offers.id"), index=True)
    code: Mapped[str] = mapped_column(String(100), unique=True, index=True)

    uses: Mapped[int] = mapped_column(default=0)
    max_uses: Mapped[int | None] = mapped_column()
    email_address: Mapped[str | None] = mapped_column(String(255))

    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    archived: Mapped[bool] = mapped_column(default=False)

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
        return f"<OfferCode {self.code} offer={self.offer_id} uses={self.uses}>"
