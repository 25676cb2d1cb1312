"""Schemas describing offers to API clients."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from promo_engine.services.offer_model import Offer


class OfferSummary(BaseModel):
    """Public view of an offer."""

    id: int
    name: str
    offer_type: str = Field(alias="offerType")
    discount_type: str = Field(alias="discountType")
    adjustment_type: str = Field(alias="adjustmentType")
    value: Decimal
    priority: int
    combinable: bool
    totalitarian: bool
    start_date: datetime = Field(alias="startDate")
    end_date: datetime | None = Field(alias="endDate", default=None)
    description: str = ""
    marketing_message: str = Field(alias="marketingMessage", default="")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_offer(cls, offer: Offer) -> "OfferSummary":
        return cls(
            id=offer.id,
            name=offer.name,
            offer_type=offer.offer_type.value,
            discount_type=str(getattr(offer.discount_type, "value", offer.discount_type)),
            adjustment_type=offer.adjustment_type.value,
            value=offer.value,
            priority=offer.priority,
            combinable=offer.combinable,
            totalitarian=offer.totalitarian,
            start_date=offer.start_date,
            end_date=offer.end_date,
            description=offer.description,
            marketing_message=offer.marketing_message,
        )


class ApplyOfferCodeResponse(BaseModel):
    """Result of applying an offer code."""

    success: bool
    message: str
    offer: OfferSummary | None = None
    discount_amount: Decimal = Field(alias="discountAmount", default=Decimal("0"))

    model_config = {"populate_by_name": True}
