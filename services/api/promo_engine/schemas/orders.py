"""Schemas for order offer processing (/v1/orders/...)."""

from decimal import Decimal

from pydantic import BaseModel, Field


class OrderItemData(BaseModel):
    """One order line as sent by the cart/checkout."""

    item_id: str = Field(alias="itemId")
    sku_id: str = Field(alias="skuId")
    category_id: str | None = Field(alias="categoryId", default=None)
    product_id: str | None = Field(alias="productId", default=None)
    price: Decimal = Field(ge=0)
    sale_price: Decimal | None = Field(alias="salePrice", default=None, ge=0)
    quantity: int = Field(ge=0)
    subtotal: Decimal | None = Field(
        default=None,
        description="Line subtotal; defaults to price * quantity",
    )

    model_config = {"populate_by_name": True}


class ProcessOffersRequest(BaseModel):
    """Request body for POST /v1/orders/{order_id}/process-offers."""

    order_subtotal: Decimal = Field(alias="orderSubtotal", ge=0)
    order_total: Decimal = Field(alias="orderTotal", ge=0)
    customer_id: str | None = Field(alias="customerId", default=None)
    items: list[OrderItemData] = Field(default_factory=list)
    persist: bool = Field(
        default=False,
        description="Replace the order's stored adjustments with the result",
    )

    model_config = {"populate_by_name": True}


class AppliedOffer(BaseModel):
    """An offer selected for the order."""

    offer_id: int = Field(alias="offerId")
    offer_name: str = Field(alias="offerName")
    discount_amount: Decimal = Field(alias="discountAmount")
    priority: int

    model_config = {"populate_by_name": True}


class OrderAdjustmentData(BaseModel):
    """Order-level adjustment."""

    offer_id: int = Field(alias="offerId")
    offer_name: str = Field(alias="offerName")
    adjustment_value: Decimal = Field(alias="adjustmentValue")
    adjustment_reason: str = Field(alias="adjustmentReason", default="OFFER_DISCOUNT")

    model_config = {"populate_by_name": True}


class OrderItemAdjustmentData(BaseModel):
    """Item-level adjustment (the item's share of an offer's discount)."""

    item_id: str = Field(alias="itemId")
    offer_id: int = Field(alias="offerId")
    offer_name: str = Field(alias="offerName")
    adjustment_value: Decimal = Field(alias="adjustmentValue")
    quantity: int

    model_config = {"populate_by_name": True}


class SkippedOffer(BaseModel):
    """Diagnostics: an automatic offer that was not applied, and why."""

    offer_id: int = Field(alias="offerId")
    reason: str

    model_config = {"populate_by_name": True}


class ProcessOffersResponse(BaseModel):
    """Result of automatic offer processing for an order."""

    order_id: int = Field(alias="orderId")
    original_subtotal: Decimal = Field(alias="originalSubtotal")
    total_discount: Decimal = Field(alias="totalDiscount")
    adjusted_subtotal: Decimal = Field(alias="adjustedSubtotal")
    applied_offers: list[AppliedOffer] = Field(alias="appliedOffers", default_factory=list)
    order_adjustments: list[OrderAdjustmentData] = Field(
        alias="orderAdjustments", default_factory=list
    )
    item_adjustments: list[OrderItemAdjustmentData] = Field(
        alias="itemAdjustments", default_factory=list
    )
    skipped_offers: list[SkippedOffer] = Field(alias="skippedOffers", default_factory=list)

    model_config = {"populate_by_name": True}


class ApplyOfferCodeRequest(BaseModel):
    """Request body for POST /v1/orders/{order_id}/apply-code."""

    offer_code: str = Field(alias="offerCode", min_length=1)
    order_subtotal: Decimal = Field(alias="orderSubtotal", ge=0)
    order_total: Decimal = Field(alias="orderTotal", ge=0)
    customer_id: str | None = Field(alias="customerId", default=None)
    items: list[OrderItemData] = Field(default_factory=list)

    model_config = {"populate_by_name": True}
