"""Schemas for the rule dry-run endpoint (/v1/admin/rules/evaluate)."""

from decimal import Decimal

from pydantic import BaseModel, Field

from promo_engine.schemas.orders import OrderItemData


class RuleEvaluationRequest(BaseModel):
    """Evaluate a rule expression against a sample item/order."""

    expression: str
    item: OrderItemData | None = None
    order_subtotal: Decimal = Field(alias="orderSubtotal", default=Decimal("0"))
    order_total: Decimal = Field(alias="orderTotal", default=Decimal("0"))
    customer_id: str | None = Field(alias="customerId", default=None)

    model_config = {"populate_by_name": True}


class RuleEvaluationResponse(BaseModel):
    expression: str
    result: bool
