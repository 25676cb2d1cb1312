"""Pydantic schemas for API request/response validation."""

from promo_engine.schemas.common import ErrorDetail, ErrorResponse
from promo_engine.schemas.offers import ApplyOfferCodeResponse, OfferSummary
from promo_engine.schemas.orders import (
    AppliedOffer,
    ApplyOfferCodeRequest,
    OrderAdjustmentData,
    OrderItemAdjustmentData,
    OrderItemData,
    ProcessOffersRequest,
    ProcessOffersResponse,
    SkippedOffer,
)
from promo_engine.schemas.rules import RuleEvaluationRequest, RuleEvaluationResponse

__all__ = [
    "ErrorDetail",
    "ErrorResponse",
    "AppliedOffer",
    "ApplyOfferCodeRequest",
    "ApplyOfferCodeResponse",
    "OfferSummary",
    "OrderAdjustmentData",
    "OrderItemAdjustmentData",
    "OrderItemData",
    "ProcessOffersRequest",
    "ProcessOffersResponse",
    "RuleEvaluationRequest",
    "RuleEvaluationResponse",
    "SkippedOffer",
]
