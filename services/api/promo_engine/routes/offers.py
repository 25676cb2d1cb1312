"""Storefront offer lookup.

GET /v1/offers/by-code/{code} - offer unlocked by a code
"""

from fastapi import APIRouter, HTTPException

from promo_engine.routes.deps import offer_service_scope
from promo_engine.schemas import OfferSummary

router = APIRouter()


@router.get("/by-code/{code}", response_model=OfferSummary)
async def get_offer_by_code(code: str) -> OfferSummary:
    async with offer_service_scope() as service:
        offer = await service.get_offer_by_code(code)
    if offer is None:
        raise HTTPException(status_code=404, detail="Offer not found")
    return offer
