"""Order offer endpoints.

POST   /v1/orders/{order_id}/process-offers    - apply automatic offers
POST   /v1/orders/{order_id}/apply-code        - apply an offer code
DELETE /v1/orders/{order_id}/offers/{offer_id} - drop an offer's adjustments

Routers are thin: call services for business logic.
"""

from fastapi import APIRouter, Path, Response

from promo_engine.routes.deps import offer_service_scope
from promo_engine.schemas import (
    ApplyOfferCodeRequest,
    ApplyOfferCodeResponse,
    ProcessOffersRequest,
    ProcessOffersResponse,
)

router = APIRouter()


@router.post("/{order_id}/process-offers", response_model=ProcessOffersResponse)
async def process_order_offers(
    request: ProcessOffersRequest,
    order_id: int = Path(ge=1),
) -> ProcessOffersResponse:
    """Qualify, select and apply every automatically added offer."""
    async with offer_service_scope() as service:
        return await service.process_order_offers(order_id, request)


@router.post("/{order_id}/apply-code", response_model=ApplyOfferCodeResponse)
async def apply_offer_code(
    request: ApplyOfferCodeRequest,
    order_id: int = Path(ge=1),
) -> ApplyOfferCodeResponse:
    """Apply a customer-entered offer code.

    A code that does not apply is a 200 with success=false and a reason.
    """
    async with offer_service_scope() as service:
        return await service.apply_offer_code(order_id, request)


@router.delete("/{order_id}/offers/{offer_id}", status_code=204)
async def remove_offer(
    order_id: int = Path(ge=1),
    offer_id: int = Path(ge=1),
) -> Response:
    async with offer_service_scope() as service:
        await service.remove_offer_from_order(order_id, offer_id)
    return Response(status_code=204)
