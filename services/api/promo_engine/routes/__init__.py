"""API routes."""

from fastapi import APIRouter

from promo_engine.routes import admin, offers, orders

api_router = APIRouter()

# Storefront: order offer processing
api_router.include_router(orders.router, prefix="/v1/orders", tags=["orders"])

# Storefront: offer lookup
api_router.include_router(offers.router, prefix="/v1/offers", tags=["offers"])

# Admin endpoints (rule dry-run, cache maintenance)
api_router.include_router(admin.router, prefix="/v1/admin", tags=["admin"])
