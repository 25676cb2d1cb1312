"""Per-request service wiring shared by routers."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from promo_engine.services.offer_processing import OfferProcessingService
from promo_engine.settings import get_settings
from promo_engine.stores.offers import OfferStore
from promo_engine.stores.postgres import get_session


@asynccontextmanager
async def offer_service_scope() -> AsyncGenerator[OfferProcessingService, None]:
    """Yield a service bound to one DB session (committed on clean exit)."""
    settings = get_settings()
    async with get_session() as session:
        store = OfferStore(session, catalog_cache_ttl=settings.offer_catalog_cache_ttl)
        yield OfferProcessingService(store, settings=settings)
