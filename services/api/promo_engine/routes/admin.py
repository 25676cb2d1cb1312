"""Admin endpoints for offer diagnostics and maintenance.

These endpoints are intended for merchandisers testing rules and for
operational tasks. In production, consider adding authentication.
"""

import logging

from fastapi import APIRouter, HTTPException
from redis.exceptions import RedisError

from promo_engine.schemas import RuleEvaluationRequest, RuleEvaluationResponse
from promo_engine.services.offer_processing import preview_rule
from promo_engine.services.rule_expression import RuleError
from promo_engine.stores.redis import invalidate_offer_catalog_cache

router = APIRouter()
logger = logging.getLogger("uvicorn.error")


@router.post("/rules/evaluate", response_model=RuleEvaluationResponse)
async def evaluate_rule_expression(request: RuleEvaluationRequest) -> RuleEvaluationResponse:
    """Dry-run a rule expression against a sample item and order.

    Returns 400 with the evaluator's message when the rule is broken.
    """
    try:
        return preview_rule(request)
    except RuleError as e:
        raise HTTPException(status_code=400, detail=f"Invalid rule: {e}")


@router.post("/offers/cache/invalidate")
async def invalidate_offer_cache() -> dict[str, bool]:
    """Drop the cached active offer catalog."""
    try:
        await invalidate_offer_catalog_cache()
    except RuntimeError:
        logger.warning("Offer catalog cache invalidation skipped: Redis not initialized")
        return {"invalidated": False}
    except RedisError as e:
        logger.warning(f"Offer catalog cache invalidation failed: {e}")
        return {"invalidated": False}
    logger.info("Offer catalog cache invalidated")
    return {"invalidated": True}
