"""
Rate Quote Cache.

Keeps a quote for an identical request stable for a few minutes, so a
seller who re-opens the rate sheet sees the same prices. Redis is a
convenience here: any Redis failure is logged and the quote is computed
fresh. A circuit breaker stops hitting a dead Redis on every request.
"""

import json
import logging
from typing import Any, List, Optional

from backend.app.core.config import settings
from backend.app.core.reliability import CircuitBreaker, CircuitOpenError
from backend.app.schemas.shipping import ShippingRate

logger = logging.getLogger(__name__)

QUOTE_KEY_PREFIX = "shipping:quote:"

# Shared across requests, like the Redis client itself
quote_cache_circuit_breaker = CircuitBreaker(
    failure_threshold=settings.rate_cache_failure_threshold,
    reset_timeout=settings.rate_cache_reset_timeout_seconds,
    name="rate_quote_cache",
)


def build_quote_key(
    from_pincode: str,
    to_pincode: str,
    weight_kg: float,
    cod_amount: Optional[float] = None
) -> str:
    # Full float repr: weights either side of a courier limit must not share a key
    return f"{QUOTE_KEY_PREFIX}{from_pincode}:{to_pincode}:{float(weight_kg)!r}:{float(cod_amount or 0)!r}"


class QuoteCache:

    def __init__(
        self,
        redis_client: Any,
        ttl_seconds: Optional[int] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        self.redis = redis_client
        if ttl_seconds is None:
            ttl_seconds = settings.rate_quote_cache_ttl_seconds
        self.ttl_seconds = ttl_seconds
        self.circuit_breaker = circuit_breaker or quote_cache_circuit_breaker

    async def get(self, key: str) -> Optional[List[ShippingRate]]:
        try:
            raw = await self.circuit_breaker.call(self.redis.get, key)
        except CircuitOpenError:
            return None
        except Exception as e:
            logger.warning("Rate quote cache read failed", extra={"key": key, "error": str(e)})
            return None

        if raw is None:
            return None
        return [ShippingRate(**rate) for rate in json.loads(raw)]

    async def set(self, key: str, rates: List[ShippingRate]) -> None:
        # A TTL of zero turns caching off
        if self.ttl_seconds <= 0:
            return
        payload = json.dumps([rate.model_dump() for rate in rates])
        try:
            await self.circuit_breaker.call(self.redis.set, key, payload, ex=self.ttl_seconds)
        except CircuitOpenError:
            return
        except Exception as e:
            logger.warning("Rate quote cache write failed", extra={"key": key, "error": str(e)})
