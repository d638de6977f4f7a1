"""
Shipping Service (Facade).

Single entry point for the API layer: composes the rate engine, label
issuer and tracking service and maps rows to response schemas. Business
rules live in backend.app.domain.shipping.
"""

import random
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import ResourceNotFoundError
from backend.app.domain.shipping.couriers import CourierPartner, CourierRegistry, default_registry
from backend.app.domain.shipping.label_issuer import LabelIssuer
from backend.app.domain.shipping.rates import RateEngine, ensure_package, ensure_pincode
from backend.app.domain.shipping.tracking import utc_now
from backend.app.domain.shipping.tracking_service import TrackingService
from backend.app.models.order import Order
from backend.app.models.shipping_enums import LabelStatus
from backend.app.models.shipping_label import ShippingLabel
from backend.app.schemas.shipping import (
    ShippingAddress,
    ShippingLabelResponse,
    ShippingRate,
    TrackingInfo,
)
from backend.app.services.quote_cache import QuoteCache, build_quote_key


class ShippingService:
    """
    Shipping facade.

    Args:
        db: Request-scoped database session
        quote_cache: Optional cache for rate quotes
        registry: Courier catalog
        rng: Random source shared by the distance sampler and tracking numbers
        now_fn: Clock
    """

    def __init__(
        self,
        db: AsyncSession,
        quote_cache: Optional[QuoteCache] = None,
        registry: CourierRegistry = default_registry,
        rng: Optional[random.Random] = None,
        now_fn: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.quote_cache = quote_cache
        self.registry = registry
        self.rate_engine = RateEngine(registry=registry, rng=rng)
        self.label_issuer = LabelIssuer(db, registry=registry, rng=rng, now_fn=now_fn)
        self.tracking = TrackingService(db, now_fn=now_fn)

    def list_couriers(self) -> List[CourierPartner]:
        return self.registry.list_partners()

    async def get_rates(
        self,
        from_pincode: str,
        to_pincode: str,
        weight_kg: float,
        cod_amount: Optional[float] = None
    ) -> List[ShippingRate]:
        # Validate before touching the cache so bad input never becomes a key
        ensure_pincode(from_pincode, "from_pincode")
        ensure_pincode(to_pincode, "to_pincode")
        ensure_package(weight_kg, cod_amount)

        key = build_quote_key(from_pincode, to_pincode, weight_kg, cod_amount)
        if self.quote_cache is not None:
            cached = await self.quote_cache.get(key)
            if cached is not None:
                return cached

        rates = self.rate_engine.quote(from_pincode, to_pincode, weight_kg, cod_amount)

        if self.quote_cache is not None:
            await self.quote_cache.set(key, rates)
        return rates

    async def get_order(self, order_id: str) -> Order:
        result = await self.db.execute(select(Order).where(Order.id == order_id))
        order = result.scalar_one_or_none()
        if not order:
            raise ResourceNotFoundError("Order", order_id)
        return order

    async def create_label(
        self,
        order_id: str,
        rate: ShippingRate,
        from_address: ShippingAddress,
        to_address: ShippingAddress,
        weight_kg: float,
        cod_amount: Optional[float] = None
    ) -> ShippingLabelResponse:
        label = await self.label_issuer.issue_label(
            order_id, rate, from_address, to_address, weight_kg, cod_amount
        )
        return ShippingLabelResponse.model_validate(label)

    async def get_label(self, tracking_number: str) -> ShippingLabelResponse:
        label = await self.tracking.get_label(tracking_number)
        return ShippingLabelResponse.model_validate(label)

    async def get_label_owner(self, tracking_number: str) -> str:
        """Seller id of the order a label ships."""
        label = await self.tracking.get_label(tracking_number)
        order = await self.get_order(label.order_id)
        return order.seller_id

    async def track(self, tracking_number: str) -> TrackingInfo:
        return await self.tracking.track(tracking_number)

    async def update_status(
        self,
        tracking_number: str,
        status: LabelStatus,
        location: Optional[str] = None
    ) -> None:
        await self.tracking.update_status(tracking_number, status, location)

    async def list_labels_for_seller(
        self,
        seller_id: Optional[str],
        offset: int = 0,
        limit: Optional[int] = None
    ) -> Tuple[List[ShippingLabelResponse], int]:
        """
        Labels of a seller's orders, newest first.

        A seller_id of None lists every label (admin view).

        Returns:
            (labels on the requested page, total label count)
        """
        count_query = select(func.count(ShippingLabel.id)).join(
            Order, Order.id == ShippingLabel.order_id
        )
        query = select(ShippingLabel).join(
            Order, Order.id == ShippingLabel.order_id
        ).order_by(ShippingLabel.created_at.desc(), ShippingLabel.id.desc())

        if seller_id is not None:
            count_query = count_query.where(Order.seller_id == seller_id)
            query = query.where(Order.seller_id == seller_id)

        total = (await self.db.execute(count_query)).scalar()

        query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        result = await self.db.execute(query)

        labels = [ShippingLabelResponse.model_validate(label) for label in result.scalars().all()]
        return labels, total
