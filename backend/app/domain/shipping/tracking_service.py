"""
Tracking Service.

Persisted side of the label lifecycle: explicit status updates and
tracking lookups.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from backend.app.core.exceptions import ResourceNotFoundError
from backend.app.domain.shipping.tracking import (
    RecordedEvent,
    estimated_delivery,
    is_noop,
    map_to_order_status,
    synthesize_events,
    utc_now,
    validate_transition,
)
from backend.app.models.order import Order
from backend.app.models.shipping_enums import LabelStatus
from backend.app.models.shipping_label import ShippingLabel
from backend.app.models.shipping_status_event import ShippingStatusEvent
from backend.app.schemas.shipping import TrackingInfo

logger = logging.getLogger(__name__)


class TrackingService:

    def __init__(self, db: AsyncSession, now_fn: Callable[[], datetime] = utc_now):
        self.db = db
        self.now_fn = now_fn

    async def get_label(self, tracking_number: str) -> ShippingLabel:
        """
        Raises:
            ResourceNotFoundError: Unknown tracking number
        """
        result = await self.db.execute(
            select(ShippingLabel)
            .where(ShippingLabel.tracking_number == tracking_number)
            .execution_options(populate_existing=True)
        )
        label = result.scalar_one_or_none()
        if not label:
            raise ResourceNotFoundError("Tracking number", tracking_number)
        return label

    async def update_status(
        self,
        tracking_number: str,
        new_status: LabelStatus,
        location: Optional[str] = None,
    ) -> ShippingLabel:
        """
        Move a label to `new_status` and mirror it on the order.

        The write is a compare-and-swap on the status read just before it.
        When another writer got there first, the fresh status is re-read
        and the transition validated again. This terminates because every
        lost race means the status moved forward in a finite lifecycle.

        Raises:
            ResourceNotFoundError: Unknown tracking number
            InvalidTransitionError: Transition not allowed from the current status
        """
        label = await self.get_label(tracking_number)

        while True:
            current = label.status
            validate_transition(current, new_status)
            if is_noop(current, new_status):
                return label

            now = self.now_fn()
            result = await self.db.execute(
                update(ShippingLabel)
                .where(ShippingLabel.id == label.id, ShippingLabel.status == current)
                .values(status=new_status, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                break

            await self.db.rollback()
            logger.info(
                "Concurrent status change, re-validating",
                extra={"tracking_number": tracking_number, "expected_status": current.value}
            )
            label = await self.get_label(tracking_number)

        self.db.add(ShippingStatusEvent(
            label_id=label.id,
            status=new_status,
            location=location,
            occurred_at=now,
        ))

        order_values = {"shipping_status": map_to_order_status(new_status)}
        if new_status == LabelStatus.DELIVERED:
            order_values["actual_delivery"] = now
        await self.db.execute(
            update(Order)
            .where(Order.id == label.order_id)
            .values(**order_values)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        set_committed_value(label, "status", new_status)
        set_committed_value(label, "updated_at", now)

        logger.info(
            "Shipping status updated",
            extra={
                "tracking_number": tracking_number,
                "from_status": current.value,
                "to_status": new_status.value,
            }
        )
        return label

    async def track(self, tracking_number: str) -> TrackingInfo:
        """
        Raises:
            ResourceNotFoundError: Unknown tracking number
        """
        label = await self.get_label(tracking_number)

        result = await self.db.execute(
            select(ShippingStatusEvent)
            .where(ShippingStatusEvent.label_id == label.id)
            .order_by(ShippingStatusEvent.occurred_at, ShippingStatusEvent.id)
        )
        recorded = [
            RecordedEvent(status=row.status, occurred_at=row.occurred_at, location=row.location)
            for row in result.scalars().all()
        ]

        return TrackingInfo(
            tracking_number=label.tracking_number,
            current_status=label.status,
            estimated_delivery=estimated_delivery(label.created_at, label.estimated_delivery_days),
            events=synthesize_events(
                status=label.status,
                created_at=label.created_at,
                from_address=label.from_address,
                to_address=label.to_address,
                now=self.now_fn(),
                recorded=recorded,
            ),
        )
