"""
Label Issuer.

Commits a seller to a quoted rate: mints a tracking number, stores the
label and projects the shipment onto the order, in one transaction.

Duplicate protection relies on the unique constraint on
shipping_labels.order_id; the pre-check only gives a friendlier path for
the common, non-racing case.
"""

import logging
import random
import string
import uuid
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.exceptions import (
    DuplicateLabelError,
    InvalidPackageError,
    IssuanceError,
    ResourceNotFoundError,
)
from backend.app.domain.shipping.couriers import CourierRegistry, default_registry
from backend.app.domain.shipping.rates import ensure_package, ensure_pincode
from backend.app.domain.shipping.tracking import estimated_delivery, map_to_order_status, utc_now
from backend.app.models.order import Order
from backend.app.models.shipping_enums import LabelStatus, ServiceType
from backend.app.models.shipping_label import ShippingLabel
from backend.app.models.shipping_status_event import ShippingStatusEvent
from backend.app.schemas.shipping import ShippingAddress, ShippingRate

logger = logging.getLogger(__name__)

BASE36_ALPHABET = string.digits + string.ascii_uppercase
SUFFIX_LENGTH = 4


def to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def generate_tracking_number(courier_id: str, rng: random.Random, now: datetime) -> str:
    """
    Courier prefix + base-36 millisecond timestamp + 4 random characters.

    Example: BLU + LZ3K9Q2A + 7X1F → BLULZ3K9Q2A7X1F
    """
    prefix = courier_id.upper()[:3]
    timestamp = to_base36(int(now.timestamp() * 1000))
    suffix = "".join(rng.choice(BASE36_ALPHABET) for _ in range(SUFFIX_LENGTH))
    return f"{prefix}{timestamp}{suffix}"


def build_label_url(tracking_number: str) -> str:
    """Opaque artifact reference; rendering the PDF is someone else's job."""
    return f"{settings.label_base_url}/{tracking_number}.pdf"


class LabelIssuer:
    """
    Issues shipping labels.

    Args:
        db: Database session, committed by the issuer
        registry: Courier catalog used to re-validate the chosen rate
        rng: Random source for tracking number suffixes
        now_fn: Clock
        max_attempts: Tracking number collisions tolerated before giving up
    """

    def __init__(
        self,
        db: AsyncSession,
        registry: CourierRegistry = default_registry,
        rng: Optional[random.Random] = None,
        now_fn: Callable[[], datetime] = utc_now,
        max_attempts: Optional[int] = None,
    ):
        self.db = db
        self.registry = registry
        self.rng = rng or random.SystemRandom()
        self.now_fn = now_fn
        if max_attempts is None:
            max_attempts = settings.tracking_number_max_attempts
        self.max_attempts = max_attempts

    async def find_label_for_order(self, order_id: str) -> Optional[ShippingLabel]:
        result = await self.db.execute(
            select(ShippingLabel).where(ShippingLabel.order_id == order_id)
        )
        return result.scalar_one_or_none()

    async def _get_order(self, order_id: str) -> Order:
        result = await self.db.execute(
            select(Order).where(Order.id == order_id)
        )
        order = result.scalar_one_or_none()
        if not order:
            raise ResourceNotFoundError("Order", order_id)
        return order

    async def issue_label(
        self,
        order_id: str,
        rate: ShippingRate,
        from_address: ShippingAddress,
        to_address: ShippingAddress,
        weight_kg: float,
        cod_amount: Optional[float] = None,
    ) -> ShippingLabel:
        """
        Issue the label for an order.

        Raises:
            ResourceNotFoundError: Unknown courier, courier service or order
            InvalidAddressError: Malformed pincode on either address
            InvalidPackageError: Bad weight/COD amount, or weight or COD amount over the courier's limit
            DuplicateLabelError: The order already has a label
            IssuanceError: Tracking number collisions exhausted the retry budget
        """
        # Client-side rate objects may be stale or tampered with
        partner = self.registry.get_partner(rate.courier_id)
        if rate.service_type not in {service.value for service in partner.services}:
            raise ResourceNotFoundError("Courier service", f"{partner.id}/{rate.service_type}")

        ensure_pincode(from_address.pincode, "from_pincode")
        ensure_pincode(to_address.pincode, "to_pincode")
        ensure_package(weight_kg, cod_amount)
        if weight_kg > partner.weight_limit_kg:
            raise InvalidPackageError(
                f"{partner.name} accepts packages up to {partner.weight_limit_kg} kg",
                details={"courier_id": partner.id, "weight_kg": weight_kg}
            )
        if cod_amount and rate.service_type != ServiceType.COD.value and cod_amount > partner.cod_limit:
            raise InvalidPackageError(
                f"{partner.name} collects cash on delivery up to {partner.cod_limit}",
                details={"courier_id": partner.id, "cod_amount": cod_amount}
            )

        for attempt in range(1, self.max_attempts + 1):
            if await self.find_label_for_order(order_id) is not None:
                raise DuplicateLabelError(order_id)
            order = await self._get_order(order_id)

            now = self.now_fn()
            tracking_number = generate_tracking_number(partner.id, self.rng, now)
            label = ShippingLabel(
                id=str(uuid.uuid4()),
                order_id=order_id,
                tracking_number=tracking_number,
                courier_id=partner.id,
                courier_name=partner.name,
                service_type=rate.service_type,
                from_address=from_address.model_dump(),
                to_address=to_address.model_dump(),
                package_weight_kg=weight_kg,
                shipping_cost=rate.cost,
                cod_amount=cod_amount,
                estimated_delivery_days=rate.estimated_delivery_days,
                label_url=build_label_url(tracking_number),
                status=LabelStatus.CREATED,
                created_at=now,
                updated_at=now,
            )

            try:
                self.db.add(label)
                await self.db.flush()

                self.db.add(ShippingStatusEvent(
                    label_id=label.id,
                    status=LabelStatus.CREATED,
                    location=from_address.city,
                    occurred_at=now,
                ))
                order.tracking_number = tracking_number
                order.courier_partner = partner.id
                order.shipping_status = map_to_order_status(LabelStatus.CREATED)
                order.shipping_cost = rate.cost
                order.estimated_delivery = estimated_delivery(now, rate.estimated_delivery_days)

                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                if await self.find_label_for_order(order_id) is not None:
                    raise DuplicateLabelError(order_id)
                logger.warning(
                    "Tracking number collision",
                    extra={"order_id": order_id, "tracking_number": tracking_number, "attempt": attempt}
                )
                continue

            logger.info(
                "Shipping label issued",
                extra={
                    "order_id": order_id,
                    "tracking_number": tracking_number,
                    "courier_id": partner.id,
                    "service_type": rate.service_type,
                }
            )
            return label

        raise IssuanceError(details={"order_id": order_id, "attempts": self.max_attempts})
