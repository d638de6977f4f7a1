"""
Rate Engine.

Prices every eligible courier/service combination for a package.

The courier network is simulated: the distance between two pincodes is
sampled from a band picked by the numeric difference of the pincodes, so
two quotes for the same lane can differ. The random source is injected so
callers (and tests) can pin it; pricing from a known distance is pure.
"""

import math
import random
import re
from typing import Iterable, List, Optional

from backend.app.core.exceptions import InvalidAddressError, InvalidPackageError
from backend.app.domain.shipping.couriers import CourierPartner, CourierRegistry, default_registry
from backend.app.models.shipping_enums import ServiceType
from backend.app.schemas.shipping import PackageItem, ShippingRate

PINCODE_PATTERN = re.compile(r"^[1-9][0-9]{5}$")

# (pincode difference upper bound, minimum km, spread km)
DISTANCE_BANDS = (
    (50, 50, 100),     # 50-150 km
    (100, 150, 200),   # 150-350 km
    (500, 350, 500),   # 350-850 km
)
FAR_BAND = (850, 1000)  # 850-1850 km

# (distance upper bound km, flat cost, express days, standard days)
PRICING_TIERS = (
    (100, 40, 1, 2),
    (500, 60, 2, 4),
    (1000, 80, 3, 6),
)
FAR_TIER = (120, 4, 8)

PER_KG_SURCHARGE = 10
SERVICE_MULTIPLIERS = {
    ServiceType.EXPRESS: 1.5,
    ServiceType.SURFACE: 0.8,
    ServiceType.ECONOMY: 0.8,
}

COD_MIN_FEE = 20
COD_FEE_RATE = 0.02

DEFAULT_ITEM_WEIGHT_KG = 0.5
PACKAGING_WEIGHT_KG = 0.1


def round_half_up(value: float) -> int:
    """Round to the nearest whole unit, halves away from zero."""
    return int(math.floor(value + 0.5))


def validate_pincode(pincode: str) -> bool:
    """Indian pincode: six digits, no leading zero."""
    return isinstance(pincode, str) and bool(PINCODE_PATTERN.match(pincode))


def ensure_pincode(pincode: str, field: str = "pincode") -> None:
    if not validate_pincode(pincode):
        raise InvalidAddressError(
            f"Invalid {field.replace('_', ' ')}: '{pincode}'. Pincode must be 6 digits and cannot start with 0",
            details={"field": field, "value": pincode}
        )


def ensure_package(weight_kg: Optional[float], cod_amount: Optional[float] = None) -> None:
    if weight_kg is None or not weight_kg > 0:
        raise InvalidPackageError(
            "Package weight must be greater than 0 kg",
            details={"weight_kg": weight_kg}
        )
    if cod_amount is not None and cod_amount < 0:
        raise InvalidPackageError(
            "COD amount cannot be negative",
            details={"cod_amount": cod_amount}
        )


def sample_distance_km(from_pincode: str, to_pincode: str, rng: random.Random) -> float:
    """
    Approximate the road distance between two pincodes.

    Not a geodistance: the pincode difference picks a band and the distance
    is drawn uniformly within it.
    """
    diff = abs(int(from_pincode) - int(to_pincode))
    for upper_bound, minimum, spread in DISTANCE_BANDS:
        if diff < upper_bound:
            return minimum + rng.random() * spread
    minimum, spread = FAR_BAND
    return minimum + rng.random() * spread


def _tier(distance_km: float) -> tuple:
    for upper_bound, flat_cost, express_days, standard_days in PRICING_TIERS:
        if distance_km < upper_bound:
            return flat_cost, express_days, standard_days
    return FAR_TIER


def compute_base_cost(distance_km: float, weight_kg: float, service_type: str) -> int:
    """
    Flat distance tier plus per-kg surcharge, scaled by service level.

    Example: 80 km, 2 kg, standard → 40 + ceil(2) × 10 = 60.
    """
    flat_cost, _, _ = _tier(distance_km)
    cost = flat_cost + math.ceil(weight_kg) * PER_KG_SURCHARGE
    multiplier = SERVICE_MULTIPLIERS.get(ServiceType(service_type), 1.0)
    return round_half_up(cost * multiplier)


def apply_courier_pricing(base_cost: float, partner: CourierPartner) -> float:
    return base_cost * partner.price_multiplier


def cod_fee(cod_amount: float) -> float:
    """2% of the collected amount, at least 20."""
    return max(COD_MIN_FEE, cod_amount * COD_FEE_RATE)


def estimate_delivery_days(distance_km: float, service_type: str) -> int:
    _, express_days, standard_days = _tier(distance_km)
    if ServiceType(service_type) == ServiceType.EXPRESS:
        return express_days
    return standard_days


def estimate_package_weight(items: Iterable[PackageItem]) -> float:
    """Sum of item weights plus packaging, never below the packaging weight."""
    total = sum(
        item.quantity * (item.weight_kg or DEFAULT_ITEM_WEIGHT_KG)
        for item in items
    )
    return max(PACKAGING_WEIGHT_KG, total + PACKAGING_WEIGHT_KG)


def sort_rates(rates: List[ShippingRate]) -> List[ShippingRate]:
    """Cheapest first, then fastest, then courier id and service for a total order."""
    return sorted(
        rates,
        key=lambda rate: (rate.cost, rate.estimated_delivery_days, rate.courier_id, rate.service_type)
    )


class RateEngine:
    """
    Quotes shipping options across the courier catalog.

    Args:
        registry: Courier catalog to price against
        rng: Random source for the distance sampler
    """

    def __init__(self, registry: CourierRegistry = default_registry, rng: Optional[random.Random] = None):
        self.registry = registry
        self.rng = rng or random.Random()

    def quote(
        self,
        from_pincode: str,
        to_pincode: str,
        weight_kg: float,
        cod_amount: Optional[float] = None
    ) -> List[ShippingRate]:
        """
        Validate the request, sample a distance and price every option.

        Returns an empty list when no courier can carry the package.

        Raises:
            InvalidAddressError: Malformed pincode
            InvalidPackageError: Non-positive weight or negative COD amount
        """
        ensure_pincode(from_pincode, "from_pincode")
        ensure_pincode(to_pincode, "to_pincode")
        ensure_package(weight_kg, cod_amount)

        distance_km = sample_distance_km(from_pincode, to_pincode, self.rng)
        return self.quote_for_distance(distance_km, weight_kg, cod_amount)

    def quote_for_distance(
        self,
        distance_km: float,
        weight_kg: float,
        cod_amount: Optional[float] = None
    ) -> List[ShippingRate]:
        """Deterministic pricing for an already known distance."""
        cod_requested = bool(cod_amount)
        rates = []

        for partner in self.registry.list_partners():
            if weight_kg > partner.weight_limit_kg:
                continue

            for service in partner.services:
                cod_available = service == ServiceType.COD or (
                    cod_requested and cod_amount <= partner.cod_limit
                )

                cost = apply_courier_pricing(
                    compute_base_cost(distance_km, weight_kg, service), partner
                )
                if cod_requested and cod_available:
                    cost += cod_fee(cod_amount)

                rates.append(ShippingRate(
                    courier_id=partner.id,
                    courier_name=partner.name,
                    service_type=service.value,
                    estimated_delivery_days=estimate_delivery_days(distance_km, service),
                    cost=round_half_up(cost),
                    cod_available=cod_available,
                    tracking_available=True,
                ))

        return sort_rates(rates)
