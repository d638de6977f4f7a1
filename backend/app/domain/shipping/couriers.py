"""
Courier Registry.

Static catalog of the courier partners the storefront ships with. The
catalog is plain data so it can later be sourced from configuration
without touching the rate engine.
"""

from dataclasses import dataclass
from typing import Tuple

from backend.app.core.exceptions import ResourceNotFoundError
from backend.app.models.shipping_enums import ServiceType


@dataclass(frozen=True)
class CourierPartner:
    """A courier partner and the limits it accepts."""
    id: str
    name: str
    logo: str
    services: Tuple[ServiceType, ...]
    cod_limit: float
    weight_limit_kg: float
    # Differentiated pricing, applied on top of the service-level base cost
    price_multiplier: float = 1.0

    def __post_init__(self):
        if not self.services:
            raise ValueError(f"Courier '{self.id}' must offer at least one service")
        if self.weight_limit_kg <= 0:
            raise ValueError(f"Courier '{self.id}' weight limit must be positive")
        if self.cod_limit < 0:
            raise ValueError(f"Courier '{self.id}' COD limit cannot be negative")


COURIER_PARTNERS: Tuple[CourierPartner, ...] = (
    CourierPartner(
        id="bluedart",
        name="BlueDart Express",
        logo="/couriers/bluedart.png",
        services=(ServiceType.EXPRESS, ServiceType.SURFACE),
        cod_limit=50000,
        weight_limit_kg=10,
        price_multiplier=1.2,  # Premium pricing
    ),
    CourierPartner(
        id="delhivery",
        name="Delhivery",
        logo="/couriers/delhivery.png",
        services=(ServiceType.EXPRESS, ServiceType.SURFACE, ServiceType.COD),
        cod_limit=25000,
        weight_limit_kg=20,
        price_multiplier=1.1,
    ),
    CourierPartner(
        id="ekart",
        name="Ekart Logistics",
        logo="/couriers/ekart.png",
        services=(ServiceType.STANDARD, ServiceType.EXPRESS, ServiceType.COD),
        cod_limit=15000,
        weight_limit_kg=15,
        price_multiplier=0.9,  # Competitive pricing
    ),
    CourierPartner(
        id="dtdc",
        name="DTDC Express",
        logo="/couriers/dtdc.png",
        services=(ServiceType.EXPRESS, ServiceType.ECONOMY),
        cod_limit=30000,
        weight_limit_kg=12,
        price_multiplier=1.0,
    ),
)


class CourierRegistry:
    """Lookup over a fixed courier catalog."""

    def __init__(self, partners: Tuple[CourierPartner, ...] = COURIER_PARTNERS):
        self._partners = {partner.id: partner for partner in partners}

    def list_partners(self) -> list[CourierPartner]:
        return list(self._partners.values())

    def get_partner(self, courier_id: str) -> CourierPartner:
        """
        Raises:
            ResourceNotFoundError: If the courier id is not in the catalog
        """
        partner = self._partners.get(courier_id)
        if partner is None:
            raise ResourceNotFoundError("Courier", courier_id)
        return partner


default_registry = CourierRegistry()
