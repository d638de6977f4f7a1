"""
Shipping Enumerations.
"""

import enum


class ServiceType(str, enum.Enum):
    """Courier service levels."""
    EXPRESS = "express"
    SURFACE = "surface"
    ECONOMY = "economy"
    STANDARD = "standard"
    COD = "cod"  # COD-only service, always collects cash


class LabelStatus(str, enum.Enum):
    """
    Shipping label status enumeration.
    
    Status flow:
        CREATED → PICKED_UP → IN_TRANSIT → DELIVERED
        Any non-terminal status can transition to RETURNED
        DELIVERED and RETURNED are terminal
    """
    CREATED = "created"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    RETURNED = "returned"


class OrderShippingStatus(str, enum.Enum):
    """Shipment status projected onto the order row."""
    LABEL_CREATED = "label_created"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    RETURNED = "returned"
