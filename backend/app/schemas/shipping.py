"""
Shipping Pydantic schemas.

Defines request and response models for rates, labels and tracking.
Pincode and weight are deliberately not constrained here: the rate engine
and label issuer reject them with typed shipping errors.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List
from backend.app.models.shipping_enums import LabelStatus


class ShippingAddress(BaseModel):
    """Postal address snapshot used on labels."""
    name: str = Field(..., min_length=1, max_length=100)
    phone: str = Field(..., pattern=r"^\+?[0-9][0-9 \-]{8,14}[0-9]$", description="Contact phone number")
    address_line_1: str = Field(..., min_length=1, max_length=200)
    address_line_2: Optional[str] = Field(None, max_length=200)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    pincode: str = Field(..., description="6-digit Indian pincode")


class CourierPartnerResponse(BaseModel):
    """Schema for a courier catalog entry."""
    id: str
    name: str
    logo: str
    services: List[str]
    cod_limit: float
    weight_limit_kg: float

    class Config:
        from_attributes = True


class PackageItem(BaseModel):
    """One line of an order, used to estimate package weight."""
    quantity: int = Field(..., ge=1)
    weight_kg: Optional[float] = Field(None, gt=0, description="Per-item weight, 0.5 kg assumed when missing")


class RateRequest(BaseModel):
    """Schema for requesting shipping rates."""
    from_pincode: str
    to_pincode: str
    weight_kg: Optional[float] = Field(None, description="Package weight; estimated from items when omitted")
    items: Optional[List[PackageItem]] = None
    cod_amount: Optional[float] = Field(None, description="Cash to collect on delivery")


class ShippingRate(BaseModel):
    """A priced courier/service option. Computed, never persisted."""
    courier_id: str
    courier_name: str
    service_type: str
    estimated_delivery_days: int = Field(..., gt=0)
    cost: float = Field(..., gt=0)
    cod_available: bool
    tracking_available: bool = True


class RateListResponse(BaseModel):
    """Schema for a rate quote. An empty list means no courier can carry the package."""
    rates: List[ShippingRate]
    total: int
    available: bool


class LabelCreate(BaseModel):
    """Schema for issuing a shipping label."""
    order_id: str = Field(..., min_length=1, max_length=36)
    rate: ShippingRate
    from_address: ShippingAddress
    to_address: ShippingAddress
    weight_kg: float
    cod_amount: Optional[float] = None


class ShippingLabelResponse(BaseModel):
    """Schema for shipping label response."""
    id: str
    order_id: str
    tracking_number: str
    courier_id: str
    courier_name: str
    service_type: str
    from_address: ShippingAddress
    to_address: ShippingAddress
    package_weight_kg: float
    shipping_cost: float
    cod_amount: Optional[float]
    estimated_delivery_days: int
    label_url: str
    status: LabelStatus
    created_at: datetime

    class Config:
        from_attributes = True


class ShippingLabelListResponse(BaseModel):
    """Schema for paginated label list."""
    labels: List[ShippingLabelResponse]
    total: int
    page: int
    page_size: int


class AuditLogResponse(BaseModel):
    """One audited shipping action."""
    id: int
    actor_id: Optional[str]
    actor_username: Optional[str]
    action: str
    target_id: Optional[str]
    meta_data: Optional[dict]
    timestamp: datetime

    class Config:
        from_attributes = True


class AuditTrailResponse(BaseModel):
    logs: List[AuditLogResponse]
    total: int


class StatusUpdate(BaseModel):
    """Schema for an explicit status change."""
    status: LabelStatus
    location: Optional[str] = Field(None, max_length=200)


class TrackingEvent(BaseModel):
    """A point-in-time tracking update shown to buyers and sellers."""
    timestamp: datetime
    status: str
    location: str
    description: str


class TrackingInfo(BaseModel):
    """Schema for tracking lookup."""
    tracking_number: str
    current_status: LabelStatus
    estimated_delivery: datetime
    events: List[TrackingEvent]
