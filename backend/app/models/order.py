"""
Order database model.

The orders table belongs to the storefront. The shipping service reads the
identity columns and writes only the shipment projection
(tracking_number, courier_partner, shipping_status, shipping_cost,
estimated_delivery, actual_delivery).
"""

from sqlalchemy import Column, String, Float, DateTime, Enum
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.shipping_enums import OrderShippingStatus


class Order(Base):
    """Storefront order, as seen by the shipping service."""
    __tablename__ = "orders"
    
    id = Column(String(36), primary_key=True, index=True)
    order_number = Column(String(50), unique=True, nullable=False)
    seller_id = Column(String(36), nullable=False, index=True)
    
    # Shipment projection
    tracking_number = Column(String(50), nullable=True, index=True)
    courier_partner = Column(String(50), nullable=True)
    shipping_status = Column(Enum(OrderShippingStatus), nullable=True)
    shipping_cost = Column(Float, nullable=False, default=0)
    estimated_delivery = Column(DateTime(timezone=True), nullable=True)
    actual_delivery = Column(DateTime(timezone=True), nullable=True)
    
    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    
    def __repr__(self):
        return f"<Order(id='{self.id}', number='{self.order_number}', seller_id='{self.seller_id}')>"
