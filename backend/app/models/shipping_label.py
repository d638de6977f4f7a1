"""
Shipping Label database model.

One label per order. Labels are never deleted; they are the audit trail of
a committed shipment.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, Enum, JSON
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.shipping_enums import LabelStatus


class ShippingLabel(Base):
    """
    Shipping label issued when a seller commits to a courier rate.
    
    Addresses are stored by value so later edits to the seller's or buyer's
    address book never alter an issued label.
    """
    __tablename__ = "shipping_labels"
    
    id = Column(String(36), primary_key=True, index=True)
    
    # Unique: one label per order
    order_id = Column(String(36), ForeignKey('orders.id'), unique=True, nullable=False, index=True)
    tracking_number = Column(String(50), unique=True, nullable=False, index=True)
    
    # Courier
    courier_id = Column(String(50), nullable=False)
    courier_name = Column(String(100), nullable=False)
    service_type = Column(String(20), nullable=False)
    
    # Address snapshots
    from_address = Column(JSON, nullable=False)
    to_address = Column(JSON, nullable=False)
    
    # Package and pricing at issuance time
    package_weight_kg = Column(Float, nullable=False)
    shipping_cost = Column(Float, nullable=False)
    cod_amount = Column(Float, nullable=True)
    estimated_delivery_days = Column(Integer, nullable=False)
    
    label_url = Column(String(255), nullable=False)
    status = Column(Enum(LabelStatus), default=LabelStatus.CREATED, nullable=False, index=True)
    
    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    
    def __repr__(self):
        return f"<ShippingLabel(tracking='{self.tracking_number}', order_id='{self.order_id}', status='{self.status.value}')>"
