"""
Shipping Status Event Model.

Append-only history of explicit label status changes. Tracking timelines
prefer these over synthesized timestamps when present.
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.shipping_enums import LabelStatus


class ShippingStatusEvent(Base):
    """One recorded status change of a shipping label."""
    __tablename__ = "shipping_status_events"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    label_id = Column(String(36), ForeignKey('shipping_labels.id'), nullable=False, index=True)
    
    status = Column(Enum(LabelStatus), nullable=False)
    location = Column(String(200), nullable=True)
    
    # When the change happened (may be reported by the courier), distinct from row insert time
    occurred_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    def __repr__(self):
        return f"<ShippingStatusEvent(label_id='{self.label_id}', status='{self.status.value}')>"
