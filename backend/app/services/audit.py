"""
Audit trail for shipping actions.

Records who issued a label or changed a shipment's status. Written by the
API layer after the shipping change itself has been committed.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from backend.app.models.audit_log import AuditLog


class AuditAction:
    """Audit action names."""
    LABEL_CREATED = "LABEL_CREATED"
    SHIPPING_STATUS_UPDATED = "SHIPPING_STATUS_UPDATED"


async def log_event(
    db: AsyncSession,
    action: str,
    current_user: Optional[dict] = None,
    target_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Append one audit record and commit it.

    Args:
        db: Database session
        action: One of the AuditAction names
        current_user: Verified token claims of the actor, None for system actions
        target_id: Tracking number the action applies to
        metadata: Action details (order, courier, status...)
    """
    current_user = current_user or {}
    audit_log = AuditLog(
        actor_id=current_user.get("user_id"),
        actor_username=current_user.get("sub"),
        action=action,
        target_id=target_id,
        meta_data=metadata,
    )

    db.add(audit_log)
    await db.commit()
    await db.refresh(audit_log)
    return audit_log


async def get_audit_trail(
    db: AsyncSession,
    target_id: Optional[str] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """Audit records, most recent first."""
    query = select(AuditLog).order_by(desc(AuditLog.timestamp), desc(AuditLog.id))
    if target_id:
        query = query.where(AuditLog.target_id == target_id)
    if action:
        query = query.where(AuditLog.action == action)

    result = await db.execute(query.limit(limit))
    return result.scalars().all()
