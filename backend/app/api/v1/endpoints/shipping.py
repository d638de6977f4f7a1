"""
Shipping API Endpoints.

Rate quotes, label issuance, tracking and status updates for storefront
sellers. Tracking lookup and the courier catalog are public.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.dependencies import get_shipping_service
from backend.app.core.guards import require_role, OwnershipGuard
from backend.app.db.session import get_db
from backend.app.domain.shipping.rates import estimate_package_weight
from backend.app.models.enums import UserRole
from backend.app.schemas.shipping import (
    AuditTrailResponse,
    CourierPartnerResponse,
    LabelCreate,
    RateListResponse,
    RateRequest,
    ShippingLabelListResponse,
    ShippingLabelResponse,
    StatusUpdate,
    TrackingInfo,
)
from backend.app.services.audit import log_event, get_audit_trail, AuditAction
from backend.app.services.shipping_service import ShippingService

router = APIRouter(prefix="/shipping", tags=["Shipping"])
ownership_guard = OwnershipGuard()

SELLER_OR_ADMIN = [UserRole.SELLER, UserRole.ADMIN]


@router.get("/couriers", response_model=List[CourierPartnerResponse])
async def list_couriers(
    service: ShippingService = Depends(get_shipping_service)
):
    """List courier partners and their limits."""
    return [
        CourierPartnerResponse(
            id=partner.id,
            name=partner.name,
            logo=partner.logo,
            services=[s.value for s in partner.services],
            cod_limit=partner.cod_limit,
            weight_limit_kg=partner.weight_limit_kg,
        )
        for partner in service.list_couriers()
    ]


@router.post("/rates", response_model=RateListResponse)
async def get_rates(
    rate_request: RateRequest,
    current_user: dict = Depends(require_role(SELLER_OR_ADMIN)),
    service: ShippingService = Depends(get_shipping_service)
):
    """
    Quote shipping options, cheapest first.

    The weight is estimated from `items` when `weight_kg` is omitted.
    `available` is false when no courier can carry the package; that is
    a normal answer, not an error.
    """
    weight_kg = rate_request.weight_kg
    if weight_kg is None and rate_request.items:
        weight_kg = estimate_package_weight(rate_request.items)

    rates = await service.get_rates(
        rate_request.from_pincode,
        rate_request.to_pincode,
        weight_kg,
        rate_request.cod_amount
    )

    return RateListResponse(rates=rates, total=len(rates), available=bool(rates))


@router.post("/labels", response_model=ShippingLabelResponse, status_code=status.HTTP_201_CREATED)
async def create_label(
    label_data: LabelCreate,
    current_user: dict = Depends(require_role(SELLER_OR_ADMIN)),
    service: ShippingService = Depends(get_shipping_service),
    db: AsyncSession = Depends(get_db)
):
    """
    Issue the shipping label for an order.

    Validates:
    - Order exists and belongs to the current seller
    - Courier and service in the chosen rate exist
    - Order has no label yet (409 otherwise)
    """
    order = await service.get_order(label_data.order_id)
    ownership_guard.enforce(order.seller_id, current_user, "order")

    label = await service.create_label(
        order_id=label_data.order_id,
        rate=label_data.rate,
        from_address=label_data.from_address,
        to_address=label_data.to_address,
        weight_kg=label_data.weight_kg,
        cod_amount=label_data.cod_amount
    )

    # Audit log
    await log_event(
        db=db,
        action=AuditAction.LABEL_CREATED,
        current_user=current_user,
        target_id=label.tracking_number,
        metadata={
            "order_id": label.order_id,
            "courier_id": label.courier_id,
            "service_type": label.service_type,
            "shipping_cost": label.shipping_cost
        }
    )

    return label


@router.get("/labels", response_model=ShippingLabelListResponse)
async def list_labels(
    seller_id: Optional[str] = Query(None, description="Seller to list (admin only)"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    current_user: dict = Depends(require_role(SELLER_OR_ADMIN)),
    service: ShippingService = Depends(get_shipping_service)
):
    """
    List shipping labels, newest first.

    Sellers always see their own labels; admins may filter by seller.
    """
    seller_filter = ownership_guard.filter_by_ownership(current_user, seller_id)

    offset = (page - 1) * page_size
    labels, total = await service.list_labels_for_seller(seller_filter, offset=offset, limit=page_size)

    return ShippingLabelListResponse(
        labels=labels,
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/labels/{tracking_number}", response_model=ShippingLabelResponse)
async def get_label(
    tracking_number: str = Path(..., description="Tracking number"),
    current_user: dict = Depends(require_role(SELLER_OR_ADMIN)),
    service: ShippingService = Depends(get_shipping_service)
):
    """Get one shipping label (owner or admin)."""
    owner_id = await service.get_label_owner(tracking_number)
    ownership_guard.enforce(owner_id, current_user, "shipping label")

    return await service.get_label(tracking_number)


@router.get("/track/{tracking_number}", response_model=TrackingInfo)
async def track_shipment(
    tracking_number: str = Path(..., description="Tracking number"),
    service: ShippingService = Depends(get_shipping_service)
):
    """Public tracking lookup."""
    return await service.track(tracking_number)


@router.patch("/labels/{tracking_number}/status", status_code=status.HTTP_204_NO_CONTENT)
async def update_label_status(
    status_data: StatusUpdate,
    tracking_number: str = Path(..., description="Tracking number"),
    current_user: dict = Depends(require_role(SELLER_OR_ADMIN)),
    service: ShippingService = Depends(get_shipping_service),
    db: AsyncSession = Depends(get_db)
):
    """
    Record a shipment status change (owner or admin).

    Delivered and returned are final. Re-sending the current status is a no-op.
    """
    owner_id = await service.get_label_owner(tracking_number)
    ownership_guard.enforce(owner_id, current_user, "shipping label")

    await service.update_status(tracking_number, status_data.status, status_data.location)

    # Audit log
    await log_event(
        db=db,
        action=AuditAction.SHIPPING_STATUS_UPDATED,
        current_user=current_user,
        target_id=tracking_number,
        metadata={
            "status": status_data.status.value,
            "location": status_data.location
        }
    )

    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/audit-logs", response_model=AuditTrailResponse)
async def get_audit_logs(
    tracking_number: Optional[str] = Query(None, description="Filter by tracking number"),
    action: Optional[str] = Query(None, description="Filter by action type"),
    limit: int = Query(100, ge=1, le=500, description="Maximum records to return"),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    """Label issuance and status change history, most recent first (admin-only)."""
    logs = await get_audit_trail(db, target_id=tracking_number, action=action, limit=limit)
    return AuditTrailResponse(logs=logs, total=len(logs))
