"""
Access guards for shipping endpoints.

Two checks, applied in this order:
1. Role: only sellers and platform admins call the seller-facing API.
2. Ownership: a seller acts only on labels of its own orders. Admins act
   on every order.
"""

from typing import List, Optional
from fastapi import Depends, HTTPException, status
from backend.app.models.enums import UserRole
from backend.app.core.dependencies import get_current_user


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.post("/labels")
        async def create_label(current_user: dict = Depends(require_role([UserRole.SELLER]))):
            ...

    Raises:
        HTTPException 403 if the token's role is unknown or not allowed
    """
    async def role_checker(current_user: dict = Depends(get_current_user)) -> dict:
        try:
            role = UserRole(current_user.get("role"))
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Invalid role in token"
            )

        if role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join(r.value for r in allowed_roles)}"
            )
        return current_user

    return role_checker


def is_admin(current_user: dict) -> bool:
    return current_user.get("role") == UserRole.ADMIN.value


def verify_ownership(seller_id: str, current_user: dict) -> bool:
    """True when the caller is the order's seller or an admin."""
    return is_admin(current_user) or current_user.get("user_id") == seller_id


class OwnershipGuard:
    """
    Seller/admin ownership checks.

    Usage:
        order = await service.get_order(order_id)
        ownership_guard.enforce(order.seller_id, current_user, "order")
    """

    def enforce(self, seller_id: str, current_user: dict, resource_name: str = "resource") -> None:
        """
        Raises:
            HTTPException 403 if the caller neither owns the resource nor is an admin
        """
        if not verify_ownership(seller_id, current_user):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. You do not have permission to access this {resource_name}."
            )

    def filter_by_ownership(self, current_user: dict, requested_seller_id: Optional[str] = None) -> Optional[str]:
        """
        Seller id to scope a label listing to.

        Sellers are always scoped to themselves, whatever they request.
        Admins get the requested seller, or None for every seller.
        """
        if is_admin(current_user):
            return requested_seller_id
        return current_user.get("user_id")
