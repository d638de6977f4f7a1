"""
User roles enumeration.

Defines the role types carried in access tokens issued to storefront users.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.
    
    Roles:
        ADMIN: Platform operator, can see and act on every shipment
        SELLER: Owns a storefront, ships its own orders
    """
    ADMIN = "ADMIN"
    SELLER = "SELLER"
