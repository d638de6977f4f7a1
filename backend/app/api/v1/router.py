"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import shipping

router = APIRouter()

# Shipping: rates, labels, tracking
router.include_router(shipping.router)
