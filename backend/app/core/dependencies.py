"""
FastAPI dependencies for authentication and service wiring.

This module provides dependencies for protecting routes with JWT authentication
and for building a request-scoped ShippingService.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from backend.app.core.jwt import verify_access_token
from backend.app.core.redis_client import get_redis
from backend.app.db.session import get_db
from backend.app.services.quote_cache import QuoteCache
from backend.app.services.shipping_service import ShippingService

# HTTP Bearer security scheme
security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> dict:
    """
    FastAPI dependency for JWT authentication.
    
    Identity lives in the storefront's auth service; this only verifies
    the token (signature, expiry, user_id and role claims).
    
    Args:
        credentials: HTTP Bearer token from request header
        
    Returns:
        Decoded token payload containing user information
        
    Raises:
        HTTPException: 401 if authentication fails for any reason
    """
    token = credentials.credentials
    
    claims = verify_access_token(token)
    if claims is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return claims


async def get_shipping_service(
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
) -> ShippingService:
    """Build the shipping facade for one request."""
    return ShippingService(db=db, quote_cache=QuoteCache(redis))
