"""
JWT verification for storefront-issued access tokens.

The storefront's auth service signs tokens carrying `sub`, `user_id` and
`role`. This service only verifies them; `issue_access_token` exists for
local tooling and tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from backend.app.core.config import settings

REQUIRED_CLAIMS = ("user_id", "role")


def issue_access_token(
    user_id: str,
    role: str,
    subject: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Sign a token the way the storefront auth service does.

    Example payload:
        {"sub": "seller_9876543210", "user_id": "seller-1", "role": "SELLER", "exp": 1234567890}
    """
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    claims = {"sub": subject or user_id, "user_id": user_id, "role": role, "exp": expire}
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def verify_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Verify signature, expiry and the claims this service relies on.

    Returns:
        The claims with `user_id` as a string (order seller ids are strings),
        or None when the token is unusable
    """
    try:
        claims = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None

    if any(not claims.get(name) for name in REQUIRED_CLAIMS):
        return None

    claims["user_id"] = str(claims["user_id"])
    return claims
