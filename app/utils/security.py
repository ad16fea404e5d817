"""
Security utilities and authentication
"""

import logging
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.config import settings
from app.services.firebase_client import verify_id_token

logger = logging.getLogger(__name__)

# Simple in-memory rate limiter
rate_limiter = defaultdict(list)

security = HTTPBearer()


@dataclass
class AuthenticatedUser:
    """Identity supplied by the identity provider"""
    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None


def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)) -> AuthenticatedUser:
    """Resolve the bearer token to a user identity.

    With Firebase enabled the token is a Firebase ID token. In dev mode the
    token itself is the user id.
    """
    token = credentials.credentials
    if settings.USE_FIREBASE:
        try:
            claims = verify_id_token(token)
        except Exception as e:
            logger.warning(f"Rejected ID token: {e}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid authentication token"
            )
        return AuthenticatedUser(
            uid=claims["uid"],
            email=claims.get("email"),
            display_name=claims.get("name")
        )

    if settings.DEV_AUTH and token:
        return AuthenticatedUser(uid=token)

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Authentication is not configured"
    )


def rate_limit_check(client_ip: str, limit: int = None) -> bool:
    """Simple rate limiting by IP address"""
    if limit is None:
        limit = settings.RATE_LIMIT_PER_MINUTE

    current_time = time.time()
    minute_ago = current_time - 60

    # Clean old requests
    rate_limiter[client_ip] = [
        req_time for req_time in rate_limiter[client_ip]
        if req_time > minute_ago
    ]

    # Check limit
    if len(rate_limiter[client_ip]) >= limit:
        return False

    # Add current request
    rate_limiter[client_ip].append(current_time)
    return True


def get_client_ip(request) -> str:
    """Extract client IP from request"""
    # Check for forwarded IP first (for reverse proxy setups)
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    # Check for real IP header
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    # Fall back to direct client IP
    return request.client.host if request.client else "unknown"
