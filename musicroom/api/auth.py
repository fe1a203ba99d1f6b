"""
Authentication Dependencies

Simple bearer token authentication for MVP demo.
Students present their UUID as the bearer token; admin endpoints require the
configured admin token. Placeholder for future JWT/OAuth integration.
"""
import logging
import uuid
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from musicroom import config

logger = logging.getLogger(__name__)

# Security scheme
security = HTTPBearer(auto_error=False)


def _unauthorized(code: str, message: str, details: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={
            "error": {
                "code": code,
                "message": message,
                "details": details
            }
        },
        headers={"WWW-Authenticate": "Bearer"}
    )


async def get_current_student_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> uuid.UUID:
    """
    Resolve the calling student from the bearer token.

    Returns:
        Student UUID

    Raises:
        HTTPException 401: Missing or malformed token
    """
    if credentials is None:
        raise _unauthorized("AUTH_001", "Authorization header missing", "Please provide a valid bearer token")

    # MVP: the token is the student id
    # In production: Decode and validate JWT
    try:
        return uuid.UUID(credentials.credentials)
    except ValueError:
        logger.warning(f"Invalid token attempt: {credentials.credentials[:10]}...")
        raise _unauthorized("AUTH_002", "Invalid or expired token", "The provided token is not valid")


async def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> None:
    """Allow the request only with the configured admin token"""
    if credentials is None:
        raise _unauthorized("AUTH_001", "Authorization header missing", "Please provide a valid bearer token")

    if credentials.credentials != config.ADMIN_API_TOKEN:
        logger.warning("Admin endpoint called without admin token")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": {
                    "code": "AUTH_004",
                    "message": "Admin access required",
                    "details": None
                }
            },
        )
