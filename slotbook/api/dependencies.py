# ============================================================================
# FILE: slotbook/api/dependencies.py
# Authentication dependencies for business API tokens and operator JWTs
# ============================================================================
from fastapi import Depends, HTTPException, Path, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional
from jose import JWTError, jwt
from uuid import UUID
import logging

from slotbook.config.database import get_db
from slotbook.config.settings import settings
from slotbook.core.exceptions import Unauthorized, storage_errors
from slotbook.repositories.booking_repositories import BusinessRepository
from slotbook.services.booking.booking_service import verify_api_token

logger = logging.getLogger(__name__)

# ============================================================================
# Security Schemes
# ============================================================================

# Business API token used by the public booking page and the bot.
# auto_error is off so a missing header goes through the same 401 path as a wrong one.
business_token_security = HTTPBearer(
    scheme_name="Business API Token",
    description="Enter the business booking token in the format: bk_xxxxx",
    auto_error=False
)

# JWT security for operator dashboard sessions
jwt_security = HTTPBearer(
    scheme_name="JWT Bearer Token",
    description="Enter your JWT access token",
    auto_error=False
)


# ============================================================================
# JWT Token Functions
# ============================================================================

def verify_access_token(token: str) -> dict:
    """
    Verify and decode a JWT access token.

    Raises:
        HTTPException: If token is invalid or expired
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM]
        )

        # Verify token type
        token_type = payload.get("type")
        if token_type != "access":
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token type",
                headers={"WWW-Authenticate": "Bearer"},
            )

        return payload

    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Could not validate credentials: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )


# ============================================================================
# Operator Dependencies
# ============================================================================

def get_current_operator_business_id(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(jwt_security)
) -> UUID:
    """
    Business the operator session is scoped to.

    Usage in routes:
        @router.post("/appointments")
        def create(business_id: UUID = Depends(get_current_operator_business_id)):
            ...

    Raises:
        HTTPException 401: If token is missing, invalid or has no business
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = verify_access_token(credentials.credentials)

    business_id_str: Optional[str] = payload.get("business_id")
    if business_id_str is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Operator session is not associated with a business",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return UUID(business_id_str)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid business ID in token",
            headers={"WWW-Authenticate": "Bearer"},
        )


# ============================================================================
# Business API Token Dependencies
# ============================================================================

def get_business_token(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(business_token_security)
) -> Optional[str]:
    """Raw bearer token; the booking transaction verifies it itself."""
    return credentials.credentials if credentials else None


def require_business_token(
        business_id: UUID = Path(..., description="The business ID"),
        token: Optional[str] = Depends(get_business_token),
        db: Session = Depends(get_db)
) -> UUID:
    """
    Dependency for the read-only public endpoints.
    Returns the business id once the bearer token matches its api_token.
    """
    with storage_errors():
        booking_settings = BusinessRepository(db).get_booking_settings(business_id)

    try:
        verify_api_token(booking_settings, token)
    except Unauthorized:
        logger.warning(f"Rejected public request for business {business_id}: invalid API token")
        raise

    return business_id
