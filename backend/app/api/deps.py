from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.database import get_database
from app.core.security import decode_access_token, get_subject
from app.models.user import UserRole
from app.services.payment_service import PaymentService
from app.utils.helpers import id_filter

# Security scheme
security = HTTPBearer()


async def get_db() -> AsyncIOMotorDatabase:
    """Dependency to get database instance."""
    return get_database()


def get_payment_service(request: Request) -> PaymentService:
    """Dependency to get the payment service built at startup."""
    payment_service = getattr(request.app.state, "payment_service", None)
    if payment_service is None:
        payment_service = PaymentService.from_config()
        request.app.state.payment_service = payment_service
    return payment_service


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncIOMotorDatabase = Depends(get_db)
) -> dict:
    """
    Dependency to get the current authenticated user.

    Validates the JWT token and returns the user document from the database.

    Raises:
        HTTPException: If token is invalid, user not found or deactivated
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    # Decode JWT token
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise credentials_exception

    user_id = get_subject(payload)
    if user_id is None:
        raise credentials_exception

    user = await db.users.find_one(id_filter(user_id))
    if user is None:
        raise credentials_exception

    if not user.get("is_active", True):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is deactivated"
        )

    return user


async def get_current_buyer(
    current_user: dict = Depends(get_current_user)
) -> dict:
    """
    Dependency to ensure the current user is a buyer (admins pass too).

    Raises:
        HTTPException: If user is neither a buyer nor an admin
    """
    if current_user.get("role") not in (UserRole.BUYER.value, UserRole.ADMIN.value):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Buyer access required"
        )

    return current_user


async def get_current_admin(
    current_user: dict = Depends(get_current_user)
) -> dict:
    """
    Dependency to ensure the current user is an admin.

    Raises:
        HTTPException: If user is not an admin
    """
    if current_user.get("role") != UserRole.ADMIN.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )

    return current_user
