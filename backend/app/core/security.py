import logging
from typing import Optional

from jose import jwt, JWTError, ExpiredSignatureError

from app.core.config import settings

logger = logging.getLogger(__name__)


def decode_access_token(token: str) -> Optional[dict]:
    """
    Decode and validate a JWT access token.

    Returns the token payload, or None if the token is invalid or expired.
    """
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM]
        )
    except ExpiredSignatureError:
        logger.info("Rejected expired access token")
        return None
    except JWTError as e:
        logger.info(f"Rejected invalid access token: {e}")
        return None


def get_subject(payload: dict) -> Optional[str]:
    """Extract the user id from a token payload ("sub", or legacy "userId")."""
    return payload.get("sub") or payload.get("userId")
