"""
Socket.IO authentication.
Validates the JWT presented on connect and resolves the user behind it.
"""
from typing import Optional, Tuple
from jose import JWTError, jwt
from sqlalchemy import select

from roomshare.core.config import settings
from roomshare.db.database import async_session
from roomshare.db.models import User
import logging

logger = logging.getLogger(__name__)


def extract_token(auth: dict = None, environ: dict = None) -> Optional[str]:
    """
    Token from:
    1. auth.token (preferred - sent in Socket.IO auth object)
    2. Authorization header (fallback)
    """
    token = None
    if auth and isinstance(auth, dict):
        token = auth.get("token")

    if not token and environ:
        header = environ.get("HTTP_AUTHORIZATION", "")
        if header.startswith("Bearer "):
            token = header[7:]
    return token


async def authenticate_socket(
    auth: dict = None,
    environ: dict = None,
    session_factory=None,
) -> Tuple[bool, Optional[dict]]:
    """
    Authenticate a Socket.IO connection using JWT.

    Returns:
        Tuple of (is_authenticated, user_data)
        user_data contains: user_id, name, email if authenticated
    """
    token = extract_token(auth, environ)
    if not token:
        logger.warning("Socket connection rejected: No token provided")
        return False, None

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM]
        )

        user_id = payload.get("sub")
        if not user_id:
            logger.warning("Socket connection rejected: No user_id in token")
            return False, None

        user_id = int(user_id)

        async with (session_factory or async_session)() as db:
            result = await db.execute(
                select(User).where(User.id == user_id)
            )
            user = result.scalar_one_or_none()

            if not user:
                logger.warning(f"Socket connection rejected: User {user_id} not found")
                return False, None

            user_data = {
                "user_id": user_id,
                "name": user.name,
                "email": user.email,
            }

            logger.info(f"Socket authenticated for user {user.name} (ID: {user_id})")
            return True, user_data

    except JWTError as e:
        logger.warning(f"Socket connection rejected: Invalid JWT - {e}")
        return False, None
    except ValueError as e:
        logger.warning(f"Socket connection rejected: Malformed subject - {e}")
        return False, None
