"""
Хеширование паролей и выпуск JWT токенов.
"""
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError
from jose import jwt as jose_jwt
from passlib.context import CryptContext

from ..config import settings
from ..exceptions import AuthenticationError

logger = logging.getLogger(__name__)

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"

# pbkdf2_sha256 не требует нативного backend (bcrypt)
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


# ============================================================================
# PASSWORDS
# ============================================================================


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Проверка пароля; битый хеш считается несовпадением"""
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError) as e:
        logger.error(f"Password verification error: {e}")
        return False


# ============================================================================
# JWT
# ============================================================================


def _create_token(user_id: uuid.UUID, token_type: str, expires_delta: timedelta) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "type": token_type,
        "iat": int(now.timestamp()),
        "exp": int((now + expires_delta).timestamp()),
        # jti делает токены, выпущенные в одну секунду, различимыми
        "jti": uuid.uuid4().hex,
    }
    return jose_jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def create_access_token(user_id: uuid.UUID) -> str:
    return _create_token(user_id, ACCESS_TOKEN, timedelta(minutes=settings.JWT_ACCESS_EXPIRE_MINUTES))


def create_refresh_token(user_id: uuid.UUID) -> str:
    return _create_token(user_id, REFRESH_TOKEN, timedelta(days=settings.JWT_REFRESH_EXPIRE_DAYS))


def decode_token(token: str, expected_type: str = ACCESS_TOKEN) -> Dict[str, Any]:
    """
    Проверяет подпись, срок и тип токена.

    Raises:
        AuthenticationError: токен невалиден, истек или другого типа
    """
    try:
        payload = jose_jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        raise AuthenticationError("Invalid or expired token") from e

    if payload.get("type") != expected_type:
        raise AuthenticationError("Invalid token type")
    return payload


def token_user_id(payload: Dict[str, Any]) -> uuid.UUID:
    try:
        return uuid.UUID(payload["sub"])
    except (KeyError, ValueError, TypeError) as e:
        raise AuthenticationError("Invalid token subject") from e
