"""
Security utilities: token encryption at rest, session JWTs, OAuth state.
"""
import base64
import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from cryptography.fernet import Fernet, InvalidToken
from jose import JWTError, jwt

from retentionos.core.config import settings
from retentionos.core.logging import get_logger

logger = get_logger(__name__)

OAUTH_STATE_PURPOSE = "shopify_oauth"


def derive_fernet_key(secret: str) -> bytes:
    """Derive a Fernet-compatible key from the encryption key."""
    key = hashlib.sha256(secret.encode()).digest()
    return base64.urlsafe_b64encode(key)


# Token encryption
_fernet = Fernet(derive_fernet_key(settings.encryption_key))


def encrypt_token(token: str) -> str:
    """Encrypt a platform access token for storage."""
    return _fernet.encrypt(token.encode()).decode()


def decrypt_token(encrypted_token: str) -> str:
    """Decrypt a stored platform access token."""
    try:
        return _fernet.decrypt(encrypted_token.encode()).decode()
    except InvalidToken as e:
        logger.error("Failed to decrypt token", error=str(e) or "invalid token")
        raise ValueError("Invalid encrypted token") from e


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """Create a session JWT (the hosted auth provider signs with the same key)."""
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(hours=settings.jwt_expiration_hours))
    to_encode.update({"exp": expire, "iat": now})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Decode and validate a session JWT."""
    try:
        return jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as e:
        logger.warning("Invalid JWT token", error=str(e))
        return None


def generate_oauth_state() -> str:
    """Random, URL-safe OAuth state parameter."""
    return secrets.token_urlsafe(24)


def sign_cookie_value(value: str, max_age: Optional[int] = None) -> str:
    """Wrap a cookie value in a short-lived signed token."""
    expire = datetime.now(timezone.utc) + timedelta(
        seconds=max_age or settings.oauth_state_max_age
    )
    return jwt.encode(
        {"val": value, "purpose": OAUTH_STATE_PURPOSE, "exp": expire},
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )


def read_signed_cookie(signed: Optional[str]) -> Optional[str]:
    """Return the wrapped value, or None when missing, tampered or expired."""
    if not signed:
        return None
    try:
        payload = jwt.decode(
            signed,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None
    if payload.get("purpose") != OAUTH_STATE_PURPOSE:
        return None
    return payload.get("val")
