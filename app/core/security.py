from datetime import datetime, timedelta, timezone
from typing import Optional, Any, Tuple
import uuid

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.config import settings


# Password hashing context with multi-algorithm support
# - argon2 is the default for new hashes
# - bcrypt hashes are still accepted and flagged for rehash
pwd_context = CryptContext(
    schemes=["argon2", "bcrypt"],
    default="argon2",
    deprecated=["bcrypt"],
)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plain password against a hashed password.

    Uses passlib's CryptContext which detects the algorithm from the hash format.
    """
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        return False


def get_password_hash(password: str) -> str:
    """Hash a password using the default algorithm (argon2)."""
    return pwd_context.hash(password)


def verify_and_check_needs_rehash(plain_password: str, hashed_password: str) -> Tuple[bool, bool]:
    """
    Verify password and check if the hash needs to be upgraded.

    Returns:
        Tuple of (is_valid, needs_rehash)
    """
    try:
        is_valid = pwd_context.verify(plain_password, hashed_password)
        if is_valid:
            return (True, pwd_context.needs_update(hashed_password))
        return (False, False)
    except (ValueError, TypeError):
        return (False, False)


def _build_token(
    subject: str | uuid.UUID,
    token_type: str,
    expire: datetime,
    additional_claims: Optional[dict[str, Any]] = None
) -> str:
    now = datetime.now(timezone.utc)
    to_encode = {
        "sub": str(subject),
        "exp": expire,
        "iat": now,
        "jti": str(uuid.uuid4()),
        "type": token_type,
    }

    if additional_claims:
        to_encode.update(additional_claims)

    return jwt.encode(
        to_encode,
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM
    )


def create_access_token(
    subject: str | uuid.UUID,
    expires_delta: Optional[timedelta] = None,
    additional_claims: Optional[dict[str, Any]] = None
) -> str:
    """
    Create a JWT access token.

    Args:
        subject: The subject of the token (usually user ID)
        expires_delta: Optional custom expiration time
        additional_claims: Optional additional claims to include

    Returns:
        Encoded JWT token string
    """
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    return _build_token(subject, "access", expire, additional_claims)


def create_refresh_token(
    subject: str | uuid.UUID,
    expires_delta: Optional[timedelta] = None
) -> str:
    """Create a JWT refresh token."""
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)

    return _build_token(subject, "refresh", expire)


def decode_token(token: str) -> Optional[dict[str, Any]]:
    """
    Decode and validate a JWT token.

    Returns:
        Decoded token payload or None if invalid
    """
    try:
        return jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )
    except JWTError:
        return None


def _verify_token_type(token: str, token_type: str) -> Optional[str]:
    payload = decode_token(token)
    if payload is None:
        return None

    if payload.get("type") != token_type:
        return None

    return payload.get("sub")


def verify_access_token(token: str) -> Optional[str]:
    """Verify an access token and return the subject (user ID)."""
    return _verify_token_type(token, "access")


def verify_refresh_token(token: str) -> Optional[str]:
    """Verify a refresh token and return the subject (user ID)."""
    return _verify_token_type(token, "refresh")
