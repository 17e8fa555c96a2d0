"""
Security utilities: password hashing, JWT access/refresh tokens and
refresh-token hashing.
"""
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, Tuple
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi.security import HTTPBearer
import bcrypt
import hashlib
import secrets

import config

# Fallback hasher for hashes bcrypt cannot read directly
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__ident="2b",
    bcrypt__rounds=12
)

# Security schemes
security = HTTPBearer()
security_optional = HTTPBearer(auto_error=False)

MIN_PASSWORD_LENGTH = 8
SPECIAL_CHARS = "!@#$%^&*()_+-=[]{}|;:,.<>?"


# Password utilities
def validate_password(password: str) -> Tuple[bool, Optional[str]]:
    """
    Validate password strength.

    Requirements:
    - Minimum 8 characters
    - At least 1 number
    - At least 1 special character
    - Maximum 72 bytes (bcrypt limit)

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not password:
        return False, "Password is required"
    if len(password) < MIN_PASSWORD_LENGTH:
        return False, f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
    if len(password.encode('utf-8')) > 72:
        return False, "Password cannot be longer than 72 bytes"
    if not any(char.isdigit() for char in password):
        return False, "Password must contain at least one number"
    if not any(char in SPECIAL_CHARS for char in password):
        return False, f"Password must contain at least one special character ({SPECIAL_CHARS})"
    return True, None


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash."""
    try:
        return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))
    except ValueError:
        # Not a raw bcrypt hash; let passlib identify it
        return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """
    Hash a password using bcrypt.

    Call validate_password() first; this only enforces the 72-byte limit.
    """
    password_bytes = password.encode('utf-8')
    if len(password_bytes) > 72:
        raise ValueError("Password cannot be longer than 72 bytes")
    return bcrypt.hashpw(password_bytes, bcrypt.gensalt(rounds=12)).decode('utf-8')


# JWT Token utilities
def _encode(data: Dict[str, Any], token_type: str, expire: datetime) -> str:
    to_encode = data.copy()
    to_encode.update({
        "exp": expire,
        "iat": datetime.utcnow(),
        "type": token_type,
        # Unique id so two tokens minted in the same second still differ
        "jti": secrets.token_hex(8),
    })
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: Claims to encode (sub, role)
        expires_delta: Optional expiration override

    Returns:
        Encoded JWT token
    """
    delta = expires_delta or timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)
    return _encode(data, "access", datetime.utcnow() + delta)


def create_refresh_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT refresh token.

    Args:
        data: Claims to encode (sub)
        expires_delta: Optional expiration override

    Returns:
        Encoded JWT refresh token
    """
    delta = expires_delta or timedelta(days=config.REFRESH_TOKEN_EXPIRE_DAYS)
    return _encode(data, "refresh", datetime.utcnow() + delta)


def _decode(token: str, token_type: str) -> Optional[Dict[str, Any]]:
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != token_type:
        return None
    return payload


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Decode and verify an access token; None if invalid, expired or wrong type."""
    return _decode(token, "access")


def decode_refresh_token(token: str) -> Optional[Dict[str, Any]]:
    """Decode and verify a refresh token; None if invalid, expired or wrong type."""
    return _decode(token, "refresh")


# Refresh token utilities
def generate_refresh_token_hash(token: str) -> str:
    """Hash a refresh token for storage."""
    return hashlib.sha256(token.encode()).hexdigest()


def verify_refresh_token(provided_token: str, stored_hash: str) -> bool:
    """Constant-time comparison of a refresh token against its stored hash."""
    return secrets.compare_digest(generate_refresh_token_hash(provided_token), stored_hash)
