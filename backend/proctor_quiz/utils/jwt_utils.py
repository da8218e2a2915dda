"""
JWT token utilities for participant identity
"""
import os
from datetime import datetime, timedelta
from typing import Optional, Dict
import jwt
from jwt.exceptions import InvalidTokenError


def _secret_key() -> str:
    secret = os.environ.get("JWT_SECRET")
    if not secret:
        raise ValueError("JWT_SECRET environment variable is not set")
    return secret


def _algorithm() -> str:
    return os.environ.get("JWT_ALGORITHM", "HS256")


def create_access_token(data: Dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token

    Args:
        data: Claims to encode; `sub` carries the participant id
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    to_encode = data.copy()

    if expires_delta is None:
        expires_delta = timedelta(hours=int(os.environ.get("JWT_EXPIRATION_HOURS", 24)))
    now = datetime.utcnow()
    to_encode.update({
        "exp": now + expires_delta,
        "iat": now,
    })

    return jwt.encode(to_encode, _secret_key(), algorithm=_algorithm())


def decode_access_token(token: str) -> Optional[Dict]:
    """
    Decode and verify a JWT token

    Returns:
        Decoded token data or None if invalid
    """
    try:
        return jwt.decode(token, _secret_key(), algorithms=[_algorithm()])
    except InvalidTokenError:
        return None
