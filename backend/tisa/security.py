"""Password, token and verification-code helpers.

Passwords are hashed with PBKDF2-SHA256 (passlib) using an explicit
per-user salt and the iteration count from `AuthData`; the salt is kept
alongside the hash so a password can be re-derived and compared.
Tokens are HS256 JWTs (PyJWT) carrying the issuer and audience from
the same configuration.
"""

import base64
import secrets
from datetime import datetime, timezone

import jwt
from passlib.hash import pbkdf2_sha256
from passlib.utils import consteq

from .config import AuthData
from . import models


def create_salt(size: int) -> str:
    """Return `size` random bytes encoded as base64 text."""
    return base64.b64encode(secrets.token_bytes(size)).decode("ascii")


def hash_password(password: str, salt: str, auth_data: AuthData) -> str:
    """Derive the stored hash string for `password` with the given salt."""
    hasher = pbkdf2_sha256.using(salt=base64.b64decode(salt), rounds=auth_data.iteration_count)
    return hasher.hash(password)


def verify_password(password: str, password_hash: str, salt: str, auth_data: AuthData) -> bool:
    """Re-derive the hash from `password` and compare in constant time."""
    try:
        candidate = hash_password(password, salt, auth_data)
    except (ValueError, TypeError):
        return False
    return consteq(candidate, password_hash)


def generate_code(length: int = 6) -> str:
    """Return a zero-padded numeric verification code."""
    return str(secrets.randbelow(10 ** length)).zfill(length)


def create_token(user: models.User, auth_data: AuthData) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user.id),
        "username": user.username,
        "email": user.email,
        "iss": auth_data.issuer,
        "aud": auth_data.audience,
        "iat": now,
        "exp": now + auth_data.expiration_time,
    }
    return jwt.encode(payload, auth_data.signing_key, algorithm=auth_data.algorithm)


def decode_token(token: str, auth_data: AuthData) -> dict:
    """Decode and verify a token.

    Raises `jwt.PyJWTError` subclasses on a bad signature, expiry or a
    mismatched issuer/audience.
    """
    return jwt.decode(
        token,
        auth_data.signing_key,
        algorithms=[auth_data.algorithm],
        audience=auth_data.audience,
        issuer=auth_data.issuer,
        options={"require": ["exp", "sub", "iss", "aud"]},
    )
