"""FastAPI security dependency for bearer-token protected endpoints.

`get_current_user` validates the JWT issued by `/api/Auth/Authorize`
or `/api/Auth/Verify` and returns the corresponding `User` from the
database. Token problems raise HTTPException(401) so the dependency can
be used directly inside route signatures.
"""

from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt
from sqlmodel import Session
from .config import settings
from .database import get_session
from . import models, repositories, security

bearer_scheme = HTTPBearer()


def decode_token(token: str) -> dict:
    """Decode and verify a JWT token.

    Returns the decoded payload on success or raises an HTTPException
    with status 401 on failure.
    """
    try:
        return security.decode_token(token, settings.AUTH)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail='token expired')
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail='invalid token')


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Security(bearer_scheme),
    db: Session = Depends(get_session),
) -> models.User:
    """Return the authenticated user or raise HTTPException(401)."""
    payload = decode_token(credentials.credentials)
    try:
        user_id = int(payload['sub'])
    except (KeyError, ValueError):
        raise HTTPException(status_code=401, detail='invalid token payload')
    user = repositories.UserRepository(db).get(user_id)
    if not user:
        raise HTTPException(status_code=401, detail='user not found')
    return user
