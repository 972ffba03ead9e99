import uuid

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from rdsync.auth.tokens import decode_access_token
from rdsync.config import Settings, get_settings
from rdsync.db import get_db
from rdsync.errors import UnauthorizedException
from rdsync.models.user import User

bearer = HTTPBearer(auto_error=False)

def get_current_user(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    if creds is None or creds.scheme.lower() != "bearer":
        raise UnauthorizedException("missing bearer token")

    try:
        payload = decode_access_token(creds.credentials, settings)
        user_id = uuid.UUID(payload["sub"])
    except (jwt.PyJWTError, KeyError, ValueError):
        raise UnauthorizedException("invalid token")

    user = db.get(User, user_id)
    if user is None:
        raise UnauthorizedException("user not found")

    return user
