from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Depends, Header
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

import settings
from errors import AuthenticationError, AuthorizationError, ValidationError
from repositories import users

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.BCRYPT_ROUNDS)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(password, hashed)


def create_token(user: Dict[str, Any], expires_in: Optional[int] = None) -> str:
    now = datetime.now(tz=timezone.utc)
    expires_in = settings.JWT_EXPIRE_SECONDS if expires_in is None else expires_in
    user_id = str(user["_id"])
    payload = {
        "sub": user_id,
        "id": user_id,
        "email": user["email"],
        "role": user.get("role", "user"),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=expires_in)).timestamp()),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


def decode_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
    except ExpiredSignatureError:
        raise AuthenticationError.token_expired()
    except JWTError:
        raise AuthenticationError.invalid_token()


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError.invalid_token()
    return token.strip()


def _load_user(token: str) -> Dict[str, Any]:
    payload = decode_token(token)
    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError.invalid_token()
    try:
        user = users.find_by_id(user_id)
    except ValidationError:
        raise AuthenticationError.invalid_token()
    if not user:
        raise AuthenticationError("User no longer exists", "USER_NOT_FOUND")
    return user


def get_current_user(authorization: Optional[str] = Header(None)) -> Dict[str, Any]:
    token = _bearer_token(authorization)
    if not token:
        raise AuthenticationError.missing_token()
    return _load_user(token)


def require_roles(*roles: str):
    def dependency(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
        if user.get("role") not in roles:
            raise AuthorizationError(f"This action requires {' or '.join(roles)} role", "ROLE_REQUIRED")
        return user
    return dependency


def is_admin(user: Optional[Dict[str, Any]]) -> bool:
    return bool(user) and user.get("role") == "admin"
