"""
security.py — SamvidhanAI
Password hashing, JWT access tokens and the role-checking FastAPI dependency.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import ExpiredSignatureError, PyJWTError
from passlib.context import CryptContext

from settings import Settings

password_context = CryptContext(schemes=["argon2"], deprecated="auto")

ROLES = ("user", "lawyer", "admin")


class InvalidTokenError(Exception):
    pass


class TokenExpiredError(Exception):
    pass


@dataclass(frozen=True)
class Principal:
    id: int
    role: str


def hash_password(password: str) -> str:
    return password_context.hash(password)


def verify_password(password: str, hashed_password: str) -> bool:
    return password_context.verify(password, hashed_password)


def create_access_token(subject_id: int, role: str, expires_delta: timedelta | None = None) -> str:
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(days=Settings.JWT_EXPIRE_DAYS))
    to_encode = {
        "sub": str(subject_id),
        "role": role,
        "type": "access",
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(to_encode, Settings.JWT_SECRET_KEY, algorithm=Settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Principal:
    try:
        decoded = jwt.decode(token, Settings.JWT_SECRET_KEY, algorithms=[Settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise TokenExpiredError("The token has expired")
    except PyJWTError:
        raise InvalidTokenError("Invalid token")

    if decoded.get("type") != "access" or decoded.get("role") not in ROLES:
        raise InvalidTokenError("Invalid token")
    try:
        subject_id = int(decoded["sub"])
    except (KeyError, TypeError, ValueError):
        raise InvalidTokenError("Missing sub")
    return Principal(id=subject_id, role=decoded["role"])


_bearer = HTTPBearer(auto_error=False)


def get_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> Principal:
    if credentials is None:
        raise HTTPException(status_code=401, detail="Access denied")
    try:
        return decode_access_token(credentials.credentials)
    except TokenExpiredError as exc:
        raise HTTPException(status_code=401, detail="Token expired") from exc
    except InvalidTokenError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc


def require_role(*roles: str):
    """Dependency factory: the bearer token must carry one of ``roles``."""

    def _dependency(principal: Principal = Depends(get_principal)) -> Principal:
        if principal.role not in roles:
            raise HTTPException(status_code=403, detail=f"{' or '.join(roles).capitalize()} access required")
        return principal

    return _dependency
