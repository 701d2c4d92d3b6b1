from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Request
from jose import JWTError, jwt
from passlib.context import CryptContext

from groupdrive.core.config import settings
from groupdrive.core.exceptions import Unauthenticated
from groupdrive.models.base import User
from groupdrive.repositories.auth_repository import get_user_by_id

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def _extract_token(request: Request) -> Optional[str]:
    # Header first, then the cookie set by /auth/login
    auth = request.headers.get("Authorization") or request.cookies.get("Authorization")
    if auth and auth.lower().startswith("bearer "):
        return auth.split(" ", 1)[1].strip()
    return None


def get_current_user(request: Request) -> User:
    token = _extract_token(request)
    if not token:
        raise Unauthenticated("Not authenticated")
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise Unauthenticated("Invalid token")
    subject = payload.get("sub")
    if subject is None or not str(subject).isdigit():
        raise Unauthenticated("Invalid token")
    user = get_user_by_id(int(subject))
    if user is None:
        raise Unauthenticated("User not found")
    return user
