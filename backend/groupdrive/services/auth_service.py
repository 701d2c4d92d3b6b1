import logging

from groupdrive.core.exceptions import Unauthenticated
from groupdrive.core.security import create_access_token, get_password_hash, verify_password
from groupdrive.models.base import User, UserRole
from groupdrive.repositories.auth_repository import create_user, get_user_by_email
from groupdrive.schemas.user_schemas import UserCreate

logger = logging.getLogger(__name__)


def authenticate_user(email: str, password: str) -> str:
    user = get_user_by_email(email)
    if not user or not verify_password(password, user.password_hash):
        raise Unauthenticated("Incorrect email or password")

    access_token = create_access_token(data={"sub": str(user.id)})
    logger.info("User %s logged in", user.id)
    return access_token


def register_new_user(user_create: UserCreate) -> User:
    user = create_user(
        name=user_create.name,
        email=user_create.email,
        password_hash=get_password_hash(user_create.password),
        role=UserRole.USER.value,
    )
    logger.info("Registered user %s", user.id)
    return user
