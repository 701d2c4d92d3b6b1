from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from groupdrive.core.database import get_db_session
from groupdrive.core.exceptions import Conflict
from groupdrive.models.base import User


def get_user_by_id(user_id: int) -> Optional[User]:
    with get_db_session() as db:
        return db.query(User).filter(User.id == user_id).first()


def get_user_by_email(email: str) -> Optional[User]:
    with get_db_session() as db:
        return db.query(User).filter(User.email == email.lower()).first()


def create_user(name: str, email: str, password_hash: str, role: str) -> User:
    try:
        with get_db_session() as db:
            new_user = User(name=name, email=email.lower(), password_hash=password_hash, role=role)
            db.add(new_user)
            db.flush()
            db.refresh(new_user)
            return new_user
    except IntegrityError:
        raise Conflict("Email already registered")


def get_all_users() -> List[User]:
    with get_db_session() as db:
        return db.query(User).order_by(User.id).all()


def update_user_role(user_id: int, role: str) -> Optional[User]:
    with get_db_session() as db:
        user = db.query(User).filter(User.id == user_id).first()
        if user:
            user.role = role
            db.flush()
            db.refresh(user)
        return user
