from typing import Optional

from sqlalchemy import and_

from groupdrive.core.database import get_db_session
from groupdrive.models.base import PublicLink


def get_public_link_db(resource_type: str, resource_id: int) -> Optional[PublicLink]:
    with get_db_session() as db:
        return (
            db.query(PublicLink)
            .filter(and_(PublicLink.resource_type == resource_type, PublicLink.resource_id == resource_id))
            .first()
        )


def save_public_link_db(resource_type: str, resource_id: int, token: str, link: str) -> PublicLink:
    with get_db_session() as db:
        public_link = (
            db.query(PublicLink)
            .filter(and_(PublicLink.resource_type == resource_type, PublicLink.resource_id == resource_id))
            .first()
        )
        if public_link is None:
            public_link = PublicLink(resource_type=resource_type, resource_id=resource_id)
            db.add(public_link)
        public_link.token = token
        public_link.link = link
        db.flush()
        db.refresh(public_link)
        return public_link


def delete_public_link_db(resource_type: str, resource_id: int) -> bool:
    with get_db_session() as db:
        deleted = (
            db.query(PublicLink)
            .filter(and_(PublicLink.resource_type == resource_type, PublicLink.resource_id == resource_id))
            .delete(synchronize_session=False)
        )
        return deleted > 0
