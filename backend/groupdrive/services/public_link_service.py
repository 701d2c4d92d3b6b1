"""Anonymous read links for files and folders.

A link carries an unguessable token (256 bits from ``secrets``). Enabling an
already enabled resource returns the existing link, disabling removes it so the
next enable mints a fresh token.
"""
import logging
import secrets
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from groupdrive.core.config import settings
from groupdrive.models.base import ResourceType
from groupdrive.repositories.public_link_repository import (
    delete_public_link_db,
    get_public_link_db,
    save_public_link_db,
)

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


@dataclass(frozen=True)
class PublicLinkRecord:
    token: str
    link: str


class PublicLinkStore(ABC):
    @abstractmethod
    def get(self, resource_type: ResourceType, resource_id: int) -> Optional[PublicLinkRecord]:
        raise NotImplementedError

    @abstractmethod
    def save(self, resource_type: ResourceType, resource_id: int, record: PublicLinkRecord) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, resource_type: ResourceType, resource_id: int) -> bool:
        raise NotImplementedError


class InMemoryPublicLinkStore(PublicLinkStore):
    def __init__(self):
        self._records: Dict[Tuple[ResourceType, int], PublicLinkRecord] = {}
        self._lock = threading.Lock()

    def get(self, resource_type, resource_id):
        with self._lock:
            return self._records.get((resource_type, resource_id))

    def save(self, resource_type, resource_id, record):
        with self._lock:
            self._records[(resource_type, resource_id)] = record

    def delete(self, resource_type, resource_id):
        with self._lock:
            return self._records.pop((resource_type, resource_id), None) is not None


class DatabasePublicLinkStore(PublicLinkStore):
    def get(self, resource_type, resource_id):
        row = get_public_link_db(resource_type.value, resource_id)
        if row is None:
            return None
        return PublicLinkRecord(token=row.token, link=row.link)

    def save(self, resource_type, resource_id, record):
        save_public_link_db(resource_type.value, resource_id, record.token, record.link)

    def delete(self, resource_type, resource_id):
        return delete_public_link_db(resource_type.value, resource_id)


class PublicLinkIssuer:
    def __init__(self, store: PublicLinkStore, base_url: Optional[str] = None):
        self.store = store
        self.base_url = base_url
        # enable is check-then-insert; serialize it so two callers agree on one token
        self._lock = threading.Lock()

    def build_link(self, resource_type: ResourceType, resource_id: int, token: str, base_url: Optional[str] = None) -> str:
        base = (self.base_url or base_url or "").rstrip("/")
        return f"{base}/public/{resource_type.value}/{resource_id}/{token}"

    def enable(self, resource_id: int, resource_type: ResourceType, base_url: Optional[str] = None) -> PublicLinkRecord:
        with self._lock:
            existing = self.store.get(resource_type, resource_id)
            if existing is not None:
                return existing
            token = secrets.token_urlsafe(TOKEN_BYTES)
            record = PublicLinkRecord(
                token=token,
                link=self.build_link(resource_type, resource_id, token, base_url),
            )
            self.store.save(resource_type, resource_id, record)
            logger.info("Public link enabled for %s %s", resource_type.value, resource_id)
            return record

    def disable(self, resource_id: int, resource_type: ResourceType) -> bool:
        with self._lock:
            removed = self.store.delete(resource_type, resource_id)
        if removed:
            logger.info("Public link disabled for %s %s", resource_type.value, resource_id)
        return removed

    def get(self, resource_id: int, resource_type: ResourceType) -> Optional[PublicLinkRecord]:
        return self.store.get(resource_type, resource_id)

    def resolve(self, resource_id: int, resource_type: ResourceType, token: str) -> bool:
        record = self.store.get(resource_type, resource_id)
        if record is None or not token:
            return False
        return secrets.compare_digest(record.token, token)


def build_public_link_issuer() -> PublicLinkIssuer:
    if settings.PUBLIC_LINK_STORE == "memory":
        store = InMemoryPublicLinkStore()
    else:
        store = DatabasePublicLinkStore()
    return PublicLinkIssuer(store, base_url=settings.PUBLIC_BASE_URL)
