"""Chunked upload reassembly.

An upload is identified by ``(uploader_id, group_id, file_name)``; personal
uploads use ``None`` as the group. Chunk 0 opens a session and fixes the upload
target. Chunks that overtake chunk 0 are held for ``early_chunk_grace_seconds``;
if chunk 0 does not show up by then the upload is rejected as not initialized,
which is also what a grace of 0 does straight away. The session completes
as soon as every index in ``0..total_chunks-1`` has been received, whatever the
arrival order. The finished file is stitched in index order, moved into blob
storage and recorded with exactly one ``File`` row. For a while after that, a
resend of the finishing chunk with the same bytes and target returns the same
``File``; anything else starts a new upload.

Chunks for the same key are processed one at a time under a per-key lock;
different keys never wait on each other. Sessions live in an injected
``UploadSessionStore`` and expire after a TTL.
"""
import enum
import hashlib
import logging
import os
import shutil
import threading
import time
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple, Union

from groupdrive.core.config import settings
from groupdrive.core.exceptions import (
    Conflict,
    MissingChunkError,
    StorageIOError,
    UploadProtocolError,
    ValidationError,
)
from groupdrive.models.base import File
from groupdrive.repositories.blob_repository import BlobStorage, generate_key
from groupdrive.repositories.file_repository import create_file
from groupdrive.schemas.file_schemas import FileCreate

logger = logging.getLogger(__name__)

UploadKey = Tuple[int, Optional[int], str]


class SessionState(str, enum.Enum):
    PENDING = "pending"  # chunks arrived before chunk 0
    ACCUMULATING = "accumulating"
    ASSEMBLING = "assembling"
    COMPLETED = "completed"


@dataclass
class UploadSession:
    key: UploadKey
    session_id: str
    file_name: str
    mime_type: str
    total_chunks: int
    uploader_id: int
    target_group_id: Optional[int]
    target_parent_id: Optional[int]
    chunk_sizes: Dict[int, int] = field(default_factory=dict)
    chunk_digests: Dict[int, str] = field(default_factory=dict)
    # index of the chunk that completed the upload
    last_chunk_index: Optional[int] = None
    state: SessionState = SessionState.ACCUMULATING
    file: Optional[File] = None
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)

    @property
    def received_chunks(self) -> List[int]:
        return sorted(self.chunk_sizes)

    @property
    def accumulated_size(self) -> int:
        return sum(self.chunk_sizes.values())

    @property
    def is_complete(self) -> bool:
        return len(self.chunk_sizes) == self.total_chunks


@dataclass
class ChunkAck:
    chunk_index: int
    received_chunks: List[int]
    total_chunks: int
    initialized: bool = True


@dataclass
class UploadComplete:
    file: File
    duplicate: bool = False


ChunkResult = Union[ChunkAck, UploadComplete]


class UploadSessionStore(ABC):
    """Holds in-flight upload sessions. Implementations must be thread safe."""

    @abstractmethod
    def get(self, key: UploadKey) -> Optional[UploadSession]:
        raise NotImplementedError

    @abstractmethod
    def put(self, session: UploadSession) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: UploadKey) -> None:
        raise NotImplementedError

    @abstractmethod
    def is_expired(self, session: UploadSession, now: float) -> bool:
        raise NotImplementedError

    @abstractmethod
    def expired(self, now: float) -> List[UploadSession]:
        """Sessions past their lifetime. They stay in the store until deleted."""
        raise NotImplementedError


class InMemoryUploadSessionStore(UploadSessionStore):
    def __init__(self, ttl_seconds: int, completed_retention_seconds: int):
        self._sessions: Dict[UploadKey, UploadSession] = {}
        self._lock = threading.RLock()
        self.ttl_seconds = ttl_seconds
        self.completed_retention_seconds = completed_retention_seconds

    def is_expired(self, session: UploadSession, now: float) -> bool:
        if session.state == SessionState.ASSEMBLING:
            return False
        limit = (
            self.completed_retention_seconds
            if session.state == SessionState.COMPLETED
            else self.ttl_seconds
        )
        return now - session.updated_at >= limit

    def get(self, key: UploadKey) -> Optional[UploadSession]:
        with self._lock:
            return self._sessions.get(key)

    def put(self, session: UploadSession) -> None:
        with self._lock:
            self._sessions[session.key] = session

    def delete(self, key: UploadKey) -> None:
        with self._lock:
            self._sessions.pop(key, None)

    def expired(self, now: float) -> List[UploadSession]:
        with self._lock:
            return [s for s in self._sessions.values() if self.is_expired(s, now)]

    def __len__(self) -> int:
        return len(self._sessions)


class ChunkUploadCoordinator:
    def __init__(
        self,
        session_store: UploadSessionStore,
        blob_storage: BlobStorage,
        temp_dir: str,
        max_chunk_size: int = settings.MAX_CHUNK_SIZE,
        max_file_size: int = settings.MAX_FILE_SIZE,
        early_chunk_grace_seconds: float = settings.EARLY_CHUNK_GRACE_SECONDS,
        record_writer: Callable[[FileCreate], File] = create_file,
        clock: Callable[[], float] = time.time,
    ):
        self.session_store = session_store
        self.blob_storage = blob_storage
        self.temp_dir = temp_dir
        self.max_chunk_size = max_chunk_size
        self.max_file_size = max_file_size
        self.early_chunk_grace_seconds = early_chunk_grace_seconds
        self.record_writer = record_writer
        self.clock = clock
        # key -> [lock, number of holders and waiters]
        self._key_locks: Dict[UploadKey, list] = {}
        self._key_locks_guard = threading.Lock()
        os.makedirs(self.temp_dir, exist_ok=True)

    @contextmanager
    def _key_lock(self, key: UploadKey, blocking: bool = True):
        """Serialises work on one upload key. Yields whether the lock was taken."""
        with self._key_locks_guard:
            entry = self._key_locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        acquired = entry[0].acquire(blocking)
        try:
            yield acquired
        finally:
            if acquired:
                entry[0].release()
            with self._key_locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._key_locks[key]

    # --- temp chunk files ---
    def _session_dir(self, session: UploadSession) -> str:
        return os.path.join(self.temp_dir, session.session_id)

    def _chunk_path(self, session: UploadSession, index: int) -> str:
        return os.path.join(self._session_dir(session), f"chunk_{index}")

    def _write_chunk(self, session: UploadSession, index: int, data: bytes) -> None:
        path = self._chunk_path(session, index)
        partial = f"{path}.part"
        try:
            os.makedirs(self._session_dir(session), exist_ok=True)
            with open(partial, "wb") as f:
                f.write(data)
            os.replace(partial, path)
        except OSError as e:
            logger.error("Failed to write chunk %s of upload %s: %s", index, session.session_id, e)
            raise StorageIOError(f"Failed to store chunk {index}: {e}")

    def _discard_chunks(self, session: UploadSession) -> None:
        shutil.rmtree(self._session_dir(session), ignore_errors=True)

    # --- housekeeping ---
    def purge_expired(self) -> int:
        removed = 0
        for candidate in self.session_store.expired(self.clock()):
            with self._key_lock(candidate.key, blocking=False) as acquired:
                # Busy keys are looked at again on the next purge
                if not acquired:
                    continue
                session = self.session_store.get(candidate.key)
                if session is None or not self.session_store.is_expired(session, self.clock()):
                    continue
                self.session_store.delete(session.key)
                if session.state != SessionState.COMPLETED:
                    logger.info(
                        "Upload session %s for %r expired with %d/%d chunks",
                        session.session_id,
                        session.file_name,
                        len(session.chunk_sizes),
                        session.total_chunks,
                    )
                self._discard_chunks(session)
                removed += 1
        return removed

    def get_session(self, uploader_id: int, group_id: Optional[int], file_name: str) -> Optional[UploadSession]:
        return self.session_store.get((uploader_id, group_id, file_name))

    # --- validation ---
    def _validate_chunk(self, chunk_index: int, total_chunks: int, data: bytes) -> None:
        errors = []
        if total_chunks < 1:
            errors.append({"field": "total_chunks", "message": "must be at least 1"})
        elif not 0 <= chunk_index < total_chunks:
            errors.append({"field": "chunk_index", "message": f"must be between 0 and {total_chunks - 1}"})
        if len(data) > self.max_chunk_size:
            errors.append({"field": "data", "message": f"chunk exceeds {self.max_chunk_size} bytes"})
        if errors:
            raise ValidationError("Invalid chunk", errors=errors)

    def _check_total_size(self, session: UploadSession, chunk_index: int, size: int) -> None:
        projected = session.accumulated_size - session.chunk_sizes.get(chunk_index, 0) + size
        if projected > self.max_file_size:
            raise ValidationError(
                "File exceeds maximum size",
                errors=[{"field": "data", "message": f"file exceeds {self.max_file_size} bytes"}],
            )

    # --- protocol ---
    def receive_chunk(
        self,
        *,
        uploader_id: int,
        group_id: Optional[int],
        parent_id: Optional[int],
        file_name: str,
        mime_type: str,
        chunk_index: int,
        total_chunks: int,
        data: bytes,
    ) -> ChunkResult:
        self._validate_chunk(chunk_index, total_chunks, data)
        digest = hashlib.sha256(data).hexdigest()
        self.purge_expired()
        key = (uploader_id, group_id, file_name)

        with self._key_lock(key):
            session = self.session_store.get(key)

            if session is not None and session.state == SessionState.ASSEMBLING:
                raise Conflict("Upload is already being assembled")

            if session is not None and session.state == SessionState.COMPLETED:
                if self._is_redelivery(session, chunk_index, total_chunks, digest, parent_id, mime_type):
                    logger.info("Duplicate chunk %s for completed upload %s", chunk_index, session.session_id)
                    return UploadComplete(file=session.file, duplicate=True)
                # A new upload of a file with the same name
                self.session_store.delete(key)
                session = None

            if session is not None and chunk_index == 0 and session.total_chunks != total_chunks:
                logger.info("Restarting upload %s for %r", session.session_id, file_name)
                self._discard_chunks(session)
                self.session_store.delete(key)
                session = None

            if session is not None and session.state == SessionState.PENDING:
                if chunk_index == 0:
                    self._adopt(session, mime_type, group_id, parent_id)
                elif self.clock() - session.created_at > self.early_chunk_grace_seconds:
                    # Chunk 0 never came
                    self._discard_chunks(session)
                    self.session_store.delete(key)
                    raise UploadProtocolError("Upload not properly initialized")

            if session is None:
                if chunk_index != 0 and self.early_chunk_grace_seconds <= 0:
                    raise UploadProtocolError("Upload not properly initialized")
                session = UploadSession(
                    key=key,
                    session_id=uuid.uuid4().hex,
                    file_name=file_name,
                    mime_type=mime_type,
                    total_chunks=total_chunks,
                    uploader_id=uploader_id,
                    target_group_id=group_id,
                    target_parent_id=parent_id,
                    state=SessionState.ACCUMULATING if chunk_index == 0 else SessionState.PENDING,
                    created_at=self.clock(),
                    updated_at=self.clock(),
                )
                if chunk_index == 0:
                    logger.info("Upload %s started for %r (%d chunks)", session.session_id, file_name, total_chunks)
                else:
                    logger.debug("Chunk %s of %r arrived before chunk 0, holding it", chunk_index, file_name)
            elif session.total_chunks != total_chunks:
                raise ValidationError(
                    "Total chunk count does not match the upload in progress",
                    errors=[{"field": "total_chunks", "message": f"expected {session.total_chunks}"}],
                )

            self._check_total_size(session, chunk_index, len(data))
            self._write_chunk(session, chunk_index, data)
            session.chunk_sizes[chunk_index] = len(data)
            session.chunk_digests[chunk_index] = digest
            session.updated_at = self.clock()
            self.session_store.put(session)

            if session.is_complete:
                session.last_chunk_index = chunk_index
                return self._complete(session)
            return ChunkAck(
                chunk_index=chunk_index,
                received_chunks=session.received_chunks,
                total_chunks=session.total_chunks,
                initialized=session.state != SessionState.PENDING,
            )

    def _adopt(self, session: UploadSession, mime_type: str, group_id: Optional[int], parent_id: Optional[int]) -> None:
        """Turns the chunks held before chunk 0 into a regular session. Chunk 0 decides the target."""
        session.state = SessionState.ACCUMULATING
        session.mime_type = mime_type
        session.target_group_id = group_id
        session.target_parent_id = parent_id
        session.created_at = self.clock()
        logger.info(
            "Upload %s started for %r (%d chunks, %d held)",
            session.session_id,
            session.file_name,
            session.total_chunks,
            len(session.chunk_sizes),
        )

    def _is_redelivery(
        self,
        session: UploadSession,
        chunk_index: int,
        total_chunks: int,
        digest: str,
        parent_id: Optional[int],
        mime_type: str,
    ) -> bool:
        """Only a resend of the chunk that finished the upload, with the same bytes and target, counts."""
        return (
            chunk_index == session.last_chunk_index
            and total_chunks == session.total_chunks
            and session.chunk_digests.get(chunk_index) == digest
            and parent_id == session.target_parent_id
            and mime_type == session.mime_type
        )

    def _complete(self, session: UploadSession) -> UploadComplete:
        session.state = SessionState.ASSEMBLING
        self.session_store.put(session)
        try:
            db_file = self._assemble(session)
        except Exception:
            session.state = SessionState.ACCUMULATING
            session.updated_at = self.clock()
            self.session_store.put(session)
            raise

        self._discard_chunks(session)
        session.state = SessionState.COMPLETED
        session.file = db_file
        session.updated_at = self.clock()
        self.session_store.put(session)
        logger.info(
            "Upload %s completed: file %s (%d bytes)", session.session_id, db_file.id, db_file.size
        )
        return UploadComplete(file=db_file)

    def _missing_chunk(self, session: UploadSession, index: int) -> MissingChunkError:
        # Forget the index so the client can send it again
        session.chunk_sizes.pop(index, None)
        session.chunk_digests.pop(index, None)
        logger.warning("Upload %s is missing chunk %s", session.session_id, index)
        return MissingChunkError(index, session.received_chunks, session.total_chunks)

    def _assemble(self, session: UploadSession) -> File:
        for index in range(session.total_chunks):
            if not os.path.exists(self._chunk_path(session, index)):
                raise self._missing_chunk(session, index)

        assembled_path = os.path.join(self._session_dir(session), "assembled")
        try:
            with open(assembled_path, "wb") as out:
                for index in range(session.total_chunks):
                    try:
                        with open(self._chunk_path(session, index), "rb") as chunk:
                            shutil.copyfileobj(chunk, out)
                    except FileNotFoundError:
                        raise self._missing_chunk(session, index)
        except UploadProtocolError:
            self._remove_quietly(assembled_path)
            raise
        except OSError as e:
            self._remove_quietly(assembled_path)
            raise StorageIOError(f"Failed to assemble upload: {e}")

        key = generate_key(session.file_name)
        self.blob_storage.save_file(key, assembled_path, session.mime_type)
        try:
            return self.record_writer(
                FileCreate(
                    name=session.file_name,
                    type=session.mime_type,
                    size=session.accumulated_size,
                    path=key,
                    parent_id=session.target_parent_id,
                    group_id=session.target_group_id,
                    uploaded_by_id=session.uploader_id,
                )
            )
        except Exception:
            self._delete_blob_quietly(key)
            raise

    def store_single(
        self,
        *,
        uploader_id: int,
        group_id: Optional[int],
        parent_id: Optional[int],
        file_name: str,
        mime_type: str,
        data: bytes,
    ) -> File:
        """Stores a file that fits in one chunk without opening a session."""
        if len(data) > self.max_chunk_size:
            raise ValidationError(
                "File is too large for a single upload, send it in chunks",
                errors=[{"field": "data", "message": f"exceeds {self.max_chunk_size} bytes"}],
            )
        key = generate_key(file_name)
        self.blob_storage.save_bytes(key, data, mime_type)
        try:
            return self.record_writer(
                FileCreate(
                    name=file_name,
                    type=mime_type,
                    size=len(data),
                    path=key,
                    parent_id=parent_id,
                    group_id=group_id,
                    uploaded_by_id=uploader_id,
                )
            )
        except Exception:
            self._delete_blob_quietly(key)
            raise

    def _delete_blob_quietly(self, key: str) -> None:
        try:
            self.blob_storage.delete(key)
        except StorageIOError as e:
            logger.warning("Could not remove orphaned blob %s: %s", key, e)

    @staticmethod
    def _remove_quietly(path: str) -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass


def build_upload_coordinator(blob_storage: BlobStorage) -> ChunkUploadCoordinator:
    store = InMemoryUploadSessionStore(
        ttl_seconds=settings.UPLOAD_SESSION_TTL_SECONDS,
        completed_retention_seconds=settings.COMPLETED_UPLOAD_RETENTION_SECONDS,
    )
    return ChunkUploadCoordinator(
        session_store=store,
        blob_storage=blob_storage,
        temp_dir=settings.UPLOAD_TEMP_DIR,
    )
