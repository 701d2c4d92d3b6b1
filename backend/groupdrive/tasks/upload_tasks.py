import logging
import os
import shutil
import time
from typing import Optional

from groupdrive.celery_app import celery_app
from groupdrive.core.config import settings

logger = logging.getLogger(__name__)


def sweep_stale_chunk_dirs(temp_dir: str, max_age_seconds: int, now: Optional[float] = None) -> int:
    """Removes upload directories that have not been written to for ``max_age_seconds``.

    Catches chunk directories left behind when the process restarts mid-upload.
    """
    if not os.path.isdir(temp_dir):
        return 0
    now = time.time() if now is None else now
    removed = 0
    for entry in os.scandir(temp_dir):
        if not entry.is_dir(follow_symlinks=False):
            continue
        try:
            age = now - entry.stat(follow_symlinks=False).st_mtime
        except FileNotFoundError:
            continue
        if age < max_age_seconds:
            continue
        shutil.rmtree(entry.path, ignore_errors=True)
        removed += 1
        logger.info("Removed stale upload directory %s (%.0f s old)", entry.name, age)
    return removed


@celery_app.task(name="groupdrive.tasks.upload_tasks.sweep_stale_chunk_dirs_task")
def sweep_stale_chunk_dirs_task():
    return sweep_stale_chunk_dirs(settings.UPLOAD_TEMP_DIR, settings.UPLOAD_SESSION_TTL_SECONDS)
