from celery import Celery

from groupdrive.core.config import settings

celery_app = Celery("groupdrive")
celery_app.conf.broker_url = settings.CELERY_BROKER_URL
celery_app.conf.result_backend = settings.CELERY_RESULT_BACKEND
celery_app.conf.beat_schedule = {
    "sweep-stale-chunk-dirs": {
        "task": "groupdrive.tasks.upload_tasks.sweep_stale_chunk_dirs_task",
        "schedule": float(settings.CHUNK_SWEEP_INTERVAL_SECONDS),
    },
}

celery_app.autodiscover_tasks(["groupdrive.tasks"], related_name="upload_tasks")
