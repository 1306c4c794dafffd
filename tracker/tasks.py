import json
import logging

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from .exceptions import StudentNotFound
from .services.locks import SWEEP_LOCK_KEY, get_redis_client, acquire_lock, release_lock
from .services.roster import run_roster_sweep
from .services.students import trigger_manual_sync

logger = logging.getLogger(__name__)


def _set_task_health(task_name: str, payload: dict, ttl_seconds: int = 2 * 24 * 3600) -> None:
    data = {
        "task": task_name,
        "at": timezone.now().isoformat(),
        **(payload or {}),
    }
    try:
        get_redis_client().set(
            f"task_health:{task_name}",
            json.dumps(data, default=str),
            ex=ttl_seconds,
        )
    except Exception:
        logger.exception("Failed to store task health for %s", task_name)


@shared_task
def sync_student(student_id):
    """Manual trigger: sync one student, then check inactivity."""
    try:
        result = trigger_manual_sync(student_id)
    except StudentNotFound:
        return f"Student with ID {student_id} not found."
    return result.message


@shared_task
def sync_all_students():
    ttl = getattr(settings, "SYNC_SWEEP_LOCK_SECONDS", 6 * 60 * 60)
    if not acquire_lock(SWEEP_LOCK_KEY, ttl_seconds=ttl):
        logger.warning("sync_all_students skipped: previous sweep still running.")
        return {"status": "locked", "message": "already running"}

    try:
        summary = run_roster_sweep()
    finally:
        release_lock(SWEEP_LOCK_KEY)

    _set_task_health("sync_all_students", summary)
    return {"status": "ok", **summary}
