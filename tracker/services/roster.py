import logging
import time

from django.conf import settings

from tracker.exceptions import StudentNotFound
from tracker.services import store
from tracker.services.notifications import check_inactivity
from tracker.services.sync import sync_student

logger = logging.getLogger(__name__)


def run_roster_sweep(pacing_seconds: float | None = None, send_reminders: bool = True, sleep=time.sleep) -> dict:
    """
    One pass over every student: sync each in turn with a pause between
    them, then run the inactivity check against the refreshed records.

    Sequential on purpose; the pause is what keeps the sweep under the
    Codeforces rate limit. A failing student is logged and skipped.
    """
    if pacing_seconds is None:
        pacing_seconds = getattr(settings, "SYNC_PACING_SECONDS", 1.5)

    started = time.monotonic()
    student_ids = store.list_student_ids()
    summary = {
        "students": len(student_ids),
        "synced": 0,
        "failed": 0,
        "missing": 0,
        "reminders": 0,
    }
    if not student_ids:
        logger.info("[ROSTER] No students found. Skipping sync and inactivity checks.")
        summary["duration_ms"] = 0
        return summary

    logger.info("[ROSTER] Syncing %s students.", len(student_ids))
    for position, student_id in enumerate(student_ids):
        try:
            result = sync_student(student_id)
        except StudentNotFound:
            summary["missing"] += 1
            logger.warning("[ROSTER] Student %s was deleted before its sync.", student_id)
        except Exception:
            summary["failed"] += 1
            logger.exception("[ROSTER] Sync crashed for student %s", student_id)
        else:
            if result.success:
                summary["synced"] += 1
            else:
                summary["failed"] += 1
                logger.error("[ROSTER] Sync for student %s FAILED: %s", student_id, result.message)

        if pacing_seconds > 0 and position < len(student_ids) - 1:
            sleep(pacing_seconds)

    if send_reminders:
        for student_id in student_ids:
            try:
                if check_inactivity(student_id):
                    summary["reminders"] += 1
            except Exception:
                logger.exception("[ROSTER] Inactivity check crashed for student %s", student_id)

    summary["duration_ms"] = int((time.monotonic() - started) * 1000)
    logger.info(
        "[ROSTER] students=%s synced=%s failed=%s missing=%s reminders=%s duration_ms=%s",
        summary["students"],
        summary["synced"],
        summary["failed"],
        summary["missing"],
        summary["reminders"],
        summary["duration_ms"],
    )
    return summary
