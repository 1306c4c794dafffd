import logging
import time
from dataclasses import dataclass, field

from django.utils import timezone

from tracker.exceptions import DuplicateKey, StorageFailure
from tracker.models import Student
from tracker.services import store
from tracker.services.codeforces_client import CodeforcesClient
from tracker.services.locks import student_sync_lock

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    success: bool
    message: str = ""
    contests_added: int = 0
    submissions_added: int = 0
    ratings_updated: bool = False
    errors: list[str] = field(default_factory=list)


def _refresh_ratings(student: Student) -> bool:
    """
    A failed lookup keeps the stored ratings; a handle that answers without
    a rating is unrated (or unknown to Codeforces) and goes to 0.
    """
    info = CodeforcesClient.get_user_info(student.codeforces_handle)
    if info is None:
        logger.warning(
            "[SYNC] No user info for %s; keeping ratings %s/%s.",
            student.codeforces_handle,
            student.current_rating,
            student.max_rating,
        )
        return False

    student.current_rating = info.rating if info.rating is not None else 0
    student.max_rating = info.max_rating if info.max_rating is not None else 0
    return True


def _merge_contests(student: Student) -> int:
    history = CodeforcesClient.get_rating_history(student.codeforces_handle)
    if not history:
        return 0

    known = store.existing_contest_ids(student.id)
    new_entries = []
    for entry in history:
        if entry.contest_id in known:
            continue
        known.add(entry.contest_id)
        new_entries.append(entry)
    return store.insert_contests(student.id, new_entries)


def _merge_submissions(student: Student) -> int:
    submissions = CodeforcesClient.get_submissions(student.codeforces_handle)
    if not submissions:
        return 0

    known = store.existing_submission_ids(student.id)
    new_entries = []
    for entry in submissions:
        if entry.submission_id in known:
            continue
        known.add(entry.submission_id)
        new_entries.append(entry)
    return store.insert_submissions(student.id, new_entries)


def _run_step(result: SyncResult, step: str, func, student: Student):
    try:
        return func(student)
    except DuplicateKey as exc:
        # Another writer got there first; the rows exist.
        logger.warning("[SYNC] %s for %s hit an existing key: %s", step, student.codeforces_handle, exc)
    except StorageFailure as exc:
        logger.error("[SYNC] %s failed for %s: %s", step, student.codeforces_handle, exc)
        result.errors.append(f"{step}: {exc}")
    return None


def _sync_locked(student_id) -> SyncResult:
    started = time.monotonic()
    student = store.get_student(student_id)
    handle = student.codeforces_handle
    result = SyncResult(success=False)

    result.ratings_updated = bool(_run_step(result, "ratings", _refresh_ratings, student))
    result.contests_added = _run_step(result, "contests", _merge_contests, student) or 0
    result.submissions_added = _run_step(result, "submissions", _merge_submissions, student) or 0

    student.last_sync_date = timezone.now()
    try:
        store.save_student(student, update_fields=["current_rating", "max_rating", "last_sync_date"])
    except StorageFailure as exc:
        logger.error("[SYNC] Could not save %s: %s", handle, exc)
        result.errors.append(f"save: {exc}")

    result.success = not result.errors
    if result.success:
        result.message = (
            f"Synced {handle}: {result.contests_added} new contests, "
            f"{result.submissions_added} new submissions."
        )
    else:
        result.message = f"Sync for {handle} incomplete ({'; '.join(result.errors)}). Retry to reconcile."

    logger.info(
        "[SYNC] handle=%s success=%s ratings_updated=%s rating=%s max_rating=%s contests_added=%s submissions_added=%s duration_ms=%s",
        handle,
        result.success,
        result.ratings_updated,
        student.current_rating,
        student.max_rating,
        result.contests_added,
        result.submissions_added,
        int((time.monotonic() - started) * 1000),
    )
    return result


def sync_student(student_id) -> SyncResult:
    """
    Refreshes one student from Codeforces: ratings, new contests, new
    submissions, then the sync timestamp.

    Raises StudentNotFound for an unknown id. Any other failure comes back
    as SyncResult(success=False). Running it again with unchanged upstream
    data only moves `last_sync_date`.
    """
    try:
        student = store.get_student(student_id)
        with student_sync_lock(student.id):
            return _sync_locked(student.id)
    except StorageFailure as exc:
        logger.error("[SYNC] Storage failure for student %s: %s", student_id, exc)
        return SyncResult(success=False, message=f"Storage error: {exc}", errors=[str(exc)])
    except TimeoutError as exc:
        logger.warning("[SYNC] %s", exc)
        return SyncResult(success=False, message="Another sync for this student is still running.")
