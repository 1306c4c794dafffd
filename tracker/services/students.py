import logging

from tracker.exceptions import DuplicateKey, StudentAlreadyExists
from tracker.models import Student
from tracker.services import store
from tracker.services.codeforces_client import normalize_handle
from tracker.services.notifications import check_inactivity
from tracker.services.sync import SyncResult, sync_student

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("name", "email", "phone_number", "codeforces_handle", "disable_email_reminders")


def register_student(name, email, codeforces_handle, phone_number="") -> tuple[Student, SyncResult]:
    """
    Creates a student and runs the first sync. The student is kept even
    when that sync fails; the next one fills the gap.
    """
    handle = normalize_handle(codeforces_handle)
    email = (email or "").strip()
    name = (name or "").strip()
    if not name or not email or not handle:
        raise ValueError("Name, email and Codeforces handle are required.")

    if store.find_student_by_email_or_handle(email=email, handle=handle):
        raise StudentAlreadyExists("Student with this email or Codeforces handle already exists.")

    try:
        student = store.save_student(Student(
            name=name,
            email=email,
            phone_number=(phone_number or "").strip(),
            codeforces_handle=handle,
        ))
    except DuplicateKey as exc:
        # Registered concurrently after the lookup above.
        raise StudentAlreadyExists("Student with this email or Codeforces handle already exists.") from exc
    logger.info("Student %s created with ID %s; running initial sync.", student.name, student.id)

    result = sync_student(student.id)
    if not result.success:
        logger.warning("Initial sync failed for new student %s: %s", student.name, result.message)
    return store.get_student(student.id), result


def update_student(student_id, **changes) -> tuple[Student, SyncResult]:
    """
    Applies profile edits, re-syncs, and runs the inactivity check when
    reminders were switched back on.
    """
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValueError(f"Unknown student fields: {', '.join(sorted(unknown))}")

    student = store.get_student(student_id)
    reminders_were_disabled = student.disable_email_reminders

    if changes.get("codeforces_handle"):
        changes["codeforces_handle"] = normalize_handle(changes["codeforces_handle"])
    email = changes.get("email")
    handle = changes.get("codeforces_handle")
    if email and email != student.email and store.find_student_by_email_or_handle(email=email, exclude_id=student.id):
        raise StudentAlreadyExists("Email already exists for another student.")
    if handle and handle != student.codeforces_handle and store.find_student_by_email_or_handle(handle=handle, exclude_id=student.id):
        raise StudentAlreadyExists("Codeforces handle already exists for another student.")

    updated_fields = []
    for field_name, value in changes.items():
        if value is None:
            continue
        if field_name in ("name", "email", "codeforces_handle") and not value:
            continue
        setattr(student, field_name, value)
        updated_fields.append(field_name)
    if updated_fields:
        store.save_student(student, update_fields=updated_fields)
        logger.info("Student %s updated: %s", student.name, ", ".join(updated_fields))

    result = sync_student(student.id)
    if not result.success:
        logger.warning("Sync after update for %s FAILED: %s", student.name, result.message)

    if reminders_were_disabled and not student.disable_email_reminders:
        logger.info("Email reminders re-enabled for %s. Checking for inactivity.", student.name)
        check_inactivity(student.id)

    return store.get_student(student.id), result


def delete_student(student_id) -> None:
    store.delete_student(student_id)
    logger.info("Student %s and all associated data deleted.", student_id)


def trigger_manual_sync(student_id) -> SyncResult:
    result = sync_student(student_id)
    if result.success:
        # Reads the student again, after the sync wrote it.
        check_inactivity(student_id)
    return result
