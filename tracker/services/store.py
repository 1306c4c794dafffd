"""
Storage contract of the sync engine.

Writes into the two append-only collections go through `bulk_create` with
`ignore_conflicts=True`: the natural keys (student, contest_id) and
(student, submission_id) make a repeated or concurrent insert a no-op.
Database errors leave this module as StorageFailure.
"""
from datetime import datetime
from functools import wraps
from typing import Iterable

from django.db import DatabaseError, IntegrityError
from django.db.models import Q

from tracker.exceptions import DuplicateKey, StorageFailure, StudentNotFound
from tracker.models import ContestParticipation, Student, Submission, Verdict
from tracker.services.codeforces_client import ContestEntry, SubmissionEntry


def _storage_errors(func):
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except IntegrityError as exc:
            raise DuplicateKey(f"{func.__name__}: {exc}") from exc
        except DatabaseError as exc:
            raise StorageFailure(f"{func.__name__}: {exc}") from exc
    return wrapper


# --- Students ---

@_storage_errors
def get_student(student_id) -> Student:
    try:
        return Student.objects.get(pk=student_id)
    except Student.DoesNotExist:
        raise StudentNotFound(student_id) from None


@_storage_errors
def find_student_by_email_or_handle(email=None, handle=None, exclude_id=None) -> Student | None:
    query = Q()
    if email:
        query |= Q(email__iexact=email)
    if handle:
        query |= Q(codeforces_handle__iexact=handle)
    if not query:
        return None
    qs = Student.objects.filter(query)
    if exclude_id is not None:
        qs = qs.exclude(pk=exclude_id)
    return qs.first()


@_storage_errors
def save_student(student: Student, update_fields: list[str] | None = None) -> Student:
    if update_fields and student.pk:
        student.save(update_fields=[*update_fields, "updated_at"])
    else:
        student.save()
    return student


@_storage_errors
def delete_student(student_id) -> None:
    # Contest participations and submissions go with it (on_delete=CASCADE).
    deleted, _ = Student.objects.filter(pk=student_id).delete()
    if not deleted:
        raise StudentNotFound(student_id)


@_storage_errors
def list_student_ids() -> list[int]:
    return list(Student.objects.order_by("id").values_list("id", flat=True))


# --- Contest participations ---

@_storage_errors
def existing_contest_ids(student_id) -> set[int]:
    return set(
        ContestParticipation.objects.filter(student_id=student_id).values_list("contest_id", flat=True)
    )


@_storage_errors
def insert_contests(student_id, entries: Iterable[ContestEntry]) -> int:
    objects = [
        ContestParticipation(
            student_id=student_id,
            contest_id=entry.contest_id,
            contest_name=entry.contest_name,
            rank=entry.rank,
            old_rating=entry.old_rating,
            new_rating=entry.new_rating,
            rating_change=entry.new_rating - entry.old_rating,
            contest_time=entry.rating_update_time,
        )
        for entry in entries
    ]
    if not objects:
        return 0
    ContestParticipation.objects.bulk_create(objects, ignore_conflicts=True)
    return len(objects)


@_storage_errors
def contests_for_student(student_id, since: datetime | None = None) -> list[ContestParticipation]:
    qs = ContestParticipation.objects.filter(student_id=student_id)
    if since is not None:
        qs = qs.filter(contest_time__gte=since)
    return list(qs.order_by("contest_time", "id"))


# --- Submissions ---

@_storage_errors
def existing_submission_ids(student_id) -> set[int]:
    return set(
        Submission.objects.filter(student_id=student_id).values_list("submission_id", flat=True)
    )


@_storage_errors
def insert_submissions(student_id, entries: Iterable[SubmissionEntry]) -> int:
    objects = [
        Submission(
            student_id=student_id,
            submission_id=entry.submission_id,
            problem_id=entry.problem_id[:200],
            problem_name=entry.problem_name[:300],
            problem_rating=entry.problem_rating,
            verdict=Verdict.from_codeforces(entry.verdict),
            raw_verdict=entry.verdict[:50],
            submission_time=entry.submission_time,
        )
        for entry in entries
    ]
    if not objects:
        return 0
    Submission.objects.bulk_create(objects, ignore_conflicts=True, batch_size=500)
    return len(objects)


@_storage_errors
def accepted_submissions(student_id, since: datetime | None = None) -> list[Submission]:
    qs = Submission.objects.filter(student_id=student_id, verdict=Verdict.ACCEPTED)
    if since is not None:
        qs = qs.filter(submission_time__gte=since)
    return list(qs.order_by("submission_time", "id"))


@_storage_errors
def has_accepted_submission_since(student_id, since: datetime) -> bool:
    return Submission.objects.filter(
        student_id=student_id,
        verdict=Verdict.ACCEPTED,
        submission_time__gte=since,
    ).exists()
