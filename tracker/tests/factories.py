from datetime import timedelta
from unittest.mock import patch

import redis
from django.utils import timezone

from tracker.models import ContestParticipation, Student, Submission, Verdict
from tracker.services.codeforces_client import ContestEntry, SubmissionEntry, UserInfo


def make_student(**overrides) -> Student:
    fields = {
        "name": "Alice",
        "email": "alice@example.com",
        "codeforces_handle": "alice_cf",
    }
    fields.update(overrides)
    return Student.objects.create(**fields)


def contest_entry(contest_id, old_rating=1500, new_rating=1550, days_ago=10, **overrides) -> ContestEntry:
    fields = {
        "contest_id": contest_id,
        "contest_name": f"Round {contest_id}",
        "rank": 100,
        "old_rating": old_rating,
        "new_rating": new_rating,
        "rating_update_time": timezone.now() - timedelta(days=days_ago),
    }
    fields.update(overrides)
    return ContestEntry(**fields)


def submission_entry(submission_id, problem_id="1-A", rating=1200, verdict="OK", days_ago=1, **overrides) -> SubmissionEntry:
    fields = {
        "submission_id": submission_id,
        "problem_id": problem_id,
        "problem_name": f"Problem {problem_id}",
        "problem_rating": rating,
        "verdict": verdict,
        "submission_time": timezone.now() - timedelta(days=days_ago),
    }
    fields.update(overrides)
    return SubmissionEntry(**fields)


def add_submission(student, submission_id, problem_id="1-A", rating=1200, verdict=Verdict.ACCEPTED, when=None, name=None) -> Submission:
    return Submission.objects.create(
        student=student,
        submission_id=submission_id,
        problem_id=problem_id,
        problem_name=name or f"Problem {problem_id}",
        problem_rating=rating,
        verdict=verdict,
        raw_verdict=str(verdict),
        submission_time=when or timezone.now(),
    )


def add_contest(student, contest_id, old_rating=1500, new_rating=1550, when=None) -> ContestParticipation:
    return ContestParticipation.objects.create(
        student=student,
        contest_id=contest_id,
        contest_name=f"Round {contest_id}",
        rank=100,
        old_rating=old_rating,
        new_rating=new_rating,
        contest_time=when or timezone.now(),
    )


class CodeforcesStubMixin:
    """
    Replaces the Codeforces client with canned data and makes Redis
    unreachable so per-student locks fall back to the in-process lock.
    """

    user_info = UserInfo(rating=1550, max_rating=1600)
    rating_history: list = []
    submissions: list = []

    def setUp(self):
        super().setUp()
        client = "tracker.services.sync.CodeforcesClient"
        self.user_info_mock = self._start(patch(f"{client}.get_user_info", side_effect=lambda handle: self.user_info))
        self.history_mock = self._start(patch(f"{client}.get_rating_history", side_effect=lambda handle: list(self.rating_history)))
        self.submissions_mock = self._start(patch(f"{client}.get_submissions", side_effect=lambda handle: list(self.submissions)))
        self._start(patch(
            "tracker.services.locks.get_redis_client",
            side_effect=redis.ConnectionError("redis is not running"),
        ))

    def _start(self, patcher):
        mock = patcher.start()
        self.addCleanup(patcher.stop)
        return mock
