from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone as dt_timezone
from typing import Iterable

from django.utils import timezone

from tracker.models import ContestParticipation, Submission
from tracker.services import store

HEATMAP_DAYS = 90

# (label, lower bound inclusive, upper bound exclusive)
RATING_BUCKETS = [
    ("800-1000", 800, 1000),
    ("1000-1200", 1000, 1200),
    ("1200-1400", 1200, 1400),
    ("1400-1600", 1400, 1600),
    ("1600-1800", 1600, 1800),
    ("1800-2000", 1800, 2000),
    ("2000+", 2000, None),
]

WINDOW_FILTERS = {
    "7d": 7,
    "30d": 30,
    "90d": 90,
    "365d": 365,
}

EPOCH = datetime(1970, 1, 1, tzinfo=dt_timezone.utc)


@dataclass
class ProblemMetrics:
    most_difficult_problem: str = "N/A"
    total_problems_solved: int = 0
    average_rating: float = 0
    average_problems_per_day: float = 0
    rating_buckets: dict[str, int] = field(default_factory=dict)
    heatmap: dict[str, int] = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {
            "metrics": {
                "mostDifficultProblem": self.most_difficult_problem,
                "totalProblemsSolved": self.total_problems_solved,
                "averageRating": self.average_rating,
                "averageProblemsPerDay": self.average_problems_per_day,
            },
            "ratingBuckets": self.rating_buckets,
            "heatmapData": self.heatmap,
        }


def parse_window(value: str | None) -> timedelta | None:
    """'30d' -> timedelta(days=30). Unknown or empty filters mean all time."""
    days = WINDOW_FILTERS.get((value or "").strip().lower())
    if days is None:
        return None
    return timedelta(days=days)


def bucket_for(rating: int | None) -> str | None:
    if not rating or rating < 800:
        return None
    for label, low, high in RATING_BUCKETS:
        if rating >= low and (high is None or rating < high):
            return label
    return None


def rating_histogram(ratings: Iterable[int]) -> dict[str, int]:
    buckets = {label: 0 for label, _, _ in RATING_BUCKETS}
    for rating in ratings:
        label = bucket_for(rating)
        if label:
            buckets[label] += 1
    return buckets


def build_heatmap(submission_times: Iterable[datetime], today: date) -> dict[str, int]:
    days = [today - timedelta(days=offset) for offset in range(HEATMAP_DAYS)]
    heatmap = {day.isoformat(): 0 for day in days}
    for moment in submission_times:
        key = timezone.localtime(moment).date().isoformat()
        if key in heatmap:
            heatmap[key] += 1
    return heatmap


def summarize_submissions(
    submissions: list[Submission],
    window: timedelta | None,
    now: datetime,
) -> ProblemMetrics:
    """
    Window metrics over accepted submissions, already filtered to the window
    and ordered chronologically.
    """
    metrics = ProblemMetrics(rating_buckets=rating_histogram(s.problem_rating for s in submissions))

    hardest = None
    problem_ids = set()
    rating_sum = 0
    for sub in submissions:
        if sub.problem_rating > 0 and (hardest is None or sub.problem_rating > hardest.problem_rating):
            hardest = sub
        problem_ids.add(sub.problem_id)
        rating_sum += sub.problem_rating

    if hardest is not None:
        metrics.most_difficult_problem = f"{hardest.problem_name} ({hardest.problem_rating})"

    solved = len(problem_ids)
    metrics.total_problems_solved = solved
    if solved:
        metrics.average_rating = round(rating_sum / solved, 2)

    window_start = now - window if window is not None else EPOCH
    days_in_window = (now - window_start).total_seconds() / 86400
    if solved and days_in_window > 0:
        metrics.average_problems_per_day = round(solved / days_in_window, 2)

    return metrics


def compute_metrics(student_id, window: timedelta | None = None, now: datetime | None = None) -> ProblemMetrics:
    """
    Problem-solving analytics for one student.

    `window` bounds the metrics and the histogram; the heatmap always
    covers the trailing 90 days.
    """
    now = now or timezone.now()
    student = store.get_student(student_id)

    since = now - window if window is not None else None
    if window is not None and window <= timedelta(0):
        in_window = []
    else:
        in_window = store.accepted_submissions(student.id, since=since)
    metrics = summarize_submissions(in_window, window, now)

    today = timezone.localtime(now).date()
    heatmap_start = timezone.make_aware(
        datetime.combine(today - timedelta(days=HEATMAP_DAYS - 1), datetime.min.time())
    )
    recent = store.accepted_submissions(student.id, since=heatmap_start)
    metrics.heatmap = build_heatmap((s.submission_time for s in recent), today)
    return metrics


def contest_history(student_id, window: timedelta | None = None, now: datetime | None = None) -> list[ContestParticipation]:
    """Rating trend: participations in the window, oldest first."""
    now = now or timezone.now()
    student = store.get_student(student_id)
    since = now - window if window is not None else None
    return store.contests_for_student(student.id, since=since)
