import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone

import requests
from django.conf import settings

from tracker.exceptions import HandleNotFound, UpstreamUnavailable

logger = logging.getLogger(__name__)

# Checked in order; the first matching prefix is stripped.
PROFILE_URL_PREFIXES = (
    "https://codeforces.com/profile/",
    "http://codeforces.com/profile/",
    "codeforces.com/profile/",
)


@dataclass(frozen=True)
class UserInfo:
    rating: int | None
    max_rating: int | None


@dataclass(frozen=True)
class ContestEntry:
    contest_id: int
    contest_name: str
    rank: int
    old_rating: int
    new_rating: int
    rating_update_time: datetime


@dataclass(frozen=True)
class SubmissionEntry:
    submission_id: int
    problem_id: str
    problem_name: str
    problem_rating: int
    verdict: str
    submission_time: datetime


def normalize_handle(raw_handle: str | None) -> str:
    if not raw_handle:
        return ""
    cleaned = raw_handle.strip()
    for prefix in PROFILE_URL_PREFIXES:
        if cleaned.startswith(prefix):
            cleaned = cleaned[len(prefix):]
            break
    return cleaned.strip()


def _numeric(value) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


def _from_timestamp(seconds) -> datetime:
    return datetime.fromtimestamp(int(seconds), tz=timezone.utc)


class CodeforcesClient:
    MAX_RETRIES = 3

    @staticmethod
    def _base_url() -> str:
        return getattr(settings, "CODEFORCES_API_URL", "https://codeforces.com/api").rstrip("/")

    @classmethod
    def _call(cls, method: str, params: dict) -> list:
        """
        Calls one API method and returns its `result` list.
        Raises UpstreamUnavailable once retries are exhausted, and
        HandleNotFound when the handle does not exist.
        """
        url = f"{cls._base_url()}/{method}"
        timeout = getattr(settings, "CODEFORCES_TIMEOUT_SECONDS", 10)

        for attempt in range(cls.MAX_RETRIES):
            try:
                response = requests.get(url, params=params, timeout=timeout)
            except requests.RequestException as exc:
                if attempt < cls.MAX_RETRIES - 1:
                    time.sleep(2 ** attempt)
                    continue
                raise UpstreamUnavailable(f"{method}: connection error: {exc}") from exc

            if response.status_code == 429 or response.status_code >= 500:
                if attempt < cls.MAX_RETRIES - 1:
                    time.sleep(2 ** attempt)
                    continue
                raise UpstreamUnavailable(f"{method}: HTTP {response.status_code}")

            # 400 answers still carry a FAILED status and a comment.
            try:
                data = response.json()
            except ValueError as exc:
                raise UpstreamUnavailable(f"{method}: HTTP {response.status_code}, body is not JSON") from exc

            if not isinstance(data, dict):
                raise UpstreamUnavailable(f"{method}: unexpected payload type {type(data).__name__}")

            if data.get("status") != "OK":
                comment = data.get("comment") or "Unknown error"
                if "limit" in comment.lower() and attempt < cls.MAX_RETRIES - 1:
                    time.sleep(2 ** attempt)
                    continue
                if "not found" in comment.lower():
                    raise HandleNotFound(f"{method}: {comment}")
                raise UpstreamUnavailable(f"{method}: {comment}")

            result = data.get("result")
            if not isinstance(result, list):
                raise UpstreamUnavailable(f"{method}: missing result list")
            return result

        raise UpstreamUnavailable(f"{method}: retries exhausted")

    @classmethod
    def get_user_info(cls, handle: str | None) -> UserInfo | None:
        """
        None means "could not find out". A returned UserInfo with rating None
        means the handle is unrated or does not exist on Codeforces.
        """
        cleaned = normalize_handle(handle)
        if not cleaned:
            logger.warning("get_user_info: no valid handle in %r", handle)
            return None

        try:
            result = cls._call("user.info", {"handles": cleaned})
            if not result:
                raise UpstreamUnavailable("user.info: empty result")
            payload = result[0]
            return UserInfo(
                rating=_numeric(payload.get("rating")),
                max_rating=_numeric(payload.get("maxRating")),
            )
        except HandleNotFound as exc:
            logger.warning("Codeforces has no user %s: %s", cleaned, exc)
            return UserInfo(rating=None, max_rating=None)
        except UpstreamUnavailable as exc:
            logger.warning("Codeforces user info unavailable for %s: %s", cleaned, exc)
            return None
        except (AttributeError, TypeError) as exc:
            logger.error("Malformed user.info payload for %s: %s", cleaned, exc)
            return None

    @classmethod
    def get_rating_history(cls, handle: str | None) -> list[ContestEntry]:
        cleaned = normalize_handle(handle)
        if not cleaned:
            logger.warning("get_rating_history: no valid handle in %r", handle)
            return []

        try:
            result = cls._call("user.rating", {"handle": cleaned})
            return [
                ContestEntry(
                    contest_id=int(row["contestId"]),
                    contest_name=row.get("contestName") or "",
                    rank=int(row["rank"]),
                    old_rating=int(row["oldRating"]),
                    new_rating=int(row["newRating"]),
                    rating_update_time=_from_timestamp(row["ratingUpdateTimeSeconds"]),
                )
                for row in result
            ]
        except UpstreamUnavailable as exc:
            logger.warning("Codeforces rating history unavailable for %s: %s", cleaned, exc)
            return []
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            logger.error("Malformed user.rating payload for %s: %s", cleaned, exc)
            return []

    @classmethod
    def get_submissions(cls, handle: str | None, count: int | None = None) -> list[SubmissionEntry]:
        """
        Fetches the most recent `count` submissions (one page, newest first).
        """
        cleaned = normalize_handle(handle)
        if not cleaned:
            logger.warning("get_submissions: no valid handle in %r", handle)
            return []

        if count is None:
            count = getattr(settings, "CODEFORCES_SUBMISSIONS_PAGE_SIZE", 1000)

        try:
            result = cls._call("user.status", {"handle": cleaned, "from": 1, "count": int(count)})
            submissions = []
            for sub in result:
                problem = sub.get("problem") or {}
                name = problem.get("name") or ""
                if problem.get("contestId"):
                    problem_id = f"{problem['contestId']}-{problem.get('index', '')}"
                else:
                    problem_id = name
                submissions.append(SubmissionEntry(
                    submission_id=int(sub["id"]),
                    problem_id=problem_id,
                    problem_name=name,
                    problem_rating=_numeric(problem.get("rating")) or 0,
                    verdict=sub.get("verdict") or "UNKNOWN",
                    submission_time=_from_timestamp(sub["creationTimeSeconds"]),
                ))
            return submissions
        except UpstreamUnavailable as exc:
            logger.warning("Codeforces submissions unavailable for %s: %s", cleaned, exc)
            return []
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            logger.error("Malformed user.status payload for %s: %s", cleaned, exc)
            return []
