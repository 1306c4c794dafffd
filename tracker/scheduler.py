import logging
import threading
from datetime import datetime, timedelta, timezone

from django.conf import settings
from django.db import close_old_connections

from tracker.cron import next_fire_time, parse_cron, resolve_timezone
from tracker.services.locks import SWEEP_LOCK_KEY, acquire_lock, release_lock
from tracker.services.roster import run_roster_sweep

logger = logging.getLogger(__name__)


def _utc(moment: datetime) -> datetime:
    return moment.astimezone(timezone.utc)


def _elapsed(start: datetime, end: datetime) -> timedelta:
    # Same-zone aware arithmetic ignores DST offsets.
    return _utc(end) - _utc(start)


class SyncScheduler:
    """
    Runs the roster sweep on a cron schedule inside this process.

    One timer is pending at most. `reschedule` swaps it under a lock, and a
    fire that finds the previous sweep still running is skipped. Stopping
    or rescheduling never interrupts a sweep in flight.
    """

    def __init__(self, cron_expression=None, tz_name=None, sweep=run_roster_sweep):
        self._cron_expression = cron_expression or getattr(settings, "SYNC_SCHEDULE_CRON", "0 2 * * *")
        self._tz_name = tz_name or getattr(settings, "SYNC_SCHEDULE_TIMEZONE", "Asia/Kolkata")
        self._tz = resolve_timezone(self._tz_name)
        self._schedule = parse_cron(self._cron_expression)
        self._sweep = sweep
        self._lock = threading.Lock()
        self._run_lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._generation = 0
        self.next_run: datetime | None = None
        self.last_summary: dict | None = None

    @property
    def cron_expression(self) -> str:
        return self._cron_expression

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._timer is not None

    @property
    def sweep_in_progress(self) -> bool:
        return self._run_lock.locked()

    def next_fire_after(self, moment: datetime) -> datetime:
        return next_fire_time(self._schedule, moment.astimezone(self._tz))

    def next_run_delay(self, now: datetime | None = None) -> timedelta:
        now = now or datetime.now(self._tz)
        return max(_elapsed(now, self.next_fire_after(now)), timedelta(0))

    def start(self) -> None:
        with self._lock:
            self._arm()
        logger.info(
            "[SCHEDULER] Sync scheduled with '%s' (%s). Next run at %s.",
            self._cron_expression,
            self._tz_name,
            self.next_run,
        )

    def stop(self, wait: bool = False) -> None:
        with self._lock:
            self._cancel()
        logger.info("[SCHEDULER] Stopped.")
        if wait:
            # Let the sweep in flight finish.
            with self._run_lock:
                pass

    def reschedule(self, cron_expression: str) -> None:
        schedule = parse_cron(cron_expression)
        with self._lock:
            previous = self._cron_expression
            self._cancel()
            self._cron_expression = cron_expression
            self._schedule = schedule
            self._arm()
        logger.info("[SCHEDULER] Rescheduled from '%s' to '%s'.", previous, cron_expression)

    def run_once(self) -> dict | None:
        """Runs a sweep now unless one is already running."""
        if not self._run_lock.acquire(blocking=False):
            logger.warning("[SCHEDULER] Previous sweep still running; skipping this run.")
            return None
        try:
            # Shared with the Celery sweep task and the sync_students command.
            ttl = getattr(settings, "SYNC_SWEEP_LOCK_SECONDS", 6 * 60 * 60)
            if not acquire_lock(SWEEP_LOCK_KEY, ttl_seconds=ttl):
                logger.warning("[SCHEDULER] Another process is sweeping the roster; skipping this run.")
                return None
            try:
                logger.info("[SCHEDULER] Running roster sync and inactivity check.")
                self.last_summary = self._sweep()
                return self.last_summary
            except Exception:
                logger.exception("[SCHEDULER] Roster sweep failed.")
                return None
            finally:
                release_lock(SWEEP_LOCK_KEY)
        finally:
            close_old_connections()
            self._run_lock.release()

    # Both helpers expect self._lock to be held.
    def _arm(self, after: datetime | None = None) -> None:
        self._cancel()
        self._generation += 1
        now = datetime.now(self._tz)
        # A timer may wake a little early; never hand out the same slot twice.
        self.next_run = self.next_fire_after(max(now, after, key=_utc) if after else now)
        delay = max(_elapsed(now, self.next_run).total_seconds(), 0)
        timer = threading.Timer(delay, self._fire, args=(self._generation,))
        timer.daemon = True
        self._timer = timer
        timer.start()
        logger.debug("[SCHEDULER] Next run at %s.", self.next_run)

    def _cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
            self.next_run = None

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._timer is None:
                return
            self._arm(after=self.next_run)
        self.run_once()
