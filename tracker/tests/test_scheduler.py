import threading
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch
from zoneinfo import ZoneInfo

from django.test import SimpleTestCase

from tracker.cron import next_fire_time, parse_cron
from tracker.exceptions import ScheduleError
from tracker.scheduler import SyncScheduler
from tracker.services.locks import SWEEP_LOCK_KEY


class CronTests(SimpleTestCase):
    def test_daily_schedule(self):
        schedule = parse_cron("0 2 * * *")
        now = datetime(2026, 10, 17, 1, 30, tzinfo=timezone.utc)

        self.assertEqual(next_fire_time(schedule, now), datetime(2026, 10, 17, 2, 0, tzinfo=timezone.utc))
        self.assertEqual(
            next_fire_time(schedule, datetime(2026, 10, 17, 2, 0, tzinfo=timezone.utc)),
            datetime(2026, 10, 18, 2, 0, tzinfo=timezone.utc),
        )

    def test_weekday_and_step_fields(self):
        # 2026-10-17 is a Saturday.
        schedule = parse_cron("*/15 9 * * mon")
        now = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)

        self.assertEqual(next_fire_time(schedule, now), datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc))

    def test_schedule_is_read_in_the_given_timezone(self):
        kolkata = ZoneInfo("Asia/Kolkata")
        now = datetime(2026, 10, 17, 1, 0, tzinfo=kolkata)

        self.assertEqual(next_fire_time(parse_cron("0 2 * * *"), now), datetime(2026, 10, 17, 2, 0, tzinfo=kolkata))

    def test_time_skipped_by_spring_forward_runs_at_the_shifted_instant(self):
        new_york = ZoneInfo("America/New_York")
        now = datetime(2026, 3, 8, 1, 0, tzinfo=new_york)

        fire = next_fire_time(parse_cron("30 2 * * *"), now)

        self.assertEqual(fire, datetime(2026, 3, 8, 7, 30, tzinfo=timezone.utc))
        self.assertEqual((fire.hour, fire.minute), (3, 30))

    def test_repeated_fall_back_time_fires_once(self):
        new_york = ZoneInfo("America/New_York")
        schedule = parse_cron("30 1 * * *")

        before = datetime(2026, 11, 1, 0, 50, tzinfo=new_york)
        self.assertEqual(next_fire_time(schedule, before), datetime(2026, 11, 1, 5, 30, tzinfo=timezone.utc))

        # 01:10 EST, after the clocks went back past the first 01:30.
        second_pass = datetime(2026, 11, 1, 1, 10, fold=1, tzinfo=new_york)
        self.assertEqual(next_fire_time(schedule, second_pass), datetime(2026, 11, 2, 6, 30, tzinfo=timezone.utc))

    def test_invalid_expressions(self):
        for expression in ("", "0 2 * *", "0 2 * * * *", "61 2 * * *", "0 xx * * *"):
            with self.subTest(expression=expression):
                with self.assertRaises(ScheduleError):
                    parse_cron(expression)


class SyncSchedulerTests(SimpleTestCase):
    # run_once calls close_old_connections(), which touches the DB connection.
    databases = "__all__"

    def setUp(self):
        self.sweep = MagicMock(return_value={"students": 0})
        self.acquire_mock = self._start(patch("tracker.scheduler.acquire_lock", return_value=True))
        self.release_mock = self._start(patch("tracker.scheduler.release_lock"))
        self.scheduler = SyncScheduler("0 2 * * *", "UTC", sweep=self.sweep)
        self.addCleanup(self.scheduler.stop)

    def _start(self, patcher):
        mock = patcher.start()
        self.addCleanup(patcher.stop)
        return mock

    def test_next_run_delay(self):
        now = datetime(2026, 10, 17, 1, 0, tzinfo=timezone.utc)

        self.assertEqual(self.scheduler.next_run_delay(now), timedelta(hours=1))

    def test_delay_counts_real_time_across_a_dst_change(self):
        scheduler = SyncScheduler("0 3 * * *", "America/New_York", sweep=self.sweep)
        now = datetime(2026, 11, 1, 0, 0, tzinfo=ZoneInfo("America/New_York"))

        self.assertEqual(scheduler.next_run_delay(now), timedelta(hours=4))

    def test_start_and_stop(self):
        self.scheduler.start()
        self.assertTrue(self.scheduler.is_running)
        self.assertIsNotNone(self.scheduler.next_run)

        self.scheduler.stop()
        self.assertFalse(self.scheduler.is_running)
        self.sweep.assert_not_called()

    def test_reschedule_replaces_the_pending_timer(self):
        self.scheduler.start()
        old_timer = self.scheduler._timer

        self.scheduler.reschedule("30 3 * * *")

        self.assertEqual(self.scheduler.cron_expression, "30 3 * * *")
        self.assertTrue(old_timer.finished.is_set())
        self.assertIsNot(self.scheduler._timer, old_timer)
        self.assertEqual((self.scheduler.next_run.hour, self.scheduler.next_run.minute), (3, 30))

    def test_invalid_reschedule_keeps_the_current_schedule(self):
        self.scheduler.start()
        timer = self.scheduler._timer

        with self.assertRaises(ScheduleError):
            self.scheduler.reschedule("not a cron")

        self.assertEqual(self.scheduler.cron_expression, "0 2 * * *")
        self.assertIs(self.scheduler._timer, timer)

    def test_unknown_timezone(self):
        with self.assertRaises(ScheduleError):
            SyncScheduler("0 2 * * *", "Mars/Olympus_Mons", sweep=self.sweep)

    def test_run_once_returns_the_summary(self):
        self.assertEqual(self.scheduler.run_once(), {"students": 0})
        self.assertEqual(self.scheduler.last_summary, {"students": 0})

    def test_run_once_holds_the_shared_sweep_lock(self):
        self.scheduler.run_once()

        self.assertEqual(self.acquire_mock.call_args.args[0], SWEEP_LOCK_KEY)
        self.release_mock.assert_called_once_with(SWEEP_LOCK_KEY)

    def test_sweep_running_in_another_process_is_skipped(self):
        self.acquire_mock.return_value = False

        self.assertIsNone(self.scheduler.run_once())

        self.sweep.assert_not_called()
        self.release_mock.assert_not_called()
        self.assertFalse(self.scheduler.sweep_in_progress)

    def test_overlapping_run_is_skipped(self):
        started = threading.Event()
        release = threading.Event()

        def slow_sweep():
            started.set()
            release.wait(5)
            return {"students": 1}

        scheduler = SyncScheduler("0 2 * * *", "UTC", sweep=slow_sweep)
        worker = threading.Thread(target=scheduler.run_once)
        worker.start()
        started.wait(5)

        self.assertTrue(scheduler.sweep_in_progress)
        self.assertIsNone(scheduler.run_once())

        release.set()
        worker.join(5)
        self.assertFalse(scheduler.sweep_in_progress)
        self.assertEqual(scheduler.last_summary, {"students": 1})

    def test_sweep_errors_do_not_escape(self):
        self.sweep.side_effect = RuntimeError("boom")

        with self.assertLogs("tracker.scheduler", level="ERROR"):
            self.assertIsNone(self.scheduler.run_once())
        self.assertFalse(self.scheduler.sweep_in_progress)

    def test_fired_timer_runs_the_sweep_and_rearms(self):
        self.scheduler.start()
        generation = self.scheduler._generation
        slot = self.scheduler.next_run

        self.scheduler._fire(generation)

        self.sweep.assert_called_once_with()
        self.assertTrue(self.scheduler.is_running)
        self.assertGreater(self.scheduler.next_run, slot)

    def test_stale_timer_is_ignored(self):
        self.scheduler.start()
        stale = self.scheduler._generation
        self.scheduler.reschedule("30 3 * * *")

        self.scheduler._fire(stale)

        self.sweep.assert_not_called()
