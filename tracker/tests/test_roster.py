from unittest.mock import MagicMock, patch

from django.core import mail
from django.test import TestCase

from tracker.exceptions import StudentNotFound
from tracker.services.roster import run_roster_sweep
from tracker.services.sync import SyncResult
from tracker.tests.factories import CodeforcesStubMixin, make_student, submission_entry


class RosterSweepTests(CodeforcesStubMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.students = [
            make_student(name=name, email=f"{name}@example.com", codeforces_handle=f"{name}_cf")
            for name in ("ana", "bruno", "caio")
        ]
        self.sleep = MagicMock()

    def test_every_student_is_synced_with_pauses_between_them(self):
        summary = run_roster_sweep(pacing_seconds=1.5, sleep=self.sleep)

        self.assertEqual(summary["students"], 3)
        self.assertEqual(summary["synced"], 3)
        self.assertEqual(summary["failed"], 0)
        self.assertEqual(self.sleep.call_count, 2)
        self.sleep.assert_called_with(1.5)
        handles = [call.args[0] for call in self.user_info_mock.call_args_list]
        self.assertEqual(sorted(handles), ["ana_cf", "bruno_cf", "caio_cf"])

    def test_no_pause_when_pacing_is_zero(self):
        run_roster_sweep(pacing_seconds=0, sleep=self.sleep)

        self.sleep.assert_not_called()

    def test_one_failure_does_not_stop_the_sweep(self):
        real_results = {
            self.students[0].id: SyncResult(success=True),
            self.students[2].id: SyncResult(success=True),
        }

        def fake_sync(student_id):
            if student_id == self.students[1].id:
                raise RuntimeError("unexpected payload")
            return real_results[student_id]

        with patch("tracker.services.roster.sync_student", side_effect=fake_sync) as sync_mock:
            summary = run_roster_sweep(pacing_seconds=0, send_reminders=False, sleep=self.sleep)

        self.assertEqual(sync_mock.call_count, 3)
        self.assertEqual(summary["synced"], 2)
        self.assertEqual(summary["failed"], 1)

    def test_deleted_student_is_counted_as_missing(self):
        def fake_sync(student_id):
            if student_id == self.students[0].id:
                raise StudentNotFound(student_id)
            return SyncResult(success=True)

        with patch("tracker.services.roster.sync_student", side_effect=fake_sync):
            summary = run_roster_sweep(pacing_seconds=0, send_reminders=False, sleep=self.sleep)

        self.assertEqual(summary["missing"], 1)
        self.assertEqual(summary["synced"], 2)

    def test_reminders_go_out_after_the_syncs(self):
        # Only ana solved something recently.
        def submissions_for(handle):
            return [submission_entry(1)] if handle == "ana_cf" else []

        self.submissions_mock.side_effect = submissions_for

        summary = run_roster_sweep(pacing_seconds=0, sleep=self.sleep)

        self.assertEqual(summary["reminders"], 2)
        self.assertEqual(sorted(m.to[0] for m in mail.outbox), ["bruno@example.com", "caio@example.com"])

    def test_reminders_can_be_skipped(self):
        summary = run_roster_sweep(pacing_seconds=0, send_reminders=False, sleep=self.sleep)

        self.assertEqual(summary["reminders"], 0)
        self.assertEqual(mail.outbox, [])

    def test_empty_roster(self):
        for student in self.students:
            student.delete()

        summary = run_roster_sweep(sleep=self.sleep)

        self.assertEqual(summary["students"], 0)
        self.user_info_mock.assert_not_called()
