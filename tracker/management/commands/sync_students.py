from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from tracker.exceptions import StudentNotFound
from tracker.services.locks import SWEEP_LOCK_KEY, acquire_lock, release_lock
from tracker.services.roster import run_roster_sweep
from tracker.services.students import trigger_manual_sync


class Command(BaseCommand):
    help = "Sync Codeforces data for one student or for the whole roster."

    def add_arguments(self, parser):
        parser.add_argument(
            "--student-id",
            type=int,
            help="Sync only this student (followed by its inactivity check).",
        )
        parser.add_argument(
            "--no-reminders",
            action="store_true",
            help="Skip the inactivity check after a full sweep.",
        )
        parser.add_argument(
            "--pacing",
            type=float,
            help="Seconds to wait between students. Defaults to SYNC_PACING_SECONDS.",
        )

    def handle(self, *args, **options):
        student_id = options.get("student_id")
        if student_id:
            try:
                result = trigger_manual_sync(student_id)
            except StudentNotFound as exc:
                raise CommandError(str(exc))
            style = self.style.SUCCESS if result.success else self.style.ERROR
            self.stdout.write(style(result.message))
            return

        ttl = getattr(settings, "SYNC_SWEEP_LOCK_SECONDS", 6 * 60 * 60)
        if not acquire_lock(SWEEP_LOCK_KEY, ttl_seconds=ttl):
            raise CommandError("A roster sweep is already running elsewhere; try again later.")
        try:
            summary = run_roster_sweep(
                pacing_seconds=options.get("pacing"),
                send_reminders=not options.get("no_reminders"),
            )
        finally:
            release_lock(SWEEP_LOCK_KEY)

        self.stdout.write(
            self.style.SUCCESS(
                f"Sweep finished: {summary['synced']}/{summary['students']} synced, "
                f"{summary['failed']} failed, {summary['reminders']} reminders sent."
            )
        )
