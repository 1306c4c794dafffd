import threading

from django.core.management.base import BaseCommand, CommandError

from tracker.exceptions import ScheduleError
from tracker.scheduler import SyncScheduler


class Command(BaseCommand):
    help = "Run the roster sync on its cron schedule in the foreground (Ctrl+C to stop)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--cron",
            help="Cron expression, e.g. '0 2 * * *'. Defaults to SYNC_SCHEDULE_CRON.",
        )
        parser.add_argument(
            "--timezone",
            help="Timezone the cron expression is read in. Defaults to SYNC_SCHEDULE_TIMEZONE.",
        )
        parser.add_argument(
            "--run-now",
            action="store_true",
            help="Run one sweep immediately before waiting for the schedule.",
        )

    def handle(self, *args, **options):
        try:
            scheduler = SyncScheduler(
                cron_expression=options.get("cron"),
                tz_name=options.get("timezone"),
            )
        except ScheduleError as exc:
            raise CommandError(str(exc))

        scheduler.start()
        self.stdout.write(
            self.style.SUCCESS(
                f"Scheduler running with '{scheduler.cron_expression}'; next run at {scheduler.next_run}."
            )
        )
        if options.get("run_now"):
            scheduler.run_once()

        stop = threading.Event()
        try:
            while not stop.wait(60):
                pass
        except KeyboardInterrupt:
            self.stdout.write("Stopping scheduler; waiting for any sweep in progress.")
        finally:
            scheduler.stop(wait=True)
