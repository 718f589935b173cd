"""
Management command: notify_overdue_cases
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Reminds handlers about cases still RECEIVED or IN_PROGRESS whose start
date is older than the overdue threshold
(``CASES_OVERDUE_THRESHOLD_HOURS``, 18 by default).

The command is **idempotent**: a handler is reminded once per case, so it
is safe to run from cron as often as needed.

Usage::

    python manage.py notify_overdue_cases
    python manage.py notify_overdue_cases --hours 24
"""

from django.core.management.base import BaseCommand, CommandError

from cases.services import OverdueCaseService


class Command(BaseCommand):
    help = "Notify handlers about cases left open past the overdue threshold."

    def add_arguments(self, parser):
        parser.add_argument(
            "--hours",
            type=int,
            default=None,
            help="Override the overdue threshold in hours.",
        )

    def handle(self, *args, **options):
        hours = options["hours"]
        if hours is not None and hours <= 0:
            raise CommandError("--hours must be a positive number of hours.")

        sent = OverdueCaseService.notify_overdue_cases(threshold_hours=hours)

        self.stdout.write(self.style.SUCCESS(
            f"{sent} overdue reminder(s) sent."
        ))
