"""
Backfill periods and checklist tasks for engagements.

USAGE:
    python manage.py generate_periods                   # every recurring engagement
    python manage.py generate_periods --engagement 42
    python manage.py generate_periods --as-of 2025-03-31 --lookahead one_ahead
    python manage.py generate_periods --regenerate --engagement 42
"""
from django.core.management.base import BaseCommand, CommandError
from django.utils.dateparse import parse_date

from engagements.models import Engagement, Recurrence
from engagements.services.generator import LOOKAHEAD_CHOICES, generate_for_engagement, regenerate_periods


class Command(BaseCommand):
    help = "Create missing periods and tasks for recurring engagements up to a given date."

    def add_arguments(self, parser):
        parser.add_argument("--engagement", type=int, help="Only this engagement id.")
        parser.add_argument("--business", type=int, help="Only engagements of this business id.")
        parser.add_argument("--as-of", dest="as_of", help="Treat this date (YYYY-MM-DD) as today.")
        parser.add_argument("--lookahead", choices=LOOKAHEAD_CHOICES, help="Override PERIOD_LOOKAHEAD.")
        parser.add_argument(
            "--regenerate",
            action="store_true",
            help="Delete unbilled periods first and rebuild them (requires --engagement).",
        )

    def handle(self, *args, **options):
        as_of = None
        if options["as_of"]:
            as_of = parse_date(options["as_of"])
            if as_of is None:
                raise CommandError(f"Invalid --as-of date: {options['as_of']}")

        engagements = Engagement.objects.select_related("service").order_by("id")
        if options["engagement"]:
            engagements = engagements.filter(pk=options["engagement"])
            if not engagements.exists():
                raise CommandError(f"Engagement {options['engagement']} not found.")
        else:
            if options["regenerate"]:
                raise CommandError("--regenerate needs --engagement.")
            engagements = engagements.exclude(recurrence=Recurrence.NONE)
        if options["business"]:
            engagements = engagements.filter(business_id=options["business"])

        total_periods = 0
        total_tasks = 0
        for engagement in engagements:
            if options["regenerate"]:
                result = regenerate_periods(engagement, as_of=as_of, lookahead=options["lookahead"])
            else:
                result = generate_for_engagement(engagement, as_of=as_of, lookahead=options["lookahead"])
            total_periods += result.periods_created
            total_tasks += result.tasks_created
            if options["verbosity"] > 1:
                self.stdout.write(
                    f"Engagement {engagement.pk}: +{result.periods_created} periods, +{result.tasks_created} tasks"
                )

        self.stdout.write(
            self.style.SUCCESS(f"Created {total_periods} periods and {total_tasks} tasks.")
        )
