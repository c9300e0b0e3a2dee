"""
Compare every account's running balance with its posting history.

USAGE:
    python manage.py reconcile_ledger_balances              # report only
    python manage.py reconcile_ledger_balances --fix        # rewrite drifted balances
    python manage.py reconcile_ledger_balances --business 3

Exits with an error when drift is found and --fix was not given.
"""
from django.core.management.base import BaseCommand, CommandError

from core.ledger_services import find_balance_drift, rebuild_account_balances
from core.models import Business


class Command(BaseCommand):
    help = "Check running account balances against opening balance + debits - credits."

    def add_arguments(self, parser):
        parser.add_argument("--business", type=int, help="Only accounts of this business id.")
        parser.add_argument("--fix", action="store_true", help="Rewrite drifted balances.")

    def handle(self, *args, **options):
        business = None
        if options["business"]:
            business = Business.objects.filter(pk=options["business"]).first()
            if business is None:
                raise CommandError(f"Business {options['business']} not found.")

        drift = rebuild_account_balances(business) if options["fix"] else find_balance_drift(business)

        for row in drift:
            self.stdout.write(
                f"{row.account.business_id} {row.account}: stored={row.stored} computed={row.computed} "
                f"difference={row.difference}"
            )

        if not drift:
            self.stdout.write(self.style.SUCCESS("All account balances reconcile."))
        elif options["fix"]:
            self.stdout.write(self.style.SUCCESS(f"Rebuilt {len(drift)} account balances."))
        else:
            raise CommandError(f"{len(drift)} account balances drifted. Re-run with --fix to repair.")
