import logging
from dataclasses import dataclass
from decimal import Decimal

from django.db import transaction
from django.db.models import F, Sum

from .models import Account, LedgerTransaction

logger = logging.getLogger(__name__)


@dataclass
class BalanceDrift:
    account: Account
    stored: Decimal
    computed: Decimal

    @property
    def difference(self) -> Decimal:
        return self.stored - self.computed


def apply_balance_delta(account_id: int, delta: Decimal) -> None:
    """Shift an account's running balance by ``delta`` (debit positive)."""
    if not delta:
        return
    Account.objects.filter(pk=account_id).update(balance=F("balance") + delta)


def get_account_balance(account: Account) -> Decimal:
    """
    Compute the balance for an account from its full posting history.
    Always opening + debits - credits, regardless of account type.
    """
    agg = LedgerTransaction.objects.filter(account=account).aggregate(
        debit_sum=Sum("debit"),
        credit_sum=Sum("credit"),
    )
    debit = agg["debit_sum"] or Decimal("0")
    credit = agg["credit_sum"] or Decimal("0")
    return (account.opening_balance or Decimal("0")) + debit - credit


def find_balance_drift(business=None) -> list[BalanceDrift]:
    accounts = Account.objects.all()
    if business is not None:
        accounts = accounts.filter(business=business)
    drift = []
    for account in accounts.order_by("business_id", "code", "id"):
        computed = get_account_balance(account)
        if computed != account.balance:
            drift.append(BalanceDrift(account=account, stored=account.balance, computed=computed))
    return drift


@transaction.atomic
def rebuild_account_balances(business=None) -> list[BalanceDrift]:
    """Overwrite drifted running balances with the value recomputed from history."""
    drift = find_balance_drift(business)
    for row in drift:
        locked = Account.objects.select_for_update().get(pk=row.account.pk)
        computed = get_account_balance(locked)
        Account.objects.filter(pk=locked.pk).update(balance=computed)
        logger.warning(
            "Rebuilt balance for account %s (%s): %s -> %s",
            locked.pk,
            locked,
            row.stored,
            computed,
        )
    return drift
