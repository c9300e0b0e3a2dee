"""
Signal handlers for tenant bootstrap and running account balances.
"""
import logging

from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from core.models import Business, LedgerTransaction

logger = logging.getLogger(__name__)


@receiver(post_save, sender=Business)
def seed_accounting_defaults_on_business_create(sender, instance, created, raw, **kwargs):
    if raw or not created:
        return
    from .accounting_defaults import ensure_default_ledgers, ensure_default_voucher_types

    ensure_default_ledgers(instance)
    ensure_default_voucher_types(instance)


# Every insert/delete of a LedgerTransaction moves the account balance exactly once.
@receiver(post_save, sender=LedgerTransaction)
def ledger_transaction_saved(sender, instance, created, raw, **kwargs):
    if raw or not created:
        return
    from .ledger_services import apply_balance_delta

    apply_balance_delta(instance.account_id, instance.signed_amount)


@receiver(post_delete, sender=LedgerTransaction)
def ledger_transaction_deleted(sender, instance, **kwargs):
    from .ledger_services import apply_balance_delta

    apply_balance_delta(instance.account_id, -instance.signed_amount)
