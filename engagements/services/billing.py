from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from django.db import transaction

from core.accounting_defaults import ensure_customer_account
from core.models import Invoice, PaymentTerms

from ..exceptions import LedgerMappingMissing, NoValidPrice
from ..models import CustomerServicePrice, Period

logger = logging.getLogger(__name__)

MONEY_QUANT = Decimal("0.01")

PAYMENT_TERM_DAYS = {
    PaymentTerms.NET_15: 15,
    PaymentTerms.NET_30: 30,
    PaymentTerms.NET_45: 45,
    PaymentTerms.NET_60: 60,
    PaymentTerms.DUE_ON_RECEIPT: 0,
}
DEFAULT_PAYMENT_TERM_DAYS = 30

FALLBACK_INVOICE_PREFIX = "INV-"
FALLBACK_INVOICE_WIDTH = 4


def _money(value) -> Decimal:
    return Decimal(str(value or Decimal("0.00"))).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class BillingBreakdown:
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total: Decimal


def _split_target(target):
    if isinstance(target, Period):
        return target, target.engagement
    return None, target


def resolve_amount(target) -> Decimal:
    """
    Billable amount for a Period or an Engagement.
    Period override, then engagement amount, then the customer's price, then the service default.
    """
    period, engagement = _split_target(target)
    candidates = []
    if period is not None:
        candidates.append(period.billing_amount)
    candidates.append(engagement.billing_amount)

    customer_price = (
        CustomerServicePrice.objects.filter(customer_id=engagement.customer_id, service_id=engagement.service_id)
        .values_list("price", flat=True)
        .first()
    )
    candidates.append(customer_price)
    candidates.append(engagement.service.default_price)

    for value in candidates:
        if value is not None:
            return _money(value)
    raise NoValidPrice(f"No valid price for engagement {engagement.pk}.")


def resolve_tax(amount: Decimal, rate: Decimal) -> Decimal:
    return _money(Decimal(str(amount)) * Decimal(str(rate or 0)) / Decimal("100"))


def resolve_billing(target) -> BillingBreakdown:
    _, engagement = _split_target(target)
    amount = resolve_amount(target)
    rate = engagement.service.tax_rate or Decimal("0.00")
    tax = resolve_tax(amount, rate)
    return BillingBreakdown(subtotal=amount, tax_rate=rate, tax_amount=tax, total=_money(amount + tax))


def resolve_ledger_accounts(engagement):
    """
    (income_account, customer_account) for an engagement's invoice.

    One-off engagements are never mapped automatically. Recurring engagements
    must resolve an income ledger; the customer ledger is created on demand.
    """
    if not engagement.is_recurring:
        return None, None

    income_account = engagement.service.income_account or engagement.business.default_income_account
    if income_account is None:
        raise LedgerMappingMissing(
            f"No income ledger for service {engagement.service_id} or business {engagement.business_id}."
        )

    customer = engagement.customer
    try:
        with transaction.atomic():
            customer_account = ensure_customer_account(customer)
    except Exception:
        logger.exception("Could not create a ledger for customer %s; leaving it for manual completion", customer.pk)
        customer_account = None
    return income_account, customer_account


def format_invoice_number(business, sequence: int) -> str:
    if business.has_invoice_numbering:
        width = business.invoice_number_width or FALLBACK_INVOICE_WIDTH
        return f"{business.invoice_prefix}{str(sequence).zfill(width)}{business.invoice_suffix or ''}"
    return f"{FALLBACK_INVOICE_PREFIX}{str(sequence).zfill(FALLBACK_INVOICE_WIDTH)}"


def resolve_invoice_number(business) -> str:
    """Next free invoice number: starting sequence + existing invoice count, skipping numbers already taken."""
    starting = business.invoice_starting_number if business.has_invoice_numbering else None
    sequence = (starting if starting is not None else 1) + Invoice.objects.filter(business=business).count()
    number = format_invoice_number(business, sequence)
    while Invoice.objects.filter(business=business, invoice_number=number).exists():
        sequence += 1
        number = format_invoice_number(business, sequence)
    return number


def resolve_due_date(payment_terms: Optional[str], issue_date: date) -> date:
    days = PAYMENT_TERM_DAYS.get(payment_terms, DEFAULT_PAYMENT_TERM_DAYS)
    return issue_date + timedelta(days=days)
