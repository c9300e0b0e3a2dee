import logging
from datetime import date
from typing import Optional

from django.conf import settings
from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone

from core.models import Invoice, InvoiceItem

from ..exceptions import BillingError
from ..models import Engagement, Period, WorkStatus
from .billing import resolve_billing, resolve_due_date, resolve_invoice_number, resolve_ledger_accounts

logger = logging.getLogger(__name__)

STALE_INVOICE_ORPHAN = "orphan"
STALE_INVOICE_DELETE_DRAFT = "delete_draft"
INVOICE_DELETION_RESET = "reset"
INVOICE_DELETION_KEEP = "keep"


def rollup_status(total: int, completed: int, started: int) -> str:
    if total > 0 and completed == total:
        return WorkStatus.COMPLETED
    if started > 0:
        return WorkStatus.IN_PROGRESS
    return WorkStatus.PENDING


def _task_counts(tasks):
    return tasks.aggregate(
        total=Count("id"),
        completed=Count("id", filter=Q(status=WorkStatus.COMPLETED)),
        started=Count("id", filter=Q(status__in=[WorkStatus.IN_PROGRESS, WorkStatus.COMPLETED])),
    )


@transaction.atomic
def refresh_period_progress(period) -> Period:
    """Recount a period's tasks and move its status; completion raises the invoice."""
    locked = Period.objects.select_for_update().get(pk=period.pk)
    counts = _task_counts(locked.tasks.all())
    locked.total_tasks = counts["total"]
    locked.completed_tasks = counts["completed"]
    locked.status = rollup_status(counts["total"], counts["completed"], counts["started"])
    locked.save(update_fields=["total_tasks", "completed_tasks", "status", "completed_at"])
    return locked


@transaction.atomic
def refresh_engagement_progress(engagement) -> Engagement:
    locked = Engagement.objects.select_for_update().get(pk=engagement.pk)
    counts = _task_counts(locked.tasks.all())
    if counts["total"] == 0:
        return locked
    status = rollup_status(counts["total"], counts["completed"], counts["started"])
    if status != locked.status:
        locked.status = status
        locked.save(update_fields=["status", "completed_at", "updated_at"])
    return locked


def _create_draft_invoice(engagement, billing, income_account, customer_account, description, *, period=None, as_of=None):
    issue_date = as_of or timezone.localdate()
    customer = engagement.customer
    invoice = Invoice.objects.create(
        business=engagement.business,
        customer=customer,
        engagement=engagement,
        period=period,
        invoice_number=resolve_invoice_number(engagement.business),
        issue_date=issue_date,
        due_date=resolve_due_date(customer.effective_payment_terms, issue_date),
        status=Invoice.Status.DRAFT,
        subtotal=billing.subtotal,
        tax_rate=billing.tax_rate,
        tax_amount=billing.tax_amount,
        total_amount=billing.total,
        income_account=income_account,
        customer_account=customer_account,
        notes=f"Auto-generated for {description}",
    )
    InvoiceItem.objects.create(
        invoice=invoice,
        service=engagement.service,
        description=description,
        unit_price=billing.subtotal,
        amount=billing.subtotal,
        tax_rate=billing.tax_rate,
    )
    return invoice


def _prepare_billing(target, engagement):
    """Billing breakdown and ledgers, or None when any prerequisite is missing."""
    if not engagement.auto_bill:
        logger.debug("Auto-billing disabled for engagement %s", engagement.pk)
        return None
    try:
        billing = resolve_billing(target)
        income_account, customer_account = resolve_ledger_accounts(engagement)
    except BillingError as exc:
        logger.warning("Invoice not generated for engagement %s: %s", engagement.pk, exc)
        return None
    if billing.subtotal <= 0:
        logger.info("Invoice not generated for engagement %s: amount is %s", engagement.pk, billing.subtotal)
        return None
    return billing, income_account, customer_account


@transaction.atomic
def create_invoice_for_period(period, *, as_of: Optional[date] = None) -> Optional[Invoice]:
    locked = Period.objects.select_for_update().select_related(
        "engagement__service",
        "engagement__customer",
        "engagement__business",
    ).get(pk=period.pk)
    if locked.invoice_generated:
        return None
    engagement = locked.engagement

    prepared = _prepare_billing(locked, engagement)
    if prepared is None:
        return None
    billing, income_account, customer_account = prepared

    invoice = _create_draft_invoice(
        engagement,
        billing,
        income_account,
        customer_account,
        f"{engagement.service.name} - {locked.name}",
        period=locked,
        as_of=as_of,
    )
    Period.objects.filter(pk=locked.pk).update(invoice=invoice, invoice_generated=True, is_billed=True)
    period.invoice = invoice
    period.invoice_generated = True
    period.is_billed = True
    logger.info("Created invoice %s for period %s", invoice.invoice_number, locked.pk)
    return invoice


@transaction.atomic
def create_invoice_for_engagement(engagement, *, as_of: Optional[date] = None) -> Optional[Invoice]:
    locked = Engagement.objects.select_for_update().select_related("service", "customer", "business").get(
        pk=engagement.pk
    )
    if locked.invoice_generated:
        return None

    prepared = _prepare_billing(locked, locked)
    if prepared is None:
        return None
    billing, income_account, customer_account = prepared

    invoice = _create_draft_invoice(
        locked,
        billing,
        income_account,
        customer_account,
        locked.title or locked.service.name,
        as_of=as_of,
    )
    Engagement.objects.filter(pk=locked.pk).update(
        invoice=invoice,
        invoice_generated=True,
        billing_status=Engagement.BillingStatus.BILLED,
    )
    engagement.invoice = invoice
    engagement.invoice_generated = True
    engagement.billing_status = Engagement.BillingStatus.BILLED
    logger.info("Created invoice %s for engagement %s", invoice.invoice_number, locked.pk)
    return invoice


def _apply_stale_invoice_policy(invoice) -> None:
    if invoice is None:
        return
    policy = getattr(settings, "STALE_INVOICE_POLICY", STALE_INVOICE_ORPHAN)
    if policy == STALE_INVOICE_DELETE_DRAFT and invoice.status == Invoice.Status.DRAFT:
        logger.info("Deleting stale draft invoice %s", invoice.invoice_number)
        invoice.delete()
        return
    logger.info("Invoice %s left in place after its work was reopened", invoice.invoice_number)


@transaction.atomic
def reset_period_billing(period) -> None:
    locked = Period.objects.select_for_update().select_related("invoice").get(pk=period.pk)
    if not locked.invoice_generated and not locked.is_billed:
        return
    Period.objects.filter(pk=locked.pk).update(invoice_generated=False, is_billed=False)
    period.invoice_generated = False
    period.is_billed = False
    _apply_stale_invoice_policy(locked.invoice)


@transaction.atomic
def reset_engagement_billing(engagement) -> None:
    locked = Engagement.objects.select_for_update().select_related("invoice").get(pk=engagement.pk)
    if not locked.invoice_generated and locked.billing_status == Engagement.BillingStatus.NOT_BILLED:
        return
    Engagement.objects.filter(pk=locked.pk).update(
        invoice_generated=False,
        billing_status=Engagement.BillingStatus.NOT_BILLED,
    )
    engagement.invoice_generated = False
    engagement.billing_status = Engagement.BillingStatus.NOT_BILLED
    _apply_stale_invoice_policy(locked.invoice)


def release_deleted_invoice(invoice) -> None:
    """Free the period or one-off engagement billed by an invoice that is being deleted."""
    policy = getattr(settings, "INVOICE_DELETION_POLICY", INVOICE_DELETION_RESET)
    if policy == INVOICE_DELETION_KEEP:
        return
    periods = Period.objects.filter(invoice=invoice).update(invoice_generated=False, is_billed=False)
    engagements = Engagement.objects.filter(invoice=invoice).update(
        invoice_generated=False,
        billing_status=Engagement.BillingStatus.NOT_BILLED,
    )
    if periods or engagements:
        logger.info("Invoice %s deleted; its work can be billed again", invoice.invoice_number)


def handle_period_status_change(period, previous_status):
    """Raise or unwind a period's invoice. Never raises."""
    try:
        with transaction.atomic():
            if period.status == WorkStatus.COMPLETED:
                create_invoice_for_period(period)
            elif previous_status == WorkStatus.COMPLETED:
                reset_period_billing(period)
    except Exception:
        logger.exception("Auto-invoicing failed for period %s", period.pk)


def handle_engagement_status_change(engagement, previous_status):
    """Raise or unwind a one-off engagement's invoice. Never raises."""
    try:
        with transaction.atomic():
            if engagement.status == WorkStatus.COMPLETED:
                create_invoice_for_engagement(engagement)
            elif previous_status == WorkStatus.COMPLETED:
                reset_engagement_billing(engagement)
    except Exception:
        logger.exception("Auto-invoicing failed for engagement %s", engagement.pk)
