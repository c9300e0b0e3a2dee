import logging
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from core.models import Business, Invoice, LedgerTransaction, Voucher, VoucherEntry, VoucherType

logger = logging.getLogger(__name__)

POSTED_INVOICE_STATUSES = (
    Invoice.Status.SENT,
    Invoice.Status.PAID,
    Invoice.Status.OVERDUE,
)
UNPOSTED_INVOICE_STATUSES = (
    Invoice.Status.DRAFT,
    Invoice.Status.CANCELLED,
)


class PostingError(Exception):
    pass


class UnbalancedVoucher(PostingError):
    pass


def _direct_postings(invoice):
    return LedgerTransaction.objects.filter(invoice=invoice, voucher__isnull=True)


def _receipt_vouchers(invoice):
    return Voucher.objects.filter(invoice=invoice, voucher_type__kind=VoucherType.Kind.RECEIPT)


def _invoice_total(invoice) -> Decimal:
    return invoice.total_amount or Decimal("0.00")


@transaction.atomic
def post_invoice(invoice) -> bool:
    """
    Dr customer ledger / Cr income ledger for the invoice total.
    Returns False when prerequisites are missing or the invoice is already posted.
    """
    if not invoice.customer_account_id or not invoice.income_account_id:
        logger.info("Invoice %s not posted: customer or income account missing", invoice.invoice_number)
        return False
    total = _invoice_total(invoice)
    if total <= 0:
        logger.info("Invoice %s not posted: total is %s", invoice.invoice_number, total)
        return False
    if _direct_postings(invoice).exists():
        return False

    narration = f"Invoice {invoice.invoice_number}"
    LedgerTransaction.objects.create(
        business=invoice.business,
        account=invoice.customer_account,
        invoice=invoice,
        transaction_date=invoice.issue_date,
        debit=total,
        narration=narration,
    )
    LedgerTransaction.objects.create(
        business=invoice.business,
        account=invoice.income_account,
        invoice=invoice,
        transaction_date=invoice.issue_date,
        credit=total,
        narration=narration,
    )
    return True


def remove_invoice_postings(invoice) -> int:
    deleted, _ = _direct_postings(invoice).delete()
    return deleted


def next_receipt_number(business: Business) -> str:
    prefix = business.receipt_prefix or "RV-"
    width = business.receipt_number_width or 5
    highest = 0
    existing = Voucher.objects.filter(
        business=business,
        voucher_number__startswith=prefix,
    ).values_list("voucher_number", flat=True)
    for number in existing:
        tail = number[len(prefix):]
        if tail.isdigit():
            highest = max(highest, int(tail))
    return f"{prefix}{str(highest + 1).zfill(width)}"


def _receiving_account(business: Business):
    if business.default_payment_receipt_type == Business.ReceiptType.BANK:
        return business.default_bank_account
    return business.default_cash_account


@transaction.atomic
def create_receipt_voucher(invoice):
    """
    Raise and post a receipt voucher (Dr cash/bank, Cr customer) for a paid invoice.
    Returns the voucher, or None when prerequisites are missing or a receipt already exists.
    """
    business = invoice.business
    if _receipt_vouchers(invoice).exclude(status=Voucher.Status.CANCELLED).exists():
        return None

    voucher_type = (
        VoucherType.objects.filter(
            business=business,
            kind=VoucherType.Kind.RECEIPT,
            is_active=True,
        )
        .order_by("id")
        .first()
    )
    if voucher_type is None:
        logger.warning("No receipt voucher type for business %s; skipping receipt", business.pk)
        return None

    receiving_account = _receiving_account(business)
    if receiving_account is None:
        logger.warning(
            "No default %s ledger for business %s; skipping receipt",
            business.default_payment_receipt_type.lower(),
            business.pk,
        )
        return None

    customer = invoice.customer
    customer_account = customer.account or invoice.customer_account
    if customer_account is None:
        logger.warning("Invoice %s has no customer ledger; skipping receipt", invoice.invoice_number)
        return None
    if customer.account_id is None:
        customer.account = customer_account
        customer.save(update_fields=["account"])

    total = _invoice_total(invoice)
    if total <= 0:
        return None

    narration = f"Receipt against invoice {invoice.invoice_number}"
    voucher = Voucher.objects.create(
        business=business,
        voucher_type=voucher_type,
        voucher_number=next_receipt_number(business),
        voucher_date=timezone.localdate(),
        reference=invoice.invoice_number,
        narration=narration,
        total_amount=total,
        status=Voucher.Status.DRAFT,
        invoice=invoice,
    )
    VoucherEntry.objects.create(
        voucher=voucher,
        account=receiving_account,
        debit_amount=total,
        narration=narration,
    )
    VoucherEntry.objects.create(
        voucher=voucher,
        account=customer_account,
        credit_amount=total,
        narration=narration,
    )
    voucher.status = Voucher.Status.POSTED
    voucher.save(update_fields=["status"])
    return voucher


def remove_receipt_vouchers(invoice) -> int:
    count = 0
    for voucher in _receipt_vouchers(invoice):
        voucher.delete()
        count += 1
    return count


def _postable_entries(voucher):
    entries = list(voucher.entries.all())
    if len(entries) < 2:
        raise UnbalancedVoucher(f"Voucher {voucher.voucher_number} needs at least two entries.")
    try:
        voucher.check_balance()
    except ValidationError as exc:
        raise UnbalancedVoucher(f"Voucher {voucher.voucher_number}: {exc.messages[0]}") from exc
    return entries


def _revert_to_draft(voucher) -> None:
    Voucher.objects.filter(pk=voucher.pk).update(status=Voucher.Status.DRAFT)
    voucher.status = Voucher.Status.DRAFT


@transaction.atomic
def post_voucher(voucher) -> bool:
    """
    Copy a voucher's entries into the ledger. A voucher that cannot be posted
    is put back to DRAFT.
    """
    if voucher.ledger_transactions.exists():
        return False
    try:
        entries = _postable_entries(voucher)
    except UnbalancedVoucher as exc:
        logger.warning("%s Returned to draft.", exc)
        _revert_to_draft(voucher)
        return False

    for entry in entries:
        LedgerTransaction.objects.create(
            business=voucher.business,
            account=entry.account,
            voucher=voucher,
            invoice=voucher.invoice,
            transaction_date=voucher.voucher_date,
            debit=entry.debit_amount,
            credit=entry.credit_amount,
            narration=entry.narration or voucher.narration[:255],
        )
    return True


def remove_voucher_postings(voucher) -> int:
    deleted, _ = voucher.ledger_transactions.all().delete()
    return deleted


def handle_invoice_status_change(invoice, previous_status):
    """Apply ledger effects of an invoice status change. Never raises."""
    new_status = invoice.status
    try:
        with transaction.atomic():
            if new_status in POSTED_INVOICE_STATUSES:
                post_invoice(invoice)

            if new_status == Invoice.Status.PAID and previous_status != Invoice.Status.PAID:
                create_receipt_voucher(invoice)
            elif previous_status == Invoice.Status.PAID and new_status != Invoice.Status.PAID:
                remove_receipt_vouchers(invoice)

            if new_status in UNPOSTED_INVOICE_STATUSES and previous_status != new_status:
                remove_invoice_postings(invoice)
                remove_receipt_vouchers(invoice)
    except Exception:
        logger.exception(
            "Ledger posting failed for invoice %s (%s -> %s)",
            invoice.pk,
            previous_status,
            new_status,
        )


def handle_voucher_status_change(voucher, previous_status):
    """Apply ledger effects of a voucher status change. Never raises."""
    new_status = voucher.status
    if new_status == previous_status:
        return
    try:
        with transaction.atomic():
            if new_status == Voucher.Status.POSTED:
                post_voucher(voucher)
            elif new_status in (Voucher.Status.DRAFT, Voucher.Status.CANCELLED):
                remove_voucher_postings(voucher)
    except Exception:
        logger.exception(
            "Ledger posting failed for voucher %s (%s -> %s)",
            voucher.pk,
            previous_status,
            new_status,
        )
