from decimal import Decimal
from typing import TYPE_CHECKING

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

if TYPE_CHECKING:
    from django.db.models import Manager


class PaymentTerms(models.TextChoices):
    DUE_ON_RECEIPT = "DUE_ON_RECEIPT", "Due on receipt"
    NET_15 = "NET_15", "Net 15"
    NET_30 = "NET_30", "Net 30"
    NET_45 = "NET_45", "Net 45"
    NET_60 = "NET_60", "Net 60"


class Business(models.Model):
    class ReceiptType(models.TextChoices):
        CASH = "CASH", "Cash"
        BANK = "BANK", "Bank"

    name = models.CharField(max_length=255, unique=True)
    currency = models.CharField(max_length=3, default="INR")
    owner_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="businesses",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    # Invoice numbering. A blank prefix means numbering is not configured.
    invoice_prefix = models.CharField(max_length=20, blank=True, default="")
    invoice_suffix = models.CharField(max_length=20, blank=True, default="")
    invoice_number_width = models.PositiveSmallIntegerField(null=True, blank=True)
    invoice_starting_number = models.PositiveIntegerField(null=True, blank=True)

    receipt_prefix = models.CharField(max_length=20, default="RV-")
    receipt_number_width = models.PositiveSmallIntegerField(default=5)

    default_income_account = models.ForeignKey(
        "core.Account",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    default_cash_account = models.ForeignKey(
        "core.Account",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    default_bank_account = models.ForeignKey(
        "core.Account",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    default_receivable_account = models.ForeignKey(
        "core.Account",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    default_payment_receipt_type = models.CharField(
        max_length=10,
        choices=ReceiptType.choices,
        default=ReceiptType.CASH,
        help_text="Ledger debited when an invoice is marked paid.",
    )
    default_payment_terms = models.CharField(
        max_length=20,
        choices=PaymentTerms.choices,
        default=PaymentTerms.NET_30,
    )

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["owner_user"],
                name="uniq_business_per_owner",
            ),
        ]

    def __str__(self):
        return self.name

    @property
    def has_invoice_numbering(self) -> bool:
        return bool((self.invoice_prefix or "").strip())


class Account(models.Model):
    class AccountType(models.TextChoices):
        ASSET = "ASSET", "Asset"
        LIABILITY = "LIABILITY", "Liability"
        EQUITY = "EQUITY", "Equity"
        INCOME = "INCOME", "Income"
        EXPENSE = "EXPENSE", "Expense"

    business = models.ForeignKey(
        "core.Business",
        on_delete=models.CASCADE,
        related_name="accounts",
    )
    code = models.CharField(
        max_length=20,
        blank=True,
        help_text="Optional short code like 1010, 4010, etc.",
    )
    name = models.CharField(max_length=255)
    type = models.CharField(
        max_length=10,
        choices=AccountType.choices,
    )
    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        related_name="children",
        on_delete=models.CASCADE,
        help_text="Optional parent for grouping (e.g. 'Accounts Receivable' → customer ledgers).",
    )
    is_active = models.BooleanField(default=True)
    description = models.TextField(blank=True)
    opening_balance = models.DecimalField(max_digits=19, decimal_places=2, default=Decimal("0.00"))
    balance = models.DecimalField(
        max_digits=19,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Running balance: opening + debits - credits. Maintained by ledger postings.",
    )

    class Meta:
        verbose_name = "Account"
        verbose_name_plural = "Accounts"
        ordering = ["type", "code", "name"]
        constraints = [
            models.UniqueConstraint(
                fields=["business", "code"],
                condition=~models.Q(code=""),
                name="unique_account_code_per_business",
            )
        ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._original_opening_balance = self.opening_balance

    def save(self, *args, **kwargs):
        # The running balance only moves through ledger_services; never write a stale copy back.
        if self._state.adding:
            self.balance = self.opening_balance or Decimal("0.00")
            super().save(*args, **kwargs)
            self._original_opening_balance = self.opening_balance
            return

        if kwargs.get("update_fields") is None:
            kwargs["update_fields"] = [
                f.name
                for f in self._meta.concrete_fields
                if not f.primary_key and f.name != "balance"
            ]
        super().save(*args, **kwargs)

        delta = (self.opening_balance or Decimal("0.00")) - (self._original_opening_balance or Decimal("0.00"))
        if delta:
            from .ledger_services import apply_balance_delta

            apply_balance_delta(self.pk, delta)
            self.refresh_from_db(fields=["balance"])
        self._original_opening_balance = self.opening_balance

    def __str__(self):
        return f"{self.code} – {self.name}" if self.code else self.name


class Customer(models.Model):
    business = models.ForeignKey(
        "core.Business",
        on_delete=models.CASCADE,
        related_name="customers",
    )
    name = models.CharField(max_length=255)
    email = models.EmailField(max_length=255, blank=True, null=True)
    phone = models.CharField(max_length=50, blank=True)
    account = models.ForeignKey(
        Account,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="customers",
        help_text="Customer ledger (sub-account of Accounts Receivable).",
    )
    payment_terms = models.CharField(
        max_length=20,
        choices=PaymentTerms.choices,
        blank=True,
        null=True,
        help_text="Leave empty to use the business default.",
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(
                fields=["business", "name"],
                name="uniq_customer_per_business_name",
            )
        ]

    def __str__(self):
        return self.name

    @property
    def effective_payment_terms(self) -> str:
        return self.payment_terms or self.business.default_payment_terms


class Invoice(models.Model):
    class Status(models.TextChoices):
        DRAFT = "DRAFT", "Draft"
        SENT = "SENT", "Sent"
        PAID = "PAID", "Paid"
        OVERDUE = "OVERDUE", "Overdue"
        CANCELLED = "CANCELLED", "Cancelled"

    business = models.ForeignKey(
        "core.Business",
        on_delete=models.CASCADE,
        related_name="invoices",
    )
    customer = models.ForeignKey(
        Customer,
        on_delete=models.PROTECT,
        related_name="invoices",
    )
    engagement = models.ForeignKey(
        "engagements.Engagement",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="invoices",
    )
    period = models.ForeignKey(
        "engagements.Period",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="invoices",
    )
    invoice_number = models.CharField(max_length=50)
    issue_date = models.DateField(default=timezone.localdate)
    due_date = models.DateField(blank=True, null=True)
    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.DRAFT,
    )
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    tax_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Flat tax rate in percent.",
    )
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    income_account = models.ForeignKey(
        Account,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    customer_account = models.ForeignKey(
        Account,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-issue_date", "-id"]
        constraints = [
            models.UniqueConstraint(
                fields=["business", "invoice_number"],
                name="uniq_invoice_number_per_business",
            )
        ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._original_status = self.status

    def __str__(self):
        return self.invoice_number

    def save(self, *args, **kwargs):
        # A freshly inserted invoice is treated as coming out of draft.
        prev_status = self.Status.DRAFT if self._state.adding else self._original_status
        super().save(*args, **kwargs)

        from .accounting_posting import handle_invoice_status_change

        handle_invoice_status_change(self, prev_status)
        self._original_status = self.status

    if TYPE_CHECKING:
        id: int
        items: Manager["InvoiceItem"]


class InvoiceItem(models.Model):
    invoice = models.ForeignKey(
        Invoice,
        on_delete=models.CASCADE,
        related_name="items",
    )
    service = models.ForeignKey(
        "engagements.Service",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="invoice_items",
    )
    description = models.CharField(max_length=255)
    quantity = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("1.00"))
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    tax_rate = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0.00"))

    class Meta:
        ordering = ["id"]

    def __str__(self):
        return self.description


class VoucherType(models.Model):
    class Kind(models.TextChoices):
        RECEIPT = "RECEIPT", "Receipt"
        PAYMENT = "PAYMENT", "Payment"
        JOURNAL = "JOURNAL", "Journal"
        CONTRA = "CONTRA", "Contra"

    business = models.ForeignKey(
        "core.Business",
        on_delete=models.CASCADE,
        related_name="voucher_types",
    )
    name = models.CharField(max_length=100)
    code = models.CharField(max_length=10)
    kind = models.CharField(max_length=10, choices=Kind.choices)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["code"]
        constraints = [
            models.UniqueConstraint(
                fields=["business", "code"],
                name="uniq_voucher_type_code_per_business",
            )
        ]

    def __str__(self):
        return f"{self.code} – {self.name}"


class Voucher(models.Model):
    class Status(models.TextChoices):
        DRAFT = "DRAFT", "Draft"
        POSTED = "POSTED", "Posted"
        CANCELLED = "CANCELLED", "Cancelled"

    business = models.ForeignKey(
        "core.Business",
        on_delete=models.CASCADE,
        related_name="vouchers",
    )
    voucher_type = models.ForeignKey(
        VoucherType,
        on_delete=models.PROTECT,
        related_name="vouchers",
    )
    voucher_number = models.CharField(max_length=50)
    voucher_date = models.DateField(default=timezone.localdate)
    reference = models.CharField(max_length=100, blank=True)
    narration = models.TextField(blank=True)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.DRAFT,
    )
    invoice = models.ForeignKey(
        Invoice,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="vouchers",
        help_text="Set on receipt vouchers raised when the invoice is paid.",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-voucher_date", "-id"]
        constraints = [
            models.UniqueConstraint(
                fields=["business", "voucher_number"],
                name="uniq_voucher_number_per_business",
            )
        ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._original_status = self.status

    def __str__(self):
        return self.voucher_number

    def save(self, *args, **kwargs):
        prev_status = self.Status.DRAFT if self._state.adding else self._original_status
        super().save(*args, **kwargs)

        from .accounting_posting import handle_voucher_status_change

        handle_voucher_status_change(self, prev_status)
        self._original_status = self.status

    def totals(self) -> tuple[Decimal, Decimal]:
        agg = self.entries.aggregate(
            total_debit=models.Sum("debit_amount"),
            total_credit=models.Sum("credit_amount"),
        )
        return (
            agg["total_debit"] or Decimal("0.00"),
            agg["total_credit"] or Decimal("0.00"),
        )

    def check_balance(self):
        total_debit, total_credit = self.totals()
        if total_debit != total_credit:
            raise ValidationError(
                f"Unbalanced voucher (debits={total_debit}, credits={total_credit})."
            )
        if total_debit == Decimal("0.00"):
            raise ValidationError("Voucher has no value.")

    if TYPE_CHECKING:
        id: int
        entries: Manager["VoucherEntry"]
        ledger_transactions: Manager["LedgerTransaction"]


class VoucherEntry(models.Model):
    voucher = models.ForeignKey(
        Voucher,
        on_delete=models.CASCADE,
        related_name="entries",
    )
    account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        related_name="voucher_entries",
    )
    debit_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    credit_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    narration = models.CharField(max_length=255, blank=True)

    class Meta:
        ordering = ["id"]
        verbose_name_plural = "Voucher entries"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(debit_amount__gte=0) & models.Q(credit_amount__gte=0),
                name="ve_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(debit_amount=0) | models.Q(credit_amount=0),
                name="ve_single_side",
            ),
        ]


class LedgerTransaction(models.Model):
    business = models.ForeignKey(
        "core.Business",
        on_delete=models.CASCADE,
        related_name="ledger_transactions",
    )
    account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        related_name="ledger_transactions",
    )
    voucher = models.ForeignKey(
        Voucher,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="ledger_transactions",
    )
    invoice = models.ForeignKey(
        Invoice,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="ledger_transactions",
    )
    transaction_date = models.DateField(db_index=True)
    debit = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    credit = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    narration = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["transaction_date", "id"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(debit__gte=0) & models.Q(credit__gte=0),
                name="lt_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(debit=0) | models.Q(credit=0),
                name="lt_single_side",
            ),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("Ledger transactions are immutable; delete and re-post instead.")
        super().save(*args, **kwargs)

    @property
    def signed_amount(self) -> Decimal:
        return (self.debit or Decimal("0.00")) - (self.credit or Decimal("0.00"))

    def __str__(self):
        side = f"Dr {self.debit}" if self.debit else f"Cr {self.credit}"
        return f"{self.transaction_date} {self.account} {side}"
