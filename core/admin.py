from django.contrib import admin

from .models import Account, Business, Customer, Invoice, InvoiceItem, LedgerTransaction, Voucher, VoucherEntry, VoucherType


admin.site.site_header = "Practice Books – System Admin"
admin.site.site_title = "Practice Books System Admin"


def _superuser_only(request):
    return request.user.is_active and request.user.is_superuser


admin.site.has_permission = _superuser_only


@admin.register(Business)
class BusinessAdmin(admin.ModelAdmin):
    list_display = ("name", "currency", "owner_user", "invoice_prefix", "default_payment_receipt_type")
    search_fields = ("name",)


@admin.register(Account)
class AccountAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "type", "business", "opening_balance", "balance", "is_active")
    list_filter = ("type", "is_active")
    search_fields = ("code", "name")
    readonly_fields = ("balance",)


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ("name", "business", "account", "payment_terms", "is_active")
    search_fields = ("name", "email")


class InvoiceItemInline(admin.TabularInline):
    model = InvoiceItem
    extra = 0


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ("invoice_number", "business", "customer", "issue_date", "status", "total_amount")
    list_filter = ("status",)
    search_fields = ("invoice_number", "customer__name")
    inlines = [InvoiceItemInline]


@admin.register(VoucherType)
class VoucherTypeAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "kind", "business", "is_active")


class VoucherEntryInline(admin.TabularInline):
    model = VoucherEntry
    extra = 0


@admin.register(Voucher)
class VoucherAdmin(admin.ModelAdmin):
    list_display = ("voucher_number", "voucher_type", "voucher_date", "status", "total_amount", "invoice")
    list_filter = ("status", "voucher_type__kind")
    inlines = [VoucherEntryInline]


@admin.register(LedgerTransaction)
class LedgerTransactionAdmin(admin.ModelAdmin):
    list_display = ("transaction_date", "account", "debit", "credit", "voucher", "invoice")
    list_filter = ("transaction_date",)

    def has_change_permission(self, request, obj=None):
        return False
