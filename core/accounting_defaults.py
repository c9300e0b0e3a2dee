from core.models import Account, Business, VoucherType

DEFAULT_ACCOUNTS = [
    ("1010", "Cash in Hand", Account.AccountType.ASSET),
    ("1020", "Bank Account", Account.AccountType.ASSET),
    ("1200", "Accounts Receivable", Account.AccountType.ASSET),
    ("2200", "Tax Payable", Account.AccountType.LIABILITY),
    ("3000", "Owner's Capital", Account.AccountType.EQUITY),
    ("4010", "Professional Fees", Account.AccountType.INCOME),
    ("5010", "Operating Expenses", Account.AccountType.EXPENSE),
]

DEFAULT_VOUCHER_TYPES = [
    ("RV", "Receipt", VoucherType.Kind.RECEIPT),
    ("PV", "Payment", VoucherType.Kind.PAYMENT),
    ("JV", "Journal", VoucherType.Kind.JOURNAL),
    ("CV", "Contra", VoucherType.Kind.CONTRA),
]

CUSTOMER_LEDGER_CODE_PREFIX = "1200-"


def ensure_default_accounts(business):
    """Ensure baseline accounts exist for the given business and return a mapping."""
    accounts = {}
    for code, name, type_ in DEFAULT_ACCOUNTS:
        acc, _ = Account.objects.get_or_create(
            business=business,
            code=code,
            defaults={
                "name": name,
                "type": type_,
            },
        )
        accounts[code] = acc
    return {
        "cash": accounts["1010"],
        "bank": accounts["1020"],
        "ar": accounts["1200"],
        "tax": accounts["2200"],
        "equity": accounts["3000"],
        "income": accounts["4010"],
        "opex": accounts["5010"],
    }


def ensure_default_voucher_types(business):
    types = {}
    for code, name, kind in DEFAULT_VOUCHER_TYPES:
        vt, _ = VoucherType.objects.get_or_create(
            business=business,
            code=code,
            defaults={"name": name, "kind": kind},
        )
        types[kind] = vt
    return types


def ensure_default_ledgers(business):
    """
    Point the business's default ledger settings at the seeded chart of accounts.
    Only empty settings are filled in; explicit choices are left alone.
    """
    accounts = ensure_default_accounts(business)
    wanted = {
        "default_income_account": accounts["income"],
        "default_cash_account": accounts["cash"],
        "default_bank_account": accounts["bank"],
        "default_receivable_account": accounts["ar"],
    }
    changed = []
    for field, account in wanted.items():
        if getattr(business, f"{field}_id") is None:
            setattr(business, field, account)
            changed.append(field)
    if changed:
        Business.objects.filter(pk=business.pk).update(**{f: getattr(business, f) for f in changed})
    return accounts


def ensure_customer_account(customer):
    """
    Return the customer's ledger, creating it under Accounts Receivable if missing.
    """
    if customer.account_id:
        return customer.account

    business = customer.business
    parent = business.default_receivable_account or ensure_default_accounts(business)["ar"]
    account, _ = Account.objects.get_or_create(
        business=business,
        code=f"{CUSTOMER_LEDGER_CODE_PREFIX}{customer.pk:05d}",
        defaults={
            "name": customer.name,
            "type": Account.AccountType.ASSET,
            "parent": parent,
        },
    )
    customer.account = account
    customer.save(update_fields=["account"])
    return account
