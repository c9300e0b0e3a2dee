class BillingError(Exception):
    """Base class for billing failures that stop an invoice from being raised."""


class NoValidPrice(BillingError):
    pass


class LedgerMappingMissing(BillingError):
    pass
