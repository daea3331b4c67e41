class BillingError(Exception):
    """Base class for failures that abort a single subscription's tick."""


class ScheduleError(BillingError):
    """Calendar data for a subscription cannot be turned into a billing cycle.

    Never retried silently: the subscription stalls until an operator fixes it.
    """


class PaymentRequestError(BillingError):
    pass


class NumberingError(BillingError):
    pass


class PersistenceError(BillingError):
    pass


class NotificationError(BillingError):
    pass
