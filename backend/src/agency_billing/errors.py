"""Typed errors raised by the billing core.

Every error is a ``ValueError`` so callers written against plain ``ValueError``
keep working, and carries an ``ErrorKind`` plus a stable machine-readable code
that the HTTP layer turns into a status and an error body.
"""
import enum


class ErrorKind(str, enum.Enum):
    """Error taxonomy shared by services and the HTTP layer."""

    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    EXTERNAL_DEPENDENCY = "external_dependency"
    UNAUTHORIZED = "unauthorized"


class BillingError(ValueError):
    """Base class for billing core errors."""

    kind: ErrorKind = ErrorKind.INVALID_STATE
    code: str = "billing_error"
    default_message: str = "Billing operation failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# Not found (404)


class UserNotFoundError(BillingError):
    kind = ErrorKind.NOT_FOUND
    code = "user_not_found"
    default_message = "User not found"


class SubscriptionNotFoundError(BillingError):
    kind = ErrorKind.NOT_FOUND
    code = "subscription_not_found"
    default_message = "Subscription not found"


class InvoiceNotFoundError(BillingError):
    kind = ErrorKind.NOT_FOUND
    code = "invoice_not_found"
    default_message = "Invoice not found"


class BalanceNotFoundError(BillingError):
    kind = ErrorKind.NOT_FOUND
    code = "balance_not_found"
    default_message = "Hours balance not found"


class PaymentMethodNotFoundError(BillingError):
    kind = ErrorKind.NOT_FOUND
    code = "payment_method_not_found"
    default_message = "Payment method not found"


# Conflict / invalid state (400)


class NoActiveSubscriptionError(BillingError):
    code = "no_active_subscription"
    default_message = "No active subscription found"


class ActiveSubscriptionExistsError(BillingError):
    code = "subscription_already_active"
    default_message = "User already has an active subscription"


class NoActiveBalanceError(BillingError):
    code = "no_active_balance"
    default_message = "No active hours balance found"


class InvoiceAlreadyPaidError(BillingError):
    code = "invoice_already_paid"
    default_message = "Cannot cancel paid invoice"


class InvalidStateTransitionError(BillingError):
    code = "invalid_state_transition"
    default_message = "Invalid state transition"


class InvalidPlanError(BillingError):
    code = "invalid_plan"
    default_message = "Invalid plan"


class UnknownPlanError(InvalidPlanError):
    code = "unknown_plan"
    default_message = "Unknown plan"


class EnterpriseRequiresCustomPriceError(BillingError):
    code = "enterprise_requires_custom_price"
    default_message = "Enterprise plan requires custom pricing"


class NoCustomerReferenceError(BillingError):
    code = "no_customer_reference"
    default_message = "User has no payment processor customer"


class NoPaymentMethodError(BillingError):
    code = "no_payment_method"
    default_message = "User has no payment method on file"


class PaymentMethodInUseError(BillingError):
    code = "payment_method_in_use"
    default_message = "Cannot delete the only payment method with an active subscription"


class SetupIntentNotSucceededError(BillingError):
    code = "setup_intent_not_succeeded"
    default_message = "Setup intent not succeeded"


class HoursLimitExceededError(BillingError):
    code = "hours_limit_exceeded"
    default_message = "Logged time exceeds the available hours balance"


# External dependency failures (402)


class PaymentRequiresAuthenticationError(BillingError):
    kind = ErrorKind.EXTERNAL_DEPENDENCY
    code = "payment_requires_authentication"
    default_message = (
        "Payment requires additional authentication. "
        "Please try again or use a different payment method."
    )


class PaymentFailedError(BillingError):
    kind = ErrorKind.EXTERNAL_DEPENDENCY
    code = "payment_failed"

    def __init__(self, status: str, message: str | None = None):
        self.status = status
        super().__init__(message or f"Payment failed with status: {status}")


# Unauthorized (403)


class UnauthorizedError(BillingError):
    kind = ErrorKind.UNAUTHORIZED
    code = "unauthorized"
    default_message = "Unauthorized"
