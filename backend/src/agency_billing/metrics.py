"""Business metrics for Prometheus monitoring."""
from prometheus_client import Counter

# Activation metrics
activations_total = Counter(
    "activations_total",
    "Subscription activation attempts",
    labelnames=["plan", "outcome"],  # outcome: succeeded, payment_failed, requires_authentication, write_failed
)

refunds_issued_total = Counter(
    "refunds_issued_total",
    "Compensating refunds issued after a failed activation write",
)

# Subscription metrics
subscriptions_created_total = Counter(
    "subscriptions_created_total",
    "Total subscriptions created",
    labelnames=["plan", "billing_interval"],
)

subscriptions_cancelled_total = Counter(
    "subscriptions_cancelled_total",
    "Total subscriptions cancelled",
    labelnames=["plan"],
)

# Invoice metrics
invoices_generated_total = Counter(
    "invoices_generated_total",
    "Total number of invoices generated",
    labelnames=["transaction_type", "currency"],
)

invoice_status_transitions_total = Counter(
    "invoice_status_transitions_total",
    "Invoice status transitions",
    labelnames=["status"],  # PAID, FAILED, CANCELLED
)

payment_amount_total = Counter(
    "payment_amount_total",
    "Total paid invoice amount in minor units",
    labelnames=["currency"],
)

# Hours metrics
hours_logged_total = Counter(
    "hours_logged_total",
    "Hours recorded against client balances",
)

hours_purchased_total = Counter(
    "hours_purchased_total",
    "Extra hours credited to client balances",
)
