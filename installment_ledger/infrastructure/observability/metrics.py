"""Prometheus metrics for monitoring schedules, collections and ledger errors"""

from decimal import Decimal

from prometheus_client import Counter, Histogram

# Ledger metrics
installments_created_counter = Counter(
    "ledger_installments_created_total",
    "Installments written to the ledger",
    ["source"],  # single | schedule
)

payments_counter = Counter(
    "ledger_payments_total",
    "Payments applied to installments",
    ["mode"],  # cash | cheque | online | other
)

amount_collected_counter = Counter(
    "ledger_amount_collected_total",
    "Money collected through applied payments",
)

ledger_errors_counter = Counter(
    "ledger_errors_total",
    "Rejected ledger operations",
    ["error"],
)

# Sweep metrics
overdue_marked_counter = Counter(
    "ledger_overdue_marked_total",
    "Installments moved to OVERDUE by the sweep",
)

late_fees_counter = Counter(
    "ledger_late_fees_applied_total",
    "Installments whose late fee surcharge was raised",
)

# Reference lookups
reference_lookup_failures_counter = Counter(
    "reference_lookup_failures_total",
    "Failed reference API calls",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_payment(payment_mode: str, amount: Decimal) -> None:
    """Record collection metrics for one applied payment"""
    payments_counter.labels(mode=payment_mode).inc()
    amount_collected_counter.inc(float(amount))
