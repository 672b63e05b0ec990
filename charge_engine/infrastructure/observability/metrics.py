"""Prometheus metrics for monitoring charge calculations, rule failures and persistence"""

from decimal import Decimal

from prometheus_client import Counter, Histogram

# Calculation metrics
calculation_counter = Counter(
    "charge_calculation_total",
    "Total charge calculations attempted",
    ["outcome"],  # charged | free | rejected
)

line_item_counter = Counter(
    "charge_line_items_total",
    "Line items produced by rule code",
    ["rule_code"],
)

charged_amount_counter = Counter(
    "charge_amount_total",
    "Sum of charges calculated, in currency units",
)

calculation_latency_histogram = Histogram(
    "charge_calculation_duration_seconds",
    "Time to evaluate one transaction",
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0],
)

# Failure metrics
rule_failure_counter = Counter(
    "charge_rule_failures_total",
    "Fee strategies that raised and were treated as zero",
    ["rule_code"],
)

persistence_failure_counter = Counter(
    "charge_persistence_failures_total",
    "Calculated transactions that could not be recorded",
)

# Batch metrics
batch_size_histogram = Histogram(
    "charge_batch_size",
    "Transactions per bulk or test run",
    ["kind"],  # bulk | test
    buckets=[1, 5, 10, 25, 50, 100, 250, 1000],
)


def record_calculation(success: bool, total_charges: Decimal, rule_codes: list[str]) -> None:
    """Record calculation metrics for monitoring charge rates and rule usage"""
    if not success:
        outcome = "rejected"
    elif total_charges > 0:
        outcome = "charged"
    else:
        outcome = "free"
    calculation_counter.labels(outcome=outcome).inc()

    for rule_code in rule_codes:
        line_item_counter.labels(rule_code=rule_code).inc()

    if total_charges > 0:
        charged_amount_counter.inc(float(total_charges))
