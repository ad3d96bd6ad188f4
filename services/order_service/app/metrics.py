"""Prometheus metrics for the order management service."""

from __future__ import annotations

from typing import Final

from prometheus_client import Counter, Histogram

from .errors import BusinessRuleError, InvalidStateError, NotFoundError

# Orders ------------------------------------------------------------------------------------
ORDERS_CREATED_TOTAL: Final = Counter(
    "orders_created_total",
    "Total number of orders committed.",
)

ORDER_LINES_TOTAL: Final = Counter(
    "order_lines_total",
    "Total number of order lines committed.",
)

ORDER_CREATE_LATENCY_SECONDS: Final = Histogram(
    "order_create_latency_seconds",
    "Time taken to run the order creation transaction, including rollbacks.",
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10),
)

# Inventory ---------------------------------------------------------------------------------
INVENTORY_CHANGES_TOTAL: Final = Counter(
    "inventory_changes_total",
    "Administrative inventory changes committed.",
    labelnames=("action",),
)

# Transactions ------------------------------------------------------------------------------
TRANSACTION_ROLLBACKS_TOTAL: Final = Counter(
    "transaction_rollbacks_total",
    "Write operations rolled back, by operation and error type.",
    labelnames=("operation", "reason"),
)


def rollback_reason(exc: BaseException) -> str:
    """Return a bounded label value for the rollback counter."""

    if isinstance(exc, NotFoundError):
        return "not_found"
    if isinstance(exc, BusinessRuleError):
        return "business_rule"
    if isinstance(exc, InvalidStateError):
        return "invalid_state"
    return "unexpected"
