"""Error taxonomy raised by the order management core."""

from __future__ import annotations


class OrderManagementError(Exception):
    """Base class for errors raised by the order management core."""


class NotFoundError(OrderManagementError):
    """Raised when a referenced product or order does not exist."""

    def __init__(self, entity: str, key: object) -> None:
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} with key '{key}' was not found.")


class BusinessRuleError(OrderManagementError):
    """Raised when a state transition would violate a business rule."""


class InvalidStateError(OrderManagementError):
    """Raised when the unit of work is driven out of protocol."""


class UnexpectedError(OrderManagementError):
    """Raised for storage failures and anything else not covered above."""
