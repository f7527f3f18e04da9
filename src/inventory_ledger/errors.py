"""Typed failures raised by ledger commands.

Every command either applies completely or raises one of these; the session
scope around the command rolls back whatever was flushed before the failure.
"""

from __future__ import annotations

from typing import Any


class LedgerError(RuntimeError):
    """Base class for all ledger failures."""


class InsufficientStock(LedgerError):
    """Raised when a decrement exceeds the on-hand or available quantity."""

    def __init__(self, product_id: str, location: str, requested: int, available: int) -> None:
        self.product_id = product_id
        self.location = location
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for {product_id} at {location}: requested {requested}, available {available}"
        )


class AlreadyReversed(LedgerError):
    """Raised when a movement has already been reversed or cancelled."""

    def __init__(self, movement_id: int) -> None:
        self.movement_id = movement_id
        super().__init__(f"Movement {movement_id} has already been reversed")


class InvalidStateTransition(LedgerError):
    """Raised when a workflow status change is not allowed from the current status."""

    def __init__(self, movement_id: int, current: str, requested: str) -> None:
        self.movement_id = movement_id
        self.current = current
        self.requested = requested
        super().__init__(f"Movement {movement_id} cannot move from '{current}' to '{requested}'")


class NotFound(LedgerError):
    """Raised when a product, seller, location or movement does not exist."""

    def __init__(self, entity: str, key: Any) -> None:
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} '{key}' not found")


class ValidationError(LedgerError):
    """Raised when a command is malformed (missing reason, bad quantity, cycles)."""


class ConcurrencyConflict(LedgerError):
    """Raised when a stock record keeps changing underneath a write."""

    def __init__(self, product_id: str, location: str) -> None:
        self.product_id = product_id
        self.location = location
        super().__init__(f"Concurrent updates on {product_id} at {location}; retry the command")
