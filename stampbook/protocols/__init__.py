"""Stampbook protocols."""

from stampbook.protocols.ledger import (
    OPERATION_ADD,
    OPERATION_REMOVE,
    OPERATIONS,
    CardSnapshot,
    LedgerRequest,
    LedgerResult,
)

__all__ = [
    "OPERATION_ADD",
    "OPERATION_REMOVE",
    "OPERATIONS",
    "CardSnapshot",
    "LedgerRequest",
    "LedgerResult",
]
