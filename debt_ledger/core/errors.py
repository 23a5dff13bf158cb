"""
Ledger error taxonomy.

Business-rule errors (validation, not found, insufficient balance, unmapped
party) are raised before any state change and carry enough detail for the
caller to act. Storage and concurrency errors are raised after bounded
internal retries so the caller can retry at a higher level.
"""

from decimal import Decimal
from typing import Any, Dict, Optional


class LedgerError(Exception):
    """Base exception for debt ledger operations"""

    code = "ledger_error"
    status_code = 400

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details

    def to_dict(self) -> Dict[str, Any]:
        payload = {"detail": self.message, "error": self.code}
        for key, value in self.details.items():
            payload[key] = str(value) if isinstance(value, Decimal) else value
        return payload


class ValidationError(LedgerError):
    """Raised when input is malformed or out of range"""

    code = "validation_error"
    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None, **details: Any):
        if field is not None:
            details["field"] = field
        super().__init__(message, **details)


class NotFoundError(LedgerError):
    """Raised when a debt account or history target does not exist"""

    code = "not_found"
    status_code = 404


class InsufficientBalanceError(LedgerError):
    """Raised when a payment exceeds the current balance"""

    code = "insufficient_balance"
    status_code = 409

    def __init__(self, current_balance: Decimal, attempted_amount: Decimal, **details: Any):
        super().__init__(
            f"Payment of {attempted_amount} exceeds current balance of {current_balance}",
            current_balance=current_balance,
            attempted_amount=attempted_amount,
            **details,
        )
        self.current_balance = current_balance
        self.attempted_amount = attempted_amount


class UnmappedPartyError(LedgerError):
    """Raised when the person registry has no mapping for a responsible party"""

    code = "unmapped_party"
    status_code = 422

    def __init__(self, responsible_party_id: str):
        super().__init__(
            f"No person mapping for responsible party '{responsible_party_id}'",
            responsible_party_id=responsible_party_id,
        )
        self.responsible_party_id = responsible_party_id


class NegativeBalanceError(LedgerError):
    """Raised when a restated balance would drop below zero"""

    code = "negative_balance"
    status_code = 409


class ConcurrencyConflictError(LedgerError):
    """Raised when a serialized update could not be applied; retry later"""

    code = "concurrency_conflict"
    status_code = 409


class StorageTimeoutError(LedgerError):
    """Raised when the backing store did not answer in time"""

    code = "storage_timeout"
    status_code = 503


class StorageUnavailableError(LedgerError):
    """Raised when the backing store cannot be reached"""

    code = "storage_unavailable"
    status_code = 503


class PartialMigrationError(LedgerError):
    """A single record in a migration batch failed; the batch continues"""

    code = "partial_migration"
    status_code = 500

    def __init__(self, record_id: str, reason: str):
        super().__init__(f"Payout {record_id} skipped: {reason}", record_id=record_id, reason=reason)
        self.record_id = record_id
        self.reason = reason
