"""Domain-specific exceptions"""

from decimal import Decimal
from typing import Any, Dict, Optional


class LedgerError(Exception):
    """Base exception for the installment ledger"""

    code = "ledger_error"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.code, "message": self.message}
        for key, value in self.details.items():
            payload[key] = str(value) if isinstance(value, Decimal) else value
        return payload


class NotFoundError(LedgerError):
    """Installment, file, member, plot or category does not exist"""

    code = "not_found"


class DuplicateError(LedgerError):
    """Installment number already used within the file and category"""

    code = "duplicate"


class ValidationError(LedgerError):
    """Invalid amount, count or field value"""

    code = "validation_error"

    def __init__(self, message: str, max_allowed: Optional[Decimal] = None, **details: Any):
        if max_allowed is not None:
            details["max_allowed"] = max_allowed
        super().__init__(message, **details)
        self.max_allowed = max_allowed


class ReferentialMismatchError(ValidationError):
    """File, member and plot do not belong together"""

    code = "referential_mismatch"


class ImmutableStateError(LedgerError):
    """Locked field changed on a settled installment"""

    code = "immutable_state"


class InvalidStateError(LedgerError):
    """Operation not allowed in the installment's current status"""

    code = "invalid_state"


class ReferenceLookupError(LedgerError):
    """Reference lookup service returned an error or is unavailable"""

    code = "reference_lookup_unavailable"


class ConcurrencyConflictError(LedgerError):
    """Concurrent writers kept invalidating the installment snapshot"""

    code = "concurrency_conflict"
