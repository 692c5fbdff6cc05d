"""
Labworks Exceptions.

All labworks errors derive from LabError for consistent handling.
"""

from typing import Any


class LabError(Exception):
    """
    Base exception for all Labworks errors.

    Usage:
        raise LabError('WORKSHEET_NOT_FOUND', worksheet_id=42)

    Attributes:
        code: Error code (WORKSHEET_NOT_FOUND, NOTES_REQUIRED, etc.)
        details: Additional context as keyword arguments
    """

    http_status = 400

    def __init__(self, code: str, **details: Any):
        self.code = code
        self.details = details
        message = f"{code}: {details}" if details else code
        super().__init__(message)

    def as_dict(self) -> dict:
        """Return error as dictionary for API responses."""
        return {"code": self.code, **self.details}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{type(self).__name__}({self.code}: {details_str})"
        return f"{type(self).__name__}({self.code})"


class InvalidTransitionError(LabError):
    """
    Transition is not an edge of the worksheet graph, or the role lacks permission.

    Codes: NO_SUCH_TRANSITION, ROLE_NOT_PERMITTED. Never retried automatically.
    """

    def __init__(self, code: str, **details: Any):
        super().__init__(code, **details)
        self.http_status = 403 if code == "ROLE_NOT_PERMITTED" else 409


class InsufficientStockError(LabError):
    """Allocation could not be fully satisfied. Nothing was applied."""

    http_status = 409

    def __init__(self, material_id, requested, available, **details: Any):
        self.material_id = material_id
        self.requested = requested
        self.available = available
        super().__init__(
            "INSUFFICIENT_STOCK",
            material_id=material_id,
            requested=str(requested),
            available=str(available),
            **details,
        )

    @property
    def shortage(self):
        return self.requested - self.available


class ExpiredOrStaleLotError(LabError):
    """A proposed lot became invalid between proposal and apply."""

    http_status = 409

    def __init__(self, lot_id, lot_number: str, status: str, **details: Any):
        self.lot_id = lot_id
        super().__init__(
            "STALE_LOT",
            lot_id=lot_id,
            lot_number=lot_number,
            status=status,
            **details,
        )


class ConcurrentModificationError(LabError):
    """Lock or version conflict. The caller may retry from scratch."""

    http_status = 409

    def __init__(self, **details: Any):
        super().__init__("CONCURRENT_MODIFICATION", **details)


class LedgerInvariantError(LabError):
    """A lot violates the conservation identity or its quantity bounds."""

    http_status = 500

    def __init__(self, lot_id, **details: Any):
        self.lot_id = lot_id
        super().__init__("LEDGER_INVARIANT_VIOLATED", lot_id=lot_id, **details)


# Common error codes
# WORKSHEET_NOT_FOUND: Worksheet does not exist
# MATERIAL_NOT_FOUND / LOT_NOT_FOUND / ORDER_NOT_FOUND: Lookup failed
# INVALID_QUANTITY: Quantity must be strictly positive
# INVALID_ROLE / INVALID_STATUS: Value outside the closed enum
# NOTES_REQUIRED: Rejection or void without a reason
# ACTIVE_WORKSHEET_EXISTS: Order already has a non-voided worksheet
# WORKSHEET_LOCKED: Requirements can only change while DRAFT
# DUPLICATE_LOT: Lot number already recorded for the material
# TRANSACTION_REQUIRED: Allocation apply called outside a transaction
# RETENTION_REQUIRED / APPEND_ONLY: Traceability rows cannot be deleted or edited
# INTERNAL_ERROR: Unexpected failure, rolled back (see `ref` in the log)

NOT_FOUND_CODES = frozenset(
    {"WORKSHEET_NOT_FOUND", "MATERIAL_NOT_FOUND", "LOT_NOT_FOUND", "ORDER_NOT_FOUND"}
)
FORBIDDEN_CODES = frozenset({"ROLE_NOT_PERMITTED", "INVALID_ROLE"})


def http_status_for(error: LabError) -> int:
    """HTTP status for an error: 404 for lookups, 403 for role problems, 500 for internal failures."""
    if error.code in NOT_FOUND_CODES:
        return 404
    if error.code in FORBIDDEN_CODES:
        return 403
    if error.code == "INTERNAL_ERROR":
        return 500
    return error.http_status
