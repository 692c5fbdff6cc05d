"""
Labworks Result Types.

Structured results for allocation and worksheet transitions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal


@dataclass(frozen=True)
class PlanLine:
    """Quantity to take from one lot."""

    lot_id: int
    lot_number: str
    quantity: Decimal
    arrival_date: date | None = None
    expiry_date: date | None = None


@dataclass
class AllocationPlan:
    """
    Lot-by-lot plan for one material, in FIFO order.

    sum(line.quantity) == requested, and each line was within its lot's
    available quantity when the plan was proposed.
    """

    material_id: int
    requested: Decimal
    lines: list[PlanLine] = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return sum((line.quantity for line in self.lines), Decimal("0"))

    def as_pairs(self) -> list[tuple[int, Decimal]]:
        return [(line.lot_id, line.quantity) for line in self.lines]

    def as_dict(self) -> dict:
        return {
            "material_id": self.material_id,
            "requested": str(self.requested),
            "lines": [
                {
                    "lot_id": line.lot_id,
                    "lot_number": line.lot_number,
                    "quantity": str(line.quantity),
                    "arrival_date": line.arrival_date.isoformat() if line.arrival_date else None,
                    "expiry_date": line.expiry_date.isoformat() if line.expiry_date else None,
                }
                for line in self.lines
            ],
        }


@dataclass(frozen=True)
class WorksheetSnapshot:
    """State of a worksheet right after a committed transition."""

    worksheet_id: int
    worksheet_number: str
    revision: int
    order_id: int
    status: str
    previous_status: str
    version: int
    updated_at: datetime | None = None
    consumed: tuple[tuple[int, Decimal], ...] = ()
    document_request_id: int | None = None

    @classmethod
    def of(cls, worksheet, previous_status, consumed=(), document_request_id=None):
        return cls(
            worksheet_id=worksheet.pk,
            worksheet_number=worksheet.worksheet_number,
            revision=worksheet.revision,
            order_id=worksheet.order_id,
            status=str(worksheet.status),
            previous_status=str(previous_status),
            version=worksheet.version,
            updated_at=worksheet.updated_at,
            consumed=tuple(consumed),
            document_request_id=document_request_id,
        )

    def as_dict(self) -> dict:
        return {
            "worksheet_id": self.worksheet_id,
            "worksheet_number": self.worksheet_number,
            "revision": self.revision,
            "order_id": self.order_id,
            "status": self.status,
            "previous_status": self.previous_status,
            "version": self.version,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "consumed": [{"lot_id": lot_id, "quantity": str(qty)} for lot_id, qty in self.consumed],
            "document_request_id": self.document_request_id,
        }


@dataclass
class ExpiryAlert:
    lot_id: int
    lot_number: str
    material_code: str
    expiry_date: date
    days_until_expiry: int
    quantity_available: Decimal
    severity: str  # critical | warning | info


@dataclass
class LowStockAlert:
    material_id: int
    material_code: str
    available: Decimal
    threshold: Decimal

    @property
    def shortage(self) -> Decimal:
        return self.threshold - self.available
