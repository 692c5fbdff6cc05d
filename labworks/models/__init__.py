"""
Labworks Models.

Core models for lab production:
- Material / MaterialLot: catalog entry and lot-tracked stock
- Order: clinic order, status reflected from its worksheet
- Worksheet / MaterialRequirement: production job and what it needs
- WorksheetMaterialConsumption / LotAdjustment: ledger movements
- AuditLogEntry: append-only change history
- ComplianceDocumentRequest: Annex XIII generation outbox
- CodeSequence: atomic numbering
"""

from labworks.models.audit import AuditAction, AuditLogEntry
from labworks.models.consumption import LotAdjustment, WorksheetMaterialConsumption
from labworks.models.document import ComplianceDocumentRequest, DocumentRequestStatus
from labworks.models.material import LotStatus, Material, MaterialLot, MaterialType
from labworks.models.order import Order, OrderStatus
from labworks.models.sequence import CodeSequence
from labworks.models.worksheet import MaterialRequirement, Worksheet, WorksheetStatus

__all__ = [
    "AuditAction",
    "AuditLogEntry",
    "CodeSequence",
    "ComplianceDocumentRequest",
    "DocumentRequestStatus",
    "LotAdjustment",
    "LotStatus",
    "Material",
    "MaterialLot",
    "MaterialRequirement",
    "MaterialType",
    "Order",
    "OrderStatus",
    "Worksheet",
    "WorksheetMaterialConsumption",
    "WorksheetStatus",
]
