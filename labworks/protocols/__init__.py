"""
Labworks Protocols.

Defines interfaces for external integrations.
"""

from labworks.protocols.documents import ComplianceDocumentBackend
from labworks.protocols.orders import OrderStore

__all__ = [
    "ComplianceDocumentBackend",
    "OrderStore",
]
