"""
Labworks Adapters.

Default implementations of the protocols, selected through settings
(see labworks.conf).
"""

from labworks.adapters.noop import LoggingDocumentBackend
from labworks.adapters.orders import DjangoOrderStore

__all__ = [
    "DjangoOrderStore",
    "LoggingDocumentBackend",
]
