"""
Compliance Document Protocol.

Labworks defines this protocol. Document services (PDF rendering, queue
workers) implement it to produce the Annex XIII statement for a worksheet
that passed quality control.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class ComplianceDocumentBackend(Protocol):
    """
    Protocol for requesting Annex XIII document generation.

    Called after the QC_APPROVED transaction commits. Implementations should
    hand the work off (enqueue) and return quickly; raising marks the
    request FAILED so it can be retried later.
    """

    def request_generation(self, worksheet_id: int, locale_code: str) -> None:
        """
        Ask for the compliance document of a worksheet.

        Args:
            worksheet_id: Primary key of the approved worksheet
            locale_code: Language of the document (e.g. "en", "de")
        """
        ...
