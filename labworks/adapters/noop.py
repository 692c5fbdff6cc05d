"""
Logging Document Backend -- records requests in the log, renders nothing.

Use this adapter for development or testing when no document service is
wired in.

Configuration:
    LABWORKS = {
        "DOCUMENT_BACKEND": "labworks.adapters.noop.LoggingDocumentBackend",
    }
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class LoggingDocumentBackend:
    """
    Implementation of the ComplianceDocumentBackend protocol that only logs.

    Keeps a list of the requests it received, which tests can inspect.
    """

    def __init__(self):
        self.requests: list[tuple[int, str]] = []

    def request_generation(self, worksheet_id: int, locale_code: str) -> None:
        self.requests.append((worksheet_id, locale_code))
        logger.info(
            f"Annex XIII document requested for worksheet {worksheet_id} [{locale_code}]",
            extra={"worksheet_id": worksheet_id, "locale_code": locale_code},
        )
