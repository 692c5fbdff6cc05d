"""
Annex XIII document requests (transactional outbox).

The request row is written inside the QC_APPROVED transaction; the backend
is called only after commit. A backend failure marks the row FAILED and
never touches the committed transition. `retry_failed` picks failed rows
up again (see the `retry_document_requests` management command).
"""

import logging

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from labworks.conf import get_document_backend, get_setting
from labworks.models import ComplianceDocumentRequest, DocumentRequestStatus

logger = logging.getLogger(__name__)


class DocumentQueue:
    def __init__(self, backend=None):
        self._backend = backend

    @property
    def backend(self):
        return self._backend or get_document_backend()

    def enqueue(self, worksheet, locale_code: str | None = None) -> ComplianceDocumentRequest:
        """Record a request and schedule its dispatch for after commit."""
        request = ComplianceDocumentRequest.objects.create(
            worksheet=worksheet,
            locale_code=locale_code or get_setting("DOCUMENT_LOCALE"),
        )
        transaction.on_commit(lambda: self.dispatch(request.pk))
        return request

    def dispatch(self, request_id: int) -> bool:
        """
        Hand one request to the backend.

        Returns True when the backend accepted it. Failures are logged and
        recorded on the row, never raised.
        """
        request = ComplianceDocumentRequest.objects.get(pk=request_id)
        if request.status == DocumentRequestStatus.SENT:
            return True

        ComplianceDocumentRequest.objects.filter(pk=request_id).update(attempts=F("attempts") + 1)
        try:
            self.backend.request_generation(request.worksheet_id, request.locale_code)
        except Exception as exc:
            logger.exception(
                f"Annex XIII request {request_id} for worksheet {request.worksheet_id} failed",
                extra={"document_request_id": request_id, "worksheet_id": request.worksheet_id},
            )
            ComplianceDocumentRequest.objects.filter(pk=request_id).update(
                status=DocumentRequestStatus.FAILED,
                last_error=f"{type(exc).__name__}: {exc}",
            )
            return False

        ComplianceDocumentRequest.objects.filter(pk=request_id).update(
            status=DocumentRequestStatus.SENT,
            sent_at=timezone.now(),
            last_error="",
        )
        return True

    def retry_failed(self, max_attempts: int | None = None) -> tuple[int, int]:
        """
        Dispatch every FAILED (or never dispatched) request below the attempt cap.

        Returns:
            (sent, still_failing)
        """
        max_attempts = max_attempts or get_setting("DOCUMENT_MAX_ATTEMPTS")
        pending = ComplianceDocumentRequest.objects.filter(
            status__in=[DocumentRequestStatus.FAILED, DocumentRequestStatus.PENDING],
            attempts__lt=max_attempts,
        ).values_list("pk", flat=True)

        sent = failed = 0
        for request_id in list(pending):
            if self.dispatch(request_id):
                sent += 1
            else:
                failed += 1

        if sent or failed:
            logger.info(
                f"Retried Annex XIII requests: {sent} sent, {failed} still failing",
                extra={"sent": sent, "failed": failed},
            )
        return sent, failed


def retry_failed_document_requests(max_attempts: int | None = None) -> tuple[int, int]:
    """Retry with the configured backend."""
    return DocumentQueue().retry_failed(max_attempts)
