"""
ComplianceDocumentRequest model.

Outbox row for Annex XIII document generation. Written inside the
QC_APPROVED transaction, dispatched to the backend after commit.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class DocumentRequestStatus(models.TextChoices):
    PENDING = "PENDING", _("Pending")
    SENT = "SENT", _("Sent")
    FAILED = "FAILED", _("Failed")


class ComplianceDocumentRequest(models.Model):
    worksheet = models.ForeignKey(
        "labworks.Worksheet",
        on_delete=models.PROTECT,
        related_name="document_requests",
        verbose_name=_("Worksheet"),
    )
    locale_code = models.CharField(max_length=10, default="en", verbose_name=_("Locale"))
    status = models.CharField(
        max_length=10,
        choices=DocumentRequestStatus.choices,
        default=DocumentRequestStatus.PENDING,
        db_index=True,
        verbose_name=_("Status"),
    )
    attempts = models.PositiveIntegerField(default=0, verbose_name=_("Attempts"))
    last_error = models.TextField(blank=True, verbose_name=_("Last error"))
    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("Created at"))
    sent_at = models.DateTimeField(null=True, blank=True, verbose_name=_("Sent at"))

    class Meta:
        db_table = "labworks_document_request"
        verbose_name = _("Compliance document request")
        verbose_name_plural = _("Compliance document requests")
        ordering = ["created_at"]

    def __str__(self) -> str:
        return f"Annex XIII {self.worksheet_id} [{self.locale_code}] {self.status}"
