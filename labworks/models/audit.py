"""
AuditLogEntry model.

Append-only record of every state change made by the engine: worksheet
transitions, lot consumption, stock corrections and order reflection.
"""

from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.utils.translation import gettext_lazy as _

from labworks.models.base import AppendOnlyModel


class AuditAction(models.TextChoices):
    CREATE = "CREATE", _("Create")
    UPDATE = "UPDATE", _("Update")
    STATUS_CHANGE = "STATUS_CHANGE", _("Status change")
    MATERIAL_ASSIGN = "MATERIAL_ASSIGN", _("Material assign")
    MATERIAL_CONSUME = "MATERIAL_CONSUME", _("Material consume")
    CORRECTION = "CORRECTION", _("Correction")
    RECALL = "RECALL", _("Recall")
    EXPIRE = "EXPIRE", _("Expire")
    QC_APPROVE = "QC_APPROVE", _("QC approve")
    QC_REJECT = "QC_REJECT", _("QC reject")
    DOCUMENT_GENERATE = "DOCUMENT_GENERATE", _("Document generate")


class AuditLogEntry(AppendOnlyModel):
    """
    One logical change, with before/after snapshots.

    Never updated or deleted: the model and its queryset refuse both.
    """

    actor_id = models.CharField(max_length=255, verbose_name=_("Actor"))
    actor_role = models.CharField(max_length=20, blank=True, verbose_name=_("Role"))
    action = models.CharField(
        max_length=30,
        choices=AuditAction.choices,
        db_index=True,
        verbose_name=_("Action"),
    )
    entity_type = models.CharField(max_length=50, verbose_name=_("Entity type"))
    entity_id = models.CharField(max_length=64, verbose_name=_("Entity ID"))
    before = models.JSONField(
        null=True,
        blank=True,
        encoder=DjangoJSONEncoder,
        verbose_name=_("Before"),
    )
    after = models.JSONField(
        null=True,
        blank=True,
        encoder=DjangoJSONEncoder,
        verbose_name=_("After"),
    )
    reason = models.TextField(blank=True, verbose_name=_("Reason"))
    timestamp = models.DateTimeField(auto_now_add=True, db_index=True, verbose_name=_("Timestamp"))

    class Meta:
        db_table = "labworks_audit_log"
        verbose_name = _("Audit log entry")
        verbose_name_plural = _("Audit log entries")
        ordering = ["timestamp", "id"]
        indexes = [
            models.Index(fields=["entity_type", "entity_id"]),
        ]

    def __str__(self) -> str:
        return f"{self.action} {self.entity_type}#{self.entity_id} by {self.actor_id}"
