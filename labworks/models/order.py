"""
Order model.

Only the slice the production engine touches: identity, numbering and the
status reflected from worksheet transitions. Clinic/dentist CRUD lives
elsewhere.
"""

import uuid

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _
from simple_history.models import HistoricalRecords

from labworks.models.base import RetainedModel, RetainedQuerySet
from labworks.models.sequence import CodeSequence


class OrderStatus(models.TextChoices):
    """Order lifecycle status."""

    PENDING = "PENDING", _("Pending")
    IN_PRODUCTION = "IN_PRODUCTION", _("In production")
    QC_PENDING = "QC_PENDING", _("QC pending")
    QC_APPROVED = "QC_APPROVED", _("QC approved")
    INVOICED = "INVOICED", _("Invoiced")
    DELIVERED = "DELIVERED", _("Delivered")
    CANCELLED = "CANCELLED", _("Cancelled")


class Order(RetainedModel):
    """
    Clinic order for one custom-made device.

    Status: PENDING → IN_PRODUCTION → QC_PENDING → QC_APPROVED → DELIVERED
    (driven by the worksheet; CANCELLED only when the clinic cancels).
    """

    uuid = models.UUIDField(
        default=uuid.uuid4,
        editable=False,
        unique=True,
        verbose_name=_("UUID"),
    )
    order_number = models.CharField(
        max_length=20,
        unique=True,
        blank=True,
        verbose_name=_("Order number"),
        help_text=_("Auto-generated if empty (YYNNN)"),
    )
    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
        db_index=True,
        verbose_name=_("Status"),
    )
    patient_name = models.CharField(max_length=200, blank=True, verbose_name=_("Patient"))
    due_date = models.DateField(null=True, blank=True, verbose_name=_("Due date"))
    notes = models.TextField(blank=True, verbose_name=_("Notes"))

    created_by = models.CharField(
        max_length=255,
        blank=True,
        verbose_name=_("Created by"),
        help_text=_("Ex: 'user:12', 'system:import'"),
    )
    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("Created at"))
    updated_at = models.DateTimeField(auto_now=True, verbose_name=_("Updated at"))

    history = HistoricalRecords()

    objects = RetainedQuerySet.as_manager()

    class Meta:
        db_table = "labworks_order"
        verbose_name = _("Order")
        verbose_name_plural = _("Orders")
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return self.order_number or f"ORDER-{self.pk}"

    def save(self, *args, **kwargs):
        """Override save to auto-generate the order number."""
        if not self.order_number:
            self.order_number = self._generate_number()
        super().save(*args, **kwargs)

    @staticmethod
    def _generate_number() -> str:
        """Generate order number in format YYNNN (e.g. 26001)."""
        year = timezone.now().year
        value = CodeSequence.next_value(f"ORDER-{year}")
        return f"{year % 100:02d}{value:03d}"
