"""
Worksheet and MaterialRequirement models.

Worksheet = one production job for an Order, with its own status lifecycle.
Status changes go through TransitionOrchestrator only.
"""

import uuid

from django.db import models
from django.db.models import Q
from django.utils.translation import gettext_lazy as _
from simple_history.models import HistoricalRecords

from labworks.models.base import RetainedModel
from labworks.models.material import QUANTITY_DIGITS


class WorksheetStatus(models.TextChoices):
    """Worksheet lifecycle status."""

    DRAFT = "DRAFT", _("Draft")
    IN_PRODUCTION = "IN_PRODUCTION", _("In production")
    QC_PENDING = "QC_PENDING", _("QC pending")
    QC_APPROVED = "QC_APPROVED", _("QC approved")
    QC_REJECTED = "QC_REJECTED", _("QC rejected")
    DELIVERED = "DELIVERED", _("Delivered")
    CANCELLED = "CANCELLED", _("Cancelled")
    VOIDED = "VOIDED", _("Voided")


class Worksheet(RetainedModel):
    """
    Production record for one custom-made device.

    Status: DRAFT → IN_PRODUCTION → QC_PENDING → QC_APPROVED → DELIVERED
    (QC_REJECTED loops back to IN_PRODUCTION; CANCELLED and VOIDED are terminal).

    An Order has at most one non-VOIDED worksheet. Voiding one makes room for
    the next revision.

    `version` is bumped by every transition and is the optimistic lock token
    callers can echo back as `expected_version`.
    """

    uuid = models.UUIDField(
        default=uuid.uuid4,
        editable=False,
        unique=True,
        verbose_name=_("UUID"),
    )
    worksheet_number = models.CharField(
        max_length=30,
        db_index=True,
        verbose_name=_("Worksheet number"),
        help_text=_("DN-<order number>, shared by every revision"),
    )
    order = models.ForeignKey(
        "labworks.Order",
        on_delete=models.PROTECT,
        related_name="worksheets",
        verbose_name=_("Order"),
    )
    revision = models.PositiveIntegerField(default=1, verbose_name=_("Revision"))

    status = models.CharField(
        max_length=20,
        choices=WorksheetStatus.choices,
        default=WorksheetStatus.DRAFT,
        db_index=True,
        verbose_name=_("Status"),
    )
    version = models.PositiveIntegerField(default=1, verbose_name=_("Version"))

    # Device
    device_description = models.TextField(blank=True, verbose_name=_("Device description"))
    intended_use = models.TextField(blank=True, verbose_name=_("Intended use"))
    technical_notes = models.TextField(blank=True, verbose_name=_("Technical notes"))

    # QC
    qc_notes = models.TextField(blank=True, verbose_name=_("QC notes"))

    # Dates
    manufacture_date = models.DateField(null=True, blank=True, verbose_name=_("Manufacture date"))
    completed_at = models.DateTimeField(null=True, blank=True, verbose_name=_("Completed at"))
    voided_at = models.DateTimeField(null=True, blank=True, verbose_name=_("Voided at"))
    void_reason = models.TextField(blank=True, verbose_name=_("Void reason"))

    created_by = models.CharField(max_length=255, blank=True, verbose_name=_("Created by"))
    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("Created at"))
    updated_at = models.DateTimeField(auto_now=True, verbose_name=_("Updated at"))

    history = HistoricalRecords()

    class Meta:
        db_table = "labworks_worksheet"
        verbose_name = _("Worksheet")
        verbose_name_plural = _("Worksheets")
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["order"],
                condition=~Q(status="VOIDED"),
                name="labworks_one_active_worksheet_per_order",
            ),
            models.UniqueConstraint(
                fields=["order", "revision"],
                name="labworks_worksheet_revision_unique",
            ),
        ]

    def __str__(self) -> str:
        if self.revision > 1:
            return f"{self.worksheet_number} rev.{self.revision}"
        return self.worksheet_number

    @property
    def is_locked(self) -> bool:
        """Requirements and device data are frozen once production starts."""
        return self.status != WorksheetStatus.DRAFT


class MaterialRequirement(models.Model):
    """Quantity of one material a worksheet needs before entering production."""

    worksheet = models.ForeignKey(
        Worksheet,
        on_delete=models.CASCADE,
        related_name="requirements",
        verbose_name=_("Worksheet"),
    )
    material = models.ForeignKey(
        "labworks.Material",
        on_delete=models.PROTECT,
        related_name="requirements",
        verbose_name=_("Material"),
    )
    quantity = models.DecimalField(**QUANTITY_DIGITS, verbose_name=_("Quantity"))
    notes = models.CharField(max_length=255, blank=True, verbose_name=_("Notes"))

    class Meta:
        db_table = "labworks_material_requirement"
        verbose_name = _("Material requirement")
        verbose_name_plural = _("Material requirements")
        ordering = ["material__code"]
        constraints = [
            models.CheckConstraint(
                condition=Q(quantity__gt=0),
                name="labworks_requirement_quantity_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.material.code} × {self.quantity}"
