"""
Ledger movement records.

WorksheetMaterialConsumption = lot drawn into a worksheet (allocator apply).
LotAdjustment = explicit correction of a lot's available quantity.

Both are append-only: a reversal is a new adjustment, never an edit.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _

from labworks.models.base import AppendOnlyModel
from labworks.models.material import QUANTITY_DIGITS


class WorksheetMaterialConsumption(AppendOnlyModel):
    """Exact quantity of one lot consumed by one worksheet."""

    worksheet = models.ForeignKey(
        "labworks.Worksheet",
        on_delete=models.PROTECT,
        related_name="consumptions",
        verbose_name=_("Worksheet"),
    )
    lot = models.ForeignKey(
        "labworks.MaterialLot",
        on_delete=models.PROTECT,
        related_name="consumptions",
        verbose_name=_("Lot"),
    )
    material = models.ForeignKey(
        "labworks.Material",
        on_delete=models.PROTECT,
        related_name="consumptions",
        verbose_name=_("Material"),
    )
    quantity_used = models.DecimalField(**QUANTITY_DIGITS, verbose_name=_("Quantity used"))
    sequence = models.PositiveSmallIntegerField(
        default=0,
        verbose_name=_("Sequence"),
        help_text=_("Position of the lot in the allocation plan"),
    )
    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("Created at"))

    class Meta:
        db_table = "labworks_material_consumption"
        verbose_name = _("Material consumption")
        verbose_name_plural = _("Material consumptions")
        ordering = ["worksheet", "sequence"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity_used__gt=0),
                name="labworks_consumption_quantity_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.lot} → {self.worksheet}: {self.quantity_used}"


class LotAdjustment(AppendOnlyModel):
    """
    Signed correction to a lot's available quantity.

    Positive quantity adds stock back (recount found more, reversal of a
    consumption), negative removes it (breakage, spillage).
    """

    lot = models.ForeignKey(
        "labworks.MaterialLot",
        on_delete=models.PROTECT,
        related_name="adjustments",
        verbose_name=_("Lot"),
    )
    quantity = models.DecimalField(**QUANTITY_DIGITS, verbose_name=_("Quantity"))
    reason = models.TextField(verbose_name=_("Reason"))
    actor_id = models.CharField(max_length=255, verbose_name=_("Actor"))
    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("Created at"))

    class Meta:
        db_table = "labworks_lot_adjustment"
        verbose_name = _("Lot adjustment")
        verbose_name_plural = _("Lot adjustments")
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.lot}: {self.quantity:+}"
