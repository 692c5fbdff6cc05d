"""
Material and MaterialLot models.

Material = catalog entry (code, unit, biocompatibility / CE metadata).
MaterialLot = one physical batch of a material with its own expiry and
remaining quantity. Lots are the unit of MDR traceability.
"""

from datetime import date
from decimal import Decimal

from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _
from simple_history.models import HistoricalRecords

from labworks.models.base import RetainedModel, RetainedQuerySet

QUANTITY_DIGITS = {"max_digits": 10, "decimal_places": 3}


class MaterialType(models.TextChoices):
    CERAMIC = "CERAMIC", _("Ceramic")
    METAL = "METAL", _("Metal")
    RESIN = "RESIN", _("Resin")
    COMPOSITE = "COMPOSITE", _("Composite")
    PORCELAIN = "PORCELAIN", _("Porcelain")
    ZIRCONIA = "ZIRCONIA", _("Zirconia")
    TITANIUM = "TITANIUM", _("Titanium")
    ALLOY = "ALLOY", _("Alloy")
    ACRYLIC = "ACRYLIC", _("Acrylic")
    WAX = "WAX", _("Wax")
    OTHER = "OTHER", _("Other")


class LotStatus(models.TextChoices):
    """MaterialLot lifecycle status."""

    AVAILABLE = "AVAILABLE", _("Available")
    DEPLETED = "DEPLETED", _("Depleted")
    EXPIRED = "EXPIRED", _("Expired")
    RECALLED = "RECALLED", _("Recalled")


class Material(models.Model):
    """Raw material catalog entry. Identity is immutable once lots exist."""

    code = models.CharField(
        max_length=50,
        unique=True,
        verbose_name=_("Code"),
    )
    name = models.CharField(max_length=200, verbose_name=_("Name"))
    material_type = models.CharField(
        max_length=20,
        choices=MaterialType.choices,
        default=MaterialType.OTHER,
        verbose_name=_("Type"),
    )
    manufacturer = models.CharField(
        max_length=200,
        blank=True,
        verbose_name=_("Manufacturer"),
    )
    description = models.TextField(blank=True, verbose_name=_("Description"))
    unit = models.CharField(
        max_length=20,
        default="gram",
        verbose_name=_("Unit"),
        help_text=_("Unit of measure for every lot quantity of this material"),
    )

    # Compliance metadata (Annex XIII)
    biocompatible = models.BooleanField(default=True, verbose_name=_("Biocompatible"))
    iso10993_cert = models.CharField(
        max_length=100,
        blank=True,
        verbose_name=_("ISO 10993 certificate"),
    )
    ce_marked = models.BooleanField(default=True, verbose_name=_("CE marked"))
    ce_number = models.CharField(max_length=100, blank=True, verbose_name=_("CE number"))

    is_active = models.BooleanField(default=True, verbose_name=_("Active"))

    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("Created at"))
    updated_at = models.DateTimeField(auto_now=True, verbose_name=_("Updated at"))

    history = HistoricalRecords()

    class Meta:
        db_table = "labworks_material"
        verbose_name = _("Material")
        verbose_name_plural = _("Materials")
        ordering = ["code"]

    def __str__(self) -> str:
        return f"{self.code} - {self.name}"

    @property
    def available_quantity(self) -> Decimal:
        """Total quantity across allocatable lots."""
        total = MaterialLot.objects.allocatable(self).aggregate(
            total=models.Sum("quantity_available")
        )["total"]
        return total or Decimal("0")


class MaterialLotQuerySet(RetainedQuerySet):
    def allocatable(self, material, on: date | None = None):
        """
        Lots eligible for allocation, in FIFO order.

        AVAILABLE, with stock left, and not past expiry. Ordered by arrival
        date then lot number, a total order within one material.
        """
        on = on or timezone.localdate()
        return (
            self.filter(
                material=material,
                status=LotStatus.AVAILABLE,
                quantity_available__gt=0,
            )
            .filter(Q(expiry_date__isnull=True) | Q(expiry_date__gte=on))
            .order_by("arrival_date", "lot_number")
        )

    def past_expiry(self, on: date | None = None):
        on = on or timezone.localdate()
        return self.filter(status=LotStatus.AVAILABLE, expiry_date__lt=on)


class MaterialLot(RetainedModel):
    """
    One physical batch of a Material.

    quantity_available is mutated only by the allocator's apply step and by
    explicit ledger corrections, always inside a transaction.

    Invariants:
        0 <= quantity_available <= quantity_received
        received = available + sum(consumed) - sum(adjustments)
    """

    material = models.ForeignKey(
        Material,
        on_delete=models.PROTECT,
        related_name="lots",
        verbose_name=_("Material"),
    )
    lot_number = models.CharField(max_length=100, verbose_name=_("Lot number"))
    arrival_date = models.DateField(
        default=timezone.localdate,
        db_index=True,
        verbose_name=_("Arrival date"),
    )
    expiry_date = models.DateField(
        null=True,
        blank=True,
        verbose_name=_("Expiry date"),
        help_text=_("Usable up to and including this date"),
    )
    supplier_name = models.CharField(
        max_length=200,
        blank=True,
        verbose_name=_("Supplier"),
    )

    quantity_received = models.DecimalField(
        **QUANTITY_DIGITS,
        verbose_name=_("Quantity received"),
    )
    quantity_available = models.DecimalField(
        **QUANTITY_DIGITS,
        verbose_name=_("Quantity available"),
    )

    status = models.CharField(
        max_length=20,
        choices=LotStatus.choices,
        default=LotStatus.AVAILABLE,
        db_index=True,
        verbose_name=_("Status"),
    )
    notes = models.TextField(blank=True, verbose_name=_("Notes"))

    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("Created at"))
    updated_at = models.DateTimeField(auto_now=True, verbose_name=_("Updated at"))

    objects = MaterialLotQuerySet.as_manager()

    class Meta:
        db_table = "labworks_material_lot"
        verbose_name = _("Material lot")
        verbose_name_plural = _("Material lots")
        ordering = ["material", "arrival_date", "lot_number"]
        constraints = [
            models.UniqueConstraint(
                fields=["material", "lot_number"],
                name="labworks_lot_number_unique_per_material",
            ),
            models.CheckConstraint(
                condition=Q(quantity_available__gte=0)
                & Q(quantity_available__lte=models.F("quantity_received")),
                name="labworks_lot_available_within_received",
            ),
        ]
        indexes = [
            models.Index(fields=["material", "status", "arrival_date"]),
            models.Index(fields=["expiry_date"]),
        ]

    def __str__(self) -> str:
        return f"{self.material.code} / {self.lot_number}"

    def is_expired(self, on: date | None = None) -> bool:
        """Past its expiry date (a lot is usable on the expiry date itself)."""
        if self.expiry_date is None:
            return False
        return self.expiry_date < (on or timezone.localdate())

    def is_allocatable(self, on: date | None = None) -> bool:
        return (
            self.status == LotStatus.AVAILABLE
            and self.quantity_available > 0
            and not self.is_expired(on)
        )

    @property
    def quantity_consumed(self) -> Decimal:
        total = self.consumptions.aggregate(total=models.Sum("quantity_used"))["total"]
        return total or Decimal("0")

    @property
    def quantity_adjusted(self) -> Decimal:
        total = self.adjustments.aggregate(total=models.Sum("quantity"))["total"]
        return total or Decimal("0")

    def days_until_expiry(self, on: date | None = None) -> int | None:
        if self.expiry_date is None:
            return None
        return (self.expiry_date - (on or timezone.localdate())).days
