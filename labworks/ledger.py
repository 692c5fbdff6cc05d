"""
Lot ledger: stock arrival, corrections, expiry, alerts and traceability.

Every quantity change outside the allocator goes through `correct_lot`,
which writes a LotAdjustment so the conservation identity

    received = available + sum(consumed) - sum(adjustments)

holds for every lot at all times.
"""

import logging
from datetime import date, timedelta
from decimal import Decimal

from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from labworks.audit import AuditTrail, snapshot
from labworks.conf import get_setting
from labworks.exceptions import ConcurrentModificationError, LabError, LedgerInvariantError
from labworks.models import (
    AuditAction,
    LotAdjustment,
    LotStatus,
    Material,
    MaterialLot,
    Worksheet,
)
from labworks.results import ExpiryAlert, LowStockAlert

logger = logging.getLogger(__name__)

LOT_FIELDS = [
    "material",
    "lot_number",
    "arrival_date",
    "expiry_date",
    "supplier_name",
    "quantity_received",
    "quantity_available",
    "status",
]


def _to_decimal(quantity) -> Decimal:
    return quantity if isinstance(quantity, Decimal) else Decimal(str(quantity))


def _locked_lot(lot_id) -> MaterialLot:
    try:
        return MaterialLot.objects.select_for_update().select_related("material").get(pk=lot_id)
    except MaterialLot.DoesNotExist:
        raise LabError("LOT_NOT_FOUND", lot_id=lot_id)


# ══════════════════════════════════════════════════════════════
# STOCK MOVEMENTS
# ══════════════════════════════════════════════════════════════


def receive_lot(
    material_id,
    lot_number: str,
    quantity,
    actor_id,
    *,
    arrival_date: date | None = None,
    expiry_date: date | None = None,
    supplier_name: str = "",
    notes: str = "",
    audit=None,
) -> MaterialLot:
    """
    Record a stock arrival as a new AVAILABLE lot.

    Raises:
        LabError: MATERIAL_NOT_FOUND, INVALID_QUANTITY, DUPLICATE_LOT
    """
    audit = audit or AuditTrail()
    quantity = _to_decimal(quantity)
    if quantity <= 0:
        raise LabError("INVALID_QUANTITY", quantity=str(quantity))

    with transaction.atomic():
        try:
            material = Material.objects.get(pk=material_id)
        except Material.DoesNotExist:
            raise LabError("MATERIAL_NOT_FOUND", material_id=material_id)

        if MaterialLot.objects.filter(material=material, lot_number=lot_number).exists():
            raise LabError("DUPLICATE_LOT", material_id=material.pk, lot_number=lot_number)

        lot = MaterialLot.objects.create(
            material=material,
            lot_number=lot_number,
            arrival_date=arrival_date or timezone.localdate(),
            expiry_date=expiry_date,
            supplier_name=supplier_name,
            quantity_received=quantity,
            quantity_available=quantity,
            notes=notes,
        )
        audit.record(
            "MaterialLot",
            lot.pk,
            actor_id,
            AuditAction.CREATE,
            after=snapshot(lot, LOT_FIELDS),
            reason=f"Stock arrival: {lot_number}",
        )

    logger.info(
        f"Received lot {lot_number} of {material.code}: {quantity} {material.unit}",
        extra={"lot_id": lot.pk, "material_id": material.pk},
    )
    return lot


def recall_lot(lot_id, actor_id, reason: str, *, audit=None) -> MaterialLot:
    """
    Take a lot out of circulation. Already consumed quantities stay on record.

    Raises:
        LabError: LOT_NOT_FOUND, NOTES_REQUIRED
    """
    audit = audit or AuditTrail()
    if not (reason or "").strip():
        raise LabError("NOTES_REQUIRED", lot_id=lot_id)

    with transaction.atomic():
        lot = _locked_lot(lot_id)
        if lot.status == LotStatus.RECALLED:
            return lot
        before = snapshot(lot, LOT_FIELDS)
        lot.status = LotStatus.RECALLED
        lot.save(update_fields=["status", "updated_at"])
        audit.record(
            "MaterialLot",
            lot.pk,
            actor_id,
            AuditAction.RECALL,
            before=before,
            after=snapshot(lot, LOT_FIELDS),
            reason=reason,
        )

    logger.warning(
        f"Lot {lot.lot_number} of {lot.material.code} recalled: {reason}",
        extra={"lot_id": lot.pk, "material_id": lot.material_id},
    )
    return lot


def correct_lot(lot_id, delta, actor_id, reason: str, *, audit=None) -> LotAdjustment:
    """
    Adjust a lot's available quantity by a signed delta.

    The result must stay within [0, quantity_received]. A lot corrected to
    zero becomes DEPLETED once it has been allocated from, and stays
    AVAILABLE otherwise; a DEPLETED lot corrected above zero is AVAILABLE
    again.

    Raises:
        LabError: LOT_NOT_FOUND, NOTES_REQUIRED, INVALID_QUANTITY
    """
    audit = audit or AuditTrail()
    delta = _to_decimal(delta)
    if delta == 0:
        raise LabError("INVALID_QUANTITY", lot_id=lot_id, quantity="0")
    if not (reason or "").strip():
        raise LabError("NOTES_REQUIRED", lot_id=lot_id)

    with transaction.atomic():
        lot = _locked_lot(lot_id)
        new_available = lot.quantity_available + delta
        if new_available < 0 or new_available > lot.quantity_received:
            raise LabError(
                "INVALID_QUANTITY",
                lot_id=lot.pk,
                quantity=str(delta),
                available=str(lot.quantity_available),
                received=str(lot.quantity_received),
            )

        before = snapshot(lot, LOT_FIELDS)
        fields = ["quantity_available", "updated_at"]
        if new_available == 0 and lot.status == LotStatus.AVAILABLE and lot.consumptions.exists():
            lot.status = LotStatus.DEPLETED
            fields.append("status")
        elif new_available > 0 and lot.status == LotStatus.DEPLETED:
            lot.status = LotStatus.AVAILABLE
            fields.append("status")

        updated = MaterialLot.objects.filter(
            pk=lot.pk, quantity_available=lot.quantity_available
        ).update(quantity_available=new_available, status=lot.status, updated_at=timezone.now())
        if updated != 1:
            raise ConcurrentModificationError(lot_id=lot.pk)
        lot.refresh_from_db(fields=fields)

        adjustment = LotAdjustment.objects.create(
            lot=lot,
            quantity=delta,
            reason=reason,
            actor_id=str(actor_id),
        )
        audit.record(
            "MaterialLot",
            lot.pk,
            actor_id,
            AuditAction.CORRECTION,
            before=before,
            after=snapshot(lot, LOT_FIELDS),
            reason=reason,
        )
        check_conservation(lot)

    logger.info(
        f"Corrected lot {lot.lot_number} by {delta:+}",
        extra={"lot_id": lot.pk, "delta": str(delta)},
    )
    return adjustment


def expire_lots(today: date | None = None, actor_id="system:expiry", *, audit=None) -> list[MaterialLot]:
    """Mark AVAILABLE lots past their expiry date as EXPIRED."""
    audit = audit or AuditTrail()
    today = today or timezone.localdate()
    expired = []

    with transaction.atomic():
        for lot in MaterialLot.objects.past_expiry(today).select_for_update().order_by("expiry_date", "pk"):
            before = snapshot(lot, LOT_FIELDS)
            lot.status = LotStatus.EXPIRED
            lot.save(update_fields=["status", "updated_at"])
            audit.record(
                "MaterialLot",
                lot.pk,
                actor_id,
                AuditAction.EXPIRE,
                before=before,
                after=snapshot(lot, LOT_FIELDS),
                reason=f"Expired on {lot.expiry_date.isoformat()}",
            )
            expired.append(lot)

    if expired:
        logger.info(f"Expired {len(expired)} lot(s)", extra={"lots": [lot.pk for lot in expired]})
    return expired


# ══════════════════════════════════════════════════════════════
# READ PATHS
# ══════════════════════════════════════════════════════════════


def get_lot_ledger(material_id, *, status: str | None = None) -> list[MaterialLot]:
    """All lots of a material in FIFO order, any status unless filtered."""
    if not Material.objects.filter(pk=material_id).exists():
        raise LabError("MATERIAL_NOT_FOUND", material_id=material_id)
    lots = MaterialLot.objects.filter(material_id=material_id).select_related("material")
    if status:
        lots = lots.filter(status=status)
    return list(lots.order_by("arrival_date", "lot_number"))


def expiring_lots(days: int | None = None, today: date | None = None) -> list[ExpiryAlert]:
    """
    Usable lots expiring within `days`.

    Severity: critical under 7 days, warning under 30, info otherwise.
    """
    days = get_setting("EXPIRY_WARNING_DAYS") if days is None else days
    today = today or timezone.localdate()
    lots = (
        MaterialLot.objects.filter(
            status=LotStatus.AVAILABLE,
            quantity_available__gt=0,
            expiry_date__gte=today,
            expiry_date__lte=today + timedelta(days=days),
        )
        .select_related("material")
        .order_by("expiry_date", "lot_number")
    )

    alerts = []
    for lot in lots:
        remaining = lot.days_until_expiry(today)
        if remaining < 7:
            severity = "critical"
        elif remaining < 30:
            severity = "warning"
        else:
            severity = "info"
        alerts.append(
            ExpiryAlert(
                lot_id=lot.pk,
                lot_number=lot.lot_number,
                material_code=lot.material.code,
                expiry_date=lot.expiry_date,
                days_until_expiry=remaining,
                quantity_available=lot.quantity_available,
                severity=severity,
            )
        )
    return alerts


def low_stock_materials(threshold=None, today: date | None = None) -> list[LowStockAlert]:
    """Active materials whose allocatable stock is below `threshold`, lowest first."""
    threshold = _to_decimal(get_setting("LOW_STOCK_THRESHOLD") if threshold is None else threshold)
    alerts = []
    for material in Material.objects.filter(is_active=True):
        available = MaterialLot.objects.allocatable(material, on=today).aggregate(
            total=Sum("quantity_available")
        )["total"] or Decimal("0")
        if available < threshold:
            alerts.append(
                LowStockAlert(
                    material_id=material.pk,
                    material_code=material.code,
                    available=available,
                    threshold=threshold,
                )
            )
    return sorted(alerts, key=lambda alert: (alert.available, alert.material_code))


# ══════════════════════════════════════════════════════════════
# TRACEABILITY
# ══════════════════════════════════════════════════════════════


def lot_traceability(lot_id) -> dict:
    """Forward trace: every worksheet (and patient) that used a lot."""
    try:
        lot = MaterialLot.objects.select_related("material").get(pk=lot_id)
    except MaterialLot.DoesNotExist:
        raise LabError("LOT_NOT_FOUND", lot_id=lot_id)

    consumptions = list(
        lot.consumptions.select_related("worksheet", "worksheet__order").order_by("created_at", "pk")
    )
    patients = {c.worksheet.order.patient_name for c in consumptions if c.worksheet.order.patient_name}

    return {
        "lot_id": lot.pk,
        "lot_number": lot.lot_number,
        "material_code": lot.material.code,
        "status": lot.status,
        "worksheets": [
            {
                "worksheet_id": c.worksheet_id,
                "worksheet_number": c.worksheet.worksheet_number,
                "revision": c.worksheet.revision,
                "status": c.worksheet.status,
                "manufacture_date": c.worksheet.manufacture_date,
                "order_number": c.worksheet.order.order_number,
                "patient_name": c.worksheet.order.patient_name,
                "quantity_used": c.quantity_used,
            }
            for c in consumptions
        ],
        "summary": {
            "total_quantity_used": sum((c.quantity_used for c in consumptions), Decimal("0")),
            "worksheets_count": len({c.worksheet_id for c in consumptions}),
            "patients_affected": len(patients),
            "first_use": consumptions[0].created_at if consumptions else None,
            "last_use": consumptions[-1].created_at if consumptions else None,
        },
    }


def worksheet_traceability(worksheet_id) -> dict:
    """Backward trace: every lot and exact quantity a worksheet consumed."""
    try:
        worksheet = Worksheet.objects.get(pk=worksheet_id)
    except Worksheet.DoesNotExist:
        raise LabError("WORKSHEET_NOT_FOUND", worksheet_id=worksheet_id)

    consumptions = worksheet.consumptions.select_related("lot", "material").order_by("sequence", "pk")
    return {
        "worksheet_id": worksheet.pk,
        "worksheet_number": worksheet.worksheet_number,
        "revision": worksheet.revision,
        "materials": [
            {
                "material_id": c.material_id,
                "material_code": c.material.code,
                "material_name": c.material.name,
                "material_type": c.material.material_type,
                "manufacturer": c.material.manufacturer,
                "lot_id": c.lot_id,
                "lot_number": c.lot.lot_number,
                "lot_arrival_date": c.lot.arrival_date,
                "lot_expiry_date": c.lot.expiry_date,
                "quantity_used": c.quantity_used,
                "biocompatible": c.material.biocompatible,
                "ce_marked": c.material.ce_marked,
                "ce_number": c.material.ce_number,
            }
            for c in consumptions
        ],
    }


# ══════════════════════════════════════════════════════════════
# INVARIANTS
# ══════════════════════════════════════════════════════════════


def check_conservation(lot: MaterialLot) -> None:
    """
    Raise LedgerInvariantError unless the lot's books balance.

    received = available + consumed - adjusted, and 0 <= available <= received.
    """
    consumed = lot.quantity_consumed
    adjusted = lot.quantity_adjusted
    expected = lot.quantity_available + consumed - adjusted
    if not (0 <= lot.quantity_available <= lot.quantity_received) or expected != lot.quantity_received:
        raise LedgerInvariantError(
            lot.pk,
            received=str(lot.quantity_received),
            available=str(lot.quantity_available),
            consumed=str(consumed),
            adjusted=str(adjusted),
        )


def verify_ledger(material_id=None) -> list[LedgerInvariantError]:
    """Check every lot (optionally of one material); return the violations."""
    lots = MaterialLot.objects.all()
    if material_id is not None:
        lots = lots.filter(material_id=material_id)

    violations = []
    for lot in lots.order_by("pk"):
        try:
            check_conservation(lot)
        except LedgerInvariantError as exc:
            logger.error(f"Ledger invariant violated for lot {lot.pk}: {exc}", extra={"lot_id": lot.pk})
            violations.append(exc)
    return violations
