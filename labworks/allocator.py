"""
FIFO lot allocator.

Two steps, kept apart so a caller can plan every material before touching
any of them:

    plan = allocator.propose(material_id, Decimal("70"))   # read only
    allocator.apply(plan)                                   # decrements lots

`apply` must run inside the caller's transaction.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from labworks.exceptions import ExpiredOrStaleLotError, InsufficientStockError, LabError
from labworks.models import LotStatus, Material, MaterialLot
from labworks.results import AllocationPlan, PlanLine

logger = logging.getLogger(__name__)


@dataclass
class AppliedPlan:
    """Outcome of applying one plan: the locked lots after decrement."""

    plan: AllocationPlan
    lots: dict[int, MaterialLot] = field(default_factory=dict)
    depleted: list[int] = field(default_factory=list)


def _to_decimal(quantity) -> Decimal:
    if isinstance(quantity, Decimal):
        return quantity
    return Decimal(str(quantity))


class FifoAllocator:
    """
    Oldest-arrived eligible lot first.

    Eligible: AVAILABLE, quantity left, expiry today or later (or none).
    Order: arrival_date, then lot_number. Identical stock gives identical plans.
    """

    def propose(self, material_id, quantity, *, on: date | None = None, lock: bool = False) -> AllocationPlan:
        """
        Build a plan covering `quantity` of a material, or raise.

        With lock=True the eligible lots are locked (SELECT ... FOR UPDATE)
        so concurrent proposals for the same material serialize; only use it
        inside a transaction.

        Raises:
            LabError: INVALID_QUANTITY, MATERIAL_NOT_FOUND
            InsufficientStockError: stock cannot cover the full quantity
        """
        requested = _to_decimal(quantity)
        if requested <= 0:
            raise LabError("INVALID_QUANTITY", material_id=material_id, quantity=str(requested))
        material_pk = Material.objects.filter(pk=material_id).values_list("pk", flat=True).first()
        if material_pk is None:
            raise LabError("MATERIAL_NOT_FOUND", material_id=material_id)
        material_id = material_pk

        lots = MaterialLot.objects.allocatable(material_id, on=on)
        if lock:
            lots = lots.select_for_update()

        plan = AllocationPlan(material_id=material_id, requested=requested)
        remaining = requested
        available = Decimal("0")
        for lot in lots:
            available += lot.quantity_available
            if remaining <= 0:
                continue
            take = min(lot.quantity_available, remaining)
            plan.lines.append(
                PlanLine(
                    lot_id=lot.pk,
                    lot_number=lot.lot_number,
                    quantity=take,
                    arrival_date=lot.arrival_date,
                    expiry_date=lot.expiry_date,
                )
            )
            remaining -= take

        if remaining > 0:
            logger.warning(
                f"Insufficient stock for material {material_id}: requested {requested}, available {available}",
                extra={"material_id": material_id, "requested": str(requested), "available": str(available)},
            )
            raise InsufficientStockError(material_id, requested, available)

        return plan

    def allocate(self, material_id, quantity, *, on: date | None = None) -> AllocationPlan:
        """Read-only preview: what would be taken, with no lock and no writes."""
        return self.propose(material_id, quantity, on=on)

    def apply(self, plan: AllocationPlan, *, on: date | None = None) -> AppliedPlan:
        """
        Decrement every lot named in `plan`.

        Lots are re-read under lock and re-validated: a lot that is no longer
        AVAILABLE or has expired since the proposal fails the whole apply
        (never substituted), and a lot whose quantity dropped below its line
        raises InsufficientStockError. Each decrement is a guarded UPDATE
        (quantity_available >= taken), so stock never goes negative even
        where row locks are unavailable.

        Raises:
            ExpiredOrStaleLotError, InsufficientStockError
        """
        if not transaction.get_connection().in_atomic_block:
            raise LabError("TRANSACTION_REQUIRED", operation="allocator.apply")

        on = on or timezone.localdate()
        lot_ids = [line.lot_id for line in plan.lines]
        locked = MaterialLot.objects.select_for_update().in_bulk(lot_ids)

        for line in plan.lines:
            lot = locked.get(line.lot_id)
            if lot is None or lot.material_id != plan.material_id:
                raise ExpiredOrStaleLotError(line.lot_id, line.lot_number, "MISSING")
            if lot.status != LotStatus.AVAILABLE or lot.is_expired(on):
                status = LotStatus.EXPIRED if lot.is_expired(on) else lot.status
                logger.warning(
                    f"Lot {lot.lot_number} went stale before apply ({status})",
                    extra={"lot_id": lot.pk, "status": str(status)},
                )
                raise ExpiredOrStaleLotError(lot.pk, lot.lot_number, str(status))
            if lot.quantity_available < line.quantity:
                raise InsufficientStockError(
                    plan.material_id, plan.requested, lot.quantity_available, lot_id=lot.pk
                )

        now = timezone.now()
        applied = AppliedPlan(plan=plan)
        for line in plan.lines:
            updated = MaterialLot.objects.filter(
                pk=line.lot_id,
                status=LotStatus.AVAILABLE,
                quantity_available__gte=line.quantity,
            ).update(quantity_available=F("quantity_available") - line.quantity, updated_at=now)
            if updated != 1:
                current = MaterialLot.objects.values_list("quantity_available", flat=True).get(pk=line.lot_id)
                raise InsufficientStockError(plan.material_id, plan.requested, current, lot_id=line.lot_id)

            if MaterialLot.objects.filter(
                pk=line.lot_id, status=LotStatus.AVAILABLE, quantity_available=0
            ).update(status=LotStatus.DEPLETED, updated_at=now):
                applied.depleted.append(line.lot_id)

        for lot in MaterialLot.objects.filter(pk__in=lot_ids):
            applied.lots[lot.pk] = lot

        logger.info(
            f"Applied plan for material {plan.material_id}: {len(plan.lines)} lot(s), {plan.requested}",
            extra={"material_id": plan.material_id, "lots": lot_ids, "depleted": applied.depleted},
        )
        return applied
