"""
Order and worksheet creation, material requirements.

Status changes are not made here: see labworks.orchestrator.
"""

import logging
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.db.models import Max

from labworks.audit import AuditTrail, snapshot
from labworks.conf import get_setting
from labworks.exceptions import LabError
from labworks.models import (
    AuditAction,
    Material,
    MaterialRequirement,
    Order,
    Worksheet,
    WorksheetStatus,
)

logger = logging.getLogger(__name__)


def _to_decimal(quantity) -> Decimal:
    return quantity if isinstance(quantity, Decimal) else Decimal(str(quantity))


def create_order(actor_id, *, patient_name: str = "", due_date=None, notes: str = "", audit=None) -> Order:
    """Create an order with the next YYNNN number."""
    audit = audit or AuditTrail()
    with transaction.atomic():
        order = Order.objects.create(
            patient_name=patient_name,
            due_date=due_date,
            notes=notes,
            created_by=str(actor_id),
        )
        audit.record(
            "Order",
            order.pk,
            actor_id,
            AuditAction.CREATE,
            after={"order_number": order.order_number, "status": order.status},
        )
    logger.info(f"Order {order.order_number} created", extra={"order_id": order.pk})
    return order


def create_worksheet(
    order_id,
    actor_id,
    *,
    device_description: str = "",
    intended_use: str = "",
    technical_notes: str = "",
    requirements=None,
    audit=None,
) -> Worksheet:
    """
    Start a worksheet (or the next revision) for an order.

    The order row is locked so two technicians cannot open worksheets for
    it at the same time; a non-VOIDED worksheet blocks creation.

    Raises:
        LabError: ORDER_NOT_FOUND, ACTIVE_WORKSHEET_EXISTS
    """
    audit = audit or AuditTrail()
    with transaction.atomic():
        try:
            order = Order.objects.select_for_update().get(pk=order_id)
        except Order.DoesNotExist:
            raise LabError("ORDER_NOT_FOUND", order_id=order_id)

        active = order.worksheets.exclude(status=WorksheetStatus.VOIDED).first()
        if active is not None:
            raise LabError(
                "ACTIVE_WORKSHEET_EXISTS",
                order_id=order.pk,
                worksheet_id=active.pk,
                worksheet_number=active.worksheet_number,
                revision=active.revision,
            )

        last_revision = order.worksheets.aggregate(last=Max("revision"))["last"] or 0
        prefix = get_setting("WORKSHEET_NUMBER_PREFIX")
        try:
            with transaction.atomic():
                worksheet = Worksheet.objects.create(
                    order=order,
                    worksheet_number=f"{prefix}-{order.order_number}",
                    revision=last_revision + 1,
                    device_description=device_description,
                    intended_use=intended_use,
                    technical_notes=technical_notes,
                    created_by=str(actor_id),
                )
        except IntegrityError:
            raise LabError("ACTIVE_WORKSHEET_EXISTS", order_id=order.pk)

        audit.record(
            "Worksheet",
            worksheet.pk,
            actor_id,
            AuditAction.CREATE,
            after={
                "worksheet_number": worksheet.worksheet_number,
                "revision": worksheet.revision,
                "order_id": order.pk,
                "status": worksheet.status,
            },
        )

        if requirements:
            set_requirements(worksheet.pk, requirements, actor_id, audit=audit)

    logger.info(
        f"Worksheet {worksheet.worksheet_number} rev.{worksheet.revision} created",
        extra={"worksheet_id": worksheet.pk, "order_id": order.pk},
    )
    return worksheet


def set_requirements(worksheet_id, requirements, actor_id, *, audit=None) -> list[MaterialRequirement]:
    """
    Replace the material requirements of a DRAFT worksheet.

    Args:
        requirements: iterable of (material_id, quantity); repeated
            materials are summed

    Raises:
        LabError: WORKSHEET_NOT_FOUND, WORKSHEET_LOCKED, MATERIAL_NOT_FOUND,
            INVALID_QUANTITY
    """
    audit = audit or AuditTrail()
    totals: dict[int, Decimal] = {}
    for material_id, quantity in requirements:
        quantity = _to_decimal(quantity)
        if quantity <= 0:
            raise LabError("INVALID_QUANTITY", material_id=material_id, quantity=str(quantity))
        totals[material_id] = totals.get(material_id, Decimal("0")) + quantity

    with transaction.atomic():
        try:
            worksheet = Worksheet.objects.select_for_update().get(pk=worksheet_id)
        except Worksheet.DoesNotExist:
            raise LabError("WORKSHEET_NOT_FOUND", worksheet_id=worksheet_id)
        if worksheet.is_locked:
            raise LabError("WORKSHEET_LOCKED", worksheet_id=worksheet.pk, status=worksheet.status)

        known = set(Material.objects.filter(pk__in=totals).values_list("pk", flat=True))
        missing = sorted(set(totals) - known)
        if missing:
            raise LabError("MATERIAL_NOT_FOUND", material_id=missing[0])

        before = [snapshot(r, fields=["material", "quantity"]) for r in worksheet.requirements.all()]
        worksheet.requirements.all().delete()
        created = MaterialRequirement.objects.bulk_create(
            [
                MaterialRequirement(worksheet=worksheet, material_id=material_id, quantity=quantity)
                for material_id, quantity in sorted(totals.items())
            ]
        )
        audit.record(
            "Worksheet",
            worksheet.pk,
            actor_id,
            AuditAction.MATERIAL_ASSIGN,
            before={"requirements": before},
            after={"requirements": [{"material": m, "quantity": q} for m, q in sorted(totals.items())]},
        )
    return created
