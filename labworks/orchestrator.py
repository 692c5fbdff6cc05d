"""
Worksheet transition orchestrator.

One transition = one database transaction:

    1. lock the worksheet row, check the expected version
    2. ask the state machine
    3. DRAFT → IN_PRODUCTION: propose a FIFO plan for every requirement,
       then apply them all (any shortage aborts before anything is applied)
    4. claim the next version, persist status, consumption and audit rows
    5. QC_APPROVED: write the document request (dispatched after commit)
    6. reflect the status onto the parent order

Anything raised before commit rolls the whole unit back.
"""

import logging
import random
import time
import uuid
from collections import OrderedDict
from decimal import Decimal

from django.db import OperationalError, transaction
from django.db.models import F
from django.utils import timezone

from labworks.allocator import FifoAllocator
from labworks.audit import AuditTrail
from labworks.conf import get_order_store, get_setting
from labworks.documents import DocumentQueue
from labworks.exceptions import ConcurrentModificationError, InvalidTransitionError, LabError
from labworks.machine import NOTES_REQUIRED, can_transition
from labworks.models import (
    AuditAction,
    OrderStatus,
    Worksheet,
    WorksheetMaterialConsumption,
    WorksheetStatus,
)
from labworks.results import WorksheetSnapshot
from labworks.signals import lot_depleted, worksheet_transitioned

logger = logging.getLogger(__name__)

# Seconds; doubled per attempt, jittered.
RETRY_BACKOFF = 0.02


# Order has no QC_REJECTED; a cancelled or voided worksheet frees the order
# for a new one instead of cancelling it.
ORDER_STATUS_FOR = {
    WorksheetStatus.IN_PRODUCTION: OrderStatus.IN_PRODUCTION,
    WorksheetStatus.QC_PENDING: OrderStatus.QC_PENDING,
    WorksheetStatus.QC_APPROVED: OrderStatus.QC_APPROVED,
    WorksheetStatus.QC_REJECTED: OrderStatus.IN_PRODUCTION,
    WorksheetStatus.DELIVERED: OrderStatus.DELIVERED,
    WorksheetStatus.CANCELLED: OrderStatus.PENDING,
    WorksheetStatus.VOIDED: OrderStatus.PENDING,
}


class TransitionOrchestrator:
    """
    Composes state machine, allocator, audit trail and document queue.

    Collaborators are injected; omitted ones fall back to the defaults
    configured in labworks.conf.
    """

    def __init__(self, allocator=None, audit=None, documents=None, orders=None):
        self.allocator = allocator or FifoAllocator()
        self.audit = audit or AuditTrail()
        self.documents = documents or DocumentQueue()
        self._orders = orders

    @property
    def orders(self):
        return self._orders or get_order_store()

    def transition(
        self,
        worksheet_id,
        target_status: str,
        actor_id,
        actor_role: str,
        notes: str | None = None,
        expected_version: int | None = None,
        locale_code: str | None = None,
    ) -> WorksheetSnapshot:
        """
        Move a worksheet to `target_status`.

        Raises:
            InvalidTransitionError: NO_SUCH_TRANSITION, ROLE_NOT_PERMITTED
            InsufficientStockError: a requirement cannot be covered
            ExpiredOrStaleLotError: a planned lot went stale before apply
            ConcurrentModificationError: version conflict, or write conflicts
                on every attempt
            LabError: WORKSHEET_NOT_FOUND, NOTES_REQUIRED, INVALID_STATUS,
                INVALID_ROLE, INTERNAL_ERROR

        A write conflict (OperationalError) reruns the whole unit of work,
        fresh allocation plan included, up to TRANSITION_RETRIES times.
        Inside a caller's transaction there is a single attempt.
        """
        if transaction.get_connection().in_atomic_block:
            attempts = 1
        else:
            attempts = max(1, int(get_setting("TRANSITION_RETRIES")))

        for attempt in range(1, attempts + 1):
            try:
                with transaction.atomic():
                    return self._transition(
                        worksheet_id,
                        str(target_status),
                        actor_id,
                        str(actor_role),
                        (notes or "").strip(),
                        expected_version,
                        locale_code,
                    )
            except LabError:
                raise
            except OperationalError as exc:
                if attempt < attempts:
                    logger.info(
                        f"Worksheet {worksheet_id} transition hit a write conflict, "
                        f"retrying ({attempt}/{attempts}): {exc}",
                        extra={"worksheet_id": worksheet_id, "attempt": attempt},
                    )
                    time.sleep(random.uniform(0, RETRY_BACKOFF * 2**attempt))
                    continue
                logger.warning(
                    f"Worksheet {worksheet_id} transition hit a write conflict: {exc}",
                    extra={"worksheet_id": worksheet_id, "attempts": attempt},
                )
                raise ConcurrentModificationError(worksheet_id=worksheet_id, attempts=attempt) from exc
            except Exception as exc:
                ref = uuid.uuid4().hex[:12]
                logger.exception(
                    f"Worksheet {worksheet_id} transition to {target_status} failed [{ref}]",
                    extra={"worksheet_id": worksheet_id, "ref": ref},
                )
                raise LabError("INTERNAL_ERROR", ref=ref) from exc

    # ── steps ──

    def _transition(self, worksheet_id, target, actor_id, actor_role, notes, expected_version, locale_code):
        try:
            worksheet = Worksheet.objects.select_for_update().get(pk=worksheet_id)
        except Worksheet.DoesNotExist:
            raise LabError("WORKSHEET_NOT_FOUND", worksheet_id=worksheet_id)

        if expected_version is not None and worksheet.version != expected_version:
            raise ConcurrentModificationError(
                worksheet_id=worksheet.pk,
                expected_version=expected_version,
                version=worksheet.version,
            )

        previous = worksheet.status
        check = can_transition(previous, target, actor_role)
        if not check.allowed:
            logger.warning(
                f"Rejected transition {previous} → {target} on {worksheet.worksheet_number} "
                f"for {actor_id} ({actor_role}): {check.code}",
                extra={"worksheet_id": worksheet.pk, "code": check.code},
            )
            if check.code in ("INVALID_STATUS", "INVALID_ROLE"):
                raise LabError(check.code, reason=check.reason)
            raise InvalidTransitionError(
                check.code,
                reason=check.reason,
                current=previous,
                target=target,
                role=actor_role,
            )

        if target in NOTES_REQUIRED and not notes:
            raise LabError("NOTES_REQUIRED", worksheet_id=worksheet.pk, target=target)

        applied = []
        if previous == WorksheetStatus.DRAFT and target == WorksheetStatus.IN_PRODUCTION:
            plans = [
                self.allocator.propose(material_id, quantity, lock=True)
                for material_id, quantity in self._requirements(worksheet).items()
            ]
            applied = [self.allocator.apply(plan) for plan in plans]

        version = worksheet.version
        if not Worksheet.objects.filter(pk=worksheet.pk, version=version).update(version=F("version") + 1):
            raise ConcurrentModificationError(worksheet_id=worksheet.pk, version=version)
        worksheet.version = version + 1

        update_fields = self._apply_status(worksheet, target, notes)
        worksheet.save(update_fields=update_fields)

        consumed = self._record_consumption(worksheet, applied, actor_id, actor_role)

        self.audit.record(
            "Worksheet",
            worksheet.pk,
            actor_id,
            AuditAction.STATUS_CHANGE,
            before={"status": previous, "version": version},
            after={"status": target, "version": worksheet.version},
            reason=notes,
            actor_role=actor_role,
        )

        document_request_id = None
        if target == WorksheetStatus.QC_APPROVED:
            document_request_id = self.documents.enqueue(worksheet, locale_code).pk

        self._reflect_on_order(worksheet, target, actor_id, actor_role)

        snapshot = WorksheetSnapshot.of(worksheet, previous, consumed, document_request_id)
        depleted = [item.lots[lot_id] for item in applied for lot_id in item.depleted]
        transaction.on_commit(
            lambda: self._notify(worksheet, previous, target, actor_id, actor_role, snapshot, depleted)
        )

        logger.info(
            f"Worksheet {worksheet.worksheet_number} rev.{worksheet.revision}: {previous} → {target}",
            extra={
                "worksheet_id": worksheet.pk,
                "previous_status": previous,
                "status": target,
                "actor_id": str(actor_id),
                "lots": len(consumed),
            },
        )
        return snapshot

    def _requirements(self, worksheet) -> "OrderedDict[int, Decimal]":
        """Total per material, in material id order (stable lock order)."""
        totals = OrderedDict()
        for requirement in worksheet.requirements.order_by("material_id", "pk"):
            totals[requirement.material_id] = totals.get(requirement.material_id, Decimal("0")) + requirement.quantity
        return totals

    def _apply_status(self, worksheet, target, notes) -> list[str]:
        worksheet.status = target
        fields = ["status", "version", "updated_at"]

        if target == WorksheetStatus.QC_APPROVED and worksheet.manufacture_date is None:
            worksheet.manufacture_date = timezone.localdate()
            fields.append("manufacture_date")
        if target in (WorksheetStatus.QC_APPROVED, WorksheetStatus.QC_REJECTED) and notes:
            worksheet.qc_notes = notes
            fields.append("qc_notes")
        elif target == WorksheetStatus.DELIVERED:
            worksheet.completed_at = timezone.now()
            fields.append("completed_at")
        elif target == WorksheetStatus.VOIDED:
            worksheet.voided_at = timezone.now()
            worksheet.void_reason = notes
            fields.extend(["voided_at", "void_reason"])

        return fields

    def _record_consumption(self, worksheet, applied, actor_id, actor_role) -> list[tuple[int, Decimal]]:
        consumed = []
        sequence = 0
        for item in applied:
            for line in item.plan.lines:
                lot = item.lots[line.lot_id]
                WorksheetMaterialConsumption.objects.create(
                    worksheet=worksheet,
                    lot=lot,
                    material_id=item.plan.material_id,
                    quantity_used=line.quantity,
                    sequence=sequence,
                )
                self.audit.record(
                    "MaterialLot",
                    lot.pk,
                    actor_id,
                    AuditAction.MATERIAL_CONSUME,
                    before={"quantity_available": lot.quantity_available + line.quantity},
                    after={
                        "quantity_available": lot.quantity_available,
                        "status": lot.status,
                        "worksheet_id": worksheet.pk,
                        "quantity_used": line.quantity,
                    },
                    actor_role=actor_role,
                )
                consumed.append((lot.pk, line.quantity))
                sequence += 1
        return consumed

    def _reflect_on_order(self, worksheet, target, actor_id, actor_role) -> None:
        order_status = ORDER_STATUS_FOR[target]
        previous = self.orders.set_order_status(worksheet.order_id, order_status)
        if previous is None:
            return
        self.audit.record(
            "Order",
            worksheet.order_id,
            actor_id,
            AuditAction.UPDATE,
            before={"status": previous},
            after={"status": str(order_status)},
            reason=f"Worksheet {worksheet.worksheet_number} → {target}",
            actor_role=actor_role,
        )

    def _notify(self, worksheet, previous, target, actor_id, actor_role, snapshot, depleted) -> None:
        worksheet_transitioned.send(
            sender=Worksheet,
            worksheet=worksheet,
            previous_status=previous,
            status=target,
            actor_id=actor_id,
            actor_role=actor_role,
            snapshot=snapshot,
        )
        for lot in depleted:
            lot_depleted.send(sender=type(lot), lot=lot, worksheet=worksheet)


def transition_worksheet(
    worksheet_id,
    target_status,
    actor_id,
    actor_role,
    notes=None,
    expected_version=None,
    locale_code=None,
) -> WorksheetSnapshot:
    """Transition with the default collaborators from labworks.conf."""
    return TransitionOrchestrator().transition(
        worksheet_id,
        target_status,
        actor_id,
        actor_role,
        notes=notes,
        expected_version=expected_version,
        locale_code=locale_code,
    )
