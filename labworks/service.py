"""
Labworks Service - thin facade over the engine modules.

Usage:
    from labworks import lab

    order = lab.create_order("user:7", patient_name="J. Doe")
    ws = lab.create_worksheet(order.pk, "user:7", requirements=[(zirconia.pk, "12.5")])

    plan = lab.allocate(zirconia.pk, "12.5")            # preview only
    snap = lab.transition(ws.pk, "IN_PRODUCTION", "user:7", Role.TECHNICIAN)

    # Invoicing finalizes delivery through the same entry point
    lab.mark_delivered(ws.pk, actor_id="invoicing:INV-26-014")
"""

from labworks import documents, ledger, worksheets
from labworks.allocator import FifoAllocator
from labworks.machine import Role, available_transitions, can_transition
from labworks.models import WorksheetStatus
from labworks.orchestrator import TransitionOrchestrator, transition_worksheet


class Lab:
    """
    Main API for Labworks.

    Status changes go through `transition`; everything else delegates to the
    ledger and worksheet modules.
    """

    # ══════════════════════════════════════════════════════════════
    # LIFECYCLE
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def orchestrator(cls) -> TransitionOrchestrator:
        return TransitionOrchestrator()

    @classmethod
    def transition(
        cls,
        worksheet_id,
        target_status,
        actor_id,
        actor_role,
        notes=None,
        expected_version=None,
        locale_code=None,
    ):
        """Move a worksheet to `target_status`. See TransitionOrchestrator.transition."""
        return cls.orchestrator().transition(
            worksheet_id,
            target_status,
            actor_id,
            actor_role,
            notes=notes,
            expected_version=expected_version,
            locale_code=locale_code,
        )

    @classmethod
    def mark_delivered(cls, worksheet_id, actor_id="system:invoicing", expected_version=None):
        """QC_APPROVED → DELIVERED, triggered by invoicing under the SYSTEM role."""
        return cls.transition(
            worksheet_id,
            WorksheetStatus.DELIVERED,
            actor_id,
            Role.SYSTEM,
            expected_version=expected_version,
        )

    transition_worksheet = staticmethod(transition_worksheet)
    can_transition = staticmethod(can_transition)
    available_transitions = staticmethod(available_transitions)

    # ══════════════════════════════════════════════════════════════
    # ORDERS & WORKSHEETS
    # ══════════════════════════════════════════════════════════════

    create_order = staticmethod(worksheets.create_order)
    create_worksheet = staticmethod(worksheets.create_worksheet)
    set_requirements = staticmethod(worksheets.set_requirements)

    # ══════════════════════════════════════════════════════════════
    # STOCK
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def allocate(cls, material_id, quantity, on=None):
        """Read-only FIFO preview: which lots would be drawn today."""
        return FifoAllocator().allocate(material_id, quantity, on=on)

    get_lot_ledger = staticmethod(ledger.get_lot_ledger)
    receive_lot = staticmethod(ledger.receive_lot)
    recall_lot = staticmethod(ledger.recall_lot)
    correct_lot = staticmethod(ledger.correct_lot)
    expire_lots = staticmethod(ledger.expire_lots)
    expiring_lots = staticmethod(ledger.expiring_lots)
    low_stock_materials = staticmethod(ledger.low_stock_materials)
    verify_ledger = staticmethod(ledger.verify_ledger)

    # ══════════════════════════════════════════════════════════════
    # TRACEABILITY & DOCUMENTS
    # ══════════════════════════════════════════════════════════════

    lot_traceability = staticmethod(ledger.lot_traceability)
    worksheet_traceability = staticmethod(ledger.worksheet_traceability)
    retry_failed_document_requests = staticmethod(documents.retry_failed_document_requests)


# Convenience alias
lab = Lab
