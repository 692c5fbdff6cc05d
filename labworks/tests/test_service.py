"""
Tests for the Lab facade (labworks.service).

One worksheet from stock arrival to delivery, through the public API only.
"""

from datetime import date
from decimal import Decimal

import pytest

from labworks import Lab, Role, lab
from labworks.models import LotStatus, Material, OrderStatus, WorksheetStatus


@pytest.fixture
def zirconia(db):
    return Material.objects.create(code="ZR-A2", name="Zirconia disc A2")


class TestFacade:
    def test_alias(self):
        assert lab is Lab

    def test_full_lifecycle(self, zirconia, django_capture_on_commit_callbacks):
        first = lab.receive_lot(zirconia.pk, "A-001", "50", "user:1", arrival_date=date(2024, 1, 1))
        second = lab.receive_lot(zirconia.pk, "B-001", "100", "user:1", arrival_date=date(2024, 2, 1))
        order = lab.create_order("user:7", patient_name="M. Muster")
        worksheet = lab.create_worksheet(order.pk, "user:7", requirements=[(zirconia.pk, "70")])

        preview = lab.allocate(zirconia.pk, "70")
        assert preview.as_pairs() == [(first.pk, Decimal("50")), (second.pk, Decimal("20"))]
        assert lab.available_transitions(worksheet.status, Role.TECHNICIAN) == [
            WorksheetStatus.IN_PRODUCTION,
            WorksheetStatus.CANCELLED,
        ]

        with django_capture_on_commit_callbacks(execute=True):
            lab.transition(worksheet.pk, "IN_PRODUCTION", "user:7", Role.TECHNICIAN)
            lab.transition(worksheet.pk, "QC_PENDING", "user:7", Role.TECHNICIAN)
            lab.transition(worksheet.pk, "QC_APPROVED", "user:9", Role.QC_INSPECTOR)
            snapshot = lab.mark_delivered(worksheet.pk, expected_version=4)

        order.refresh_from_db()
        assert snapshot.status == WorksheetStatus.DELIVERED
        assert snapshot.version == 5
        assert order.status == OrderStatus.DELIVERED
        assert [lot.status for lot in lab.get_lot_ledger(zirconia.pk)] == [LotStatus.DEPLETED, LotStatus.AVAILABLE]
        assert lab.lot_traceability(first.pk)["summary"]["patients_affected"] == 1
        assert len(lab.worksheet_traceability(worksheet.pk)["materials"]) == 2
        assert lab.verify_ledger() == []
        assert lab.retry_failed_document_requests() == (0, 0)

    def test_can_transition(self):
        assert lab.can_transition("QC_APPROVED", "DELIVERED", Role.SYSTEM).allowed
        assert not lab.can_transition("QC_APPROVED", "DELIVERED", Role.INVOICING).allowed
