"""
Tests for order and worksheet creation (labworks.worksheets).
"""

from decimal import Decimal

import pytest

from labworks.exceptions import LabError
from labworks.models import (
    AuditAction,
    AuditLogEntry,
    Material,
    MaterialRequirement,
    Worksheet,
    WorksheetStatus,
)
from labworks.worksheets import create_order, create_worksheet, set_requirements

TECH = "user:7"


# ═══════════════════════════════════════════════════════════════════
# Fixtures
# ═══════════════════════════════════════════════════════════════════


@pytest.fixture
def order(db):
    return create_order(TECH, patient_name="M. Muster")


@pytest.fixture
def zirconia(db):
    return Material.objects.create(code="ZR-A2", name="Zirconia disc A2")


@pytest.fixture
def wax(db):
    return Material.objects.create(code="WX-1", name="Modelling wax")


@pytest.fixture
def worksheet(order):
    return create_worksheet(order.pk, TECH, device_description="Crown 26")


def close(worksheet, status):
    Worksheet.objects.filter(pk=worksheet.pk).update(status=status)


# ═══════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════


class TestCreateOrder:
    def test_numbered_and_audited(self, order):
        entry = AuditLogEntry.objects.get(entity_type="Order", entity_id=str(order.pk))

        assert len(order.order_number) == 5
        assert order.created_by == TECH
        assert entry.action == AuditAction.CREATE
        assert entry.after["order_number"] == order.order_number

    def test_order_cannot_be_deleted(self, order):
        with pytest.raises(LabError) as exc_info:
            order.delete()

        assert exc_info.value.code == "RETENTION_REQUIRED"


# ═══════════════════════════════════════════════════════════════════
# Worksheets
# ═══════════════════════════════════════════════════════════════════


class TestCreateWorksheet:
    def test_first_revision(self, worksheet, order):
        assert worksheet.worksheet_number == f"DN-{order.order_number}"
        assert worksheet.revision == 1
        assert worksheet.status == WorksheetStatus.DRAFT
        assert worksheet.version == 1
        assert worksheet.is_locked is False

    def test_audited(self, worksheet):
        entry = AuditLogEntry.objects.get(entity_type="Worksheet", action=AuditAction.CREATE)

        assert entry.entity_id == str(worksheet.pk)
        assert entry.after["revision"] == 1

    def test_one_active_worksheet(self, worksheet, order):
        with pytest.raises(LabError) as exc_info:
            create_worksheet(order.pk, TECH)

        assert exc_info.value.code == "ACTIVE_WORKSHEET_EXISTS"
        assert exc_info.value.details["worksheet_id"] == worksheet.pk

    def test_cancelled_worksheet_still_blocks(self, worksheet, order):
        close(worksheet, WorksheetStatus.CANCELLED)

        with pytest.raises(LabError) as exc_info:
            create_worksheet(order.pk, TECH)

        assert exc_info.value.code == "ACTIVE_WORKSHEET_EXISTS"

    def test_voided_worksheet_allows_next_revision(self, worksheet, order):
        close(worksheet, WorksheetStatus.VOIDED)

        second = create_worksheet(order.pk, TECH)
        close(second, WorksheetStatus.VOIDED)
        third = create_worksheet(order.pk, TECH)

        assert (second.revision, third.revision) == (2, 3)
        assert third.worksheet_number == worksheet.worksheet_number
        assert str(third) == f"{worksheet.worksheet_number} rev.3"

    def test_unknown_order(self, db):
        with pytest.raises(LabError) as exc_info:
            create_worksheet(424242, TECH)

        assert exc_info.value.code == "ORDER_NOT_FOUND"

    def test_with_requirements(self, order, zirconia):
        worksheet = create_worksheet(order.pk, TECH, requirements=[(zirconia.pk, "12.5")])

        assert [(r.material_id, r.quantity) for r in worksheet.requirements.all()] == [
            (zirconia.pk, Decimal("12.5"))
        ]

    def test_bad_requirements_roll_back_worksheet(self, order):
        with pytest.raises(LabError):
            create_worksheet(order.pk, TECH, requirements=[(424242, "1")])

        assert not Worksheet.objects.filter(order=order).exists()

    def test_worksheet_cannot_be_deleted(self, worksheet):
        with pytest.raises(LabError) as exc_info:
            worksheet.delete()

        assert exc_info.value.code == "RETENTION_REQUIRED"


class TestSetRequirements:
    def test_replaces_and_merges(self, worksheet, zirconia, wax):
        set_requirements(worksheet.pk, [(wax.pk, "3")], TECH)

        set_requirements(worksheet.pk, [(zirconia.pk, "10"), (zirconia.pk, "2.5")], TECH)

        assert [(r.material_id, r.quantity) for r in MaterialRequirement.objects.filter(worksheet=worksheet)] == [
            (zirconia.pk, Decimal("12.5"))
        ]
        assert AuditLogEntry.objects.filter(action=AuditAction.MATERIAL_ASSIGN).count() == 2

    def test_empty_list_clears(self, worksheet, zirconia):
        set_requirements(worksheet.pk, [(zirconia.pk, "1")], TECH)

        assert set_requirements(worksheet.pk, [], TECH) == []
        assert not worksheet.requirements.exists()

    @pytest.mark.parametrize("status", [WorksheetStatus.IN_PRODUCTION, WorksheetStatus.QC_REJECTED])
    def test_locked_after_draft(self, worksheet, zirconia, status):
        close(worksheet, status)

        with pytest.raises(LabError) as exc_info:
            set_requirements(worksheet.pk, [(zirconia.pk, "1")], TECH)

        assert exc_info.value.code == "WORKSHEET_LOCKED"

    @pytest.mark.parametrize("quantity", ["0", "-1"])
    def test_invalid_quantity(self, worksheet, zirconia, quantity):
        with pytest.raises(LabError) as exc_info:
            set_requirements(worksheet.pk, [(zirconia.pk, quantity)], TECH)

        assert exc_info.value.code == "INVALID_QUANTITY"

    def test_unknown_material(self, worksheet):
        with pytest.raises(LabError) as exc_info:
            set_requirements(worksheet.pk, [(424242, "1")], TECH)

        assert exc_info.value.code == "MATERIAL_NOT_FOUND"

    def test_unknown_worksheet(self, db, zirconia):
        with pytest.raises(LabError) as exc_info:
            set_requirements(424242, [(zirconia.pk, "1")], TECH)

        assert exc_info.value.code == "WORKSHEET_NOT_FOUND"
