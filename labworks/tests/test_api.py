"""
Tests for Labworks API ViewSets (labworks.api.views).

Verifies DRF endpoints for Worksheet, Material and MaterialLot, and the
mapping of engine errors to HTTP status codes.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.utils import timezone
from rest_framework.test import APIClient

from labworks.api.views import resolve_actor
from labworks.machine import Role
from labworks.models import LotStatus, Material, MaterialLot, Worksheet, WorksheetStatus
from labworks.worksheets import create_order, create_worksheet

pytestmark = pytest.mark.urls("labworks.tests.test_api_urls")

User = get_user_model()

BASE = "/api/labworks"


# ═══════════════════════════════════════════════════════════════════
# Fixtures
# ═══════════════════════════════════════════════════════════════════


def client_for(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


def user_in_group(username, group_name):
    user = User.objects.create_user(username=username, password="test123")
    group, _ = Group.objects.get_or_create(name=group_name)
    user.groups.add(group)
    return user


@pytest.fixture
def technician(db):
    return client_for(user_in_group("tech", "Technician"))


@pytest.fixture
def inspector(db):
    return client_for(user_in_group("qc", "QC Inspector"))


@pytest.fixture
def admin_client(db):
    return client_for(User.objects.create_superuser(username="boss", password="test123"))


@pytest.fixture
def no_role(db):
    return client_for(User.objects.create_user(username="visitor", password="test123"))


@pytest.fixture
def zirconia(db):
    return Material.objects.create(code="ZR-A2", name="Zirconia disc A2", ce_number="CE 0123")


@pytest.fixture
def lot_a(zirconia):
    return MaterialLot.objects.create(
        material=zirconia,
        lot_number="A-001",
        arrival_date=date(2024, 1, 1),
        quantity_received=Decimal("50"),
        quantity_available=Decimal("50"),
    )


@pytest.fixture
def lot_b(zirconia):
    return MaterialLot.objects.create(
        material=zirconia,
        lot_number="B-001",
        arrival_date=date(2024, 2, 1),
        expiry_date=timezone.localdate() + timedelta(days=5),
        quantity_received=Decimal("100"),
        quantity_available=Decimal("100"),
    )


@pytest.fixture
def worksheet(zirconia, lot_a, lot_b):
    order = create_order("user:1", patient_name="M. Muster")
    return create_worksheet(order.pk, "user:1", requirements=[(zirconia.pk, "70")])


def transition(client, worksheet, status, **payload):
    return client.post(
        f"{BASE}/worksheets/{worksheet.pk}/transition/",
        {"status": status, **payload},
        format="json",
    )


# ═══════════════════════════════════════════════════════════════════
# Actor resolution
# ═══════════════════════════════════════════════════════════════════


class TestResolveActor:
    def test_group_role(self, db):
        user = user_in_group("qc2", "QC Inspector")

        assert resolve_actor(user) == (f"user:{user.pk}", Role.QC_INSPECTOR)

    def test_superuser_is_admin(self, db):
        user = User.objects.create_superuser(username="root", password="x")

        assert resolve_actor(user)[1] == Role.ADMIN

    def test_system_group_ignored(self, db):
        user = user_in_group("robot", "System")

        assert resolve_actor(user)[1] is None

    def test_no_role(self, db):
        user = User.objects.create_user(username="nobody", password="x")

        assert resolve_actor(user)[1] is None


# ═══════════════════════════════════════════════════════════════════
# WorksheetViewSet
# ═══════════════════════════════════════════════════════════════════


class TestWorksheetAPI:
    def test_list_and_filter(self, technician, worksheet):
        response = technician.get(f"{BASE}/worksheets/")
        filtered = technician.get(f"{BASE}/worksheets/", {"status": "QC_PENDING"})

        assert response.status_code == 200
        assert [w["id"] for w in response.data] == [worksheet.pk]
        assert filtered.data == []

    def test_retrieve(self, technician, worksheet, zirconia):
        response = technician.get(f"{BASE}/worksheets/{worksheet.pk}/")

        assert response.status_code == 200
        assert response.data["status"] == WorksheetStatus.DRAFT
        assert response.data["requirements"][0]["material_code"] == "ZR-A2"
        assert response.data["consumptions"] == []

    def test_anonymous_rejected(self, worksheet):
        response = APIClient().get(f"{BASE}/worksheets/")

        assert response.status_code in (401, 403)


class TestTransitionAPI:
    def test_start_production(self, technician, worksheet, lot_a, lot_b):
        response = transition(technician, worksheet, "IN_PRODUCTION", expected_version=1)

        assert response.status_code == 200
        assert response.data["status"] == "IN_PRODUCTION"
        assert response.data["version"] == 2
        assert [(c["lot_id"], Decimal(c["quantity"])) for c in response.data["consumed"]] == [
            (lot_a.pk, Decimal("50")),
            (lot_b.pk, Decimal("20")),
        ]

    def test_stale_version(self, technician, worksheet):
        response = transition(technician, worksheet, "IN_PRODUCTION", expected_version=3)

        assert response.status_code == 409
        assert response.data["error"]["code"] == "CONCURRENT_MODIFICATION"

    def test_skipping_a_step(self, technician, worksheet):
        response = transition(technician, worksheet, "QC_APPROVED")

        assert response.status_code == 409
        assert response.data["error"]["code"] == "NO_SUCH_TRANSITION"

    def test_role_not_permitted(self, inspector, worksheet):
        response = transition(inspector, worksheet, "IN_PRODUCTION")

        assert response.status_code == 403
        assert response.data["error"]["code"] == "ROLE_NOT_PERMITTED"

    def test_user_without_role(self, no_role, worksheet):
        response = transition(no_role, worksheet, "IN_PRODUCTION")

        assert response.status_code == 403
        assert response.data["error"]["code"] == "INVALID_ROLE"

    def test_invoicing_cannot_deliver(self, worksheet):
        Worksheet.objects.filter(pk=worksheet.pk).update(status=WorksheetStatus.QC_APPROVED)
        invoicing = client_for(user_in_group("billing", "Invoicing"))

        response = transition(invoicing, worksheet, "DELIVERED")

        assert response.status_code == 403
        assert response.data["error"]["code"] == "ROLE_NOT_PERMITTED"

    def test_insufficient_stock(self, technician, zirconia):
        order = create_order("user:1")
        worksheet = create_worksheet(order.pk, "user:1", requirements=[(zirconia.pk, "5")])

        response = transition(technician, worksheet, "IN_PRODUCTION")

        assert response.status_code == 409
        assert response.data["error"]["code"] == "INSUFFICIENT_STOCK"
        assert response.data["error"]["available"] == "0"

    def test_rejection_needs_notes(self, technician, worksheet):
        Worksheet.objects.filter(pk=worksheet.pk).update(status=WorksheetStatus.QC_PENDING)

        response = transition(technician, worksheet, "QC_REJECTED")

        assert response.status_code == 400
        assert response.data["error"]["code"] == "NOTES_REQUIRED"

    def test_unknown_status_value(self, technician, worksheet):
        response = transition(technician, worksheet, "SHIPPED")

        assert response.status_code == 400
        assert "status" in response.data

    def test_unknown_worksheet(self, technician, db):
        response = technician.post(f"{BASE}/worksheets/999999/transition/", {"status": "IN_PRODUCTION"})

        assert response.status_code == 404
        assert response.data["error"]["code"] == "WORKSHEET_NOT_FOUND"

    def test_available_transitions(self, technician, inspector, worksheet):
        tech_view = technician.get(f"{BASE}/worksheets/{worksheet.pk}/available-transitions/")
        qc_view = inspector.get(f"{BASE}/worksheets/{worksheet.pk}/available-transitions/")

        assert tech_view.data == {"status": "DRAFT", "targets": ["IN_PRODUCTION", "CANCELLED"]}
        assert qc_view.data["targets"] == []


class TestRequirementsAPI:
    def test_replace(self, technician, worksheet, zirconia):
        response = technician.put(
            f"{BASE}/worksheets/{worksheet.pk}/requirements/",
            {"requirements": [{"material": zirconia.pk, "quantity": "12.5"}]},
            format="json",
        )

        assert response.status_code == 200
        assert Decimal(response.data["requirements"][0]["quantity"]) == Decimal("12.5")

    def test_locked(self, technician, worksheet, zirconia):
        Worksheet.objects.filter(pk=worksheet.pk).update(status=WorksheetStatus.IN_PRODUCTION)

        response = technician.put(
            f"{BASE}/worksheets/{worksheet.pk}/requirements/",
            {"requirements": [{"material": zirconia.pk, "quantity": "1"}]},
            format="json",
        )

        assert response.status_code == 400
        assert response.data["error"]["code"] == "WORKSHEET_LOCKED"

    def test_unknown_material(self, technician, worksheet):
        response = technician.put(
            f"{BASE}/worksheets/{worksheet.pk}/requirements/",
            {"requirements": [{"material": 424242, "quantity": "1"}]},
            format="json",
        )

        assert response.status_code == 404
        assert response.data["error"]["code"] == "MATERIAL_NOT_FOUND"

    def test_user_without_role(self, no_role, worksheet, zirconia):
        response = no_role.put(
            f"{BASE}/worksheets/{worksheet.pk}/requirements/",
            {"requirements": [{"material": zirconia.pk, "quantity": "999"}]},
            format="json",
        )

        assert response.status_code == 403
        assert response.data["error"]["code"] == "INVALID_ROLE"
        assert worksheet.requirements.get().quantity == Decimal("70")

    def test_inspector_not_permitted(self, inspector, worksheet, zirconia):
        response = inspector.put(
            f"{BASE}/worksheets/{worksheet.pk}/requirements/",
            {"requirements": [{"material": zirconia.pk, "quantity": "1"}]},
            format="json",
        )

        assert response.status_code == 403
        assert response.data["error"]["code"] == "ROLE_NOT_PERMITTED"
        assert worksheet.requirements.get().quantity == Decimal("70")

    def test_admin_allowed(self, admin_client, worksheet, zirconia):
        response = admin_client.put(
            f"{BASE}/worksheets/{worksheet.pk}/requirements/",
            {"requirements": [{"material": zirconia.pk, "quantity": "3"}]},
            format="json",
        )

        assert response.status_code == 200


class TestWorksheetTraceabilityAPI:
    def test_backward_trace(self, technician, worksheet, lot_a):
        transition(technician, worksheet, "IN_PRODUCTION")

        response = technician.get(f"{BASE}/worksheets/{worksheet.pk}/traceability/")

        assert response.status_code == 200
        assert response.data["materials"][0]["lot_number"] == "A-001"
        assert response.data["materials"][0]["ce_number"] == "CE 0123"


# ═══════════════════════════════════════════════════════════════════
# MaterialViewSet
# ═══════════════════════════════════════════════════════════════════


class TestMaterialAPI:
    def test_list(self, technician, zirconia, lot_a, lot_b):
        response = technician.get(f"{BASE}/materials/")

        assert response.status_code == 200
        assert Decimal(response.data[0]["available_quantity"]) == Decimal("150")

    def test_lots(self, technician, zirconia, lot_a, lot_b):
        MaterialLot.objects.filter(pk=lot_a.pk).update(status=LotStatus.RECALLED)

        everything = technician.get(f"{BASE}/materials/{zirconia.pk}/lots/")
        available = technician.get(f"{BASE}/materials/{zirconia.pk}/lots/", {"status": "AVAILABLE"})

        assert [lot["lot_number"] for lot in everything.data] == ["A-001", "B-001"]
        assert [lot["lot_number"] for lot in available.data] == ["B-001"]
        assert available.data[0]["days_until_expiry"] == 5

    def test_lots_unknown_material(self, technician, db):
        response = technician.get(f"{BASE}/materials/424242/lots/")

        assert response.status_code == 404

    def test_allocation_preview(self, technician, zirconia, lot_a, lot_b):
        response = technician.post(
            f"{BASE}/materials/{zirconia.pk}/allocation-preview/", {"quantity": "70"}, format="json"
        )

        lot_a.refresh_from_db()
        assert response.status_code == 200
        assert [(line["lot_id"], Decimal(line["quantity"])) for line in response.data["lines"]] == [
            (lot_a.pk, Decimal("50")),
            (lot_b.pk, Decimal("20")),
        ]
        assert lot_a.quantity_available == Decimal("50")

    def test_allocation_preview_shortage(self, technician, zirconia, lot_a):
        response = technician.post(
            f"{BASE}/materials/{zirconia.pk}/allocation-preview/", {"quantity": "80"}, format="json"
        )

        assert response.status_code == 409
        assert response.data["error"]["code"] == "INSUFFICIENT_STOCK"

    def test_expiring(self, technician, lot_a, lot_b):
        response = technician.get(f"{BASE}/materials/expiring/", {"days": "10"})

        assert [(a["lot_number"], a["severity"]) for a in response.data] == [("B-001", "critical")]

    def test_low_stock(self, technician, zirconia, lot_a):
        Material.objects.create(code="WX-1", name="Modelling wax")

        response = technician.get(f"{BASE}/materials/low-stock/")

        assert [a["material_code"] for a in response.data] == ["WX-1"]


# ═══════════════════════════════════════════════════════════════════
# MaterialLotViewSet
# ═══════════════════════════════════════════════════════════════════


class TestLotAPI:
    def test_recall_by_admin(self, admin_client, lot_a):
        response = admin_client.post(
            f"{BASE}/lots/{lot_a.pk}/recall/", {"reason": "Supplier field safety notice"}, format="json"
        )

        lot_a.refresh_from_db()
        assert response.status_code == 200
        assert response.data["status"] == "RECALLED"
        assert lot_a.status == LotStatus.RECALLED

    def test_recall_requires_admin(self, technician, lot_a):
        response = technician.post(f"{BASE}/lots/{lot_a.pk}/recall/", {"reason": "FSN"}, format="json")

        lot_a.refresh_from_db()
        assert response.status_code == 403
        assert response.data["error"]["code"] == "ROLE_NOT_PERMITTED"
        assert lot_a.status == LotStatus.AVAILABLE

    def test_recall_requires_reason(self, admin_client, lot_a):
        response = admin_client.post(f"{BASE}/lots/{lot_a.pk}/recall/", {"reason": ""}, format="json")

        assert response.status_code == 400

    def test_forward_trace(self, technician, worksheet, lot_a):
        transition(technician, worksheet, "IN_PRODUCTION")

        response = technician.get(f"{BASE}/lots/{lot_a.pk}/traceability/")

        assert response.status_code == 200
        assert response.data["summary"]["patients_affected"] == 1
        assert response.data["worksheets"][0]["patient_name"] == "M. Muster"

    def test_forward_trace_unknown_lot(self, technician, db):
        response = technician.get(f"{BASE}/lots/424242/traceability/")

        assert response.status_code == 404
        assert response.data["error"]["code"] == "LOT_NOT_FOUND"
