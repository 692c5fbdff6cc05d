"""
Labworks API ViewSets.
"""

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from labworks import ledger, machine, worksheets
from labworks.allocator import FifoAllocator
from labworks.exceptions import LabError, http_status_for
from labworks.machine import Role
from labworks.models import Material, MaterialLot, Worksheet
from labworks.orchestrator import TransitionOrchestrator

from .serializers import (
    AllocationPreviewSerializer,
    MaterialLotSerializer,
    MaterialSerializer,
    ReasonSerializer,
    RequirementsSerializer,
    TransitionSerializer,
    WorksheetSerializer,
)

REQUIREMENT_EDITORS = frozenset({Role.ADMIN, Role.TECHNICIAN})


def resolve_actor(user) -> tuple[str, str | None]:
    """
    Actor context for an authenticated user.

    Role comes from a `role` attribute on the user model when present,
    otherwise from the first group named after a Role. Superusers are ADMIN.
    """
    actor_id = f"user:{user.pk}"
    role = getattr(user, "role", None)
    if role in Role.values and role != Role.SYSTEM:
        return actor_id, role
    for name in user.groups.values_list("name", flat=True):
        candidate = name.upper().replace(" ", "_")
        if candidate in Role.values and candidate != Role.SYSTEM:
            return actor_id, candidate
    if user.is_superuser:
        return actor_id, Role.ADMIN
    return actor_id, None


def error_response(error: LabError) -> Response:
    return Response({"error": error.as_dict()}, status=http_status_for(error))


def no_role_response(actor_id) -> Response:
    return error_response(LabError("INVALID_ROLE", actor_id=actor_id))


class WorksheetViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for Worksheet.

    list: List worksheets (filter with ?status=)
    retrieve: Get a worksheet with requirements and consumption
    transition: Change status
    requirements: Replace material requirements (DRAFT only)
    traceability: Every lot the worksheet consumed
    """

    permission_classes = [IsAuthenticated]
    queryset = Worksheet.objects.select_related("order").prefetch_related(
        "requirements__material", "consumptions__lot"
    )
    serializer_class = WorksheetSerializer

    def get_queryset(self):
        queryset = super().get_queryset()
        status_filter = self.request.query_params.get("status")
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        return queryset

    @action(detail=True, methods=["post"])
    def transition(self, request, pk=None):
        """
        Change worksheet status.

        POST /api/labworks/worksheets/{pk}/transition/
        {
            "status": "QC_REJECTED",
            "notes": "Margin gap on 26",
            "expected_version": 3
        }
        """
        serializer = TransitionSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        actor_id, role = resolve_actor(request.user)
        if role is None:
            return no_role_response(actor_id)

        data = serializer.validated_data
        try:
            snapshot = TransitionOrchestrator().transition(
                pk,
                data["status"],
                actor_id,
                role,
                notes=data.get("notes"),
                expected_version=data.get("expected_version"),
                locale_code=data.get("locale"),
            )
        except LabError as e:
            return error_response(e)
        return Response(snapshot.as_dict())

    @action(detail=True, methods=["get"], url_path="available-transitions")
    def available_transitions(self, request, pk=None):
        """GET /api/labworks/worksheets/{pk}/available-transitions/"""
        worksheet = self.get_object()
        actor_id, role = resolve_actor(request.user)
        if role is None:
            return no_role_response(actor_id)
        return Response({"status": worksheet.status, "targets": machine.available_transitions(worksheet.status, role)})

    @action(detail=True, methods=["put"])
    def requirements(self, request, pk=None):
        """
        Replace material requirements.

        PUT /api/labworks/worksheets/{pk}/requirements/
        {
            "requirements": [{"material": 3, "quantity": "12.5"}]
        }
        """
        actor_id, role = resolve_actor(request.user)
        if role is None:
            return no_role_response(actor_id)
        if role not in REQUIREMENT_EDITORS:
            return error_response(LabError("ROLE_NOT_PERMITTED", actor_id=actor_id, role=role))

        serializer = RequirementsSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        pairs = [(item["material"], item["quantity"]) for item in serializer.validated_data["requirements"]]
        try:
            worksheets.set_requirements(pk, pairs, actor_id)
        except LabError as e:
            return error_response(e)
        return Response(WorksheetSerializer(self.get_object()).data)

    @action(detail=True, methods=["get"])
    def traceability(self, request, pk=None):
        """GET /api/labworks/worksheets/{pk}/traceability/"""
        try:
            return Response(ledger.worksheet_traceability(pk))
        except LabError as e:
            return error_response(e)


class MaterialViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for Material (read-only).

    lots: Lot ledger of a material, FIFO order
    allocation_preview: Which lots an allocation would draw today
    expiring / low_stock: Inventory alerts
    """

    permission_classes = [IsAuthenticated]
    queryset = Material.objects.all()
    serializer_class = MaterialSerializer

    @action(detail=True, methods=["get"])
    def lots(self, request, pk=None):
        """GET /api/labworks/materials/{pk}/lots/?status=AVAILABLE"""
        try:
            lots = ledger.get_lot_ledger(pk, status=request.query_params.get("status"))
        except LabError as e:
            return error_response(e)
        return Response(MaterialLotSerializer(lots, many=True).data)

    @action(detail=True, methods=["post"], url_path="allocation-preview")
    def allocation_preview(self, request, pk=None):
        """
        Preview a FIFO allocation without consuming anything.

        POST /api/labworks/materials/{pk}/allocation-preview/
        {"quantity": "70"}
        """
        serializer = AllocationPreviewSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        try:
            plan = FifoAllocator().allocate(pk, serializer.validated_data["quantity"])
        except LabError as e:
            return error_response(e)
        return Response(plan.as_dict())

    @action(detail=False, methods=["get"])
    def expiring(self, request):
        """GET /api/labworks/materials/expiring/?days=30"""
        days = request.query_params.get("days")
        alerts = ledger.expiring_lots(int(days) if days and days.isdigit() else None)
        return Response(
            [
                {
                    "lot_id": a.lot_id,
                    "lot_number": a.lot_number,
                    "material_code": a.material_code,
                    "expiry_date": a.expiry_date,
                    "days_until_expiry": a.days_until_expiry,
                    "quantity_available": a.quantity_available,
                    "severity": a.severity,
                }
                for a in alerts
            ]
        )

    @action(detail=False, methods=["get"], url_path="low-stock")
    def low_stock(self, request):
        """GET /api/labworks/materials/low-stock/"""
        return Response(
            [
                {
                    "material_id": a.material_id,
                    "material_code": a.material_code,
                    "available": a.available,
                    "threshold": a.threshold,
                }
                for a in ledger.low_stock_materials()
            ]
        )


class MaterialLotViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for MaterialLot (read-only).

    recall: Take a lot out of circulation
    traceability: Every worksheet and patient that used the lot
    """

    permission_classes = [IsAuthenticated]
    queryset = MaterialLot.objects.select_related("material")
    serializer_class = MaterialLotSerializer

    @action(detail=True, methods=["post"])
    def recall(self, request, pk=None):
        """
        POST /api/labworks/lots/{pk}/recall/
        {"reason": "Supplier field safety notice"}
        """
        actor_id, role = resolve_actor(request.user)
        if role != Role.ADMIN:
            return error_response(LabError("ROLE_NOT_PERMITTED", actor_id=actor_id, role=role))

        serializer = ReasonSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        try:
            lot = ledger.recall_lot(pk, actor_id, serializer.validated_data["reason"])
        except LabError as e:
            return error_response(e)
        return Response(MaterialLotSerializer(lot).data)

    @action(detail=True, methods=["get"])
    def traceability(self, request, pk=None):
        """GET /api/labworks/lots/{pk}/traceability/"""
        try:
            return Response(ledger.lot_traceability(pk))
        except LabError as e:
            return error_response(e)
