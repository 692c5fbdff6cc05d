"""
Labworks API Serializers.
"""

from rest_framework import serializers

from labworks.models import (
    Material,
    MaterialLot,
    MaterialRequirement,
    Worksheet,
    WorksheetMaterialConsumption,
    WorksheetStatus,
)
from labworks.models.material import QUANTITY_DIGITS


class MaterialSerializer(serializers.ModelSerializer):
    """Serializer for Material model."""

    available_quantity = serializers.DecimalField(**QUANTITY_DIGITS, read_only=True)

    class Meta:
        model = Material
        fields = [
            "id",
            "code",
            "name",
            "material_type",
            "manufacturer",
            "unit",
            "biocompatible",
            "iso10993_cert",
            "ce_marked",
            "ce_number",
            "is_active",
            "available_quantity",
        ]
        read_only_fields = fields


class MaterialLotSerializer(serializers.ModelSerializer):
    """Serializer for MaterialLot model."""

    material_code = serializers.CharField(source="material.code", read_only=True)
    days_until_expiry = serializers.SerializerMethodField()

    class Meta:
        model = MaterialLot
        fields = [
            "id",
            "material",
            "material_code",
            "lot_number",
            "arrival_date",
            "expiry_date",
            "days_until_expiry",
            "supplier_name",
            "quantity_received",
            "quantity_available",
            "status",
        ]
        read_only_fields = fields

    def get_days_until_expiry(self, obj) -> int | None:
        return obj.days_until_expiry()


class MaterialRequirementSerializer(serializers.ModelSerializer):
    material_code = serializers.CharField(source="material.code", read_only=True)

    class Meta:
        model = MaterialRequirement
        fields = ["material", "material_code", "quantity"]


class ConsumptionSerializer(serializers.ModelSerializer):
    lot_number = serializers.CharField(source="lot.lot_number", read_only=True)

    class Meta:
        model = WorksheetMaterialConsumption
        fields = ["lot", "lot_number", "material", "quantity_used", "created_at"]
        read_only_fields = fields


class WorksheetSerializer(serializers.ModelSerializer):
    """Serializer for Worksheet model."""

    order_number = serializers.CharField(source="order.order_number", read_only=True)
    requirements = MaterialRequirementSerializer(many=True, read_only=True)
    consumptions = ConsumptionSerializer(many=True, read_only=True)

    class Meta:
        model = Worksheet
        fields = [
            "id",
            "uuid",
            "worksheet_number",
            "revision",
            "order",
            "order_number",
            "status",
            "version",
            "device_description",
            "intended_use",
            "technical_notes",
            "qc_notes",
            "manufacture_date",
            "completed_at",
            "voided_at",
            "void_reason",
            "requirements",
            "consumptions",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class TransitionSerializer(serializers.Serializer):
    """Input for the transition action."""

    status = serializers.ChoiceField(choices=WorksheetStatus.choices)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    expected_version = serializers.IntegerField(required=False, min_value=1)
    locale = serializers.CharField(required=False, max_length=10)


class RequirementInputSerializer(serializers.Serializer):
    material = serializers.IntegerField()
    quantity = serializers.DecimalField(**QUANTITY_DIGITS)


class RequirementsSerializer(serializers.Serializer):
    requirements = RequirementInputSerializer(many=True)


class AllocationPreviewSerializer(serializers.Serializer):
    quantity = serializers.DecimalField(**QUANTITY_DIGITS)


class ReasonSerializer(serializers.Serializer):
    reason = serializers.CharField()
