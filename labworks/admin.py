"""
Labworks Admin - Basic Django admin for the production and stock models.

Traceability rows (consumption, adjustments, audit log) are read-only here:
they are written by the engine and never edited. Worksheet status is shown
but not editable; status changes go through the transition API.
"""

from django.contrib import admin
from simple_history.admin import SimpleHistoryAdmin

from labworks.models import (
    AuditLogEntry,
    ComplianceDocumentRequest,
    LotAdjustment,
    Material,
    MaterialLot,
    MaterialRequirement,
    Order,
    Worksheet,
    WorksheetMaterialConsumption,
)


class ReadOnlyAdminMixin:
    """No add, change or delete from the admin."""

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# ── Material ──


class MaterialLotInline(ReadOnlyAdminMixin, admin.TabularInline):
    model = MaterialLot
    extra = 0
    fields = ("lot_number", "arrival_date", "expiry_date", "quantity_received", "quantity_available", "status")
    readonly_fields = fields


@admin.register(Material)
class MaterialAdmin(SimpleHistoryAdmin):
    """Admin for the material catalog."""

    list_display = ("code", "name", "material_type", "unit", "ce_marked", "is_active")
    list_filter = ("material_type", "is_active", "ce_marked")
    search_fields = ("code", "name", "manufacturer")
    inlines = [MaterialLotInline]
    readonly_fields = ("created_at", "updated_at")


@admin.register(MaterialLot)
class MaterialLotAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """Lots are received, corrected and recalled through the ledger API."""

    list_display = (
        "lot_number",
        "material",
        "arrival_date",
        "expiry_date",
        "quantity_received",
        "quantity_available",
        "status",
    )
    list_filter = ("status", "material")
    search_fields = ("lot_number", "material__code")
    date_hierarchy = "arrival_date"


# ── Orders & worksheets ──


@admin.register(Order)
class OrderAdmin(SimpleHistoryAdmin):
    list_display = ("order_number", "patient_name", "status", "due_date", "created_at")
    list_filter = ("status",)
    search_fields = ("order_number", "patient_name")
    readonly_fields = ("uuid", "order_number", "status", "created_at", "updated_at")

    def has_delete_permission(self, request, obj=None):
        return False


class MaterialRequirementInline(admin.TabularInline):
    model = MaterialRequirement
    extra = 0
    raw_id_fields = ("material",)


class ConsumptionInline(ReadOnlyAdminMixin, admin.TabularInline):
    model = WorksheetMaterialConsumption
    extra = 0
    fields = ("material", "lot", "quantity_used", "created_at")
    readonly_fields = fields


@admin.register(Worksheet)
class WorksheetAdmin(SimpleHistoryAdmin):
    """Admin for worksheets. Status is read-only: use the transition API."""

    list_display = ("worksheet_number", "revision", "order", "status", "manufacture_date", "updated_at")
    list_filter = ("status",)
    search_fields = ("worksheet_number", "order__order_number")
    raw_id_fields = ("order",)
    inlines = [MaterialRequirementInline, ConsumptionInline]
    readonly_fields = (
        "uuid",
        "worksheet_number",
        "revision",
        "order",
        "status",
        "version",
        "manufacture_date",
        "completed_at",
        "voided_at",
        "void_reason",
        "created_by",
        "created_at",
        "updated_at",
    )

    def has_delete_permission(self, request, obj=None):
        return False


# ── Traceability records ──


@admin.register(WorksheetMaterialConsumption)
class ConsumptionAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("worksheet", "material", "lot", "quantity_used", "created_at")
    list_filter = ("material",)
    search_fields = ("worksheet__worksheet_number", "lot__lot_number")


@admin.register(LotAdjustment)
class LotAdjustmentAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("lot", "quantity", "actor_id", "created_at")
    search_fields = ("lot__lot_number", "reason")


@admin.register(AuditLogEntry)
class AuditLogEntryAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("timestamp", "action", "entity_type", "entity_id", "actor_id", "actor_role")
    list_filter = ("action", "entity_type")
    search_fields = ("entity_id", "actor_id", "reason")
    date_hierarchy = "timestamp"


@admin.register(ComplianceDocumentRequest)
class ComplianceDocumentRequestAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("worksheet", "locale_code", "status", "attempts", "created_at", "sent_at")
    list_filter = ("status", "locale_code")
