"""
Initial Labworks schema.

- Material, MaterialLot (lot ledger)
- Order, Worksheet, MaterialRequirement
- WorksheetMaterialConsumption, LotAdjustment (ledger movements)
- AuditLogEntry, ComplianceDocumentRequest, CodeSequence
- History tracking for Material, Order and Worksheet
"""

import uuid

import django.core.serializers.json
import django.db.models.deletion
import django.utils.timezone
import simple_history.models
from django.conf import settings
from django.db import migrations, models

MATERIAL_TYPES = [
    ("CERAMIC", "Ceramic"),
    ("METAL", "Metal"),
    ("RESIN", "Resin"),
    ("COMPOSITE", "Composite"),
    ("PORCELAIN", "Porcelain"),
    ("ZIRCONIA", "Zirconia"),
    ("TITANIUM", "Titanium"),
    ("ALLOY", "Alloy"),
    ("ACRYLIC", "Acrylic"),
    ("WAX", "Wax"),
    ("OTHER", "Other"),
]

LOT_STATUSES = [
    ("AVAILABLE", "Available"),
    ("DEPLETED", "Depleted"),
    ("EXPIRED", "Expired"),
    ("RECALLED", "Recalled"),
]

ORDER_STATUSES = [
    ("PENDING", "Pending"),
    ("IN_PRODUCTION", "In production"),
    ("QC_PENDING", "QC pending"),
    ("QC_APPROVED", "QC approved"),
    ("INVOICED", "Invoiced"),
    ("DELIVERED", "Delivered"),
    ("CANCELLED", "Cancelled"),
]

WORKSHEET_STATUSES = [
    ("DRAFT", "Draft"),
    ("IN_PRODUCTION", "In production"),
    ("QC_PENDING", "QC pending"),
    ("QC_APPROVED", "QC approved"),
    ("QC_REJECTED", "QC rejected"),
    ("DELIVERED", "Delivered"),
    ("CANCELLED", "Cancelled"),
    ("VOIDED", "Voided"),
]

AUDIT_ACTIONS = [
    ("CREATE", "Create"),
    ("UPDATE", "Update"),
    ("STATUS_CHANGE", "Status change"),
    ("MATERIAL_ASSIGN", "Material assign"),
    ("MATERIAL_CONSUME", "Material consume"),
    ("CORRECTION", "Correction"),
    ("RECALL", "Recall"),
    ("EXPIRE", "Expire"),
    ("QC_APPROVE", "QC approve"),
    ("QC_REJECT", "QC reject"),
    ("DOCUMENT_GENERATE", "Document generate"),
]

DOCUMENT_STATUSES = [
    ("PENDING", "Pending"),
    ("SENT", "Sent"),
    ("FAILED", "Failed"),
]

HISTORY_TYPES = [("+", "Created"), ("~", "Changed"), ("-", "Deleted")]


def history_fields():
    return [
        ("history_id", models.AutoField(primary_key=True, serialize=False)),
        ("history_date", models.DateTimeField(db_index=True)),
        ("history_change_reason", models.CharField(max_length=100, null=True)),
        ("history_type", models.CharField(choices=HISTORY_TYPES, max_length=1)),
        (
            "history_user",
            models.ForeignKey(
                null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name="+",
                to=settings.AUTH_USER_MODEL,
            ),
        ),
    ]


def history_options(name, plural):
    return {
        "verbose_name": f"historical {name}",
        "verbose_name_plural": f"historical {plural}",
        "ordering": ("-history_date", "-history_id"),
        "get_latest_by": ("history_date", "history_id"),
    }


def id_field():
    return ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID"))


def history_id_field():
    return ("id", models.BigIntegerField(auto_created=True, blank=True, db_index=True, verbose_name="ID"))


def quantity(verbose_name, **kwargs):
    return models.DecimalField(decimal_places=3, max_digits=10, verbose_name=verbose_name, **kwargs)


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        # ══════════════════════════════════════════════════════════════
        # SEQUENCE
        # ══════════════════════════════════════════════════════════════
        migrations.CreateModel(
            name="CodeSequence",
            fields=[
                id_field(),
                ("prefix", models.CharField(max_length=50, unique=True, verbose_name="Prefix")),
                ("last_value", models.PositiveIntegerField(default=0, verbose_name="Last value")),
            ],
            options={
                "verbose_name": "Code sequence",
                "verbose_name_plural": "Code sequences",
                "db_table": "labworks_code_sequence",
            },
        ),
        # ══════════════════════════════════════════════════════════════
        # MATERIAL / LOT
        # ══════════════════════════════════════════════════════════════
        migrations.CreateModel(
            name="Material",
            fields=[
                id_field(),
                ("code", models.CharField(max_length=50, unique=True, verbose_name="Code")),
                ("name", models.CharField(max_length=200, verbose_name="Name")),
                (
                    "material_type",
                    models.CharField(choices=MATERIAL_TYPES, default="OTHER", max_length=20, verbose_name="Type"),
                ),
                ("manufacturer", models.CharField(blank=True, max_length=200, verbose_name="Manufacturer")),
                ("description", models.TextField(blank=True, verbose_name="Description")),
                (
                    "unit",
                    models.CharField(
                        default="gram",
                        help_text="Unit of measure for every lot quantity of this material",
                        max_length=20,
                        verbose_name="Unit",
                    ),
                ),
                ("biocompatible", models.BooleanField(default=True, verbose_name="Biocompatible")),
                ("iso10993_cert", models.CharField(blank=True, max_length=100, verbose_name="ISO 10993 certificate")),
                ("ce_marked", models.BooleanField(default=True, verbose_name="CE marked")),
                ("ce_number", models.CharField(blank=True, max_length=100, verbose_name="CE number")),
                ("is_active", models.BooleanField(default=True, verbose_name="Active")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated at")),
            ],
            options={
                "verbose_name": "Material",
                "verbose_name_plural": "Materials",
                "db_table": "labworks_material",
                "ordering": ["code"],
            },
        ),
        migrations.CreateModel(
            name="MaterialLot",
            fields=[
                id_field(),
                ("lot_number", models.CharField(max_length=100, verbose_name="Lot number")),
                (
                    "arrival_date",
                    models.DateField(db_index=True, default=django.utils.timezone.localdate, verbose_name="Arrival date"),
                ),
                (
                    "expiry_date",
                    models.DateField(
                        blank=True,
                        help_text="Usable up to and including this date",
                        null=True,
                        verbose_name="Expiry date",
                    ),
                ),
                ("supplier_name", models.CharField(blank=True, max_length=200, verbose_name="Supplier")),
                ("quantity_received", quantity("Quantity received")),
                ("quantity_available", quantity("Quantity available")),
                (
                    "status",
                    models.CharField(
                        choices=LOT_STATUSES, db_index=True, default="AVAILABLE", max_length=20, verbose_name="Status"
                    ),
                ),
                ("notes", models.TextField(blank=True, verbose_name="Notes")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated at")),
                (
                    "material",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="lots",
                        to="labworks.material",
                        verbose_name="Material",
                    ),
                ),
            ],
            options={
                "verbose_name": "Material lot",
                "verbose_name_plural": "Material lots",
                "db_table": "labworks_material_lot",
                "ordering": ["material", "arrival_date", "lot_number"],
                "indexes": [
                    models.Index(fields=["material", "status", "arrival_date"], name="labworks_ma_materia_5c1f2e_idx"),
                    models.Index(fields=["expiry_date"], name="labworks_ma_expiry__9b3d41_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("material", "lot_number"), name="labworks_lot_number_unique_per_material"
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("quantity_available__gte", 0),
                            ("quantity_available__lte", models.F("quantity_received")),
                        ),
                        name="labworks_lot_available_within_received",
                    ),
                ],
            },
        ),
        # ══════════════════════════════════════════════════════════════
        # ORDER / WORKSHEET
        # ══════════════════════════════════════════════════════════════
        migrations.CreateModel(
            name="Order",
            fields=[
                id_field(),
                ("uuid", models.UUIDField(default=uuid.uuid4, editable=False, unique=True, verbose_name="UUID")),
                (
                    "order_number",
                    models.CharField(
                        blank=True,
                        help_text="Auto-generated if empty (YYNNN)",
                        max_length=20,
                        unique=True,
                        verbose_name="Order number",
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=ORDER_STATUSES, db_index=True, default="PENDING", max_length=20, verbose_name="Status"
                    ),
                ),
                ("patient_name", models.CharField(blank=True, max_length=200, verbose_name="Patient")),
                ("due_date", models.DateField(blank=True, null=True, verbose_name="Due date")),
                ("notes", models.TextField(blank=True, verbose_name="Notes")),
                (
                    "created_by",
                    models.CharField(
                        blank=True, help_text="Ex: 'user:12', 'system:import'", max_length=255, verbose_name="Created by"
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated at")),
            ],
            options={
                "verbose_name": "Order",
                "verbose_name_plural": "Orders",
                "db_table": "labworks_order",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Worksheet",
            fields=[
                id_field(),
                ("uuid", models.UUIDField(default=uuid.uuid4, editable=False, unique=True, verbose_name="UUID")),
                (
                    "worksheet_number",
                    models.CharField(
                        db_index=True,
                        help_text="DN-<order number>, shared by every revision",
                        max_length=30,
                        verbose_name="Worksheet number",
                    ),
                ),
                ("revision", models.PositiveIntegerField(default=1, verbose_name="Revision")),
                (
                    "status",
                    models.CharField(
                        choices=WORKSHEET_STATUSES, db_index=True, default="DRAFT", max_length=20, verbose_name="Status"
                    ),
                ),
                ("version", models.PositiveIntegerField(default=1, verbose_name="Version")),
                ("device_description", models.TextField(blank=True, verbose_name="Device description")),
                ("intended_use", models.TextField(blank=True, verbose_name="Intended use")),
                ("technical_notes", models.TextField(blank=True, verbose_name="Technical notes")),
                ("qc_notes", models.TextField(blank=True, verbose_name="QC notes")),
                ("manufacture_date", models.DateField(blank=True, null=True, verbose_name="Manufacture date")),
                ("completed_at", models.DateTimeField(blank=True, null=True, verbose_name="Completed at")),
                ("voided_at", models.DateTimeField(blank=True, null=True, verbose_name="Voided at")),
                ("void_reason", models.TextField(blank=True, verbose_name="Void reason")),
                ("created_by", models.CharField(blank=True, max_length=255, verbose_name="Created by")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated at")),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="worksheets",
                        to="labworks.order",
                        verbose_name="Order",
                    ),
                ),
            ],
            options={
                "verbose_name": "Worksheet",
                "verbose_name_plural": "Worksheets",
                "db_table": "labworks_worksheet",
                "ordering": ["-created_at"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("status", "VOIDED"), _negated=True),
                        fields=("order",),
                        name="labworks_one_active_worksheet_per_order",
                    ),
                    models.UniqueConstraint(fields=("order", "revision"), name="labworks_worksheet_revision_unique"),
                ],
            },
        ),
        migrations.CreateModel(
            name="MaterialRequirement",
            fields=[
                id_field(),
                ("quantity", quantity("Quantity")),
                ("notes", models.CharField(blank=True, max_length=255, verbose_name="Notes")),
                (
                    "material",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="requirements",
                        to="labworks.material",
                        verbose_name="Material",
                    ),
                ),
                (
                    "worksheet",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="requirements",
                        to="labworks.worksheet",
                        verbose_name="Worksheet",
                    ),
                ),
            ],
            options={
                "verbose_name": "Material requirement",
                "verbose_name_plural": "Material requirements",
                "db_table": "labworks_material_requirement",
                "ordering": ["material__code"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("quantity__gt", 0)), name="labworks_requirement_quantity_positive"
                    ),
                ],
            },
        ),
        # ══════════════════════════════════════════════════════════════
        # LEDGER MOVEMENTS
        # ══════════════════════════════════════════════════════════════
        migrations.CreateModel(
            name="WorksheetMaterialConsumption",
            fields=[
                id_field(),
                ("quantity_used", quantity("Quantity used")),
                (
                    "sequence",
                    models.PositiveSmallIntegerField(
                        default=0, help_text="Position of the lot in the allocation plan", verbose_name="Sequence"
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created at")),
                (
                    "lot",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="consumptions",
                        to="labworks.materiallot",
                        verbose_name="Lot",
                    ),
                ),
                (
                    "material",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="consumptions",
                        to="labworks.material",
                        verbose_name="Material",
                    ),
                ),
                (
                    "worksheet",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="consumptions",
                        to="labworks.worksheet",
                        verbose_name="Worksheet",
                    ),
                ),
            ],
            options={
                "verbose_name": "Material consumption",
                "verbose_name_plural": "Material consumptions",
                "db_table": "labworks_material_consumption",
                "ordering": ["worksheet", "sequence"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("quantity_used__gt", 0)), name="labworks_consumption_quantity_positive"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="LotAdjustment",
            fields=[
                id_field(),
                ("quantity", quantity("Quantity")),
                ("reason", models.TextField(verbose_name="Reason")),
                ("actor_id", models.CharField(max_length=255, verbose_name="Actor")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created at")),
                (
                    "lot",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="adjustments",
                        to="labworks.materiallot",
                        verbose_name="Lot",
                    ),
                ),
            ],
            options={
                "verbose_name": "Lot adjustment",
                "verbose_name_plural": "Lot adjustments",
                "db_table": "labworks_lot_adjustment",
                "ordering": ["-created_at"],
            },
        ),
        # ══════════════════════════════════════════════════════════════
        # AUDIT / DOCUMENTS
        # ══════════════════════════════════════════════════════════════
        migrations.CreateModel(
            name="AuditLogEntry",
            fields=[
                id_field(),
                ("actor_id", models.CharField(max_length=255, verbose_name="Actor")),
                ("actor_role", models.CharField(blank=True, max_length=20, verbose_name="Role")),
                (
                    "action",
                    models.CharField(choices=AUDIT_ACTIONS, db_index=True, max_length=30, verbose_name="Action"),
                ),
                ("entity_type", models.CharField(max_length=50, verbose_name="Entity type")),
                ("entity_id", models.CharField(max_length=64, verbose_name="Entity ID")),
                (
                    "before",
                    models.JSONField(
                        blank=True,
                        encoder=django.core.serializers.json.DjangoJSONEncoder,
                        null=True,
                        verbose_name="Before",
                    ),
                ),
                (
                    "after",
                    models.JSONField(
                        blank=True,
                        encoder=django.core.serializers.json.DjangoJSONEncoder,
                        null=True,
                        verbose_name="After",
                    ),
                ),
                ("reason", models.TextField(blank=True, verbose_name="Reason")),
                ("timestamp", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="Timestamp")),
            ],
            options={
                "verbose_name": "Audit log entry",
                "verbose_name_plural": "Audit log entries",
                "db_table": "labworks_audit_log",
                "ordering": ["timestamp", "id"],
                "indexes": [
                    models.Index(fields=["entity_type", "entity_id"], name="labworks_au_entity__4e2a7c_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ComplianceDocumentRequest",
            fields=[
                id_field(),
                ("locale_code", models.CharField(default="en", max_length=10, verbose_name="Locale")),
                (
                    "status",
                    models.CharField(
                        choices=DOCUMENT_STATUSES, db_index=True, default="PENDING", max_length=10, verbose_name="Status"
                    ),
                ),
                ("attempts", models.PositiveIntegerField(default=0, verbose_name="Attempts")),
                ("last_error", models.TextField(blank=True, verbose_name="Last error")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created at")),
                ("sent_at", models.DateTimeField(blank=True, null=True, verbose_name="Sent at")),
                (
                    "worksheet",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="document_requests",
                        to="labworks.worksheet",
                        verbose_name="Worksheet",
                    ),
                ),
            ],
            options={
                "verbose_name": "Compliance document request",
                "verbose_name_plural": "Compliance document requests",
                "db_table": "labworks_document_request",
                "ordering": ["created_at"],
            },
        ),
        # ══════════════════════════════════════════════════════════════
        # HISTORY
        # ══════════════════════════════════════════════════════════════
        migrations.CreateModel(
            name="HistoricalMaterial",
            fields=[
                history_id_field(),
                ("code", models.CharField(db_index=True, max_length=50, verbose_name="Code")),
                ("name", models.CharField(max_length=200, verbose_name="Name")),
                (
                    "material_type",
                    models.CharField(choices=MATERIAL_TYPES, default="OTHER", max_length=20, verbose_name="Type"),
                ),
                ("manufacturer", models.CharField(blank=True, max_length=200, verbose_name="Manufacturer")),
                ("description", models.TextField(blank=True, verbose_name="Description")),
                (
                    "unit",
                    models.CharField(
                        default="gram",
                        help_text="Unit of measure for every lot quantity of this material",
                        max_length=20,
                        verbose_name="Unit",
                    ),
                ),
                ("biocompatible", models.BooleanField(default=True, verbose_name="Biocompatible")),
                ("iso10993_cert", models.CharField(blank=True, max_length=100, verbose_name="ISO 10993 certificate")),
                ("ce_marked", models.BooleanField(default=True, verbose_name="CE marked")),
                ("ce_number", models.CharField(blank=True, max_length=100, verbose_name="CE number")),
                ("is_active", models.BooleanField(default=True, verbose_name="Active")),
                ("created_at", models.DateTimeField(blank=True, editable=False, verbose_name="Created at")),
                ("updated_at", models.DateTimeField(blank=True, editable=False, verbose_name="Updated at")),
                *history_fields(),
            ],
            options=history_options("Material", "Materials"),
            bases=(simple_history.models.HistoricalChanges, models.Model),
        ),
        migrations.CreateModel(
            name="HistoricalOrder",
            fields=[
                history_id_field(),
                ("uuid", models.UUIDField(db_index=True, default=uuid.uuid4, editable=False, verbose_name="UUID")),
                (
                    "order_number",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="Auto-generated if empty (YYNNN)",
                        max_length=20,
                        verbose_name="Order number",
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=ORDER_STATUSES, db_index=True, default="PENDING", max_length=20, verbose_name="Status"
                    ),
                ),
                ("patient_name", models.CharField(blank=True, max_length=200, verbose_name="Patient")),
                ("due_date", models.DateField(blank=True, null=True, verbose_name="Due date")),
                ("notes", models.TextField(blank=True, verbose_name="Notes")),
                (
                    "created_by",
                    models.CharField(
                        blank=True, help_text="Ex: 'user:12', 'system:import'", max_length=255, verbose_name="Created by"
                    ),
                ),
                ("created_at", models.DateTimeField(blank=True, editable=False, verbose_name="Created at")),
                ("updated_at", models.DateTimeField(blank=True, editable=False, verbose_name="Updated at")),
                *history_fields(),
            ],
            options=history_options("Order", "Orders"),
            bases=(simple_history.models.HistoricalChanges, models.Model),
        ),
        migrations.CreateModel(
            name="HistoricalWorksheet",
            fields=[
                history_id_field(),
                ("uuid", models.UUIDField(db_index=True, default=uuid.uuid4, editable=False, verbose_name="UUID")),
                (
                    "worksheet_number",
                    models.CharField(
                        db_index=True,
                        help_text="DN-<order number>, shared by every revision",
                        max_length=30,
                        verbose_name="Worksheet number",
                    ),
                ),
                ("revision", models.PositiveIntegerField(default=1, verbose_name="Revision")),
                (
                    "status",
                    models.CharField(
                        choices=WORKSHEET_STATUSES, db_index=True, default="DRAFT", max_length=20, verbose_name="Status"
                    ),
                ),
                ("version", models.PositiveIntegerField(default=1, verbose_name="Version")),
                ("device_description", models.TextField(blank=True, verbose_name="Device description")),
                ("intended_use", models.TextField(blank=True, verbose_name="Intended use")),
                ("technical_notes", models.TextField(blank=True, verbose_name="Technical notes")),
                ("qc_notes", models.TextField(blank=True, verbose_name="QC notes")),
                ("manufacture_date", models.DateField(blank=True, null=True, verbose_name="Manufacture date")),
                ("completed_at", models.DateTimeField(blank=True, null=True, verbose_name="Completed at")),
                ("voided_at", models.DateTimeField(blank=True, null=True, verbose_name="Voided at")),
                ("void_reason", models.TextField(blank=True, verbose_name="Void reason")),
                ("created_by", models.CharField(blank=True, max_length=255, verbose_name="Created by")),
                ("created_at", models.DateTimeField(blank=True, editable=False, verbose_name="Created at")),
                ("updated_at", models.DateTimeField(blank=True, editable=False, verbose_name="Updated at")),
                (
                    "order",
                    models.ForeignKey(
                        blank=True,
                        db_constraint=False,
                        null=True,
                        on_delete=django.db.models.deletion.DO_NOTHING,
                        related_name="+",
                        to="labworks.order",
                        verbose_name="Order",
                    ),
                ),
                *history_fields(),
            ],
            options=history_options("Worksheet", "Worksheets"),
            bases=(simple_history.models.HistoricalChanges, models.Model),
        ),
    ]
