"""
Tests for CodeSequence (labworks.models.sequence).

Verifies atomic code generation and YYNNN order numbering.
"""

import pytest
from django.db import transaction
from django.utils import timezone

from labworks.models import CodeSequence, Order


# ═══════════════════════════════════════════════════════════════════
# CodeSequence
# ═══════════════════════════════════════════════════════════════════


class TestCodeSequence:
    """Tests for CodeSequence model."""

    def test_next_value_starts_at_1(self, db):
        assert CodeSequence.next_value("TEST-PREFIX") == 1

    def test_next_value_increments(self, db):
        v1 = CodeSequence.next_value("INC-PREFIX")
        v2 = CodeSequence.next_value("INC-PREFIX")
        v3 = CodeSequence.next_value("INC-PREFIX")

        assert (v1, v2, v3) == (1, 2, 3)

    def test_different_prefixes_independent(self, db):
        CodeSequence.next_value("PREFIX-A")
        CodeSequence.next_value("PREFIX-A")

        assert CodeSequence.next_value("PREFIX-B") == 1

    def test_rollback_releases_value(self, db):
        """A number drawn in a rolled-back transaction is handed out again."""
        CodeSequence.next_value("RB-PREFIX")

        with pytest.raises(RuntimeError):
            with transaction.atomic():
                CodeSequence.next_value("RB-PREFIX")
                raise RuntimeError("abort")

        assert CodeSequence.next_value("RB-PREFIX") == 2

    def test_str_representation(self, db):
        CodeSequence.next_value("STR-PREFIX")
        seq = CodeSequence.objects.get(prefix="STR-PREFIX")

        assert "STR-PREFIX" in str(seq)
        assert "1" in str(seq)


# ═══════════════════════════════════════════════════════════════════
# Order numbering via sequence
# ═══════════════════════════════════════════════════════════════════


class TestOrderNumbering:
    def test_auto_generates_number(self, db):
        order = Order.objects.create(patient_name="A. Patient")

        yy = timezone.now().year % 100
        assert order.order_number == f"{yy:02d}001"

    def test_sequential_numbers(self, db):
        first = Order.objects.create()
        second = Order.objects.create()

        assert int(second.order_number) == int(first.order_number) + 1

    def test_custom_number_preserved(self, db):
        order = Order.objects.create(order_number="IMPORT-7")

        assert order.order_number == "IMPORT-7"

    def test_no_collision(self, db):
        numbers = {Order.objects.create().order_number for _ in range(10)}

        assert len(numbers) == 10
