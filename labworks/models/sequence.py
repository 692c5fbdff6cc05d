"""
Code sequence for atomic order number generation.

Replaces a read-then-increment counter row with a single atomic
increment executed inside the caller's transaction.
"""

from django.db import models, transaction
from django.db.models import F
from django.utils.translation import gettext_lazy as _


class CodeSequence(models.Model):
    """
    Atomic counter for generating sequential codes.

    One row per (prefix), e.g. "ORDER-2026" → last_value = 42.

    Usage:
        seq_val = CodeSequence.next_value("ORDER-2026")
        # Returns 1, 2, 3... atomically
    """

    prefix = models.CharField(
        max_length=50,
        unique=True,
        verbose_name=_("Prefix"),
    )
    last_value = models.PositiveIntegerField(
        default=0,
        verbose_name=_("Last value"),
    )

    class Meta:
        db_table = "labworks_code_sequence"
        verbose_name = _("Code sequence")
        verbose_name_plural = _("Code sequences")

    def __str__(self) -> str:
        return f"{self.prefix} → {self.last_value}"

    @classmethod
    def next_value(cls, prefix: str) -> int:
        """
        Atomically increment and return the next value for a prefix.

        The increment is one UPDATE ... SET last_value = last_value + 1,
        so concurrent callers never read the same value. Call it inside the
        transaction that creates the numbered entity: a rollback releases
        the number together with the entity.
        """
        with transaction.atomic():
            cls.objects.get_or_create(prefix=prefix, defaults={"last_value": 0})
            cls.objects.filter(prefix=prefix).update(last_value=F("last_value") + 1)
            return cls.objects.values_list("last_value", flat=True).get(prefix=prefix)
