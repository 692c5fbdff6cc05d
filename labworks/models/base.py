"""
Retention helpers shared by the traceability models.

MDR traceability records are kept for the lifetime of the devices they
describe: lots, worksheets and consumption/audit rows are never removed,
and append-only rows are never edited.
"""

from django.db import models

from labworks.exceptions import LabError


class RetainedQuerySet(models.QuerySet):
    """QuerySet that refuses bulk deletion."""

    def delete(self):
        raise LabError("RETENTION_REQUIRED", model=self.model.__name__)


class AppendOnlyQuerySet(RetainedQuerySet):
    """QuerySet that refuses bulk deletion and bulk updates."""

    def update(self, **kwargs):
        raise LabError("APPEND_ONLY", model=self.model.__name__)


class RetainedModel(models.Model):
    """Rows can change state but are never deleted."""

    objects = RetainedQuerySet.as_manager()

    class Meta:
        abstract = True

    def delete(self, *args, **kwargs):
        raise LabError("RETENTION_REQUIRED", model=type(self).__name__, pk=self.pk)


class AppendOnlyModel(models.Model):
    """Rows are inserted once, then never updated or deleted."""

    objects = AppendOnlyQuerySet.as_manager()

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise LabError("APPEND_ONLY", model=type(self).__name__, pk=self.pk)
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise LabError("APPEND_ONLY", model=type(self).__name__, pk=self.pk)
