"""
Audit trail writer.

Append-only: there is no update or delete path. Callers write exactly one
entry per logical change.
"""

import logging

from django.forms.models import model_to_dict

from labworks.models import AuditAction, AuditLogEntry

logger = logging.getLogger(__name__)


def snapshot(instance, fields=None) -> dict:
    """JSON-ready dict of a model instance (Decimals and dates via DjangoJSONEncoder)."""
    data = model_to_dict(instance, fields=fields)
    data["id"] = instance.pk
    return data


class AuditTrail:
    def record(
        self,
        entity_type: str,
        entity_id,
        actor_id,
        action: str,
        before=None,
        after=None,
        reason: str | None = None,
        actor_role: str = "",
    ) -> AuditLogEntry:
        if action not in AuditAction.values:
            raise ValueError(f"Unknown audit action: {action}")
        entry = AuditLogEntry.objects.create(
            entity_type=entity_type,
            entity_id=str(entity_id),
            actor_id=str(actor_id),
            actor_role=str(actor_role or ""),
            action=action,
            before=before,
            after=after,
            reason=reason or "",
        )
        logger.debug(
            f"Audit {action} {entity_type}#{entity_id} by {actor_id}",
            extra={"audit_id": entry.pk, "entity_type": entity_type, "entity_id": str(entity_id)},
        )
        return entry

    def history(self, entity_type: str, entity_id):
        """Entries for one entity, oldest first."""
        return AuditLogEntry.objects.filter(entity_type=entity_type, entity_id=str(entity_id))
