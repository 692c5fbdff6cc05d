"""
Labworks Signal Handlers.

Default receivers: operational logging of transitions and depleted lots.

This module is imported in apps.py to register handlers.
"""

import logging

from django.dispatch import receiver

from labworks.signals import lot_depleted, worksheet_transitioned

logger = logging.getLogger(__name__)


@receiver(worksheet_transitioned)
def log_worksheet_transition(sender, worksheet, previous_status, status, actor_id, actor_role, **kwargs):
    logger.info(
        f"Worksheet {worksheet.worksheet_number} rev.{worksheet.revision}: {previous_status} → {status} "
        f"by {actor_id} ({actor_role})",
        extra={
            "worksheet_id": worksheet.pk,
            "previous_status": str(previous_status),
            "status": str(status),
            "actor_id": str(actor_id),
        },
    )


@receiver(lot_depleted)
def log_lot_depleted(sender, lot, worksheet=None, **kwargs):
    """A depleted lot usually means a reorder is due."""
    logger.warning(
        f"Lot {lot.lot_number} of {lot.material.code} depleted"
        + (f" by worksheet {worksheet.worksheet_number}" if worksheet is not None else ""),
        extra={"lot_id": lot.pk, "material_id": lot.material_id},
    )
