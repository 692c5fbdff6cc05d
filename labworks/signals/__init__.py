"""
Labworks Signals.

Sent after the transaction that caused them commits, so receivers never
observe state that could still roll back.

Signals:
    worksheet_transitioned: A worksheet changed status
    lot_depleted: A lot reached zero available quantity through allocation
"""

from django.dispatch import Signal

# Worksheet changed status
# Args: worksheet, previous_status, status, actor_id, actor_role, snapshot
worksheet_transitioned = Signal()

# Lot reached zero
# Args: lot, worksheet
lot_depleted = Signal()

__all__ = ["worksheet_transitioned", "lot_depleted"]
