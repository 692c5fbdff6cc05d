"""
Order Store Protocol.

The worksheet engine does not own the Order lifecycle: it only reflects a
worksheet transition onto its parent order through this one call.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class OrderStore(Protocol):
    """Protocol for updating the status of the order behind a worksheet."""

    def set_order_status(self, order_id: int, status: str) -> str | None:
        """
        Set the order status.

        Runs inside the transition's transaction: raising rolls the whole
        transition back.

        Args:
            order_id: Primary key of the order
            status: New OrderStatus value

        Returns:
            The previous status, or None when it was unchanged
        """
        ...
