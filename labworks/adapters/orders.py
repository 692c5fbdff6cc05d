"""
Django Order Store -- updates labworks.Order rows directly.

Configuration:
    LABWORKS = {
        "ORDER_STORE": "labworks.adapters.orders.DjangoOrderStore",
    }
"""

from __future__ import annotations

import logging

from labworks.exceptions import LabError

logger = logging.getLogger(__name__)


class DjangoOrderStore:
    """OrderStore backed by the labworks Order model."""

    def set_order_status(self, order_id: int, status: str) -> str | None:
        from labworks.models import Order, OrderStatus

        if status not in OrderStatus.values:
            raise LabError("INVALID_STATUS", status=status)

        try:
            order = Order.objects.select_for_update().get(pk=order_id)
        except Order.DoesNotExist:
            raise LabError("ORDER_NOT_FOUND", order_id=order_id)

        previous = order.status
        if previous == status:
            return None

        order.status = status
        order.save(update_fields=["status", "updated_at"])
        logger.info(
            f"Order {order.order_number}: {previous} → {status}",
            extra={"order_id": order_id, "previous": previous, "status": status},
        )
        return previous
