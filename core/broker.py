"""Paper broker: acknowledges market orders without sending them anywhere."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import List

from core.errors import OrderError
from core.types import OrderAck, OrderRequest

_SIDES = ("BUY", "SELL")


class PaperBroker:
    def __init__(self):
        self.orders: List[OrderAck] = []

    def place_order(self, order: OrderRequest) -> OrderAck:
        if order.side not in _SIDES:
            raise OrderError(f"{order.symbol}: unsupported side '{order.side}'")
        if order.quantity <= 0:
            raise OrderError(f"{order.symbol}: quantity must be > 0, got {order.quantity}")

        logging.info(
            "[PAPER] %s %s x%d (%s/%s on %s)",
            order.side, order.symbol, order.quantity,
            order.order_type, order.product, order.exchange,
        )
        ack = OrderAck(order_id=uuid.uuid4().hex[:12], request=order, placed_at=datetime.now())
        self.orders.append(ack)
        return ack
