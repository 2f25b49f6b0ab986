"""Order placement and payment settlement: commands and handler."""

import json

import structlog
from protean import handle
from protean.fields import Boolean, Identifier, String, Text
from protean.utils.globals import current_domain

from grocery.domain import grocery
from grocery.order.order import Order, Priority

logger = structlog.get_logger(__name__)


@grocery.command(part_of=Order)
class PlaceOrder:
    """Accept an order handed over by checkout."""

    vendor_id = String(required=True, max_length=100)
    customer_id = String(required=True, max_length=100)
    items = Text(required=True)  # JSON list of line item dicts
    pricing = Text(required=True)  # JSON dict of totals
    address = Text(required=True)  # JSON dict
    priority = String(max_length=20, default=Priority.STANDARD.value)
    payment_settled = Boolean(default=True)


@grocery.command(part_of=Order)
class SettlePayment:
    """The payment collaborator reports the order's payment as settled."""

    order_id = Identifier(required=True)


@grocery.command_handler(part_of=Order)
class PlacementHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        items = json.loads(command.items)
        order = Order.create(
            command.vendor_id,
            command.customer_id,
            items,
            json.loads(command.pricing),
            json.loads(command.address),
            priority=command.priority,
            payment_settled=command.payment_settled,
        )
        current_domain.repository_for(Order).add(order)
        logger.info(
            "Order placed",
            order_id=str(order.id),
            vendor_id=command.vendor_id,
            item_count=len(items),
            total=order.pricing.total,
        )
        return str(order.id)

    @handle(SettlePayment)
    def settle_payment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        if not order.mark_payment_settled():
            return False
        repo.add(order)
        logger.info("Payment settled", order_id=str(order.id), version=order.version)
        return True
