"""Work queue membership: commands and handler."""

from protean import handle
from protean.fields import Boolean, Identifier, String
from protean.utils.globals import current_domain

from grocery.domain import grocery
from grocery.order.order import Priority
from grocery.staffing.personnel import FulfillmentRole
from grocery.staffing.work_queue import WorkQueue, load_queue


@grocery.command(part_of=WorkQueue)
class EnqueueOrder:
    role = String(required=True, choices=FulfillmentRole)
    order_id = Identifier(required=True)
    priority = String(choices=Priority, default=Priority.STANDARD.value)
    at_head = Boolean(default=False)


@grocery.command(part_of=WorkQueue)
class DequeueOrder:
    role = String(required=True, choices=FulfillmentRole)
    order_id = Identifier(required=True)


@grocery.command_handler(part_of=WorkQueue)
class QueueHandler:
    @handle(EnqueueOrder)
    def enqueue(self, command):
        """Returns False when the order was already queued for the role."""
        queue = load_queue(FulfillmentRole(command.role))
        if not queue.push(str(command.order_id), command.priority, at_head=command.at_head):
            return False
        current_domain.repository_for(WorkQueue).add(queue)
        return True

    @handle(DequeueOrder)
    def dequeue(self, command):
        queue = load_queue(FulfillmentRole(command.role))
        if not queue.remove(str(command.order_id)):
            return False
        current_domain.repository_for(WorkQueue).add(queue)
        return True
