"""Packing progress: commands and handler for the per-order checklist."""

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Boolean, Identifier, Integer, String
from protean.utils.globals import current_domain

from grocery.domain import grocery
from grocery.order.order import Order
from grocery.packing.packing import PackingState


@grocery.command(part_of=PackingState)
class BeginPacking:
    """Open the checklist for an order that was just handed to a picker."""

    order_id = Identifier(required=True)
    actor_id = String(max_length=100, default="system")


@grocery.command(part_of=PackingState)
class RecordItemProgress:
    order_id = Identifier(required=True)
    item_id = String(required=True, max_length=100)
    picked_quantity = Integer()
    packed = Boolean()
    note = String(max_length=500)
    actor_id = String(max_length=100, default="system")


@grocery.command(part_of=PackingState)
class ArchivePacking:
    """Close the checklist once the order leaves the picking phase."""

    order_id = Identifier(required=True)


@grocery.command_handler(part_of=PackingState)
class PackingHandler:
    @handle(BeginPacking)
    def begin_packing(self, command):
        """Returns False when the order already has a checklist."""
        repo = current_domain.repository_for(PackingState)
        try:
            repo.get(command.order_id)
        except ObjectNotFoundError:
            order = current_domain.repository_for(Order).get(command.order_id)
            repo.add(PackingState.begin(order, actor_id=command.actor_id))
            return True
        return False

    @handle(RecordItemProgress)
    def record_item_progress(self, command):
        repo = current_domain.repository_for(PackingState)
        state = repo.get(command.order_id)
        changed = state.update_item_progress(
            command.item_id,
            command.picked_quantity,
            command.packed,
            command.note,
            actor_id=command.actor_id,
        )
        if changed:
            repo.add(state)
        return changed

    @handle(ArchivePacking)
    def archive_packing(self, command):
        repo = current_domain.repository_for(PackingState)
        try:
            state = repo.get(command.order_id)
        except ObjectNotFoundError:
            return False
        if not state.archive():
            return False
        repo.add(state)
        return True
