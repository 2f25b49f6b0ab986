"""Packing Tracker: reads PackingState records and issues packing commands."""

from dataclasses import dataclass

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from grocery.packing.packing import PackingState
from grocery.packing.progress import ArchivePacking, BeginPacking, RecordItemProgress

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PackingUpdate:
    """Outcome of one progress update."""

    state: PackingState
    changed: bool


class PackingTracker:
    @property
    def _repo(self):
        return current_domain.repository_for(PackingState)

    def find(self, order_id: str) -> PackingState | None:
        try:
            return self._repo.get(str(order_id))
        except ObjectNotFoundError:
            return None

    def get(self, order_id: str) -> PackingState:
        return self._repo.get(str(order_id))

    def begin_packing(self, order, actor_id: str = "system") -> PackingState:
        """Open the order's checklist, or return the existing one untouched."""
        started = current_domain.process(BeginPacking(order_id=str(order.id), actor_id=actor_id), asynchronous=False)
        state = self.get(order.id)
        if started:
            logger.info("Packing started", order_id=str(order.id), item_count=len(state.item_progress))
        return state

    def update_item_progress(
        self,
        order_id: str,
        item_id: str,
        picked_quantity: int,
        packed: bool | None = None,
        note: str | None = None,
        actor_id: str = "system",
    ) -> PackingUpdate:
        changed = current_domain.process(
            RecordItemProgress(
                order_id=str(order_id),
                item_id=item_id,
                picked_quantity=picked_quantity,
                packed=packed,
                note=note,
                actor_id=actor_id,
            ),
            asynchronous=False,
        )
        state = self.get(order_id)
        if changed:
            logger.info(
                "Packing progress recorded",
                order_id=str(order_id),
                item_id=item_id,
                picked_quantity=picked_quantity,
                fully_packed=state.is_fully_packed(),
            )
        return PackingUpdate(state=state, changed=changed)

    def archive(self, order_id: str) -> PackingState | None:
        archived = current_domain.process(ArchivePacking(order_id=str(order_id)), asynchronous=False)
        state = self.find(order_id)
        if archived:
            logger.info("Packing archived", order_id=str(order_id), accuracy=state.accuracy())
        return state
