"""Assignment Queue: role-scoped work queues and personnel matching.

An order sits in at most one role's queue at a time: enqueueing it for one
role removes it from the other.

Candidate selection scans personnel of the role that are ``available`` with
spare capacity and picks the lowest load, then the highest rating, then the
earliest id. ``assign`` reserves a slot on the selected person only if their
record is still the version that was selected.
"""

from dataclasses import dataclass

import structlog
from protean.utils.globals import current_domain

from grocery.order.order import Priority
from grocery.settings import Settings, get_settings
from grocery.staffing.personnel import Availability, FulfillmentRole, Personnel
from grocery.staffing.queueing import DequeueOrder, EnqueueOrder
from grocery.staffing.rostering import ChangeAvailability, RegisterPersonnel, ReleasePersonnel, ReservePersonnel
from grocery.staffing.work_queue import load_queue

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AssignmentResult:
    order_id: str
    personnel_id: str
    role: str
    load: int


def _role(role) -> FulfillmentRole:
    return role if isinstance(role, FulfillmentRole) else FulfillmentRole(role)


class AssignmentQueue:
    """Owns the personnel records and the per-role work queues."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    @property
    def _personnel(self):
        return current_domain.repository_for(Personnel)

    # -------------------------------------------------------------------
    # Queue operations
    # -------------------------------------------------------------------
    def enqueue(self, order, role, at_head: bool = False) -> bool:
        """Queue ``order`` for ``role``; returns False if it was already queued there."""
        role = _role(role)
        order_id = str(order.id)
        for other in FulfillmentRole:
            if other != role:
                self.dequeue(order_id, other)

        added = current_domain.process(
            EnqueueOrder(role=role.value, order_id=order_id, priority=order.priority, at_head=at_head),
            asynchronous=False,
        )
        if added:
            logger.info("Order queued", order_id=order_id, role=role.value, priority=order.priority, at_head=at_head)
        return added

    def dequeue(self, order_id: str, role=None) -> bool:
        """Remove ``order_id`` from one role's queue, or from every queue."""
        roles = [_role(role)] if role is not None else list(FulfillmentRole)
        removed = False
        for each in roles:
            if not self.is_queued(order_id, each):
                continue
            removed = (
                current_domain.process(DequeueOrder(role=each.value, order_id=str(order_id)), asynchronous=False)
                or removed
            )
        return removed

    def requeue(self, order, role) -> None:
        """Move ``order`` to the head of its tier after a lost assignment race."""
        self.dequeue(str(order.id), role)
        self.enqueue(order, role, at_head=True)

    def pending(self, role) -> list[str]:
        return load_queue(_role(role)).pending()

    def tiers(self, role) -> dict[str, list[str]]:
        queue = load_queue(_role(role))
        return {priority.value: queue.tier(priority.value) for priority in Priority}

    def peek(self, role) -> str | None:
        pending = self.pending(role)
        return pending[0] if pending else None

    def is_queued(self, order_id: str, role) -> bool:
        return load_queue(_role(role)).contains(str(order_id))

    # -------------------------------------------------------------------
    # Personnel
    # -------------------------------------------------------------------
    def register(
        self,
        personnel_id: str,
        role,
        name: str | None = None,
        rating: float = 0.0,
        max_concurrency: int | None = None,
        availability: str = Availability.AVAILABLE.value,
    ) -> Personnel:
        role = _role(role)
        current_domain.process(
            RegisterPersonnel(
                personnel_id=personnel_id,
                role=role.value,
                name=name,
                rating=rating,
                max_concurrency=max_concurrency or self.settings.max_concurrency(role.value),
                availability=availability,
            ),
            asynchronous=False,
        )
        logger.info("Personnel registered", personnel_id=personnel_id, role=role.value)
        return self.get_personnel(personnel_id)

    def get_personnel(self, personnel_id: str) -> Personnel:
        return self._personnel.get(personnel_id)

    def update_availability(self, personnel_id: str, availability: str) -> tuple[Personnel, bool]:
        """Returns the person and whether their availability changed."""
        changed = current_domain.process(
            ChangeAvailability(personnel_id=personnel_id, availability=availability),
            asynchronous=False,
        )
        person = self.get_personnel(personnel_id)
        if changed:
            logger.info("Personnel availability changed", personnel_id=personnel_id, availability=person.availability)
        return person, changed

    def candidates(self, role) -> list[Personnel]:
        role = _role(role)
        people = (
            self._personnel._dao.query.filter(role=role.value, availability=Availability.AVAILABLE.value)
            .all()
            .items
        )
        return sorted((p for p in people if p.has_capacity()), key=lambda p: p.score_key())

    def next_available_personnel(self, role) -> Personnel | None:
        """Best candidate for ``role``, or None when nobody can take work."""
        candidates = self.candidates(role)
        return candidates[0] if candidates else None

    def assign(self, order, personnel: Personnel) -> AssignmentResult:
        """Reserve a slot on ``personnel`` for ``order``.

        Fails with ``PersonnelUnavailable`` if the record changed since it was
        selected or can no longer take the order.
        """
        order_id = str(order.id)
        load = current_domain.process(
            ReservePersonnel(
                personnel_id=personnel.personnel_id,
                order_id=order_id,
                selected_version=personnel.version,
            ),
            asynchronous=False,
        )
        logger.info(
            "Personnel reserved",
            order_id=order_id,
            personnel_id=personnel.personnel_id,
            role=personnel.role,
            load=load,
        )
        return AssignmentResult(
            order_id=order_id,
            personnel_id=personnel.personnel_id,
            role=personnel.role,
            load=load,
        )

    def release(self, personnel_id: str, order_id: str, completed: bool = False) -> bool:
        """Free ``personnel_id``'s slot for ``order_id``; returns False if none was held."""
        released = current_domain.process(
            ReleasePersonnel(personnel_id=personnel_id, order_id=str(order_id), completed=completed),
            asynchronous=False,
        )
        if released:
            logger.info(
                "Personnel released",
                order_id=str(order_id),
                personnel_id=personnel_id,
                completed=completed,
            )
        return released
