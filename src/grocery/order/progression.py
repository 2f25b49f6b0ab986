"""Order progression: status transitions and personnel assignment.

Both commands load the order, apply one change and save it. The repository
checks the record's stored version on save, so a writer that loaded the
order before someone else saved it is rejected by the store rather than
overwriting the newer record.
"""

import structlog
from protean import handle
from protean.exceptions import ExpectedVersionError
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from grocery.domain import grocery
from grocery.errors import TerminalState, VersionConflict
from grocery.order.order import Actor, Order
from grocery.order.transitions import ActorRole
from grocery.staffing.personnel import FulfillmentRole

logger = structlog.get_logger(__name__)


@grocery.command(part_of=Order)
class RequestTransition:
    """Move an order to ``status`` on behalf of an actor.

    ``expected_version`` is the version the actor last read; internal
    callers leave it empty after reading the order themselves.
    """

    order_id = Identifier(required=True)
    expected_version = Integer(min_value=1)
    status = String(required=True, max_length=50)
    actor_id = String(required=True, max_length=100)
    actor_role = String(required=True, choices=ActorRole)
    note = Text()
    fulfillment_style = String(max_length=20)


@grocery.command(part_of=Order)
class AssignOrder:
    """Record the picker or rider the assignment queue matched with the order."""

    order_id = Identifier(required=True)
    personnel_id = String(required=True, max_length=100)
    role = String(required=True, choices=FulfillmentRole)


@grocery.command_handler(part_of=Order)
class ProgressionHandler:
    @handle(RequestTransition)
    def request_transition(self, command):
        """Returns the status the order left."""
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        if order.is_terminal():
            raise TerminalState(str(order.id), order.status)
        if command.expected_version is not None and order.version != command.expected_version:
            raise VersionConflict(str(order.id), command.expected_version, order.version)

        loaded_version = order.version
        previous = order.status
        order.apply_transition(
            command.status,
            Actor(command.actor_id, ActorRole(command.actor_role)),
            command.note,
            style=command.fulfillment_style,
        )
        try:
            repo.add(order)
        except ExpectedVersionError as exc:
            logger.warning("Stale order write rejected", order_id=str(order.id), loaded_version=loaded_version)
            raise VersionConflict(str(order.id), loaded_version) from exc
        return previous

    @handle(AssignOrder)
    def assign_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        if command.role == FulfillmentRole.PICKER.value:
            order.assign_picker(command.personnel_id)
        else:
            order.assign_rider(command.personnel_id)
        repo.add(order)
