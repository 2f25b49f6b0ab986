"""Typed fulfillment errors.

Client errors derive from protean's ``ValidationError``; conflicts and
capacity problems derive from ``InvalidOperationError``. Every error carries
a ``field -> [messages]`` dict like the rest of the domain's exceptions, so
the API layer can serialise them uniformly.
"""

from protean.exceptions import InvalidOperationError, ObjectNotFoundError, ValidationError


class InvalidTransition(ValidationError):
    """The requested edge is not in the transition table."""

    def __init__(self, current: str, requested: str, role: str, reason: str | None = None):
        self.current = current
        self.requested = requested
        self.role = role
        message = f"Cannot transition from {current} to {requested} as {role}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__({"status": [message]})


class RoleNotPermitted(InvalidTransition):
    """The edge exists but this actor may not trigger it."""


class TerminalState(ValidationError):
    def __init__(self, order_id: str, status: str):
        self.order_id = order_id
        self.status = status
        super().__init__({"status": [f"Order {order_id} is {status} and accepts no further transitions"]})


class CancellationRequiresNote(ValidationError):
    def __init__(self):
        super().__init__({"note": ["A cancellation reason is required"]})


class PaymentNotSettled(ValidationError):
    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__({"payment": [f"Payment for order {order_id} has not been settled"]})


class InvalidOrder(ValidationError):
    """Placement data violates an order invariant."""

    def __init__(self, field: str, message: str):
        super().__init__({field: [message]})


class QuantityOutOfRange(ValidationError):
    def __init__(self, item_id: str, picked_quantity: int, ordered_quantity: int):
        self.item_id = item_id
        self.picked_quantity = picked_quantity
        self.ordered_quantity = ordered_quantity
        super().__init__(
            {
                "picked_quantity": [
                    f"Picked quantity {picked_quantity} for item {item_id} "
                    f"must be between 0 and {ordered_quantity}"
                ]
            }
        )


class ItemNotFound(ObjectNotFoundError):
    def __init__(self, order_id: str, item_id: str):
        self.order_id = order_id
        self.item_id = item_id
        super().__init__({"item_id": [f"Item {item_id} is not part of order {order_id}"]})


class VersionConflict(InvalidOperationError):
    """A stale write: the caller must reload and may retry."""

    def __init__(self, record_id: str, expected_version: int | None, actual_version: int | None = None):
        self.record_id = record_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        if actual_version is None:
            message = f"{record_id} was changed by another writer after version {expected_version}; reload and retry"
        else:
            message = f"Expected version {expected_version} of {record_id}, found {actual_version}; reload and retry"
        super().__init__({"version": [message]})


class PackingNotOpen(InvalidOperationError):
    def __init__(self, order_id: str, status: str):
        self.order_id = order_id
        self.status = status
        super().__init__({"packing": [f"Packing for order {order_id} is not open while it is {status}"]})


class PersonnelUnavailable(InvalidOperationError):
    def __init__(self, personnel_id: str, reason: str):
        self.personnel_id = personnel_id
        self.reason = reason
        super().__init__({"personnel": [f"{personnel_id} cannot take the order: {reason}"]})


class AssignmentRetryExhausted(InvalidOperationError):
    def __init__(self, order_id: str, role: str, attempts: int):
        self.order_id = order_id
        self.role = role
        self.attempts = attempts
        super().__init__(
            {"assignment": [f"Could not assign a {role} to order {order_id} after {attempts} attempts"]}
        )
