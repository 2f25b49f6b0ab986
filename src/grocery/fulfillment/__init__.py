"""Fulfillment Coordinator: process-wide instance."""

_coordinator_instance = None


def get_coordinator():
    """Return the process-wide coordinator (singleton).

    The coordinator holds no record state of its own; every write goes
    through a domain command, so any number of requests may share it.
    """
    global _coordinator_instance
    if _coordinator_instance is None:
        from grocery.fulfillment.coordinator import FulfillmentCoordinator

        _coordinator_instance = FulfillmentCoordinator()
    return _coordinator_instance


def reset_coordinator():
    """Reset the coordinator singleton (useful for testing)."""
    global _coordinator_instance
    _coordinator_instance = None
