"""Event publisher abstraction: pluggable outbound event stream."""

from grocery.settings import get_settings

_publisher_instance = None


def get_publisher():
    """Return the configured event publisher (singleton).

    Uses the in-memory outbox publisher by default. Configure via the
    EVENT_PUBLISHER environment variable.
    """
    global _publisher_instance
    if _publisher_instance is None:
        adapter = get_settings().event_publisher
        if adapter == "memory":
            from grocery.publisher.memory_adapter import InMemoryEventPublisher

            _publisher_instance = InMemoryEventPublisher()
        else:
            raise ValueError(f"Unknown event publisher: {adapter}")
    return _publisher_instance


def reset_publisher():
    """Reset the publisher singleton (useful for testing)."""
    global _publisher_instance
    _publisher_instance = None
