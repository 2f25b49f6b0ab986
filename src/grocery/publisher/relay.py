"""Publisher relay: forwards every committed domain event to the outbound stream.

Registered on the ``$all`` stream, so it sees each event once its unit of
work has committed and never an event from a write that was rolled back.
"""

import structlog
from protean.utils.mixins import handle

from grocery.domain import grocery
from grocery.publisher import get_publisher

logger = structlog.get_logger(__name__)


@grocery.event_handler(stream_category="$all")
class EventRelay:
    @handle("$any")
    def forward(self, event) -> None:
        envelope = get_publisher().publish([event])[0]
        logger.debug("Event relayed", event_type=envelope.event_type, order_id=envelope.order_id)
