"""Grocery bounded context: Order Fulfillment Workflow.

Moves marketplace orders from placement to completion across vendors,
pickers, riders and the system itself. Orders, packing progress, personnel
and assignment queues are CQRS aggregates written through commands; the
store's version check rejects stale writes, and committed events flow to the
outbound publisher through an event handler.
"""

import structlog
from protean.domain import Domain

grocery = Domain(name="grocery")

logger = structlog.get_logger(__name__)
