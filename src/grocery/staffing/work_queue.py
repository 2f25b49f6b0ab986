"""WorkQueue aggregate: the ordered backlog of orders awaiting one role.

There is one record per fulfillment role. Orders wait in two FIFO tiers
(express ahead of standard); an order that loses an assignment race goes
back to the head of its tier.
"""

import json
from datetime import UTC, datetime

from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Integer, String, Text
from protean.utils.globals import current_domain

from grocery.domain import grocery
from grocery.order.order import Priority
from grocery.staffing.personnel import FulfillmentRole


@grocery.aggregate
class WorkQueue:
    role = String(identifier=True, required=True, choices=FulfillmentRole)
    express_order_ids = Text()  # JSON list, FIFO
    standard_order_ids = Text()  # JSON list, FIFO
    version = Integer(default=1, min_value=1)
    updated_at = DateTime()

    @classmethod
    def open(cls, role: FulfillmentRole):
        return cls(
            role=role.value,
            express_order_ids=json.dumps([]),
            standard_order_ids=json.dumps([]),
            version=1,
            updated_at=datetime.now(UTC),
        )

    def _tier_field(self, priority: str) -> str:
        return "express_order_ids" if priority == Priority.EXPRESS.value else "standard_order_ids"

    def tier(self, priority: str) -> list[str]:
        return json.loads(getattr(self, self._tier_field(priority)) or "[]")

    def pending(self) -> list[str]:
        return self.tier(Priority.EXPRESS.value) + self.tier(Priority.STANDARD.value)

    def contains(self, order_id: str) -> bool:
        return order_id in self.pending()

    def push(self, order_id: str, priority: str, at_head: bool = False) -> bool:
        if self.contains(order_id):
            return False
        ids = self.tier(priority)
        if at_head:
            ids.insert(0, order_id)
        else:
            ids.append(order_id)
        setattr(self, self._tier_field(priority), json.dumps(ids))
        self._touch()
        return True

    def remove(self, order_id: str) -> bool:
        for priority in (Priority.EXPRESS.value, Priority.STANDARD.value):
            ids = self.tier(priority)
            if order_id in ids:
                ids.remove(order_id)
                setattr(self, self._tier_field(priority), json.dumps(ids))
                self._touch()
                return True
        return False

    def _touch(self) -> None:
        self.version += 1
        self.updated_at = datetime.now(UTC)


def load_queue(role: FulfillmentRole) -> WorkQueue:
    """The stored queue for ``role``, or a fresh empty one before its first write."""
    try:
        return current_domain.repository_for(WorkQueue).get(role.value)
    except ObjectNotFoundError:
        return WorkQueue.open(role)
