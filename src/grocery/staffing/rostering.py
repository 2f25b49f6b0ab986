"""Personnel roster: registration, check-in/out and slot reservations.

A reservation names the personnel version the caller selected. The handler
refuses it if the record moved on since then, and the repository refuses
the save if another reservation lands between this handler's read and its
write; either way the caller sees ``PersonnelUnavailable`` and selects again.
"""

import structlog
from protean import handle
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError
from protean.fields import Boolean, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from grocery.domain import grocery
from grocery.errors import PersonnelUnavailable
from grocery.staffing.personnel import Availability, FulfillmentRole, Personnel

logger = structlog.get_logger(__name__)


@grocery.command(part_of=Personnel)
class RegisterPersonnel:
    personnel_id = String(required=True, max_length=100)
    role = String(required=True, choices=FulfillmentRole)
    name = String(max_length=200)
    rating = Float(default=0.0, min_value=0.0, max_value=5.0)
    max_concurrency = Integer(required=True, min_value=1)
    availability = String(choices=Availability, default=Availability.AVAILABLE.value)


@grocery.command(part_of=Personnel)
class ChangeAvailability:
    personnel_id = String(required=True, max_length=100)
    availability = String(required=True, choices=Availability)


@grocery.command(part_of=Personnel)
class ReservePersonnel:
    personnel_id = String(required=True, max_length=100)
    order_id = Identifier(required=True)
    selected_version = Integer(required=True, min_value=1)


@grocery.command(part_of=Personnel)
class ReleasePersonnel:
    personnel_id = String(required=True, max_length=100)
    order_id = Identifier(required=True)
    completed = Boolean(default=False)


@grocery.command_handler(part_of=Personnel)
class RosterHandler:
    @handle(RegisterPersonnel)
    def register(self, command):
        repo = current_domain.repository_for(Personnel)
        try:
            repo.get(command.personnel_id)
        except ObjectNotFoundError:
            pass
        else:
            raise PersonnelUnavailable(command.personnel_id, "is already registered")

        person = Personnel.register(
            command.personnel_id,
            command.role,
            command.max_concurrency,
            name=command.name,
            rating=command.rating,
            availability=command.availability,
        )
        repo.add(person)
        return person.personnel_id

    @handle(ChangeAvailability)
    def change_availability(self, command):
        """Returns False when the person already had that availability."""
        repo = current_domain.repository_for(Personnel)
        person = repo.get(command.personnel_id)
        if not person.set_availability(command.availability):
            return False
        repo.add(person)
        return True

    @handle(ReservePersonnel)
    def reserve(self, command):
        repo = current_domain.repository_for(Personnel)
        person = repo.get(command.personnel_id)
        if person.version != command.selected_version:
            raise PersonnelUnavailable(
                command.personnel_id,
                f"changed since selection (version {command.selected_version}, now {person.version})",
            )
        person.reserve(str(command.order_id))
        try:
            repo.add(person)
        except ExpectedVersionError as exc:
            logger.warning(
                "Stale reservation rejected",
                personnel_id=command.personnel_id,
                order_id=str(command.order_id),
            )
            raise PersonnelUnavailable(command.personnel_id, "was reserved by another request") from exc
        return person.load

    @handle(ReleasePersonnel)
    def release(self, command):
        """Returns False when the person held no slot for the order."""
        repo = current_domain.repository_for(Personnel)
        try:
            person = repo.get(command.personnel_id)
        except ObjectNotFoundError:
            logger.warning(
                "Release for unknown personnel",
                personnel_id=command.personnel_id,
                order_id=str(command.order_id),
            )
            return False
        if not person.release(str(command.order_id), completed=command.completed):
            return False
        repo.add(person)
        return True
