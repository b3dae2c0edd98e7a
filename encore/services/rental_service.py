from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable, Iterator, NamedTuple

from encore.schemas.records import Rental, RentalStatus
from encore.services.errors import InvalidTransitionError

if TYPE_CHECKING:
    from encore.services.backend_gateway import BackendGateway


LOGGER = logging.getLogger("encore.rentals")

STATE_TRANSITIONS = {
    RentalStatus.PENDING: {RentalStatus.CONFIRMED, RentalStatus.CANCELLED},
    RentalStatus.CONFIRMED: {RentalStatus.ACTIVE, RentalStatus.CANCELLED},
    RentalStatus.ACTIVE: {RentalStatus.COMPLETED},
    RentalStatus.COMPLETED: set(),
    RentalStatus.CANCELLED: set(),
}
HOST_PENDING_STATES = {RentalStatus.PENDING}
HOST_ACTIVE_STATES = {RentalStatus.CONFIRMED, RentalStatus.ACTIVE}
PAST_STATES = {RentalStatus.COMPLETED, RentalStatus.CANCELLED}
RENTER_ACTIVE_STATES = {RentalStatus.PENDING, RentalStatus.CONFIRMED, RentalStatus.ACTIVE}


def _normalize_state(raw: RentalStatus | str) -> RentalStatus:
    if isinstance(raw, RentalStatus):
        return raw
    return RentalStatus(str(raw).strip().lower())


def can_transition(current: RentalStatus | str, target: RentalStatus | str) -> bool:
    return _normalize_state(target) in STATE_TRANSITIONS[_normalize_state(current)]


def transition_state(rental: Rental, target_state: RentalStatus | str) -> Rental:
    current = _normalize_state(rental.status)
    target = _normalize_state(target_state)
    if target not in STATE_TRANSITIONS[current]:
        raise InvalidTransitionError(current.value, target.value)
    return rental.model_copy(update={"status": target})


class HostBookingGroups(NamedTuple):
    pending: list[Rental]
    active: list[Rental]
    past: list[Rental]


class RenterRentalGroups(NamedTuple):
    active: list[Rental]
    history: list[Rental]


def group_host_bookings(rentals: Iterable[Rental]) -> HostBookingGroups:
    groups = HostBookingGroups(pending=[], active=[], past=[])
    for rental in rentals:
        status = _normalize_state(rental.status)
        if status in HOST_PENDING_STATES:
            groups.pending.append(rental)
        elif status in HOST_ACTIVE_STATES:
            groups.active.append(rental)
        else:
            groups.past.append(rental)
    return groups


def group_renter_rentals(rentals: Iterable[Rental]) -> RenterRentalGroups:
    groups = RenterRentalGroups(active=[], history=[])
    for rental in rentals:
        if _normalize_state(rental.status) in RENTER_ACTIVE_STATES:
            groups.active.append(rental)
        else:
            groups.history.append(rental)
    return groups


async def push_status(
    gateway: "BackendGateway",
    rental: Rental,
    expected: RentalStatus | None = None,
) -> Rental | None:
    """Write the rental's status, and nothing else, back to the ``rentals`` table.

    With ``expected`` the write only lands while the stored row still holds that
    status, and ``None`` comes back when it no longer does. The stored row is
    returned otherwise.
    """
    filters = {"id": f"eq.{rental.id}"}
    if expected is not None:
        filters["status"] = f"eq.{_normalize_state(expected).value}"
    stored = await gateway.update_records("rentals", filters, {"status": rental.status.value})
    return stored[0] if stored else None


class RentalBook:
    """The collection of rentals a renter or host view is currently showing."""

    def __init__(self, rentals: Iterable[Rental] = ()):
        self._rentals: list[Rental] = list(rentals)

    def __iter__(self) -> Iterator[Rental]:
        return iter(list(self._rentals))

    def __len__(self) -> int:
        return len(self._rentals)

    def get(self, rental_id: str) -> Rental | None:
        for rental in self._rentals:
            if rental.id == rental_id:
                return rental
        return None

    def replace(self, rental: Rental) -> None:
        for idx, existing in enumerate(self._rentals):
            if existing.id == rental.id:
                self._rentals[idx] = rental
                return
        raise KeyError(rental.id)

    def reset(self, rentals: Iterable[Rental]) -> None:
        self._rentals = list(rentals)

    def transition(self, rental_id: str, target_state: RentalStatus | str) -> Rental:
        rental = self.get(rental_id)
        if rental is None:
            raise KeyError(rental_id)
        updated = transition_state(rental, target_state)
        self.replace(updated)
        LOGGER.info("Rental status changed id=%s from=%s to=%s", rental_id, rental.status.value, updated.status.value)
        return updated

    def _decide_pending(self, rental_id: str, target: RentalStatus) -> Rental | None:
        rental = self.get(rental_id)
        if rental is None:
            LOGGER.info("Rental decision ignored id=%s reason=not_found", rental_id)
            return None
        if rental.status != RentalStatus.PENDING:
            LOGGER.info("Rental decision ignored id=%s reason=status_%s", rental_id, rental.status.value)
            return None
        return transition_state(rental, target)

    def approve(self, rental_id: str) -> Rental | None:
        updated = self._decide_pending(rental_id, RentalStatus.CONFIRMED)
        if updated is not None:
            self.replace(updated)
        return updated

    def decline(self, rental_id: str) -> Rental | None:
        updated = self._decide_pending(rental_id, RentalStatus.CANCELLED)
        if updated is not None:
            self.replace(updated)
        return updated

    async def approve_remote(self, gateway: "BackendGateway", rental_id: str) -> Rental | None:
        return await self._decide_remote(gateway, rental_id, RentalStatus.CONFIRMED)

    async def decline_remote(self, gateway: "BackendGateway", rental_id: str) -> Rental | None:
        return await self._decide_remote(gateway, rental_id, RentalStatus.CANCELLED)

    async def _decide_remote(self, gateway: "BackendGateway", rental_id: str, target: RentalStatus) -> Rental | None:
        updated = self._decide_pending(rental_id, target)
        if updated is None:
            return None
        stored = await push_status(gateway, updated, expected=RentalStatus.PENDING)
        if stored is None:
            LOGGER.info("Rental decision ignored id=%s reason=remote_not_pending", rental_id)
            return None
        if self.get(rental_id) is not None:
            self.replace(stored)
        LOGGER.info("Rental decision stored id=%s status=%s", rental_id, stored.status.value)
        return stored

    def host_groups(self) -> HostBookingGroups:
        return group_host_bookings(self._rentals)

    def renter_groups(self) -> RenterRentalGroups:
        return group_renter_rentals(self._rentals)
