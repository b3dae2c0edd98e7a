from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING, Callable, Iterable, Sequence

from encore.schemas.records import Instrument, Rental, RentalDraft, RentalStatus
from encore.services.errors import BookingRejectedError
from encore.services.pricing_service import as_date, quote_rental

if TYPE_CHECKING:
    from encore.config import EncoreSettings
    from encore.services.backend_gateway import BackendGateway


LOGGER = logging.getLogger("encore.rentals")

BLOCKING_STATES = {RentalStatus.PENDING, RentalStatus.CONFIRMED, RentalStatus.ACTIVE}

BookingValidator = Callable[[RentalDraft, Sequence[Rental]], None]


def build_rental_request(
    instrument: Instrument,
    renter_id: str,
    start_date: date | datetime | str,
    end_date: date | datetime | str,
) -> RentalDraft:
    if not instrument.is_available:
        raise BookingRejectedError(f"{instrument.name} is not available")
    quote = quote_rental(instrument.price_per_day, start_date, end_date)
    return RentalDraft(
        instrument_id=instrument.id,
        renter_id=renter_id,
        host_id=instrument.host_id,
        start_date=as_date(start_date),
        end_date=as_date(end_date),
        total_price=quote.total,
        status=RentalStatus.PENDING,
        instrument_name=instrument.name,
        instrument_emoji=instrument.image_emoji,
    )


def _booked_range(rental: RentalDraft) -> tuple[date, date]:
    # same-day bookings still hold the instrument for one day
    start = rental.start_date
    end = max(rental.end_date, start + timedelta(days=1))
    return start, end


def ranges_overlap(first: RentalDraft, second: RentalDraft) -> bool:
    first_start, first_end = _booked_range(first)
    second_start, second_end = _booked_range(second)
    return first_start < second_end and second_start < first_end


def reject_overlapping_bookings(draft: RentalDraft, existing: Sequence[Rental]) -> None:
    for rental in existing:
        if rental.instrument_id != draft.instrument_id:
            continue
        if rental.status not in BLOCKING_STATES:
            continue
        if ranges_overlap(draft, rental):
            raise BookingRejectedError(
                f"{draft.instrument_name} is already booked from {rental.start_date} to {rental.end_date}"
            )


def validators_from_settings(settings: "EncoreSettings") -> list[BookingValidator]:
    if settings.reject_overlapping_bookings:
        return [reject_overlapping_bookings]
    return []


def validate_booking(
    draft: RentalDraft,
    existing: Sequence[Rental] = (),
    validators: Iterable[BookingValidator] = (),
) -> None:
    for validator in validators:
        validator(draft, existing)


async def create_booking(
    gateway: "BackendGateway",
    draft: RentalDraft,
    validators: Iterable[BookingValidator] = (),
    existing: Sequence[Rental] | None = None,
) -> Rental:
    validators = list(validators)
    if validators and existing is None:
        existing = await gateway.fetch_records(
            "rentals",
            {"instrument_id": f"eq.{draft.instrument_id}"},
        )
    validate_booking(draft, existing or (), validators)
    rental = await gateway.insert_record("rentals", draft)
    LOGGER.info(
        "Booking requested id=%s instrument_id=%s renter_id=%s days=%s",
        rental.id,
        rental.instrument_id,
        rental.renter_id,
        rental.days_count,
    )
    return rental
