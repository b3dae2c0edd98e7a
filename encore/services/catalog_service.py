from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Iterable, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from encore.schemas.records import Instrument, InstrumentDraft, Rental, RentalStatus, Review, ReviewDraft
from encore.services.errors import BookingRejectedError
from encore.services.pricing_service import as_money

if TYPE_CHECKING:
    from encore.services.backend_gateway import BackendGateway


LOGGER = logging.getLogger("encore.catalog")

ALL_CATEGORIES = "All"
CATEGORIES = ["Guitar", "Piano", "Drums", "Bass", "Strings", "Brass", "DJ / Electronic", "Other"]
BROWSE_CATEGORIES = [ALL_CATEGORIES, "Guitar", "Piano", "Drums", "Brass", "Strings", "DJ / Electronic"]
EMOJI_OPTIONS = ["🎸", "🎹", "🥁", "🎷", "🎻", "🎺", "🪕", "🎵", "🎧", "🪗"]
EARNING_STATES = {RentalStatus.CONFIRMED, RentalStatus.ACTIVE, RentalStatus.COMPLETED}


def filter_instruments(
    instruments: Iterable[Instrument],
    category: str = ALL_CATEGORIES,
    search: str = "",
) -> list[Instrument]:
    wanted = (category or ALL_CATEGORIES).strip()
    needle = (search or "").strip().casefold()
    output: list[Instrument] = []
    for instrument in instruments:
        if wanted != ALL_CATEGORIES and instrument.category != wanted:
            continue
        if needle and needle not in instrument.name.casefold() and needle not in instrument.category.casefold():
            continue
        output.append(instrument)
    return output


class NewListing(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = ""
    category: str = "Guitar"
    description: str = ""
    price_per_day: str | int | float | Decimal = ""
    location: str = ""
    image_emoji: str = "🎸"


def _parse_price(raw: str | int | float | Decimal) -> Decimal:
    try:
        price = as_money(str(raw).strip() if isinstance(raw, str) else raw)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid price per day: {raw!r}") from exc
    if not price.is_finite() or price < 0:
        raise ValueError(f"Invalid price per day: {raw!r}")
    return price


def build_listing(form: NewListing, host_id: str) -> InstrumentDraft:
    name = form.name.strip()
    if not name:
        raise ValueError("Listing name is required")
    category = form.category if form.category in CATEGORIES else "Other"
    return InstrumentDraft(
        host_id=host_id,
        name=name,
        category=category,
        description=form.description.strip(),
        price_per_day=_parse_price(form.price_per_day),
        image_emoji=form.image_emoji or EMOJI_OPTIONS[0],
        location=form.location.strip(),
        is_available=True,
        rating=0,
        review_count=0,
    )


def toggle_availability(instrument: Instrument, acting_host_id: str) -> Instrument:
    if instrument.host_id != acting_host_id:
        raise PermissionError(f"Only the owning host can change listing {instrument.id}")
    return instrument.model_copy(update={"is_available": not instrument.is_available})


async def publish_listing(gateway: "BackendGateway", draft: InstrumentDraft) -> Instrument:
    instrument = await gateway.insert_record("instruments", draft)
    LOGGER.info("Listing published id=%s host_id=%s", instrument.id, instrument.host_id)
    return instrument


async def push_availability(gateway: "BackendGateway", instrument: Instrument, acting_host_id: str) -> Instrument:
    toggled = toggle_availability(instrument, acting_host_id)
    stored = await gateway.update_record("instruments", toggled.id, {"is_available": toggled.is_available})
    LOGGER.info("Listing availability id=%s available=%s", stored.id, stored.is_available)
    return stored


def host_earnings(rentals: Iterable[Rental], host_id: Optional[str] = None) -> Decimal:
    total = Decimal("0")
    for rental in rentals:
        if host_id is not None and rental.host_id != host_id:
            continue
        if rental.status in EARNING_STATES:
            total += rental.total_price
    return total


def summarize_reviews(reviews: Sequence[Review]) -> tuple[float, int]:
    if not reviews:
        return 0.0, 0
    return round(sum(review.rating for review in reviews) / len(reviews), 1), len(reviews)


def attach_review(existing: Iterable[ReviewDraft], review: ReviewDraft, rental: Rental) -> ReviewDraft:
    """Checks that ``review`` may be left for ``rental``: completed, and at most one per rental."""
    if review.rental_id != rental.id:
        raise ValueError("Review does not belong to this rental")
    if rental.status != RentalStatus.COMPLETED:
        raise BookingRejectedError("Only completed rentals can be reviewed")
    for other in existing:
        if other.rental_id == rental.id:
            raise BookingRejectedError(f"Rental {rental.id} already has a review")
    return review
