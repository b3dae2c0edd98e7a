from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer

from encore.services.pricing_service import rental_days


Money = Annotated[
    Decimal,
    Field(ge=0),
    PlainSerializer(float, return_type=float, when_used="json"),
]


class UserRole(str, Enum):
    RENTER = "renter"
    HOST = "host"

    @classmethod
    def parse(cls, raw: object) -> "UserRole":
        value = str(raw or "").strip().lower()
        for role in cls:
            if role.value == value:
                return role
        return cls.RENTER


class RentalStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class User(_Record):
    id: str
    name: str
    email: str = ""
    role: UserRole = UserRole.RENTER
    avatar_url: Optional[str] = None

    def with_profile(self, name: str | None = None, avatar_url: str | None = None) -> "User":
        update = {}
        if name is not None:
            update["name"] = name
        if avatar_url is not None:
            update["avatar_url"] = avatar_url
        return self.model_copy(update=update)


class InstrumentDraft(_Record):
    host_id: str
    name: str
    category: str
    description: str = ""
    price_per_day: Money
    image_emoji: str = ""
    location: str = ""
    is_available: bool = True
    rating: float = Field(0, ge=0, le=5)
    review_count: int = Field(0, ge=0)


class Instrument(InstrumentDraft):
    id: str


class RentalDraft(_Record):
    instrument_id: str
    renter_id: str
    host_id: str
    start_date: date
    end_date: date
    total_price: Money
    status: RentalStatus = RentalStatus.PENDING
    instrument_name: str
    instrument_emoji: str = ""

    @property
    def days_count(self) -> int:
        return rental_days(self.start_date, self.end_date)


class Rental(RentalDraft):
    id: str


class ReviewDraft(_Record):
    rental_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: str = ""
    reviewer_name: str


class Review(ReviewDraft):
    id: str


ROW_SCHEMAS: dict[str, type[_Record]] = {
    "users": User,
    "instruments": Instrument,
    "rentals": Rental,
    "reviews": Review,
}
