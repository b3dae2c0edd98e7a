from sqlalchemy import JSON, Boolean, Column, Date, DateTime, Float, ForeignKey, Integer, Numeric, String
from sqlalchemy.sql import func

from encore.db.base import Base


class AuthUser(Base):
    __tablename__ = "auth_users"

    id = Column(String(36), primary_key=True)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(128), nullable=False)
    password_salt = Column(String(64), nullable=False)
    user_metadata = Column(JSON, nullable=False, default=dict)
    confirmed = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())


class UserProfile(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, default="")
    role = Column(String(20), nullable=False, default="renter")
    avatar_url = Column(String(500))


class InstrumentRow(Base):
    __tablename__ = "instruments"

    id = Column(String(36), primary_key=True)
    host_id = Column(String(36), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    category = Column(String(100), nullable=False)
    description = Column(String, nullable=False, default="")
    price_per_day = Column(Numeric(18, 4), nullable=False)
    image_emoji = Column(String(16), nullable=False, default="")
    location = Column(String(255), nullable=False, default="")
    is_available = Column(Boolean, nullable=False, default=True)
    rating = Column(Float, nullable=False, default=0)
    review_count = Column(Integer, nullable=False, default=0)


class RentalRow(Base):
    __tablename__ = "rentals"

    id = Column(String(36), primary_key=True)
    instrument_id = Column(String(36), nullable=False, index=True)
    renter_id = Column(String(36), nullable=False, index=True)
    host_id = Column(String(36), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    total_price = Column(Numeric(18, 4), nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    instrument_name = Column(String(255), nullable=False)
    instrument_emoji = Column(String(16), nullable=False, default="")


class ReviewRow(Base):
    __tablename__ = "reviews"

    id = Column(String(36), primary_key=True)
    rental_id = Column(String(36), ForeignKey("rentals.id"), nullable=False, unique=True)
    rating = Column(Integer, nullable=False)
    comment = Column(String, nullable=False, default="")
    reviewer_name = Column(String(255), nullable=False)


TABLE_MODELS = {
    "users": UserProfile,
    "instruments": InstrumentRow,
    "rentals": RentalRow,
    "reviews": ReviewRow,
}
