from typing import Optional
from datetime import date, datetime, timezone
from uuid import uuid4

import sqlalchemy as sa
from pydantic import BaseModel
from sqlmodel import SQLModel, Field
from sqlalchemy import UniqueConstraint

from intervals import Interval


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(sa.TypeDecorator):
    """Timezone-aware UTC datetimes, also on backends that store them naive (SQLite)."""

    impl = sa.DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Requester(BaseModel):
    name: str
    email: str
    department: str


class BookingBase(SQLModel):
    room_id: str = Field(index=True)
    booking_date: date = Field(index=True)
    start_time: str  # "HH:MM"
    end_time: str
    name: str
    email: str
    department: str
    meeting_title: str
    notes: Optional[str] = None

    @property
    def interval(self) -> Interval:
        return Interval(self.start_time, self.end_time)

    @property
    def requester(self) -> Requester:
        return Requester(name=self.name, email=self.email, department=self.department)


class Booking(BookingBase, table=True):
    __tablename__ = "bookings"
    __table_args__ = (
        # Backstop for writers that bypass the partition lock: two bookings
        # in one room and day can never start at the same minute.
        UniqueConstraint("room_id", "booking_date", "start_time", name="unique_booking_start"),
    )

    id: str = Field(default_factory=lambda: uuid4().hex, primary_key=True)
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_type=UTCDateTime(),
        nullable=False,
    )


class BookingRead(BookingBase):
    """Detached copy handed to callers; changing it never touches the store."""

    id: str
    created_at: datetime
