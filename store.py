"""Booking store and conflict resolver.

Every booking lives in a partition keyed by (room_id, booking_date). Within a
partition no two bookings overlap. Commits check and write under a lock scoped
to the partition, so two requests racing for the same slot cannot both pass
the conflict check.
"""
import asyncio
import hashlib
import logging
from contextlib import asynccontextmanager, contextmanager
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import select

from errors import BackendUnavailable, EmptyRequest, NotFound, SelfConflict, SlotOccupied
from intervals import Interval, overlaps
from models import Booking, BookingRead, Requester

logger = logging.getLogger(__name__)

PartitionKey = Tuple[str, date]
Availability = List[Tuple[Interval, Optional[BookingRead]]]


def advisory_lock_key(room_id: str, booking_date: date) -> int:
    """Stable signed 64-bit key for pg_advisory_xact_lock."""
    digest = hashlib.blake2b(
        f"{room_id}|{booking_date.isoformat()}".encode("utf-8"), digest_size=8
    ).digest()
    return int.from_bytes(digest, "big", signed=True)


def find_self_conflict(candidates: Sequence[Interval]) -> Optional[Tuple[Interval, Interval]]:
    # After sorting by start, any overlapping pair implies an overlapping neighbour pair
    ordered = sorted(candidates)
    for first, second in zip(ordered, ordered[1:]):
        if overlaps(first, second):
            return first, second
    return None


@contextmanager
def backend_errors(action: str):
    try:
        yield
    except SQLAlchemyError as exc:
        logger.exception("Database failure while trying to %s", action)
        raise BackendUnavailable(f"Could not {action}: database unavailable") from exc


class BookingStore:
    def __init__(self, session_factory):
        self._session_factory = session_factory
        self._locks: Dict[PartitionKey, asyncio.Lock] = {}
        # Coroutines holding or waiting on each partition lock
        self._lock_users: Dict[PartitionKey, int] = {}

    @asynccontextmanager
    async def _partition_lock(self, room_id: str, booking_date: date):
        key = (room_id, booking_date)
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if self._lock_users[key] == 0:
                del self._lock_users[key]
                del self._locks[key]

    async def _lock_partition_in_db(self, session, room_id: str, booking_date: date):
        # Other processes sharing the database serialize on the same key
        if session.bind.dialect.name == "postgresql":
            await session.execute(
                text("SELECT pg_advisory_xact_lock(:key)"),
                {"key": advisory_lock_key(room_id, booking_date)},
            )

    async def _partition(self, session, room_id: str, booking_date: date) -> List[Booking]:
        statement = select(Booking).where(
            Booking.room_id == room_id, Booking.booking_date == booking_date
        )
        result = await session.execute(statement)
        return list(result.scalars().all())

    async def list_bookings(
        self, room_id: Optional[str] = None, booking_date: Optional[date] = None
    ) -> List[BookingRead]:
        statement = select(Booking)
        if room_id is not None:
            statement = statement.where(Booking.room_id == room_id)
        if booking_date is not None:
            statement = statement.where(Booking.booking_date == booking_date)

        with backend_errors("list bookings"):
            async with self._session_factory() as session:
                result = await session.execute(statement)
                return [BookingRead.model_validate(b) for b in result.scalars().all()]

    async def get_booking(self, booking_id: str) -> BookingRead:
        with backend_errors("load booking"):
            async with self._session_factory() as session:
                booking = await session.get(Booking, booking_id)
        if booking is None:
            raise NotFound(booking_id)
        return BookingRead.model_validate(booking)

    async def has_conflict(
        self,
        room_id: str,
        booking_date: date,
        interval: Interval,
        exclude_id: Optional[str] = None,
    ) -> bool:
        with backend_errors("check for conflicts"):
            async with self._session_factory() as session:
                existing = await self._partition(session, room_id, booking_date)
        return any(
            overlaps(interval, b.interval) for b in existing if b.id != exclude_id
        )

    async def commit_bookings(
        self,
        room_id: str,
        booking_date: date,
        requester: Requester,
        meeting_title: str,
        candidates: Iterable[Interval],
        notes: Optional[str] = None,
    ) -> List[BookingRead]:
        """Book every candidate slot or none of them.

        Raises EmptyRequest, SelfConflict, SlotOccupied or BackendUnavailable.
        On any failure nothing from this call is stored.
        """
        candidates = list(candidates)
        if not candidates:
            raise EmptyRequest()

        clash = find_self_conflict(candidates)
        if clash is not None:
            raise SelfConflict(*clash)

        async with self._partition_lock(room_id, booking_date):
            with backend_errors("commit bookings"):
                try:
                    async with self._session_factory() as session:
                        async with session.begin():
                            await self._lock_partition_in_db(session, room_id, booking_date)
                            existing = await self._partition(session, room_id, booking_date)
                            for candidate in candidates:
                                for booking in existing:
                                    if overlaps(candidate, booking.interval):
                                        logger.warning(
                                            "Rejected %s on %s/%s: overlaps booking %s",
                                            candidate, room_id, booking_date, booking.id,
                                        )
                                        raise SlotOccupied(
                                            candidate, BookingRead.model_validate(booking)
                                        )

                            rows = [
                                Booking(
                                    room_id=room_id,
                                    booking_date=booking_date,
                                    start_time=candidate.start,
                                    end_time=candidate.end,
                                    name=requester.name,
                                    email=requester.email,
                                    department=requester.department,
                                    meeting_title=meeting_title,
                                    notes=notes,
                                )
                                for candidate in candidates
                            ]
                            session.add_all(rows)
                except IntegrityError as exc:
                    logger.warning(
                        "Unique constraint rejected booking on %s/%s", room_id, booking_date
                    )
                    raise SlotOccupied() from exc

        created = [BookingRead.model_validate(row) for row in rows]
        logger.info(
            "Booked %s on %s/%s: %s",
            ", ".join(str(b.interval) for b in created),
            room_id,
            booking_date,
            ", ".join(b.id for b in created),
        )
        return created

    async def cancel_booking(self, booking_id: str) -> None:
        with backend_errors("cancel booking"):
            async with self._session_factory() as session:
                async with session.begin():
                    booking = await session.get(Booking, booking_id)
                    if booking is None:
                        raise NotFound(booking_id)
                    await session.delete(booking)
        logger.info("Cancelled booking %s", booking_id)

    async def availability(
        self, booking_date: date, room_ids: Iterable[str], slots: Sequence[Interval]
    ) -> Dict[str, Availability]:
        """For each room, pair every slot with the booking occupying it (or None)."""
        # Single query for the whole day, grouped afterwards
        bookings = await self.list_bookings(booking_date=booking_date)
        by_room: Dict[str, List[BookingRead]] = {}
        for booking in bookings:
            by_room.setdefault(booking.room_id, []).append(booking)

        grid = {}
        for room_id in room_ids:
            room_bookings = by_room.get(room_id, [])
            grid[room_id] = [
                (slot, next((b for b in room_bookings if overlaps(slot, b.interval)), None))
                for slot in slots
            ]
        return grid
