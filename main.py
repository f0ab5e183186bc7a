import logging
from datetime import date
from typing import List, Optional

from fastapi import FastAPI, Depends, HTTPException, Query, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from database import (
    create_engine,
    get_cors_origins,
    get_log_level,
    init_db,
    make_session_factory,
)
from errors import (
    BackendUnavailable,
    BookingError,
    EmptyRequest,
    InvalidInterval,
    NotFound,
    SelfConflict,
    SlotOccupied,
)
from intervals import make_interval
from models import BookingRead, Requester
from rooms import OFFICE_HOURS_MAP, ROOMS, Room, is_known_room, office_slots
from store import BookingStore

logger = logging.getLogger(__name__)

app = FastAPI(title="Meeting Room Booking System")

STATUS_BY_ERROR = {
    InvalidInterval: 422,
    EmptyRequest: 422,
    SelfConflict: status.HTTP_409_CONFLICT,
    SlotOccupied: status.HTTP_409_CONFLICT,
    NotFound: status.HTTP_404_NOT_FOUND,
    BackendUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}


# Pydantic Schemas for Request/Response
class SlotIn(BaseModel):
    start: str
    end: str


class BookingCreate(BaseModel):
    room_id: str
    booking_date: date
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    department: str = Field(min_length=1)
    meeting_title: str = Field(min_length=1)
    notes: Optional[str] = None
    slots: List[SlotIn]


class ConflictCheck(BaseModel):
    conflict: bool


class SlotStatus(BaseModel):
    time_label: str
    start_time: str
    end_time: str
    status: str
    booking_id: Optional[str] = None
    meeting_title: Optional[str] = None


class RoomSchedule(BaseModel):
    room_id: str
    schedule: List[SlotStatus]


@app.on_event("startup")
async def on_startup():
    logging.basicConfig(
        level=get_log_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    engine = create_engine()
    await init_db(engine)
    app.state.engine = engine
    app.state.store = BookingStore(make_session_factory(engine))


@app.on_event("shutdown")
async def on_shutdown():
    engine = getattr(app.state, "engine", None)
    if engine is not None:
        await engine.dispose()


def get_store(request: Request) -> BookingStore:
    return request.app.state.store


def require_known_room(room_id: str):
    if not is_known_room(room_id):
        raise HTTPException(status_code=400, detail="Invalid Room ID")


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    status_code = STATUS_BY_ERROR.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return JSONResponse(status_code=status_code, content={"detail": exc.to_detail()})


# --- Endpoint 1: GET /rooms ---
@app.get("/rooms", response_model=List[Room])
async def list_rooms():
    return ROOMS


# --- Endpoint 2: GET /dashboard-grid ---
@app.get("/dashboard-grid", response_model=List[RoomSchedule])
async def get_dashboard_grid(
    target_date: date,
    store: BookingStore = Depends(get_store),
):
    grid = await store.availability(target_date, [room.id for room in ROOMS], office_slots())

    dashboard_data = []
    for room in ROOMS:
        room_schedule = []
        for slot, booking in grid[room.id]:
            room_schedule.append(
                SlotStatus(
                    time_label=OFFICE_HOURS_MAP[slot.start],
                    start_time=slot.start,
                    end_time=slot.end,
                    status="occupied" if booking else "available",
                    booking_id=booking.id if booking else None,
                    meeting_title=booking.meeting_title if booking else None,
                )
            )
        dashboard_data.append(RoomSchedule(room_id=room.id, schedule=room_schedule))

    return dashboard_data


# --- Endpoint 3: GET /bookings ---
@app.get("/bookings", response_model=List[BookingRead])
async def list_bookings(
    room_id: Optional[str] = None,
    booking_date: Optional[date] = None,
    store: BookingStore = Depends(get_store),
):
    bookings = await store.list_bookings(room_id=room_id, booking_date=booking_date)
    # Store gives no ordering; the list view reads best by day then start
    return sorted(bookings, key=lambda b: (b.booking_date, b.start_time, b.room_id))


# --- Endpoint 4: GET /bookings/conflict (advisory pre-submit check) ---
@app.get("/bookings/conflict", response_model=ConflictCheck)
async def check_conflict(
    room_id: str,
    booking_date: date,
    start_time: str,
    end_time: str,
    exclude_id: Optional[str] = Query(default=None),
    store: BookingStore = Depends(get_store),
):
    interval = make_interval(start_time, end_time)
    conflict = await store.has_conflict(room_id, booking_date, interval, exclude_id=exclude_id)
    return ConflictCheck(conflict=conflict)


@app.get("/bookings/{booking_id}", response_model=BookingRead)
async def get_booking(booking_id: str, store: BookingStore = Depends(get_store)):
    return await store.get_booking(booking_id)


# --- Endpoint 5: POST /bookings ---
@app.post("/bookings", response_model=List[BookingRead], status_code=status.HTTP_201_CREATED)
async def create_bookings(
    booking_data: BookingCreate,
    store: BookingStore = Depends(get_store),
):
    require_known_room(booking_data.room_id)

    candidates = [make_interval(slot.start, slot.end) for slot in booking_data.slots]
    requester = Requester(
        name=booking_data.name,
        email=booking_data.email,
        department=booking_data.department,
    )
    return await store.commit_bookings(
        booking_data.room_id,
        booking_data.booking_date,
        requester,
        booking_data.meeting_title,
        candidates,
        notes=booking_data.notes,
    )


# --- Endpoint 6: DELETE /bookings/{booking_id} ---
@app.delete("/bookings/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_booking(booking_id: str, store: BookingStore = Depends(get_store)):
    await store.cancel_booking(booking_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
