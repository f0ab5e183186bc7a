from typing import Dict, List, Optional

from pydantic import BaseModel

from intervals import Interval


class Room(BaseModel):
    id: str
    name: str
    description: str
    capacity: Optional[int] = None


ROOMS: List[Room] = [
    Room(
        id="tspi-east",
        name="TSPI East Conference Room",
        description="Main conference room with video conferencing",
        capacity=12,
    ),
    Room(
        id="powerchina-east",
        name="East PowerChina Conference Room",
        description="Executive meeting space",
        capacity=8,
    ),
    Room(
        id="tspi-bess",
        name="TSPI BESS Conference Room",
        description="Technical discussion room",
        capacity=10,
    ),
]

ROOMS_BY_ID: Dict[str, Room] = {room.id: room for room in ROOMS}

# Bookable hourly slots shown on the dashboard grid (office open 08-18)
OFFICE_HOURS_MAP: Dict[str, str] = {
    "08:00": "8:00 AM - 9:00 AM",
    "09:00": "9:00 AM - 10:00 AM",
    "10:00": "10:00 AM - 11:00 AM",
    "11:00": "11:00 AM - 12:00 PM",
    "12:00": "12:00 PM - 1:00 PM",
    "13:00": "1:00 PM - 2:00 PM",
    "14:00": "2:00 PM - 3:00 PM",
    "15:00": "3:00 PM - 4:00 PM",
    "16:00": "4:00 PM - 5:00 PM",
    "17:00": "5:00 PM - 6:00 PM",
}


def office_slots() -> List[Interval]:
    slots = []
    for start in OFFICE_HOURS_MAP:
        hour = int(start[:2]) + 1
        slots.append(Interval(start, f"{hour:02d}:00"))
    return slots


def is_known_room(room_id: str) -> bool:
    return room_id in ROOMS_BY_ID
