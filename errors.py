class BookingError(Exception):
    """Base class for booking failures. `kind` is the stable name sent to clients."""

    kind = "booking_error"

    def to_detail(self) -> dict:
        return {"error": self.kind, "message": str(self)}


class InvalidInterval(BookingError):
    kind = "invalid_interval"


class EmptyRequest(BookingError):
    kind = "empty_request"

    def __init__(self, message: str = "At least one time slot is required"):
        super().__init__(message)


class SelfConflict(BookingError):
    kind = "self_conflict"

    def __init__(self, first, second):
        self.first = first
        self.second = second
        super().__init__(f"Requested slots {first} and {second} overlap each other")

    def to_detail(self) -> dict:
        detail = super().to_detail()
        detail["slots"] = [str(self.first), str(self.second)]
        return detail


class SlotOccupied(BookingError):
    kind = "slot_occupied"

    def __init__(self, candidate=None, existing=None):
        # Both are None when the database constraint caught the collision
        self.candidate = candidate
        self.existing = existing
        if candidate is None:
            message = "Slot already booked for this room and time."
        else:
            message = f"Time slot {candidate} is already occupied."
        super().__init__(message)

    def to_detail(self) -> dict:
        detail = super().to_detail()
        if self.candidate is not None:
            detail["slot"] = str(self.candidate)
        if self.existing is not None:
            detail["existing_booking_id"] = self.existing.id
        return detail


class NotFound(BookingError):
    kind = "not_found"

    def __init__(self, booking_id: str):
        self.booking_id = booking_id
        super().__init__(f"Booking {booking_id} not found")


class BackendUnavailable(BookingError):
    kind = "backend_unavailable"
