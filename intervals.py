import re
from dataclasses import dataclass

from errors import InvalidInterval

# Zero-padded 24-hour wall-clock time. Plain string comparison orders these
# correctly, which is the only reason we can skip a real time type.
TIME_PATTERN = re.compile(r"(?:[01]\d|2[0-3]):[0-5]\d")


def is_valid_time(value) -> bool:
    return isinstance(value, str) and TIME_PATTERN.fullmatch(value) is not None


@dataclass(frozen=True, order=True)
class Interval:
    """Half-open wall-clock range [start, end) on an implicit shared day."""

    start: str
    end: str

    def __post_init__(self):
        for value in (self.start, self.end):
            if not is_valid_time(value):
                raise InvalidInterval(f"Time {value!r} is not a valid HH:MM value")
        if self.start >= self.end:
            raise InvalidInterval(
                f"Start {self.start} must be before end {self.end}"
            )

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"


def make_interval(start: str, end: str) -> Interval:
    return Interval(start, end)


def overlaps(a: Interval, b: Interval) -> bool:
    # Touching ranges (10:00 end, 10:00 start) are not a conflict
    return a.start < b.end and b.start < a.end
