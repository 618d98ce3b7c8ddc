"""
Period expressions such as "30m", "12h", "1d" or "2y".

The parser is intentionally lenient: it takes the first run of digits as the
length and the first run of lowercase letters as the unit, so "-5d" reads
the same as "5d".
"""
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

MAX_LENGTH = 1000

UNITS = {
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
    "y": timedelta(days=365),
}

_DIGITS = re.compile(r"\d+")
_LETTERS = re.compile(r"[a-z]+")


class PeriodError(ValueError):
    message = 'Error: Value for "period" query param is invalid.'

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)


class InvalidPeriod(PeriodError):
    pass


class InvalidUnit(PeriodError):
    message = 'Error: Value for "unit" query param is invalid.'


class PeriodTooLarge(PeriodError):
    message = 'Error: "length" is too large.'


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def isoformat_z(dt: datetime) -> str:
    """
    Millisecond UTC timestamp with a trailing Z, e.g. 2024-05-01T12:00:00.000Z
    """
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


@dataclass(frozen=True)
class TimeWindow:
    start_time: datetime
    end_time: datetime

    def as_params(self) -> dict:
        return {
            "startTime": isoformat_z(self.start_time),
            "endTime": isoformat_z(self.end_time),
        }


@dataclass(frozen=True)
class Period:
    unit: str
    length: int

    @property
    def duration(self) -> timedelta:
        return self.length * UNITS[self.unit]

    def window(self, now: datetime | None = None) -> TimeWindow:
        end = now or utc_now()
        return TimeWindow(start_time=end - self.duration, end_time=end)


def resolve_period(text: str) -> Period:
    digits = _DIGITS.search(text or "")
    letters = _LETTERS.search(text or "")

    # leading zeros dropped so "007h" is 7 and "000d" reads as zero
    significant = digits.group().lstrip("0") if digits else ""
    if not significant or not letters:
        raise InvalidPeriod()

    unit = letters.group()
    if unit not in UNITS:
        raise InvalidUnit()
    # compare digit counts first, int() refuses very long digit strings
    if len(significant) > len(str(MAX_LENGTH - 1)):
        raise PeriodTooLarge()
    length = int(significant)
    if length >= MAX_LENGTH:
        raise PeriodTooLarge()

    return Period(unit=unit, length=length)
