import logging
from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from collegedays.core.dates import day_key, each_day, to_calendar_day
from collegedays.core.errors import AmbiguousOverride, InvalidDayType


logger = logging.getLogger(__name__)

REST_WEEKDAY = 6  # Sunday
REST_DAY_DESCRIPTION = "Sunday"


class DayType(str, Enum):
    WORKING = "working"
    HOLIDAY = "holiday"
    EVENT = "event"
    EXAM = "exam"
    BREAK = "break"

    @classmethod
    def parse(cls, value: Any) -> Optional["DayType"]:
        if value is None or isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        if not text:
            return None
        try:
            return cls(text)
        except ValueError as exc:
            raise InvalidDayType(f"Unknown day type: {value!r}") from exc


@dataclass(frozen=True)
class DayOverride:
    id: Optional[str]
    semester_id: str
    user_id: str
    date: date
    type: Optional[DayType] = None
    description: str = ""
    updated_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None, tz: Optional[tzinfo] = None) -> "DayOverride":
        updated_at = data.get("updatedAt")
        return cls(
            id=doc_id or data.get("id"),
            semester_id=str(data.get("semesterId", "")),
            user_id=str(data.get("userId", "")),
            date=to_calendar_day(data.get("date"), tz),
            type=DayType.parse(data.get("type")),
            description=str(data.get("description") or ""),
            updated_at=updated_at if isinstance(updated_at, datetime) else None,
        )


@dataclass(frozen=True)
class MaterializedDay:
    date: date
    type: Optional[DayType]
    description: str
    override_id: Optional[str] = None

    @property
    def is_blank(self) -> bool:
        return self.type is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "weekday": self.date.strftime("%a"),
            "type": self.type.value if self.type else "",
            "description": self.description,
            "id": self.override_id,
        }


def _newer(candidate: DayOverride, current: DayOverride) -> Optional[DayOverride]:
    if candidate.updated_at is None or current.updated_at is None:
        return None
    if candidate.updated_at == current.updated_at:
        return None
    return candidate if candidate.updated_at > current.updated_at else current


def index_overrides(overrides: Iterable[DayOverride]) -> Dict[str, DayOverride]:
    """Key overrides by ``YYYY-MM-DD``.

    Two overrides on one date resolve to the most recently updated one; when
    that cannot be decided the collision is an error.
    """
    indexed: Dict[str, DayOverride] = {}
    for override in overrides:
        key = day_key(override.date)
        current = indexed.get(key)
        if current is None:
            indexed[key] = override
            continue

        winner = _newer(override, current)
        if winner is None:
            raise AmbiguousOverride(
                f"Overrides {current.id!r} and {override.id!r} both target {key}"
            )
        logger.warning("Duplicate overrides for %s, keeping %s", key, winner.id)
        indexed[key] = winner
    return indexed


def default_for(day: date, reference_date: date) -> MaterializedDay:
    if day > reference_date:
        return MaterializedDay(date=day, type=None, description="")
    if day.weekday() == REST_WEEKDAY:
        return MaterializedDay(date=day, type=DayType.HOLIDAY, description=REST_DAY_DESCRIPTION)
    return MaterializedDay(date=day, type=DayType.WORKING, description="")


def materialize(semester: Any, overrides: Iterable[DayOverride], reference_date: Any) -> List[MaterializedDay]:
    """Expand a semester into one resolved day per calendar date.

    ``semester`` needs ``start_date`` and ``end_date``; ``overrides`` must
    already be limited to that semester. An override always wins, even one
    with no type. Days without one fall back to the weekday default, except
    days after ``reference_date`` which stay blank.
    """
    start = to_calendar_day(semester.start_date)
    end = to_calendar_day(semester.end_date)
    today = to_calendar_day(reference_date)
    by_key = index_overrides(overrides)

    days: List[MaterializedDay] = []
    for day in each_day(start, end):
        override = by_key.get(day.isoformat())
        if override is None:
            days.append(default_for(day, today))
            continue
        days.append(
            MaterializedDay(
                date=day,
                type=override.type,
                description=override.description,
                override_id=override.id,
            )
        )
    return days
