from dataclasses import dataclass, replace
from datetime import date, datetime, tzinfo
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from collegedays.core.dates import to_calendar_day
from collegedays.core.errors import InvalidDate


class SemesterError(Exception):
    pass


@dataclass(frozen=True)
class Semester:
    id: str
    name: str
    start_date: date
    end_date: date
    user_id: str
    order: int = 0
    created_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None, tz: Optional[tzinfo] = None) -> "Semester":
        created_at = data.get("createdAt")
        return cls(
            id=doc_id or str(data.get("id", "")),
            name=str(data.get("name", "")),
            start_date=to_calendar_day(data.get("startDate"), tz),
            end_date=to_calendar_day(data.get("endDate"), tz),
            user_id=str(data.get("userId", "")),
            order=int(data.get("order") or 0),
            created_at=created_at if isinstance(created_at, datetime) else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
            "userId": self.user_id,
            "order": self.order,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


def validate_semester_fields(name: Any, start: Any, end: Any, tz: Optional[tzinfo] = None) -> Tuple[str, date, date]:
    if not isinstance(name, str) or not name.strip():
        raise SemesterError("Semester name must be a non-empty string")
    if not start or not end:
        raise SemesterError("Semester name, start date, and end date are required")

    try:
        start_day = to_calendar_day(start, tz)
        end_day = to_calendar_day(end, tz)
    except InvalidDate as exc:
        raise SemesterError("Invalid date format") from exc

    if start_day >= end_day:
        raise SemesterError("End date must be after start date")
    return name.strip(), start_day, end_day


def ensure_unique_name(name: str, existing: Iterable[Semester], exclude_id: Optional[str] = None) -> None:
    wanted = name.strip().lower()
    for semester in existing:
        if semester.id != exclude_id and semester.name.strip().lower() == wanted:
            raise SemesterError("A semester with this name already exists")


def next_order(existing: Sequence[Semester]) -> int:
    return len(existing)


def sort_by_order(semesters: Iterable[Semester]) -> List[Semester]:
    return sorted(semesters, key=lambda s: (s.order, s.created_at.timestamp() if s.created_at else 0.0, s.id))


def apply_order(semesters: Sequence[Semester], ordered_ids: Sequence[str]) -> List[Semester]:
    by_id = {s.id: s for s in semesters}
    if len(ordered_ids) != len(set(ordered_ids)):
        raise SemesterError("Semester order contains duplicates")
    if set(ordered_ids) != set(by_id):
        raise SemesterError("Semester order must list every semester exactly once")
    return [replace(by_id[semester_id], order=index) for index, semester_id in enumerate(ordered_ids)]


def compact_order(semesters: Iterable[Semester]) -> List[Semester]:
    return [replace(s, order=index) for index, s in enumerate(sort_by_order(semesters))]


def pick_current(semesters: Sequence[Semester], preferred_id: Optional[str]) -> Optional[Semester]:
    ordered = sort_by_order(semesters)
    for semester in ordered:
        if semester.id == preferred_id:
            return semester
    return ordered[0] if ordered else None
