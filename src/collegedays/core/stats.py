import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Sequence

from collegedays.core.dates import to_calendar_day
from collegedays.core.days import DayType, MaterializedDay
from collegedays.core.errors import InvalidRange


def clamp_0_100(value: int) -> int:
    return max(0, min(100, value))


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class SemesterStats:
    total: int
    counts: Mapping[str, int] = field(default_factory=dict)
    days_passed: int = 0
    remaining_days: int = 0
    progress: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "counts", MappingProxyType(dict(self.counts)))

    def count(self, day_type: DayType) -> int:
        return self.counts.get(day_type.value, 0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            **{t.value: self.count(t) for t in DayType},
            "daysPassed": self.days_passed,
            "remainingDays": self.remaining_days,
            "progress": self.progress,
        }


def aggregate(materialized_days: Sequence[MaterializedDay], semester: Any, reference_date: Any) -> SemesterStats:
    """Reduce a materialized calendar to counts and progress.

    Today counts toward ``days_passed`` and not toward ``remaining_days``.
    """
    start = to_calendar_day(semester.start_date)
    end = to_calendar_day(semester.end_date)
    today = to_calendar_day(reference_date)
    if start > end:
        raise InvalidRange(f"Start {start.isoformat()} is after end {end.isoformat()}")

    total = len(materialized_days)
    counts = {t.value: 0 for t in DayType}
    for day in materialized_days:
        if day.type is not None:
            counts[day.type.value] += 1

    if today > end:
        days_passed, remaining_days = total, 0
    elif today < start:
        days_passed, remaining_days = 0, total
    else:
        days_passed = (today - start).days + 1
        remaining_days = (end - today).days

    progress = 0 if total == 0 else clamp_0_100(_round_half_up(100 * days_passed / total))

    return SemesterStats(
        total=total,
        counts=counts,
        days_passed=days_passed,
        remaining_days=remaining_days,
        progress=progress,
    )
