from datetime import datetime, timezone, tzinfo
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

try:
    from google.api_core.exceptions import FailedPrecondition
    from google.cloud import firestore
    from google.cloud.firestore_v1.base_query import FieldFilter
except ModuleNotFoundError as exc:
    raise ModuleNotFoundError(
        "Missing dependency 'google-cloud-firestore'. Install the project with pip install -e ."
    ) from exc

from collegedays.config.settings import settings
from collegedays.core.dates import day_key, start_of_day, to_calendar_day
from collegedays.core.days import DayOverride, DayType, MaterializedDay, materialize
from collegedays.core.semesters import (
    Semester,
    apply_order,
    compact_order,
    ensure_unique_name,
    next_order,
    pick_current,
    sort_by_order,
    validate_semester_fields,
)
from collegedays.core.stats import SemesterStats, aggregate


logger = logging.getLogger(__name__)


class FirestoreServiceError(Exception):
    pass


class NotFoundError(FirestoreServiceError):
    pass


class FirestoreService:
    def __init__(
        self,
        project_id: str,
        client: Any = None,
        *,
        users_collection: str = "users",
        semesters_collection: str = "semesters",
        days_collection: str = "days",
        tz: tzinfo = timezone.utc,
    ) -> None:
        if client is None:
            if not project_id:
                raise FirestoreServiceError("Missing FIREBASE_PROJECT_ID in environment")
            client = firestore.Client(project=project_id)
        self.db = client
        self.users_collection = users_collection
        self.semesters_collection = semesters_collection
        self.days_collection = days_collection
        self.tz = tz

    @classmethod
    def from_settings(cls) -> "FirestoreService":
        return cls(
            settings.firebase_project_id,
            users_collection=settings.users_collection,
            semesters_collection=settings.semesters_collection,
            days_collection=settings.days_collection,
            tz=settings.tz,
        )

    def _users(self):
        return self.db.collection(self.users_collection)

    def _semesters(self):
        return self.db.collection(self.semesters_collection)

    def _days(self):
        return self.db.collection(self.days_collection)

    def _to_semester(self, snap) -> Semester:
        try:
            return Semester.from_dict(snap.to_dict() or {}, snap.id, self.tz)
        except ValueError as exc:
            raise FirestoreServiceError(f"Semester {snap.id} has invalid data: {exc}") from exc

    def _to_override(self, snap) -> DayOverride:
        try:
            return DayOverride.from_dict(snap.to_dict() or {}, snap.id, self.tz)
        except ValueError as exc:
            raise FirestoreServiceError(f"Day {snap.id} has invalid data: {exc}") from exc

    # Profiles

    def ensure_user_profile(
        self,
        uid: str,
        email: str,
        name: Optional[str] = None,
        photo_url: Optional[str] = None,
    ) -> Dict:
        ref = self._users().document(uid)
        snap = ref.get()
        if snap.exists:
            profile = snap.to_dict() or {}
            if photo_url and photo_url != profile.get("photoURL"):
                ref.update({"photoURL": photo_url})
                profile["photoURL"] = photo_url
            return profile

        profile = {
            "id": uid,
            "name": name or email.split("@")[0],
            "email": email,
            "photoURL": photo_url or "",
            "currentSemesterId": None,
            "createdAt": datetime.now(timezone.utc),
        }
        ref.set(profile)
        logger.info("Created profile for user %s", uid)
        return profile

    def get_profile(self, uid: str) -> Dict:
        snap = self._users().document(uid).get()
        if not snap.exists:
            return {}
        return snap.to_dict() or {}

    # Semesters

    def list_semesters(self, uid: str) -> List[Semester]:
        query = self._semesters().where(filter=FieldFilter("userId", "==", uid))
        try:
            docs = list(query.order_by("order").stream())
        except FailedPrecondition as exc:
            logger.warning("Semester order index missing, sorting in process: %s", exc)
            docs = list(query.stream())
        return sort_by_order(self._to_semester(doc) for doc in docs)

    def get_semester(self, uid: str, semester_id: str) -> Semester:
        snap = self._semesters().document(semester_id).get()
        if not snap.exists:
            raise NotFoundError(f"Semester {semester_id} not found")
        semester = self._to_semester(snap)
        if semester.user_id != uid:
            raise NotFoundError(f"Semester {semester_id} not found")
        return semester

    def create_semester(self, uid: str, *, name: Any, start_date: Any, end_date: Any) -> Semester:
        clean_name, start_day, end_day = validate_semester_fields(name, start_date, end_date, self.tz)
        existing = self.list_semesters(uid)
        ensure_unique_name(clean_name, existing)

        data = {
            "name": clean_name,
            "startDate": start_of_day(start_day, self.tz),
            "endDate": start_of_day(end_day, self.tz),
            "userId": uid,
            "order": next_order(existing),
            "createdAt": datetime.now(timezone.utc),
        }
        ref = self._semesters().document()
        ref.set(data)
        logger.info("Created semester %s (%s) for user %s", ref.id, clean_name, uid)
        return Semester.from_dict(data, ref.id, self.tz)

    def update_semester(
        self,
        uid: str,
        semester_id: str,
        *,
        name: Optional[str] = None,
        start_date: Any = None,
        end_date: Any = None,
    ) -> Semester:
        current = self.get_semester(uid, semester_id)
        clean_name, start_day, end_day = validate_semester_fields(
            current.name if name is None else name,
            current.start_date if start_date is None else start_date,
            current.end_date if end_date is None else end_date,
            self.tz,
        )
        ensure_unique_name(clean_name, self.list_semesters(uid), exclude_id=semester_id)

        changes = {
            "name": clean_name,
            "startDate": start_of_day(start_day, self.tz),
            "endDate": start_of_day(end_day, self.tz),
        }
        self._semesters().document(semester_id).update(changes)
        return Semester(
            id=semester_id,
            name=clean_name,
            start_date=start_day,
            end_date=end_day,
            user_id=uid,
            order=current.order,
            created_at=current.created_at,
        )

    def delete_semester(self, uid: str, semester_id: str) -> int:
        """Delete a semester and every day recorded against it.

        Returns the number of day documents removed.
        """
        self.get_semester(uid, semester_id)

        days = self._days().where(filter=FieldFilter("semesterId", "==", semester_id)).stream()
        removed = 0
        for doc in days:
            doc.reference.delete()
            removed += 1
        self._semesters().document(semester_id).delete()

        for semester in compact_order(self.list_semesters(uid)):
            self._semesters().document(semester.id).update({"order": semester.order})

        if self.get_profile(uid).get("currentSemesterId") == semester_id:
            self._users().document(uid).set({"currentSemesterId": None}, merge=True)

        logger.info("Deleted semester %s and %d day(s) for user %s", semester_id, removed, uid)
        return removed

    def reorder_semesters(self, uid: str, semester_ids: List[str]) -> List[Semester]:
        reordered = apply_order(self.list_semesters(uid), semester_ids)
        for semester in reordered:
            self._semesters().document(semester.id).update({"order": semester.order})
        return reordered

    def get_current_semester(self, uid: str) -> Optional[Semester]:
        preferred = self.get_profile(uid).get("currentSemesterId")
        return pick_current(self.list_semesters(uid), preferred)

    def set_current_semester(self, uid: str, semester_id: str) -> Semester:
        semester = self.get_semester(uid, semester_id)
        self._users().document(uid).set({"currentSemesterId": semester_id}, merge=True)
        return semester

    # Days

    def list_days(self, uid: str, semester_id: Optional[str] = None) -> List[DayOverride]:
        query = self._days().where(filter=FieldFilter("userId", "==", uid))
        if semester_id is not None:
            query = query.where(filter=FieldFilter("semesterId", "==", semester_id))
        return [self._to_override(doc) for doc in query.stream()]

    def upsert_day(
        self,
        uid: str,
        semester_id: str,
        day: Any,
        *,
        type: Any = None,
        description: str = "",
    ) -> DayOverride:
        semester = self.get_semester(uid, semester_id)
        existing = self._day_index(uid, semester.id)
        return self._upsert_day(uid, semester, day, DayType.parse(type), description, existing)

    def upsert_days(
        self,
        uid: str,
        semester_id: str,
        days: Iterable[Any],
        *,
        type: Any = None,
        description: str = "",
    ) -> List[DayOverride]:
        semester = self.get_semester(uid, semester_id)
        day_type = DayType.parse(type)
        existing = self._day_index(uid, semester.id)
        return [self._upsert_day(uid, semester, day, day_type, description, existing) for day in days]

    def _day_index(self, uid: str, semester_id: str) -> Dict[str, DayOverride]:
        index: Dict[str, DayOverride] = {}
        for override in self.list_days(uid, semester_id):
            index.setdefault(day_key(override.date), override)
        return index

    def _upsert_day(
        self,
        uid: str,
        semester: Semester,
        day: Any,
        day_type: Optional[DayType],
        description: str,
        existing: Dict[str, DayOverride],
    ) -> DayOverride:
        """Write one override, keyed by (semester, calendar day).

        ``existing`` is the semester's overrides by day key; it is updated in
        place so later writes in the same batch see this one.
        """
        target = to_calendar_day(day, self.tz)
        if not semester.contains(target):
            raise FirestoreServiceError(
                f"{target.isoformat()} is outside semester {semester.name!r}"
            )

        payload = {
            "semesterId": semester.id,
            "userId": uid,
            "date": start_of_day(target, self.tz),
            "type": day_type.value if day_type else "",
            "description": description or "",
            "updatedAt": datetime.now(timezone.utc),
        }

        key = target.isoformat()
        current = existing.get(key)
        if current is not None:
            self._days().document(current.id).update(payload)
            doc_id = current.id
        else:
            ref = self._days().document()
            ref.set(payload)
            doc_id = ref.id
        saved = DayOverride.from_dict(payload, doc_id, self.tz)
        existing[key] = saved
        return saved

    def semester_calendar(
        self, uid: str, semester_id: str, reference_date: Any
    ) -> Tuple[Semester, List[MaterializedDay], SemesterStats]:
        semester = self.get_semester(uid, semester_id)
        overrides = self.list_days(uid, semester_id)
        days = materialize(semester, overrides, reference_date)
        return semester, days, aggregate(days, semester, reference_date)
