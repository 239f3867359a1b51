from datetime import date, datetime
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, field_validator

from collegedays.config.logging_config import configure_logging
from collegedays.config.settings import settings
from collegedays.core.days import DayType
from collegedays.core.errors import CalendarError
from collegedays.core.semesters import SemesterError
from collegedays.services.auth_service import AuthServiceError, FirebaseAuthService
from collegedays.services.firestore_service import (
    FirestoreService,
    FirestoreServiceError,
    NotFoundError,
)


configure_logging(settings.log_level)

app = FastAPI(title="College Days API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_allowed_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class SignUpPayload(BaseModel):
    email: str
    password: str
    name: Optional[str] = None


class AuthPayload(BaseModel):
    email: str
    password: str


class SemesterPayload(BaseModel):
    name: str
    start_date: date
    end_date: date


class SemesterUpdatePayload(BaseModel):
    name: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class ReorderPayload(BaseModel):
    semester_ids: List[str]


class CurrentSemesterPayload(BaseModel):
    semester_id: str


class DayPayload(BaseModel):
    type: Optional[DayType] = None
    description: str = ""

    @field_validator("type", mode="before")
    @classmethod
    def blank_type_is_unset(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class BulkDayPayload(DayPayload):
    dates: List[date] = Field(min_length=1)


def get_store() -> FirestoreService:
    return FirestoreService.from_settings()


def get_auth() -> FirebaseAuthService:
    return FirebaseAuthService.from_settings()


def get_today() -> date:
    return datetime.now(settings.tz).date()


def _required_uid(x_user_id: Optional[str]) -> str:
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing x-user-id header")
    return x_user_id


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


STORE_ERRORS = (FirestoreServiceError, SemesterError, CalendarError)


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/auth/signup")
def sign_up(
    payload: SignUpPayload,
    auth: FirebaseAuthService = Depends(get_auth),
    fs: FirestoreService = Depends(get_store),
) -> Dict:
    try:
        result = auth.sign_up(payload.email, payload.password, payload.name)
        fs.ensure_user_profile(result.uid, result.email, name=payload.name or result.display_name)
        return {
            "uid": result.uid,
            "email": result.email,
            "id_token": result.id_token,
            "refresh_token": result.refresh_token,
        }
    except AuthServiceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except FirestoreServiceError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc


@app.post("/auth/login")
def login(payload: AuthPayload, auth: FirebaseAuthService = Depends(get_auth)) -> Dict:
    try:
        result = auth.sign_in(payload.email, payload.password)
        return {
            "uid": result.uid,
            "email": result.email,
            "id_token": result.id_token,
            "refresh_token": result.refresh_token,
        }
    except AuthServiceError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc


@app.get("/profile")
def get_profile(
    x_user_id: Optional[str] = Header(default=None),
    fs: FirestoreService = Depends(get_store),
) -> Dict:
    uid = _required_uid(x_user_id)
    try:
        return {"uid": uid, "profile": fs.get_profile(uid)}
    except STORE_ERRORS as exc:
        raise _http_error(exc) from exc


@app.get("/semesters")
def list_semesters(
    x_user_id: Optional[str] = Header(default=None),
    fs: FirestoreService = Depends(get_store),
) -> List[Dict]:
    uid = _required_uid(x_user_id)
    try:
        return [semester.to_dict() for semester in fs.list_semesters(uid)]
    except STORE_ERRORS as exc:
        raise _http_error(exc) from exc


@app.post("/semesters", status_code=status.HTTP_201_CREATED)
def create_semester(
    payload: SemesterPayload,
    x_user_id: Optional[str] = Header(default=None),
    fs: FirestoreService = Depends(get_store),
) -> Dict:
    uid = _required_uid(x_user_id)
    try:
        return fs.create_semester(uid, **payload.model_dump()).to_dict()
    except STORE_ERRORS as exc:
        raise _http_error(exc) from exc


@app.get("/semesters/current")
def get_current_semester(
    x_user_id: Optional[str] = Header(default=None),
    fs: FirestoreService = Depends(get_store),
) -> Dict:
    uid = _required_uid(x_user_id)
    try:
        semester = fs.get_current_semester(uid)
    except STORE_ERRORS as exc:
        raise _http_error(exc) from exc
    return {"semester": semester.to_dict() if semester else None}


@app.put("/semesters/current")
def set_current_semester(
    payload: CurrentSemesterPayload,
    x_user_id: Optional[str] = Header(default=None),
    fs: FirestoreService = Depends(get_store),
) -> Dict:
    uid = _required_uid(x_user_id)
    try:
        return {"semester": fs.set_current_semester(uid, payload.semester_id).to_dict()}
    except STORE_ERRORS as exc:
        raise _http_error(exc) from exc


@app.post("/semesters/reorder")
def reorder_semesters(
    payload: ReorderPayload,
    x_user_id: Optional[str] = Header(default=None),
    fs: FirestoreService = Depends(get_store),
) -> List[Dict]:
    uid = _required_uid(x_user_id)
    try:
        return [semester.to_dict() for semester in fs.reorder_semesters(uid, payload.semester_ids)]
    except STORE_ERRORS as exc:
        raise _http_error(exc) from exc


@app.get("/semesters/{semester_id}")
def get_semester(
    semester_id: str,
    x_user_id: Optional[str] = Header(default=None),
    fs: FirestoreService = Depends(get_store),
) -> Dict:
    uid = _required_uid(x_user_id)
    try:
        return fs.get_semester(uid, semester_id).to_dict()
    except STORE_ERRORS as exc:
        raise _http_error(exc) from exc


@app.patch("/semesters/{semester_id}")
def update_semester(
    semester_id: str,
    payload: SemesterUpdatePayload,
    x_user_id: Optional[str] = Header(default=None),
    fs: FirestoreService = Depends(get_store),
) -> Dict:
    uid = _required_uid(x_user_id)
    try:
        return fs.update_semester(uid, semester_id, **payload.model_dump()).to_dict()
    except STORE_ERRORS as exc:
        raise _http_error(exc) from exc


@app.delete("/semesters/{semester_id}")
def delete_semester(
    semester_id: str,
    x_user_id: Optional[str] = Header(default=None),
    fs: FirestoreService = Depends(get_store),
) -> Dict:
    uid = _required_uid(x_user_id)
    try:
        removed = fs.delete_semester(uid, semester_id)
        return {"status": "deleted", "days_removed": removed}
    except STORE_ERRORS as exc:
        raise _http_error(exc) from exc


@app.get("/semesters/{semester_id}/days")
def list_semester_days(
    semester_id: str,
    reference_date: Optional[date] = None,
    x_user_id: Optional[str] = Header(default=None),
    fs: FirestoreService = Depends(get_store),
    today: date = Depends(get_today),
) -> Dict:
    uid = _required_uid(x_user_id)
    try:
        semester, days, stats = fs.semester_calendar(uid, semester_id, reference_date or today)
    except STORE_ERRORS as exc:
        raise _http_error(exc) from exc
    return {
        "semester": semester.to_dict(),
        "days": [day.to_dict() for day in days],
        "stats": stats.to_dict(),
    }


@app.get("/semesters/{semester_id}/stats")
def semester_stats(
    semester_id: str,
    reference_date: Optional[date] = None,
    x_user_id: Optional[str] = Header(default=None),
    fs: FirestoreService = Depends(get_store),
    today: date = Depends(get_today),
) -> Dict:
    uid = _required_uid(x_user_id)
    try:
        _, _, stats = fs.semester_calendar(uid, semester_id, reference_date or today)
    except STORE_ERRORS as exc:
        raise _http_error(exc) from exc
    return stats.to_dict()


@app.put("/semesters/{semester_id}/days/{day}")
def save_day(
    semester_id: str,
    day: date,
    payload: DayPayload,
    x_user_id: Optional[str] = Header(default=None),
    fs: FirestoreService = Depends(get_store),
) -> Dict:
    uid = _required_uid(x_user_id)
    try:
        override = fs.upsert_day(uid, semester_id, day, type=payload.type, description=payload.description)
    except STORE_ERRORS as exc:
        raise _http_error(exc) from exc
    return {"id": override.id, "date": override.date.isoformat()}


@app.post("/semesters/{semester_id}/days/bulk")
def save_days(
    semester_id: str,
    payload: BulkDayPayload,
    x_user_id: Optional[str] = Header(default=None),
    fs: FirestoreService = Depends(get_store),
) -> List[Dict]:
    uid = _required_uid(x_user_id)
    try:
        overrides = fs.upsert_days(
            uid,
            semester_id,
            payload.dates,
            type=payload.type,
            description=payload.description,
        )
    except STORE_ERRORS as exc:
        raise _http_error(exc) from exc
    return [{"id": o.id, "date": o.date.isoformat()} for o in overrides]
