from dataclasses import dataclass
from datetime import timezone, tzinfo
import os
from zoneinfo import ZoneInfo

from dotenv import load_dotenv


load_dotenv()


def _split_csv(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


def resolve_timezone(name: str) -> tzinfo:
    if not name or name.strip().upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name.strip())


@dataclass(frozen=True)
class Settings:
    firebase_project_id: str = os.getenv("FIREBASE_PROJECT_ID", "")
    firebase_api_key: str = os.getenv("FIREBASE_API_KEY", "")
    firebase_auth_endpoint: str = os.getenv(
        "FIREBASE_AUTH_ENDPOINT", "https://identitytoolkit.googleapis.com/v1"
    )

    users_collection: str = os.getenv("COLLEGEDAYS_USERS_COLLECTION", "users")
    semesters_collection: str = os.getenv("COLLEGEDAYS_SEMESTERS_COLLECTION", "semesters")
    days_collection: str = os.getenv("COLLEGEDAYS_DAYS_COLLECTION", "days")

    timezone_name: str = os.getenv("COLLEGEDAYS_TIMEZONE", "UTC")
    log_level: str = os.getenv("COLLEGEDAYS_LOG_LEVEL", "INFO")

    cors_allowed_origins: tuple[str, ...] = _split_csv(
        os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000")
    )

    @property
    def tz(self) -> tzinfo:
        return resolve_timezone(self.timezone_name)


settings = Settings()
