from dataclasses import dataclass
import logging
from typing import Any, Dict, Optional
import requests
from requests import RequestException

from collegedays.config.settings import settings


logger = logging.getLogger(__name__)


class AuthServiceError(Exception):
    pass


@dataclass
class AuthResult:
    uid: str
    email: str
    id_token: str
    refresh_token: str
    display_name: str = ""


class FirebaseAuthService:
    SIGN_UP_PATH = "/accounts:signUp"
    LOGIN_PATH = "/accounts:signInWithPassword"

    def __init__(self, endpoint: str, api_key: str) -> None:
        if not endpoint:
            raise AuthServiceError("Missing FIREBASE_AUTH_ENDPOINT in environment")
        if not api_key:
            raise AuthServiceError("Missing FIREBASE_API_KEY in environment")
        self.endpoint = endpoint.rstrip("/")
        self.api_key = api_key

    @classmethod
    def from_settings(cls) -> "FirebaseAuthService":
        return cls(settings.firebase_auth_endpoint, settings.firebase_api_key)

    def sign_up(self, email: str, password: str, name: Optional[str] = None) -> AuthResult:
        payload: Dict[str, Any] = {
            "email": email,
            "password": password,
            "returnSecureToken": True,
        }
        if name and name.strip():
            payload["displayName"] = name.strip()
        response = self._post(self.SIGN_UP_PATH, payload)
        return self._to_result(response, email)

    def sign_in(self, email: str, password: str) -> AuthResult:
        payload = {
            "email": email,
            "password": password,
            "returnSecureToken": True,
        }
        response = self._post(self.LOGIN_PATH, payload)
        return self._to_result(response, email)

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.endpoint}{path}"
        try:
            res = requests.post(url, params={"key": self.api_key}, json=payload, timeout=15)
        except RequestException as exc:
            logger.warning("Auth request to %s failed: %s", path, exc)
            raise AuthServiceError("AUTH_SERVICE_UNAVAILABLE") from exc
        try:
            data = res.json()
        except ValueError:
            raise AuthServiceError("AUTH_SERVICE_UNAVAILABLE")

        if res.status_code >= 400:
            error = data.get("error") or {}
            error_key = str(error.get("message") or "AUTH_ERROR") if isinstance(error, dict) else str(error)
            raise AuthServiceError(error_key)

        return data

    @staticmethod
    def _to_result(data: Dict[str, Any], email: str) -> AuthResult:
        uid = str(data.get("localId") or "")
        if not uid:
            raise AuthServiceError("INVALID_FIREBASE_SESSION")
        return AuthResult(
            uid=uid,
            email=str(data.get("email") or email),
            id_token=str(data.get("idToken") or ""),
            refresh_token=str(data.get("refreshToken") or ""),
            display_name=str(data.get("displayName") or ""),
        )
