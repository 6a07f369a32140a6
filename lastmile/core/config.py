import logging
from urllib.parse import parse_qs, urlparse

from fastapi import Request

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


def company_hint_from_request(request: Request, submitted: str | None = None) -> str:
    """
    Best-effort company name for a driver request.

    Order: submitted body value, ?company= on the request URL, ?company= on the
    Referer URL. The result is only a hint; the driver registry decides access.
    """
    value = (submitted or "").strip()
    if value:
        return value

    query_value = (request.query_params.get("company") or "").strip()
    if query_value:
        return query_value

    referer = (request.headers.get("referer") or "").strip()
    if referer:
        candidates = parse_qs(urlparse(referer).query).get("company") or []
        for candidate in candidates:
            if candidate.strip():
                logger.debug("company_hint: resolved from referer value=%s", candidate.strip())
                return candidate.strip()
    return ""


class CoreSettings(BaseSettings):
    ENV: str = Field(default="development", validation_alias="APP_ENV")
    APP_NAME: str = "lastmile-api"
    LOG_LEVEL: str = "INFO"

    BASE_URL: str = "http://localhost:8000"
    SESSION_SECRET_KEY: str = "change-this-session-secret"
    SESSION_COOKIE_DOMAIN: str = ""

    MAX_FREE_DISTANCE_KM: float = 3.0
    DIGITAL_ID_LENGTH: int = 8
    DIGITAL_ID_MAX_ATTEMPTS: int = 10

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = CoreSettings()
