import hashlib
import logging
import secrets

from fastapi import Depends, Header, HTTPException, Query, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.core.config import Settings, get_app_settings
from app.core.errors import InvalidTokenError
from app.domain.schemas import Role

logger = logging.getLogger(__name__)

# Bearer token extractor (auto_error=False so we answer with our own 401 body)
security = HTTPBearer(auto_error=False)


def generate_fingerprint(
    device_id: str,
    user_agent: str,
    screen_width: int,
    screen_height: int,
    timezone: str,
    language: str,
) -> str:
    """Derive the device fingerprint the browser computes at login.

    The browser hashes a locally persisted UUID together with a few
    environment properties. Clearing local storage produces a new UUID and so
    a new logical device. User agent and screen size are spoofable, so this is
    only a continuity signal.
    """
    raw = f"{device_id}-{user_agent}-{screen_width}x{screen_height}-{timezone}-{language}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def hash_ip(ip: str) -> str:
    """SHA-256 of the client IP; raw addresses are never stored."""
    return hashlib.sha256(ip.encode("utf-8")).hexdigest()


def _matches(candidate: str | None, expected: str | None) -> bool:
    if not candidate or not expected:
        return False
    return secrets.compare_digest(candidate.encode("utf-8"), expected.encode("utf-8"))


def role_for_token(token: str | None, settings: Settings) -> Role:
    """Map a static login token to its role, or raise InvalidTokenError."""
    if _matches(token, settings.admin_token):
        return Role.ADMIN
    if _matches(token, settings.client_token):
        return Role.CLIENT
    raise InvalidTokenError()


def require_cron_secret(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    settings: Settings = Depends(get_app_settings),
) -> None:
    """Guard for the platform cron (Authorization: Bearer <CRON_SECRET>)."""
    if not credentials or not _matches(credentials.credentials, settings.cron_secret):
        logger.warning("Cron call rejected: bad or missing bearer secret")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )


def require_external_cron_token(
    token: str | None = Query(None),
    x_cron_token: str | None = Header(None, alias="x-cron-token"),
    settings: Settings = Depends(get_app_settings),
) -> None:
    """Guard for third-party cron pingers (?token= or x-cron-token header).

    With EXTERNAL_CRON_TOKEN unset the route is closed.
    """
    supplied = token or x_cron_token
    if not _matches(supplied, settings.external_cron_token):
        logger.warning("External cron call rejected")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
