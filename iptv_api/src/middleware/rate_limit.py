"""Per-client rate limiting for the credential-guessing endpoints."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from iptv_api.src.config import get_settings

_settings = get_settings()

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=_settings.rate_limit_storage_url or "memory://",
    enabled=_settings.rate_limit_enabled,
)


def auth_rate_limit() -> str:
    """Limit string for login and password recovery, read at request time."""
    return get_settings().rate_limit_auth
