from starlette.requests import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.settings import settings


def credential_key(request: Request) -> str:
    """Bucket credential endpoints per client address and route.

    A burst of logins must not also eat the client's budget for password resets.
    """
    return f"{get_remote_address(request)}:{request.url.path}"


def auth_rate_limit() -> str:
    return f"{settings.auth_rate_limit_per_minute}/minute"


limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.rate_limit_per_minute}/minute"],
    storage_uri=settings.redis_url,
    key_prefix="ratelimit",
)

__all__ = ["auth_rate_limit", "credential_key", "limiter"]
