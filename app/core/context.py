import contextvars
from typing import Dict

_UNBOUND = "-"

_request_id: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default=_UNBOUND)
_user_id: contextvars.ContextVar[str] = contextvars.ContextVar("user_id", default=_UNBOUND)


def set_request_id(request_id: str) -> None:
    _request_id.set(request_id)


def get_request_id() -> str:
    return _request_id.get()


def set_user_id(user_id: str) -> None:
    """Called by the auth dependency once the bearer token resolves to a user."""
    _user_id.set(user_id)


def get_user_id() -> str:
    return _user_id.get()


def snapshot() -> Dict[str, str]:
    return {"request_id": _request_id.get(), "user_id": _user_id.get()}


def clear_context() -> None:
    _request_id.set(_UNBOUND)
    _user_id.set(_UNBOUND)
