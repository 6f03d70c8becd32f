from __future__ import annotations

from datetime import date, datetime
from typing import Any
from uuid import UUID

from fastapi.encoders import jsonable_encoder

from app.core.logging import get_audit_logger


def serialize_for_audit(value: Any) -> Any:
    return jsonable_encoder(
        value,
        custom_encoder={
            UUID: lambda v: str(v),
            datetime: lambda v: v.isoformat(),
            date: lambda v: v.isoformat(),
        },
    )


def record_event(action: str, *, actor_id: Any | None = None, outcome: str = "success", **fields: Any) -> None:
    """Write one security event to the ``app.audit`` stream.

    ``None`` values are dropped so each event only carries what applies.
    """
    payload = {key: value for key, value in fields.items() if value is not None}
    get_audit_logger().info(
        action,
        extra={
            "action": action,
            "actor_id": serialize_for_audit(actor_id),
            "outcome": outcome,
            "fields": serialize_for_audit(payload),
        },
    )
