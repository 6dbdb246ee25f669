"""Audit trail for credit movements and stored icons."""

from typing import Any

from icongen.core.logging import get_logger
from icongen.models.audit_log import AuditLog

log = get_logger(__name__)


async def log_event(
    user_id: str | None,
    event_type: str,
    entity_type: str,
    entity_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> None:
    """Append to audit_logs collection."""
    await AuditLog(
        user_id=user_id,
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        metadata=metadata or {},
    ).insert()
    log.debug("audit_event", event_type=event_type, entity_type=entity_type, entity_id=entity_id)


async def log_event_safely(
    user_id: str | None,
    event_type: str,
    entity_type: str,
    entity_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> None:
    """log_event after a write that has already committed; a failed insert is logged, not raised."""
    try:
        await log_event(user_id, event_type, entity_type, entity_id, metadata)
    except Exception:
        log.exception("audit_event_failed", event_type=event_type, entity_type=entity_type, entity_id=entity_id)
