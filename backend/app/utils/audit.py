"""Lightweight helper for recording audit log entries.

Usage:
    await log_audit(
        db, admin, action="permissions_update", entity_type="user",
        entity_id=target.id,
        summary="Applied Supervisor template",
        changes={"before": [...], "after": [...]},
    )

The row is added to the current session and committed with the
enclosing transaction. No extra flush is performed.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit_log import AuditLog
from app.models.user import User


async def log_audit(
    db: AsyncSession,
    actor: User,
    *,
    action: str,
    entity_type: str,
    entity_id: str | None = None,
    summary: str | None = None,
    changes: dict | None = None,
) -> None:
    """Append an audit log entry to the current DB session."""
    db.add(AuditLog(
        user_id=actor.id,
        user_name=actor.full_name,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        summary=summary,
        changes=changes,
    ))
