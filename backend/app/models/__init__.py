"""Aggregate model imports for Alembic auto-detection."""

from app.models.audit_log import AuditLog  # noqa: F401
from app.models.user import User  # noqa: F401
