import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    email: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    hashed_password: Mapped[str | None] = mapped_column(String(255))
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Role name from app.auth.roles. Stored as free text: a name the
    # registry no longer knows resolves to no permissions.
    role: Mapped[str] = mapped_column(String(64), nullable=False, default="Viewer")

    # Program site (Mombasa, Lamu, Kilifi, ...). Informational only.
    location: Mapped[str | None] = mapped_column(String(100))

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Per-user grants on top of the role: JSON list of catalog tokens.
    # Older rows may hold {} or null; both read as "no overrides".
    # Effective permissions are never stored, see app.auth.session.
    permission_overrides: Mapped[list | None] = mapped_column(
        JSON, default=list
    )

    last_login_at: Mapped[datetime | None] = mapped_column(DateTime)

    # Tracks who created this account
    created_by: Mapped[str | None] = mapped_column(String(36))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
