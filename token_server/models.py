"""
SQLAlchemy models for the token endpoint: issued bearer tokens and endpoint settings.
"""
from datetime import datetime, timezone

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class Token(Base):
    __tablename__ = "tokens"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    token: Mapped[str] = mapped_column(String(128), unique=True, nullable=False, index=True)
    # Identity URL asserted by the authorization endpoint
    me: Mapped[str] = mapped_column(Text, nullable=False)
    client_id: Mapped[str] = mapped_column(Text, nullable=False)
    scope: Mapped[str] = mapped_column(Text, nullable=False)  # space-separated
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)
    # None = active; set once on revocation and never cleared
    revoked: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    @property
    def is_revoked(self) -> bool:
        return self.revoked is not None


class Setting(Base):
    """Name/value pairs administered outside this service (e.g. name='endpoint' allow-list rows)."""
    __tablename__ = "settings"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
