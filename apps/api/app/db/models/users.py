"""Tenant end-user directory."""

from datetime import datetime

from sqlalchemy import Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class AppUser(Base):
    """
    An end user of a tenant app.

    Event attendees resolve against this table, by id or by email,
    always within the same (client_id, app_id).
    """

    __tablename__ = "app_users"
    __table_args__ = (
        Index("idx_app_users_client_app", "client_id", "app_id"),
        Index("idx_app_users_email", "email"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    client_id: Mapped[int] = mapped_column(Integer, nullable=False)
    app_id: Mapped[str] = mapped_column(String(50), nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
