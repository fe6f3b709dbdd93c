"""Calendar, event, attendee and preference tables."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.db.enums import DEFAULT_ATTENDEE_STATUS, DEFAULT_CALENDAR_COLOR, DEFAULT_EVENT_TYPE


class Calendar(Base):
    """
    A named, colored bucket of events owned by a tenant.

    Ids are generated strings embedding the tenant (cal_<client>_<app>_<suffix>).
    Default calendars are seeded once per tenant and cannot be changed.
    """

    __tablename__ = "calendars"
    __table_args__ = (
        Index("idx_calendars_client_app", "client_id", "app_id"),
    )

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    color: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DEFAULT_CALENDAR_COLOR
    )
    owner_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    client_id: Mapped[int] = mapped_column(Integer, nullable=False)
    app_id: Mapped[str] = mapped_column(String(50), nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    events: Mapped[list["CalendarEvent"]] = relationship(back_populates="calendar")


class CalendarEvent(Base):
    """An event on exactly one calendar."""

    __tablename__ = "calendar_events"
    __table_args__ = (
        Index("idx_calendar_events_client_app", "client_id", "app_id"),
        Index("idx_calendar_events_dates", "start_date", "end_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(
        String(50), nullable=False, default=DEFAULT_EVENT_TYPE.value
    )
    start_date: Mapped[datetime] = mapped_column(nullable=False)
    end_date: Mapped[datetime | None] = mapped_column(nullable=True)
    is_all_day: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    reminder_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    calendar_id: Mapped[str | None] = mapped_column(
        String(50), ForeignKey("calendars.id"), nullable=True
    )
    created_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    client_id: Mapped[int] = mapped_column(Integer, nullable=False)
    app_id: Mapped[str] = mapped_column(String(50), nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    calendar: Mapped["Calendar | None"] = relationship(back_populates="events")
    attendees: Mapped[list["EventAttendee"]] = relationship(
        back_populates="event",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class EventAttendee(Base):
    """Join of an event and a tenant user. Removed with its event."""

    __tablename__ = "event_attendees"
    __table_args__ = (
        Index("idx_event_attendees_client_app", "client_id", "app_id"),
        Index("idx_event_attendees_event", "event_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("calendar_events.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DEFAULT_ATTENDEE_STATUS.value
    )
    client_id: Mapped[int] = mapped_column(Integer, nullable=False)
    app_id: Mapped[str] = mapped_column(String(50), nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    event: Mapped["CalendarEvent"] = relationship(back_populates="attendees")


class UserCalendarPreference(Base):
    """
    Per-user visibility toggle for a calendar.

    A missing row means the calendar is active for that user.
    """

    __tablename__ = "user_calendar_preferences"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "calendar_id", "client_id", "app_id", name="uq_user_calendar_pref"
        ),
        Index("idx_user_calendar_preferences_client_app", "client_id", "app_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    calendar_id: Mapped[str] = mapped_column(String(50), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    client_id: Mapped[int] = mapped_column(Integer, nullable=False)
    app_id: Mapped[str] = mapped_column(String(50), nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )
