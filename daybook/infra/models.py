from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from .db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class DayLogModel(Base):
    __tablename__ = "day_logs"

    id = Column(Integer, primary_key=True)
    date = Column(Date, nullable=False, unique=True)
    notes = Column(Text, nullable=False, default="")

    tasks = relationship(
        "TaskModel",
        back_populates="day_log",
        cascade="all, delete-orphan",
        order_by="TaskModel.sort_order",
    )


class TaskModel(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True)
    day_log_id = Column(Integer, ForeignKey("day_logs.id", ondelete="CASCADE"), nullable=True, index=True)
    # Nullable because synced records may arrive incomplete; reads validate.
    name = Column(String(200), nullable=True)
    notes = Column(Text, nullable=False, default="")
    tags = Column(Text, nullable=False, default="")
    status = Column(String(20), nullable=False, default="normal")
    reminder_time = Column(DateTime, nullable=True)
    notification_id = Column(String(64), nullable=True)
    is_recurring = Column(Boolean, nullable=False, default=False, index=True)
    recurrence_rule = Column(Text, nullable=True)
    recurrence_end_date = Column(Date, nullable=True)
    source_template_id = Column(Integer, nullable=True, index=True)
    is_anchor = Column(Boolean, nullable=False, default=False)
    anchor_source_id = Column(Integer, nullable=True, index=True)
    anchor_day_count = Column(Integer, nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    modified_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    day_log = relationship("DayLogModel", back_populates="tasks")


class RunMarkerModel(Base):
    __tablename__ = "run_markers"

    key = Column(String(64), primary_key=True)
    value = Column(DateTime, nullable=False)
