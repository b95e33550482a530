from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from hr_reports.db import Base


class TimeEntry(Base):
    __tablename__ = "time_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(Integer, ForeignKey("employees.id"), index=True, nullable=False)

    entry_date: Mapped[date] = mapped_column("date", Date, index=True, nullable=False)
    clock_in: Mapped[str | None] = mapped_column(String(16))
    clock_out: Mapped[str | None] = mapped_column(String(16))
    hours: Mapped[float | None] = mapped_column(Numeric(6, 2))
    # free text in older rows, normalized when read
    hour_type: Mapped[str | None] = mapped_column(String(64))
    status: Mapped[str | None] = mapped_column(String(32))
    notes: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), server_default=func.now())
