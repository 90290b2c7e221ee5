from typing import List, Optional
from uuid import UUID
import datetime as dt
from datetime import date, datetime
from pydantic import BaseModel, Field

from schooldesk.models.records import AttendanceStatus


class AttendanceEntry(BaseModel):
    student_id: UUID
    status: AttendanceStatus
    arrival_time: Optional[str] = None
    notes: Optional[str] = None
    reason: Optional[str] = None


class AttendanceMark(BaseModel):
    date: dt.date
    period: str = "morning"
    records: List[AttendanceEntry] = Field(min_length=1)


class AttendanceUpdate(BaseModel):
    attendance_id: UUID
    status: Optional[AttendanceStatus] = None
    arrival_time: Optional[str] = None
    notes: Optional[str] = None
    reason: Optional[str] = None


# alert_type and priority are checked against the enums by the handler.
class AlertCreate(BaseModel):
    student_id: UUID
    alert_type: str
    priority: str = "normal"
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    parent_notified: bool = False
    follow_up_date: Optional[date] = None


class AlertUpdate(BaseModel):
    status: Optional[str] = None
    priority: Optional[str] = None
    parent_notified: Optional[bool] = None
    follow_up_date: Optional[date] = None
    resolution_notes: Optional[str] = None


class CalendarEventCreate(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    event_type: str = "event"
    start_date: datetime
    end_date: Optional[datetime] = None
    is_all_day: bool = False
    location: Optional[str] = None


class CalendarEventUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    event_type: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_all_day: Optional[bool] = None
    location: Optional[str] = None


class AnnouncementCreate(BaseModel):
    title: str = Field(min_length=1)
    content: str = Field(min_length=1)
    audience: str = Field(default="all", pattern="^(all|students|teachers)$")
    priority: str = "normal"
    expires_at: Optional[datetime] = None
