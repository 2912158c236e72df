"""
Database Schemas for Sehat Pulse

Each Pydantic model represents a MongoDB collection. The collection name is the
lowercased class name (e.g., Schedule -> "schedule").
"""
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"

Frequency = Literal["daily", "weekly", "custom"]
Status = Literal["taken", "missed", "skipped"]


class User(BaseModel):
    name: str = Field(..., min_length=1, description="Display name")
    email: EmailStr = Field(..., description="Unique email, stored lowercased")
    password_hash: str = Field(..., description="BCrypt password hash")


class Schedule(BaseModel):
    user_id: str = Field(..., description="Owner user id (stringified ObjectId)")
    name: str = Field(..., min_length=1, description="Medicine name")
    dosage: Optional[str] = Field(None, description="Dosage e.g., 1 tablet, 5ml")
    time: str = Field(..., pattern=TIME_PATTERN, description="HH:MM, 24h")
    frequency: Frequency = Field("daily", description="Reminder frequency")
    duration: str = Field("N/A", description="Course length, free text")


class Log(BaseModel):
    user_id: str = Field(..., description="Owner user id")
    schedule_id: str = Field(..., description="Schedule id at record time")
    status: Status = Field(..., description="What happened to the dose")
    schedule_ref: str = Field(..., description="Schedule name frozen at record time")
    timestamp: datetime = Field(..., description="UTC time the log was recorded")
    date: str = Field(..., description="Calendar day, e.g. 'Sun Oct 18 2026'")
