# backend/app/models/trip_models.py

import datetime as dt
from typing import Optional, List, Dict, Any, Literal

from pydantic import BaseModel, Field, field_validator

from app.utils.time_utils import parse_trip_date


TripStatus = Literal["generating", "completed", "failed"]


class TripPreferences(BaseModel):
    activity_type: List[str] = []
    food_preference: List[str] = []
    transport_preference: List[str] = []
    schedule_preference: Optional[Literal["relaxed", "moderate", "packed"]] = None


class TripCreate(BaseModel):
    destination: str
    budget: float
    start_date: dt.date
    end_date: dt.date
    preferences: TripPreferences = Field(default_factory=TripPreferences)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _parse_dates(cls, value):
        return parse_trip_date(value)

    @property
    def duration_days(self) -> int:
        return (self.end_date - self.start_date).days + 1


class OptimizeTripIn(BaseModel):
    budget: Optional[float] = None
    preferences: Optional[Dict[str, Any]] = None


class ActivityUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    duration: Optional[int] = None
    cost: Optional[float] = None
    category: Optional[str] = None
