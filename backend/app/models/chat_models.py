# backend/app/models/chat_models.py

from pydantic import BaseModel
from typing import Optional


class ChatMessageIn(BaseModel):
    message: str
    trip_id: Optional[str] = None


class QuickActionIn(BaseModel):
    action: str
    trip_id: Optional[str] = None


class ClearHistoryIn(BaseModel):
    trip_id: Optional[str] = None


class ModifyTripIn(BaseModel):
    trip_id: str
    modification: str
