# backend/app/models/plan_models.py

import datetime as dt
from typing import List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class PlanModel(BaseModel):
    """Reasoner-facing models speak camelCase JSON, Python code uses snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Location(PlanModel):
    lat: float = 0.0
    lon: float = 0.0
    address: str = ""


class Activity(PlanModel):
    name: str
    description: str = ""
    location: Location = Field(default_factory=Location)
    duration: int = 0           # minutes
    cost: float = 0.0
    category: str = ""
    start_time: str = ""
    end_time: str = ""


class Meal(PlanModel):
    name: str
    type: str = "lunch"         # breakfast | lunch | dinner | snack
    location: Location = Field(default_factory=Location)
    cost: float = 0.0
    cuisine: str = ""
    time: str = ""


class Transport(PlanModel):
    # model output calls this "type"
    mode: str = Field("walk", validation_alias=AliasChoices("mode", "type"))
    from_: str = Field("", alias="from")
    to: str = ""
    duration: int = 0
    cost: float = 0.0
    time: str = ""
    from_location: Optional[Location] = None
    to_location: Optional[Location] = None


class DayPlan(PlanModel):
    date: dt.date
    activities: List[Activity] = Field(default_factory=list)
    meals: List[Meal] = Field(default_factory=list)
    transportation: List[Transport] = Field(default_factory=list)
    estimated_cost: float = 0.0


# A plan document is simply the ordered list of days.
PlanDocument = List[DayPlan]


def dump_plan(plan: PlanDocument) -> List[dict]:
    return [day.model_dump(mode="json", by_alias=True) for day in plan]


# ---------------------------------------------------------------------------
# Conversation / reasoner boundary
# ---------------------------------------------------------------------------
Role = Literal["user", "assistant"]
Intent = Literal["none", "update_plan"]


class Message(BaseModel):
    role: Role
    content: str
    timestamp: dt.datetime


class HistoryEntry(BaseModel):
    role: Role
    content: str


class ReasonerContext(BaseModel):
    trip_id: Optional[str] = None
    conversation_history: List[HistoryEntry] = Field(default_factory=list)
    current_plan: Optional[List[DayPlan]] = None


class MutationResult(BaseModel):
    reply_text: str
    intent: Intent = "none"
    new_plan: Optional[List[DayPlan]] = None
    new_budget: Optional[float] = None

    @model_validator(mode="after")
    def _plan_matches_intent(self):
        if (self.intent == "update_plan") != (self.new_plan is not None):
            raise ValueError("new_plan must be present if and only if intent is 'update_plan'")
        return self


class ChatReply(BaseModel):
    reply_text: str
    action: Intent
    updated_plan: Optional[List[DayPlan]] = None


class PlanModification(BaseModel):
    modified: bool
    reply_text: str
    plan: Optional[List[DayPlan]] = None
