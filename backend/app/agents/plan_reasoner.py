# backend/app/agents/plan_reasoner.py

import json
from datetime import timedelta
from typing import Optional, Dict, Any, List

from openai import AsyncOpenAI, OpenAIError
from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from app.core.config_loader import settings
from app.core.errors import ReasonerError
from app.core.logger import logger
from app.models.plan_models import (
    Activity, DayPlan, Location, Meal, MutationResult, PlanDocument,
    ReasonerContext, Transport, dump_plan,
)
from app.models.trip_models import TripCreate


PLAN_ADAPTER = TypeAdapter(List[DayPlan])

# Only the tail of the conversation goes into the prompt.
HISTORY_TURNS_IN_PROMPT = 5

CHAT_SYSTEM_PROMPT = (
    "You are a helpful travel assistant. Provide concise, accurate travel advice "
    "and help users modify their travel plans."
)

PLANNER_SYSTEM_PROMPT = (
    "You are an expert travel planner. Generate detailed, realistic, and "
    "budget-conscious travel itineraries in JSON format."
)

OPTIMIZER_SYSTEM_PROMPT = (
    "You are an expert travel planner. Optimize travel itineraries based on "
    "constraints while maintaining the overall structure."
)

DAY_FORMAT = """{
  "date": "YYYY-MM-DD",
  "activities": [
    {"name": "Activity Name", "description": "Brief description",
     "location": {"lat": 0, "lon": 0, "address": "Address"},
     "duration": 120, "cost": 25, "category": "museum",
     "startTime": "09:00", "endTime": "11:00"}
  ],
  "meals": [
    {"name": "Restaurant Name", "type": "breakfast",
     "location": {"lat": 0, "lon": 0, "address": "Address"},
     "cost": 15, "cuisine": "local", "time": "08:00"}
  ],
  "transportation": [
    {"mode": "walk", "from": "Hotel", "to": "Activity Name",
     "duration": 15, "cost": 0, "time": "08:45"}
  ],
  "estimatedCost": 100
}"""

ACTIVITIES_PER_DAY = {
    "relaxed": "2-3 activities/day",
    "moderate": "3-4 activities/day",
    "packed": "5+ activities/day",
}


def extract_json(content: str) -> Optional[Dict[str, Any]]:
    """
    Pull the first {...} object out of a model answer.

    Handles ```json fences and chatter around the object; returns None when
    nothing parses.
    """
    text = content.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        if lines[0].startswith("```"):
            lines = lines[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        text = "\n".join(lines)

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None

    try:
        data = json.loads(text[start:end + 1])
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def parse_plan(days: Any) -> Optional[PlanDocument]:
    if not isinstance(days, list):
        return None
    try:
        return PLAN_ADAPTER.validate_python(days)
    except PydanticValidationError as e:
        logger.warning(f"Model returned a malformed plan: {e.error_count()} errors")
        return None


def parse_chat_response(content: str) -> MutationResult:
    """
    Turn a chat answer into a MutationResult.

    Only a JSON object with action "update_plan" and a valid plan counts as a
    mutation; everything else (including "provide_info") is a plain reply.
    """
    data = extract_json(content) or {}
    message = data.get("message")
    reply_text = message if isinstance(message, str) and message.strip() else content.strip()

    if data.get("action") == "update_plan":
        plan = parse_plan(data.get("updatedPlan"))
        if plan is not None:
            budget = data.get("budget")
            return MutationResult(
                reply_text=reply_text,
                intent="update_plan",
                new_plan=plan,
                new_budget=float(budget) if isinstance(budget, (int, float)) else None,
            )

    return MutationResult(reply_text=reply_text, intent="none")


def fallback_itinerary(request: TripCreate) -> PlanDocument:
    """Placeholder plan used when the model answers with something unusable."""
    days = request.duration_days
    daily_budget = request.budget / days

    plans = []
    for i in range(days):
        plans.append(DayPlan(
            date=request.start_date + timedelta(days=i),
            activities=[
                Activity(
                    name="Morning Exploration",
                    description="Explore local attractions",
                    location=Location(address="City Center"),
                    duration=120,
                    cost=round(daily_budget * 0.3, 2),
                    category="sightseeing",
                    start_time="09:00",
                    end_time="11:00",
                ),
                Activity(
                    name="Afternoon Activity",
                    description="Visit popular destination",
                    location=Location(address="Main Attraction"),
                    duration=180,
                    cost=round(daily_budget * 0.4, 2),
                    category="attraction",
                    start_time="14:00",
                    end_time="17:00",
                ),
            ],
            meals=[
                Meal(name="Local Breakfast", type="breakfast", cost=round(daily_budget * 0.1, 2),
                     cuisine="local", time="08:00"),
                Meal(name="Lunch", type="lunch", cost=round(daily_budget * 0.15, 2),
                     cuisine="local", time="12:00"),
                Meal(name="Dinner", type="dinner", cost=round(daily_budget * 0.2, 2),
                     cuisine="local", time="19:00"),
            ],
            transportation=[
                Transport(mode="walk", from_="Hotel", to="Morning Exploration", duration=15, time="08:45"),
            ],
            estimated_cost=round(daily_budget, 2),
        ))
    return plans


class PlanReasoner:
    """
    Natural language -> structured plan changes, backed by OpenAI chat completions.

    Every call has a bounded wait and no SDK-level retries; failures surface
    as ReasonerError and retrying is left to the caller.
    """

    def __init__(self, client: Optional[AsyncOpenAI] = None, model: Optional[str] = None,
                 timeout: Optional[float] = None):
        self._client = client
        self.model = model or settings.openai_model
        self.timeout = timeout or settings.reasoner_timeout_seconds

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            if not settings.OPENAI_API_KEY:
                raise ReasonerError("OPENAI_API_KEY is not configured")
            self._client = AsyncOpenAI(
                api_key=settings.OPENAI_API_KEY,
                timeout=self.timeout,
                max_retries=0,
            )
        return self._client

    async def _complete(self, prompt: str, system_prompt: str, temperature: float = 0.7) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": prompt},
                ],
                temperature=temperature,
            )
        except OpenAIError as e:
            logger.error(f"Reasoner call failed: {e}")
            raise ReasonerError(f"Reasoning service failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            logger.warning("Reasoner returned empty content")
            raise ReasonerError("Reasoning service returned an empty answer")
        return content

    # -----------------------------
    # 1. Chat turn -> reply + optional replacement plan
    # -----------------------------
    async def infer(self, message: str, context: ReasonerContext) -> MutationResult:
        prompt = f"User message: {message}\n\n"

        if context.current_plan is not None:
            prompt += f"Current trip plan:\n{json.dumps(dump_plan(context.current_plan), indent=2)}\n\n"

        if context.conversation_history:
            prompt += "Previous conversation:\n"
            for entry in context.conversation_history[-HISTORY_TURNS_IN_PROMPT:]:
                prompt += f"{entry.role}: {entry.content}\n"
            prompt += "\n"

        prompt += (
            "Respond to the user's message. If they want to modify their plan, answer ONLY with JSON:\n"
            '{"action": "update_plan", "message": "<short reply for the user>", '
            '"budget": <new total budget or null>, "updatedPlan": [<every day of the plan>]}\n'
            f"where each day looks like:\n{DAY_FORMAT}\n"
            "The updatedPlan replaces the whole plan, so include unchanged days too. "
            "Otherwise answer in plain text."
        )

        content = await self._complete(prompt, CHAT_SYSTEM_PROMPT)
        result = parse_chat_response(content)
        logger.info(f"Reasoner intent={result.intent} for trip={context.trip_id}")
        return result

    # -----------------------------
    # 2. Fresh itinerary for a new trip
    # -----------------------------
    async def generate_itinerary(self, request: TripCreate) -> PlanDocument:
        prefs = request.preferences
        prompt = (
            f"Create a {request.duration_days}-day travel itinerary for {request.destination}.\n\n"
            f"TRIP DETAILS:\n"
            f"- Dates: {request.start_date.isoformat()} to {request.end_date.isoformat()}\n"
            f"- Total budget: ${request.budget}\n"
        )
        if prefs.activity_type:
            prompt += f"- Preferred activities: {', '.join(prefs.activity_type)}\n"
        if prefs.food_preference:
            prompt += f"- Food preferences: {', '.join(prefs.food_preference)}\n"
        if prefs.transport_preference:
            prompt += f"- Transport preferences: {', '.join(prefs.transport_preference)}\n"
        if prefs.schedule_preference:
            prompt += f"- Schedule: {ACTIVITIES_PER_DAY[prefs.schedule_preference]}\n"

        prompt += (
            "\nREQUIREMENTS:\n"
            "1. Create a day-by-day itinerary with specific activities, meals, and transportation\n"
            "2. Include estimated costs for each item\n"
            "3. Balance the daily budget across all days\n"
            "4. Include breakfast, lunch, and dinner for each day\n"
            "5. Add transportation between activities\n\n"
            f'FORMAT YOUR RESPONSE AS JSON: {{"itinerary": [<day>, ...]}} where each day looks like:\n{DAY_FORMAT}'
        )

        content = await self._complete(prompt, PLANNER_SYSTEM_PROMPT)
        data = extract_json(content) or {}
        plan = parse_plan(data.get("itinerary"))
        if not plan:
            logger.warning(f"Unusable itinerary for {request.destination}, using fallback plan")
            return fallback_itinerary(request)
        return plan

    # -----------------------------
    # 3. Re-fit an existing plan to new constraints
    # -----------------------------
    async def optimize_plan(self, plan: PlanDocument, budget: Optional[float] = None,
                            preferences: Optional[Dict[str, Any]] = None) -> PlanDocument:
        prompt = (
            "Optimize this travel itinerary based on the following constraints:\n\n"
            f"CURRENT ITINERARY:\n{json.dumps(dump_plan(plan), indent=2)}\n\n"
            "CONSTRAINTS:\n"
        )
        if budget:
            prompt += f"- New Budget: ${budget}\n"
        if preferences:
            prompt += f"- Preferences: {json.dumps(preferences)}\n"
        prompt += (
            '\nProvide the optimized itinerary as JSON: {"itinerary": [<day>, ...]}, '
            "adjusting activities, costs, and timing as needed."
        )

        content = await self._complete(prompt, OPTIMIZER_SYSTEM_PROMPT, temperature=0.3)
        data = extract_json(content) or {}
        optimized = parse_plan(data.get("itinerary"))
        if not optimized:
            logger.warning("Optimization answer unusable, keeping the current plan")
            return plan
        return optimized
