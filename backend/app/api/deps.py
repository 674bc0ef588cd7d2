# backend/app/api/deps.py

from functools import lru_cache
from typing import Optional

from fastapi import Header

from app.agents.plan_orchestrator import PlanMutationOrchestrator
from app.agents.plan_reasoner import PlanReasoner
from app.core.security import user_id_from_header
from app.db.sqlite_store import ItineraryStore
from app.services.session_store import ConversationStateManager
from app.services.trip_service import TripService


# -----------------------------
# Process-wide singletons (override in tests via app.dependency_overrides)
# -----------------------------
@lru_cache
def get_store() -> ItineraryStore:
    return ItineraryStore()


@lru_cache
def get_reasoner() -> PlanReasoner:
    return PlanReasoner()


@lru_cache
def get_sessions() -> ConversationStateManager:
    return ConversationStateManager()


@lru_cache
def get_orchestrator() -> PlanMutationOrchestrator:
    return PlanMutationOrchestrator(get_sessions(), get_store(), get_reasoner())


@lru_cache
def get_trip_service() -> TripService:
    return TripService(get_store(), get_reasoner())


def get_current_user_id(authorization: Optional[str] = Header(None)) -> str:
    return user_id_from_header(authorization)
