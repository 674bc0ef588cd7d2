# backend/app/agents/plan_orchestrator.py

import asyncio
from typing import List, Optional

from app.agents.plan_reasoner import PlanReasoner
from app.core.config_loader import settings
from app.core.errors import NotFoundError, ReasonerError, StoreError, ValidationError
from app.core.logger import logger
from app.db.sqlite_store import ItineraryStore
from app.models.plan_models import (
    ChatReply, HistoryEntry, Message, MutationResult, PlanModification, ReasonerContext,
)
from app.services.session_store import ConversationStateManager
from app.utils.plan_mapping import plan_from_trip


QUICK_ACTION_MESSAGES = {
    "weather": "What is the weather forecast for my trip?",
    "budget": "Show me a breakdown of my trip budget",
    "optimize": "Can you optimize my itinerary to save money?",
    "restaurants": "Suggest some good restaurants near my activities",
    "activities": "What are some alternative activities I can do?",
    "transport": "What are the best transportation options?",
}

MODIFY_PREFIX = "Please modify my trip: "


class PlanMutationOrchestrator:
    """
    Runs one chat turn end to end:
    record the user message -> build context (history + current plan) ->
    ask the reasoner -> record the reply -> persist a replacement plan if asked.

    Sessions are borrowed for a single call; persisted plans are re-read on
    every call and never cached here.
    """

    def __init__(self, sessions: ConversationStateManager, store: ItineraryStore,
                 reasoner: PlanReasoner, reasoner_timeout: Optional[float] = None):
        self.sessions = sessions
        self.store = store
        self.reasoner = reasoner
        self.reasoner_timeout = reasoner_timeout or settings.reasoner_timeout_seconds

    # ------------------------------------------------------------------
    # Context
    # ------------------------------------------------------------------
    def _build_context(self, session, trip_id: Optional[str]) -> ReasonerContext:
        context = ReasonerContext(
            trip_id=trip_id,
            conversation_history=[
                HistoryEntry(role=m.role, content=m.content)
                for m in self.sessions.history(session)
            ],
        )

        if trip_id:
            try:
                context.current_plan = plan_from_trip(self.store.get_trip(trip_id))
            except (NotFoundError, StoreError) as e:
                # conversation still works, just without plan context
                logger.warning(f"Failed to load trip context for {trip_id}: {e}")

        return context

    async def _infer(self, message: str, context: ReasonerContext) -> MutationResult:
        try:
            return await asyncio.wait_for(
                self.reasoner.infer(message, context),
                timeout=self.reasoner_timeout,
            )
        except ReasonerError:
            raise
        except asyncio.TimeoutError as e:
            raise ReasonerError(f"Reasoning service did not answer within {self.reasoner_timeout}s") from e
        except Exception as e:
            raise ReasonerError(f"Reasoning service failed: {e}") from e

    # ------------------------------------------------------------------
    # Chat turn
    # ------------------------------------------------------------------
    async def handle(self, user_id: str, message: str, trip_id: Optional[str] = None) -> ChatReply:
        if not user_id:
            raise ValidationError("User ID is required")
        if not message or not message.strip():
            raise ValidationError("Message is required")

        session = self.sessions.get_or_create(user_id, trip_id)

        # The user turn stays recorded even if the reasoner fails below, so a
        # retry does not duplicate it.
        self.sessions.append(session, "user", message)

        context = self._build_context(session, trip_id)

        try:
            result = await self._infer(message, context)
        except ReasonerError as e:
            logger.error(f"Chat turn failed for user={user_id} trip={trip_id}: {e}")
            raise

        self.sessions.append(session, "assistant", result.reply_text)

        if result.intent == "update_plan" and trip_id:
            # StoreWriteError propagates: the reply is recorded but the caller must
            # learn that neither plan nor budget was saved.
            self.store.replace_plan(trip_id, result.new_plan, budget=result.new_budget)
            logger.info(f"Applied plan update from chat: user={user_id} trip={trip_id} days={len(result.new_plan)}")
        elif result.intent == "update_plan":
            logger.info(f"Plan update proposed without a trip for user={user_id}; nothing persisted")

        return ChatReply(
            reply_text=result.reply_text,
            action=result.intent,
            updated_plan=result.new_plan,
        )

    async def handle_quick_action(self, user_id: str, action_key: str,
                                  trip_id: Optional[str] = None) -> ChatReply:
        if not action_key:
            raise ValidationError("Action is required")

        # Unknown keys are sent as-is, the reasoner can still make sense of them.
        message = QUICK_ACTION_MESSAGES.get(action_key, action_key)
        return await self.handle(user_id, message, trip_id)

    async def modify_plan(self, user_id: str, trip_id: str, modification_text: str) -> PlanModification:
        if not trip_id or not modification_text:
            raise ValidationError("Trip ID and modification are required")

        reply = await self.handle(user_id, f"{MODIFY_PREFIX}{modification_text}", trip_id)

        if reply.action == "update_plan":
            # read back what was actually persisted
            trip = self.store.get_trip(trip_id)
            return PlanModification(modified=True, reply_text=reply.reply_text, plan=plan_from_trip(trip))

        return PlanModification(modified=False, reply_text=reply.reply_text)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------
    def history(self, user_id: str, trip_id: Optional[str] = None) -> List[Message]:
        session = self.sessions.get_or_create(user_id, trip_id)
        return self.sessions.history(session)

    def clear_history(self, user_id: str, trip_id: Optional[str] = None):
        self.sessions.clear(user_id, trip_id)
        logger.info(f"Cleared chat history for user={user_id} trip={trip_id}")
