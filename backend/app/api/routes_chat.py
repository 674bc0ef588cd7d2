# backend/app/api/routes_chat.py

from typing import Optional

from fastapi import APIRouter, Depends

from app.agents.plan_orchestrator import PlanMutationOrchestrator
from app.api.deps import get_current_user_id, get_orchestrator, get_trip_service
from app.models.chat_models import ChatMessageIn, QuickActionIn, ClearHistoryIn, ModifyTripIn
from app.models.plan_models import ChatReply, dump_plan
from app.services.trip_service import TripService

router = APIRouter(prefix="/chat", tags=["chat"])


def _reply_body(reply: ChatReply) -> dict:
    return {
        "response": reply.reply_text,
        "action": reply.action,
        "updatedPlan": dump_plan(reply.updated_plan) if reply.updated_plan is not None else None,
    }


# -----------------------------
# Chat message
# -----------------------------
@router.post("/message", summary="Send a chat message, optionally about a trip")
async def send_message(
    req: ChatMessageIn,
    user_id: str = Depends(get_current_user_id),
    orchestrator: PlanMutationOrchestrator = Depends(get_orchestrator),
    trips: TripService = Depends(get_trip_service),
):
    if req.trip_id:
        trips.get_user_trip(user_id, req.trip_id)

    reply = await orchestrator.handle(user_id, req.message, req.trip_id)
    return _reply_body(reply)


# -----------------------------
# Quick action
# -----------------------------
@router.post("/quick-action", summary="Run a canned assistant action")
async def quick_action(
    req: QuickActionIn,
    user_id: str = Depends(get_current_user_id),
    orchestrator: PlanMutationOrchestrator = Depends(get_orchestrator),
    trips: TripService = Depends(get_trip_service),
):
    if req.trip_id:
        trips.get_user_trip(user_id, req.trip_id)

    reply = await orchestrator.handle_quick_action(user_id, req.action, req.trip_id)
    return _reply_body(reply)


# -----------------------------
# History
# -----------------------------
@router.get("/history")
def get_history(
    trip_id: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    orchestrator: PlanMutationOrchestrator = Depends(get_orchestrator),
):
    history = orchestrator.history(user_id, trip_id)
    return {"history": [m.model_dump(mode="json") for m in history]}


@router.delete("/history")
def clear_history(
    req: Optional[ClearHistoryIn] = None,
    user_id: str = Depends(get_current_user_id),
    orchestrator: PlanMutationOrchestrator = Depends(get_orchestrator),
):
    orchestrator.clear_history(user_id, req.trip_id if req else None)
    return {"message": "Chat history cleared successfully"}


# -----------------------------
# Natural-language trip modification
# -----------------------------
@router.post("/modify-trip")
async def modify_trip(
    req: ModifyTripIn,
    user_id: str = Depends(get_current_user_id),
    orchestrator: PlanMutationOrchestrator = Depends(get_orchestrator),
    trips: TripService = Depends(get_trip_service),
):
    trips.get_user_trip(user_id, req.trip_id)

    result = await orchestrator.modify_plan(user_id, req.trip_id, req.modification)
    return {
        "message": "Trip modification processed",
        "result": {
            "modified": result.modified,
            "response": result.reply_text,
            "plan": dump_plan(result.plan) if result.plan is not None else None,
        },
    }
