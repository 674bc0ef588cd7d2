# backend/app/services/trip_service.py

from typing import Optional, Dict, Any, List

from app.agents.plan_reasoner import PlanReasoner
from app.core.errors import AuthorizationError, NotFoundError, ValidationError
from app.core.logger import logger
from app.db.sqlite_store import ItineraryStore
from app.models.trip_models import ActivityUpdate, TripCreate
from app.utils.plan_mapping import plan_from_trip


class TripService:
    """Trip lifecycle: creation, background itinerary generation, edits and optimisation."""

    def __init__(self, store: ItineraryStore, reasoner: PlanReasoner):
        self.store = store
        self.reasoner = reasoner

    # -----------------------------
    # Create + generate
    # -----------------------------
    def create_trip(self, user_id: str, data: TripCreate) -> Dict[str, Any]:
        """
        Insert the trip with status "generating". The itinerary itself is
        produced by `generate_itinerary`, scheduled by the caller as a
        background task.
        """
        if not data.destination.strip():
            raise ValidationError("Destination is required")
        if data.budget <= 0:
            raise ValidationError("Budget must be positive")
        if data.end_date < data.start_date:
            raise ValidationError("End date must not be before start date")

        trip = self.store.create_trip(
            user_id=user_id,
            destination=data.destination.strip(),
            budget=data.budget,
            start_date=data.start_date.isoformat(),
            end_date=data.end_date.isoformat(),
            preferences=data.preferences.model_dump(),
            status="generating",
        )
        logger.info(f"Created trip {trip['id']} to {trip['destination']} for user={user_id}")
        return trip

    async def generate_itinerary(self, trip_id: str, data: TripCreate):
        """
        Background job behind create_trip. Whatever happens, the outcome ends
        up in the trip's status field.
        """
        try:
            plan = await self.reasoner.generate_itinerary(data)
            self.store.replace_plan(trip_id, plan)
            self.store.update_trip_status(trip_id, "completed")
            logger.info(f"Itinerary generated for trip {trip_id}: {len(plan)} days")
        except Exception as e:
            logger.exception(f"Failed to generate itinerary for trip {trip_id}: {e}")
            try:
                self.store.update_trip_status(trip_id, "failed")
            except NotFoundError:
                # deleted while generating; nothing left to mark
                logger.warning(f"Trip {trip_id} vanished during itinerary generation")

    # -----------------------------
    # Read / delete
    # -----------------------------
    def get_user_trip(self, user_id: str, trip_id: str) -> Dict[str, Any]:
        trip = self.store.get_trip(trip_id)
        if str(trip["user_id"]) != str(user_id):
            raise AuthorizationError("Access denied to this trip")
        return trip

    def list_user_trips(self, user_id: str) -> List[Dict[str, Any]]:
        return self.store.list_user_trips(user_id)

    def delete_trip(self, user_id: str, trip_id: str):
        self.get_user_trip(user_id, trip_id)
        self.store.delete_trip(trip_id)
        logger.info(f"Deleted trip {trip_id}")

    # -----------------------------
    # Optimise
    # -----------------------------
    async def optimize_trip(self, user_id: str, trip_id: str, budget: Optional[float] = None,
                            preferences: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if budget is not None and budget <= 0:
            raise ValidationError("Budget must be positive")

        trip = self.get_user_trip(user_id, trip_id)
        optimized = await self.reasoner.optimize_plan(plan_from_trip(trip), budget, preferences)

        self.store.replace_plan(trip_id, optimized, budget=budget)

        return self.store.get_trip(trip_id)

    # -----------------------------
    # Activities
    # -----------------------------
    def _owned_activity(self, user_id: str, activity_id: str) -> Dict[str, Any]:
        activity = self.store.get_activity(activity_id)
        self.get_user_trip(user_id, activity["trip_id"])
        return activity

    def update_activity(self, user_id: str, activity_id: str, updates: ActivityUpdate) -> Dict[str, Any]:
        self._owned_activity(user_id, activity_id)
        return self.store.update_activity(activity_id, updates.model_dump(exclude_none=True))

    def delete_activity(self, user_id: str, activity_id: str):
        self._owned_activity(user_id, activity_id)
        self.store.delete_activity(activity_id)

    def replace_activity(self, user_id: str, activity_id: str, replacement: ActivityUpdate) -> Dict[str, Any]:
        """Swap an activity for an alternative; fields left out keep their current values."""
        if not replacement.name:
            raise ValidationError("Replacement activity needs a name")
        return self.update_activity(user_id, activity_id, replacement)
