# backend/app/api/routes_trips.py

from fastapi import APIRouter, BackgroundTasks, Depends

from app.api.deps import get_current_user_id, get_trip_service
from app.models.trip_models import TripCreate, OptimizeTripIn, ActivityUpdate
from app.services.trip_service import TripService

router = APIRouter(prefix="/trips", tags=["trips"])


# --------------------------
# Trips
# --------------------------
@router.post("", status_code=201)
def create_trip(
    data: TripCreate,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(get_current_user_id),
    trips: TripService = Depends(get_trip_service),
):
    trip = trips.create_trip(user_id, data)
    background_tasks.add_task(trips.generate_itinerary, trip["id"], data)
    return trip


@router.get("")
def list_trips(user_id: str = Depends(get_current_user_id), trips: TripService = Depends(get_trip_service)):
    return {"items": trips.list_user_trips(user_id)}


@router.get("/{trip_id}")
def get_trip(trip_id: str, user_id: str = Depends(get_current_user_id),
             trips: TripService = Depends(get_trip_service)):
    return trips.get_user_trip(user_id, trip_id)


@router.delete("/{trip_id}")
def delete_trip(trip_id: str, user_id: str = Depends(get_current_user_id),
                trips: TripService = Depends(get_trip_service)):
    trips.delete_trip(user_id, trip_id)
    return {"ok": True, "message": "Trip deleted"}


@router.post("/{trip_id}/optimize")
async def optimize_trip(
    trip_id: str,
    data: OptimizeTripIn,
    user_id: str = Depends(get_current_user_id),
    trips: TripService = Depends(get_trip_service),
):
    return await trips.optimize_trip(user_id, trip_id, data.budget, data.preferences)


# --------------------------
# Activities
# --------------------------
@router.put("/activities/{activity_id}")
def update_activity(activity_id: str, data: ActivityUpdate, user_id: str = Depends(get_current_user_id),
                    trips: TripService = Depends(get_trip_service)):
    return trips.update_activity(user_id, activity_id, data)


@router.delete("/activities/{activity_id}")
def delete_activity(activity_id: str, user_id: str = Depends(get_current_user_id),
                    trips: TripService = Depends(get_trip_service)):
    trips.delete_activity(user_id, activity_id)
    return {"ok": True, "message": "Activity deleted"}


@router.post("/activities/{activity_id}/replace")
def replace_activity(activity_id: str, data: ActivityUpdate, user_id: str = Depends(get_current_user_id),
                     trips: TripService = Depends(get_trip_service)):
    return trips.replace_activity(user_id, activity_id, data)
