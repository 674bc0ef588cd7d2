# backend/app/utils/plan_mapping.py

from typing import Any, Dict, List, Optional

from app.models.plan_models import Activity, DayPlan, Location, Meal, PlanDocument, Transport
from app.utils.time_utils import parse_trip_date


# ---------------------------------------------------------------------------
# RECORD -> DOCUMENT
# ---------------------------------------------------------------------------
def _endpoint(lat: Optional[float], lon: Optional[float]) -> Optional[Location]:
    if not lat and not lon:
        return None
    return Location(lat=lat, lon=lon)


def plan_from_trip(trip: Dict[str, Any]) -> PlanDocument:
    """
    Build the reasoner-facing plan from a persisted trip record.

    Address and the start/end/time fields are never stored, so they always
    come back empty.
    """
    plan: PlanDocument = []

    for day in trip.get("daily_plans", []):
        activities = [
            Activity(
                name=a["name"],
                description=a.get("description") or "",
                location=Location(lat=a["latitude"], lon=a["longitude"]),
                duration=a["duration"],
                cost=a["cost"],
                category=a["category"],
            )
            for a in day.get("activities", [])
        ]
        meals = [
            Meal(
                name=m["name"],
                type=m["meal_type"],
                location=Location(lat=m["latitude"], lon=m["longitude"]),
                cost=m["cost"],
                cuisine=m.get("cuisine") or "",
            )
            for m in day.get("meals", [])
        ]
        transportation = [
            Transport(
                mode=t["mode"],
                from_=t["from_location"],
                to=t["to_location"],
                duration=t["duration"],
                cost=t["cost"],
                from_location=_endpoint(t.get("from_latitude"), t.get("from_longitude")),
                to_location=_endpoint(t.get("to_latitude"), t.get("to_longitude")),
            )
            for t in day.get("transportations", [])
        ]

        plan.append(DayPlan(
            date=parse_trip_date(day["date"]),
            activities=activities,
            meals=meals,
            transportation=transportation,
            estimated_cost=day["estimated_cost"],
        ))

    return plan


# ---------------------------------------------------------------------------
# DOCUMENT -> RECORD
# ---------------------------------------------------------------------------
def plan_to_records(plan: PlanDocument) -> List[Dict[str, Any]]:
    """
    Flatten a plan into day rows with nested child rows, ready for insert.

    Transport endpoints without coordinates are stored as 0/0.
    """
    records = []

    for day in plan:
        transportations = []
        for t in day.transportation:
            origin = t.from_location or Location()
            dest = t.to_location or Location()
            transportations.append({
                "from_location": t.from_,
                "to_location": t.to,
                "from_latitude": origin.lat,
                "from_longitude": origin.lon,
                "to_latitude": dest.lat,
                "to_longitude": dest.lon,
                "mode": t.mode,
                "duration": t.duration,
                "cost": t.cost,
            })

        records.append({
            "date": day.date.isoformat(),
            "estimated_cost": day.estimated_cost,
            "activities": [
                {
                    "name": a.name,
                    "description": a.description,
                    "latitude": a.location.lat,
                    "longitude": a.location.lon,
                    "duration": a.duration,
                    "cost": a.cost,
                    "category": a.category,
                }
                for a in day.activities
            ],
            "meals": [
                {
                    "name": m.name,
                    "latitude": m.location.lat,
                    "longitude": m.location.lon,
                    "meal_type": m.type,
                    "cost": m.cost,
                    "cuisine": m.cuisine,
                }
                for m in day.meals
            ],
            "transportations": transportations,
        })

    return records
