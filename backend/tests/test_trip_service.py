import asyncio

import pytest

from app.core.errors import AuthorizationError, NotFoundError, ReasonerError, ValidationError
from app.models.trip_models import ActivityUpdate, TripCreate
from app.services.trip_service import TripService
from app.utils.plan_mapping import plan_from_trip

from factories import StubReasoner, cheaper_plan, make_plan


def _request(**overrides):
    data = {"destination": "Paris", "budget": 1000.0, "start_date": "2025-06-01", "end_date": "2025-06-02"}
    data.update(overrides)
    return TripCreate(**data)


def test_create_trip_starts_generating(store):
    service = TripService(store, StubReasoner())

    trip = service.create_trip("u1", _request())

    assert trip["status"] == "generating"
    assert trip["start_date"] == "2025-06-01"


@pytest.mark.parametrize("overrides", [
    {"budget": 0},
    {"end_date": "2025-05-01"},
    {"destination": "  "},
])
def test_create_trip_validation(store, overrides):
    service = TripService(store, StubReasoner())

    with pytest.raises(ValidationError):
        service.create_trip("u1", _request(**overrides))


def test_background_generation_completes(store):
    service = TripService(store, StubReasoner(itinerary=make_plan()))
    data = _request()
    trip = service.create_trip("u1", data)

    asyncio.run(service.generate_itinerary(trip["id"], data))

    done = store.get_trip(trip["id"])
    assert done["status"] == "completed"
    assert plan_from_trip(done) == make_plan()


def test_background_generation_failure_is_recorded(store):
    service = TripService(store, StubReasoner(error=ReasonerError("down")))
    data = _request()
    trip = service.create_trip("u1", data)

    asyncio.run(service.generate_itinerary(trip["id"], data))

    failed = store.get_trip(trip["id"])
    assert failed["status"] == "failed"
    assert failed["daily_plans"] == []


def test_trip_deleted_during_generation_is_dropped(store):
    class DeletingReasoner(StubReasoner):
        async def generate_itinerary(self, request):
            store.delete_trip(trip["id"])
            return make_plan()

    service = TripService(store, DeletingReasoner())
    data = _request()
    trip = service.create_trip("u1", data)

    asyncio.run(service.generate_itinerary(trip["id"], data))

    assert store.list_user_trips("u1") == []


def test_trip_access_is_limited_to_owner(store, trip):
    service = TripService(store, StubReasoner())

    assert service.get_user_trip("u1", trip["id"])["id"] == trip["id"]
    with pytest.raises(AuthorizationError):
        service.get_user_trip("intruder", trip["id"])
    with pytest.raises(NotFoundError):
        service.get_user_trip("u1", "missing")


def test_optimize_trip_replaces_plan_and_budget(store, trip):
    reasoner = StubReasoner(itinerary=cheaper_plan())
    service = TripService(store, reasoner)

    updated = service.optimize_trip("u1", trip["id"], budget=400.0, preferences={"pace": "relaxed"})
    updated = asyncio.run(updated)

    assert updated["budget"] == 400.0
    assert plan_from_trip(updated) == cheaper_plan()
    plan, budget, prefs = reasoner.optimize_calls[0]
    assert plan == make_plan()
    assert (budget, prefs) == (400.0, {"pace": "relaxed"})


def test_activity_edits_check_ownership(store, trip):
    service = TripService(store, StubReasoner())
    activity_id = trip["daily_plans"][0]["activities"][0]["id"]

    with pytest.raises(AuthorizationError):
        service.update_activity("intruder", activity_id, ActivityUpdate(cost=1.0))

    replaced = service.replace_activity("u1", activity_id, ActivityUpdate(name="Orsay", category="museum"))
    assert replaced["name"] == "Orsay"
    assert replaced["cost"] == 22.0

    with pytest.raises(ValidationError):
        service.replace_activity("u1", activity_id, ActivityUpdate(cost=3.0))

    service.delete_activity("u1", activity_id)
    with pytest.raises(NotFoundError):
        store.get_activity(activity_id)


def test_delete_trip(store, trip):
    service = TripService(store, StubReasoner())

    with pytest.raises(AuthorizationError):
        service.delete_trip("intruder", trip["id"])

    service.delete_trip("u1", trip["id"])
    assert service.list_user_trips("u1") == []
