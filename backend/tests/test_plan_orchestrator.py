import asyncio

import pytest

from app.agents.plan_orchestrator import PlanMutationOrchestrator, QUICK_ACTION_MESSAGES
from app.core.errors import NotFoundError, ReasonerError, StoreWriteError, ValidationError
from app.models.plan_models import MutationResult
from app.utils.plan_mapping import plan_from_trip

from factories import StubReasoner, cheaper_plan, make_plan


def run(coro):
    return asyncio.run(coro)


def test_info_reply_leaves_plan_untouched(sessions, store, trip):
    reasoner = StubReasoner(MutationResult(reply_text="Sunny", intent="none"))
    orchestrator = PlanMutationOrchestrator(sessions, store, reasoner)
    before = store.get_trip(trip["id"])["daily_plans"]

    reply = run(orchestrator.handle("u1", "What's the weather?", trip["id"]))

    assert reply.reply_text == "Sunny"
    assert reply.action == "none"
    assert reply.updated_plan is None
    assert store.get_trip(trip["id"])["daily_plans"] == before


def test_update_plan_replaces_persisted_plan(sessions, store, trip):
    new_plan = cheaper_plan()
    reasoner = StubReasoner(MutationResult(reply_text="Updated", intent="update_plan", new_plan=new_plan))
    orchestrator = PlanMutationOrchestrator(sessions, store, reasoner)

    reply = run(orchestrator.handle("u1", "Make day 2 cheaper", trip["id"]))

    assert reply.action == "update_plan"
    assert reply.updated_plan == new_plan
    assert plan_from_trip(store.get_trip(trip["id"])) == new_plan

    history = orchestrator.history("u1", trip["id"])
    assert [(m.role, m.content) for m in history] == [
        ("user", "Make day 2 cheaper"),
        ("assistant", "Updated"),
    ]


def test_update_plan_with_budget_updates_trip(sessions, store, trip):
    reasoner = StubReasoner(MutationResult(
        reply_text="Trimmed to 600", intent="update_plan", new_plan=cheaper_plan(), new_budget=600.0,
    ))
    orchestrator = PlanMutationOrchestrator(sessions, store, reasoner)

    run(orchestrator.handle("u1", "Keep it under 600", trip["id"]))

    assert store.get_trip(trip["id"])["budget"] == 600.0


def test_update_plan_without_trip_persists_nothing(sessions, store, trip):
    reasoner = StubReasoner(MutationResult(reply_text="Here you go", intent="update_plan", new_plan=cheaper_plan()))
    orchestrator = PlanMutationOrchestrator(sessions, store, reasoner)

    reply = run(orchestrator.handle("u1", "Plan me a day in Paris"))

    assert reply.updated_plan == cheaper_plan()
    assert plan_from_trip(store.get_trip(trip["id"])) == make_plan()


def test_context_carries_history_and_current_plan(orchestrator, reasoner, trip):
    run(orchestrator.handle("u1", "first", trip["id"]))
    run(orchestrator.handle("u1", "second", trip["id"]))

    message, context = reasoner.calls[-1]
    assert message == "second"
    assert context.trip_id == trip["id"]
    assert [(h.role, h.content) for h in context.conversation_history] == [
        ("user", "first"),
        ("assistant", "ok"),
        ("user", "second"),
    ]
    assert context.current_plan == make_plan()


def test_missing_trip_degrades_to_no_plan_context(orchestrator, reasoner):
    reply = run(orchestrator.handle("u1", "Hello", "no-such-trip"))

    assert reply.reply_text == "ok"
    _, context = reasoner.calls[0]
    assert context.current_plan is None


def test_no_trip_means_no_plan_lookup(orchestrator, reasoner):
    run(orchestrator.handle("u1", "Hello"))

    _, context = reasoner.calls[0]
    assert context.trip_id is None
    assert context.current_plan is None


@pytest.mark.parametrize("message", ["", "   "])
def test_empty_message_is_rejected_without_side_effects(orchestrator, reasoner, message):
    with pytest.raises(ValidationError):
        run(orchestrator.handle("u1", message, "t1"))

    assert reasoner.calls == []
    assert orchestrator.history("u1", "t1") == []


def test_missing_user_is_rejected(orchestrator):
    with pytest.raises(ValidationError):
        run(orchestrator.handle("", "hello"))


def test_reasoner_failure_keeps_user_turn_only(sessions, store, trip, failing_reasoner):
    orchestrator = PlanMutationOrchestrator(sessions, store, failing_reasoner)

    with pytest.raises(ReasonerError):
        run(orchestrator.handle("u1", "Make it cheaper", trip["id"]))

    history = orchestrator.history("u1", trip["id"])
    assert [(m.role, m.content) for m in history] == [("user", "Make it cheaper")]
    assert plan_from_trip(store.get_trip(trip["id"])) == make_plan()


def test_unexpected_reasoner_exception_becomes_reasoner_error(sessions, store):
    orchestrator = PlanMutationOrchestrator(sessions, store, StubReasoner(error=RuntimeError("socket closed")))

    with pytest.raises(ReasonerError):
        run(orchestrator.handle("u1", "hi"))


def test_slow_reasoner_times_out(sessions, store):
    class SlowReasoner(StubReasoner):
        async def infer(self, message, context):
            await asyncio.sleep(1)
            return self.result

    orchestrator = PlanMutationOrchestrator(sessions, store, SlowReasoner(), reasoner_timeout=0.01)

    with pytest.raises(ReasonerError):
        run(orchestrator.handle("u1", "hi"))


def test_store_write_failure_surfaces_after_reply_recorded(sessions, store, trip, monkeypatch):
    reasoner = StubReasoner(MutationResult(reply_text="Updated", intent="update_plan", new_plan=cheaper_plan()))
    orchestrator = PlanMutationOrchestrator(sessions, store, reasoner)

    def broken_replace(trip_id, plan, budget=None):
        raise StoreWriteError("disk full")

    monkeypatch.setattr(store, "replace_plan", broken_replace)

    with pytest.raises(StoreWriteError):
        run(orchestrator.handle("u1", "Make it cheaper", trip["id"]))

    assert [m.role for m in orchestrator.history("u1", trip["id"])] == ["user", "assistant"]


def test_quick_action_budget_sends_canned_message(orchestrator, reasoner, trip):
    run(orchestrator.handle_quick_action("u1", "budget", trip["id"]))

    assert reasoner.calls[0][0] == "Show me a breakdown of my trip budget"


def test_every_quick_action_has_a_message(orchestrator, reasoner):
    for key, message in QUICK_ACTION_MESSAGES.items():
        run(orchestrator.handle_quick_action("u1", key))
        assert reasoner.calls[-1][0] == message
    assert len(QUICK_ACTION_MESSAGES) == 6


def test_unknown_quick_action_passes_through(orchestrator, reasoner):
    run(orchestrator.handle_quick_action("u1", "find me a museum"))

    assert reasoner.calls[0][0] == "find me a museum"


def test_empty_quick_action_is_rejected(orchestrator):
    with pytest.raises(ValidationError):
        run(orchestrator.handle_quick_action("u1", ""))


def test_modify_plan_returns_persisted_plan(sessions, store, trip):
    new_plan = make_plan(with_display_fields=True, day_cost=90.0)
    reasoner = StubReasoner(MutationResult(reply_text="Done", intent="update_plan", new_plan=new_plan))
    orchestrator = PlanMutationOrchestrator(sessions, store, reasoner)

    result = run(orchestrator.modify_plan("u1", trip["id"], "cheaper hotels"))

    assert reasoner.calls[0][0] == "Please modify my trip: cheaper hotels"
    assert result.modified is True
    assert result.reply_text == "Done"
    # the persisted version, not the in-memory one: display-only fields are gone
    assert result.plan[0].estimated_cost == 90.0
    assert result.plan[0].activities[0].start_time == ""
    assert result.plan[0].activities[0].location.address == ""


def test_modify_plan_without_change(orchestrator, trip):
    result = run(orchestrator.modify_plan("u1", trip["id"], "what do you think?"))

    assert result.modified is False
    assert result.reply_text == "ok"
    assert result.plan is None


def test_modify_plan_fails_when_trip_vanishes(sessions, store, trip):
    reasoner = StubReasoner(MutationResult(reply_text="Done", intent="update_plan", new_plan=cheaper_plan()))
    orchestrator = PlanMutationOrchestrator(sessions, store, reasoner)
    real_get_trip = store.get_trip
    calls = {"n": 0}

    def get_trip_then_vanish(trip_id):
        calls["n"] += 1
        if calls["n"] > 1:
            raise NotFoundError(f"Trip {trip_id} not found")
        return real_get_trip(trip_id)

    store.get_trip = get_trip_then_vanish

    with pytest.raises(NotFoundError):
        run(orchestrator.modify_plan("u1", trip["id"], "cheaper"))


def test_modify_plan_requires_ids(orchestrator):
    with pytest.raises(ValidationError):
        run(orchestrator.modify_plan("u1", "", "cheaper"))
    with pytest.raises(ValidationError):
        run(orchestrator.modify_plan("u1", "t1", ""))


def test_clear_history(orchestrator, trip):
    run(orchestrator.handle("u1", "hello", trip["id"]))
    orchestrator.clear_history("u1", trip["id"])

    assert orchestrator.history("u1", trip["id"]) == []
