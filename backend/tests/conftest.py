import os
import tempfile

# keep test runs away from the real log directory and database
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="travel-joy-logs-"))
os.environ.setdefault("DB_PATH", os.path.join(tempfile.mkdtemp(prefix="travel-joy-db-"), "test.sqlite3"))

import pytest

from app.agents.plan_orchestrator import PlanMutationOrchestrator
from app.core.errors import ReasonerError
from app.db.sqlite_store import ItineraryStore
from app.services.session_store import ConversationStateManager

from factories import StubReasoner, make_plan


@pytest.fixture
def store(tmp_path):
    db = ItineraryStore(str(tmp_path / "itinerary.sqlite3"))
    yield db
    db.close()


@pytest.fixture
def trip(store):
    created = store.create_trip(
        user_id="u1",
        destination="Paris",
        budget=1000.0,
        start_date="2025-06-01",
        end_date="2025-06-02",
        status="completed",
    )
    store.replace_plan(created["id"], make_plan())
    return store.get_trip(created["id"])


@pytest.fixture
def sessions():
    return ConversationStateManager(max_messages=20)


@pytest.fixture
def reasoner():
    return StubReasoner()


@pytest.fixture
def orchestrator(sessions, store, reasoner):
    return PlanMutationOrchestrator(sessions, store, reasoner, reasoner_timeout=5)


@pytest.fixture
def failing_reasoner():
    return StubReasoner(error=ReasonerError("model unavailable"))
