"""
tests/conftest.py
─────────────────
Shared pytest fixtures for the study pet test suite.
"""
import os
from datetime import datetime, timezone

import pytest

os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("ENV_TYPE", "test")


@pytest.fixture
def now() -> datetime:
    return datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def species():
    from studypet.models.species import DEFAULT_SPECIES
    return next(s for s in DEFAULT_SPECIES if s.id == "dragon")


@pytest.fixture
def make_pet(now):
    """Factory for a baby dragon with every timestamp at `now` unless overridden."""
    from studypet.models.pet import Pet

    def _make(**overrides):
        fields = dict(
            owner_id="user-1",
            species_id="dragon",
            name="Ember",
            health=70,
            happiness=60,
            hunger=0,
            energy=100,
            created_at=now,
            last_fed=now,
            last_played=now,
            last_interaction=now,
        )
        fields.update(overrides)
        return Pet(**fields)

    return _make


@pytest.fixture
def baby_ready_stats():
    from studypet.models.pet import StudyStatsSnapshot
    return StudyStatsSnapshot(total_study_hours=10, streak_days=3, quests_completed=1)


@pytest.fixture
def scheduler(now):
    from studypet.core.scheduler import ManualScheduler
    return ManualScheduler(start=now)


@pytest.fixture
def repository():
    from studypet.services.collaborators import InMemoryPetRepository
    return InMemoryPetRepository()


@pytest.fixture
def stats_provider():
    from studypet.services.collaborators import StaticStudyStatsProvider
    return StaticStudyStatsProvider()


@pytest.fixture
def wallet():
    from studypet.services.collaborators import InMemoryWallet
    return InMemoryWallet(starting_balance=100)


@pytest.fixture
def events():
    """Collects every callback the store fires, keyed by callback name."""
    return {"alerts": [], "needs": [], "evolution_ready": []}


@pytest.fixture
def store(repository, stats_provider, wallet, scheduler, events):
    from studypet.services.lifecycle import PetLifecycleStore

    store = PetLifecycleStore(
        repository,
        stats_provider,
        wallet,
        scheduler=scheduler,
        on_alert=lambda user_id, alert: events["alerts"].append((user_id, alert)),
        on_needs=lambda user_id, needs: events["needs"].append((user_id, needs)),
        on_evolution_ready=lambda user_id, elig: events["evolution_ready"].append((user_id, elig)),
    )
    yield store
    store.dispose()


@pytest.fixture
async def adopted(store):
    """A freshly adopted dragon for user-1."""
    return await store.adopt_pet("user-1", "dragon", "Ember")
