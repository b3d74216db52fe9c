"""
tests/test_lifecycle.py
───────────────────────
Tests for the pet lifecycle store, driven on virtual time.
"""
import asyncio
from datetime import timedelta

import pytest

from studypet.core.errors import (
    ActionInProgressError,
    CooldownActiveError,
    InsufficientFundsError,
    NoPetError,
    NotEligibleError,
    PetAlreadyAdoptedError,
    TransientIOError,
    UnknownItemError,
    UnknownSpeciesError,
)
from studypet.services.care import StudyActivity
from studypet.services.collaborators import InMemoryPetRepository
from studypet.services.lifecycle import PetLifecycleStore

HALF_HOUR = 31 * 60


class FlakyRepository(InMemoryPetRepository):
    def __init__(self):
        super().__init__()
        self.fail = False

    async def save_pet(self, pet):
        if self.fail:
            raise TransientIOError("mongo unavailable")
        await super().save_pet(pet)


class SlowRepository(InMemoryPetRepository):
    async def load_pet(self, user_id):
        await asyncio.sleep(0)
        return await super().load_pet(user_id)


class GateWallet:
    """Holds every spend until the gate opens."""

    def __init__(self):
        self.gate = asyncio.Event()

    async def spend(self, user_id, amount, reason):
        await self.gate.wait()


class TestAdoption:
    async def test_adopt_uses_species_base_stats(self, store, repository, now):
        pet = await store.adopt_pet("user-1", "robot", "Bolt")
        assert (pet.health, pet.happiness, pet.hunger, pet.energy) == (80, 45, 0, 100)
        assert pet.evolution_stage == "baby"
        assert pet.level == 1
        assert pet.created_at == now
        assert (await repository.load_pet("user-1")).id == pet.id

    async def test_adopt_twice_rejected(self, store, adopted):
        with pytest.raises(PetAlreadyAdoptedError):
            await store.adopt_pet("user-1", "cat", "Tom")

    async def test_unknown_species(self, store):
        with pytest.raises(UnknownSpeciesError):
            await store.adopt_pet("user-1", "unicorn", "Sparkle")

    async def test_existing_pet_is_loaded_from_repository(self, repository, stats_provider, wallet, scheduler,
                                                          adopted):
        other = PetLifecycleStore(repository, stats_provider, wallet, scheduler=scheduler)
        pet = await other.get_pet("user-1")
        assert pet.id == adopted.id


class TestQueries:
    async def test_no_pet(self, store):
        assert await store.get_pet("nobody") is None
        with pytest.raises(NoPetError):
            await store.get_pet_status("nobody")
        with pytest.raises(NoPetError):
            await store.feed("nobody")

    async def test_status_reflects_elapsed_time(self, store, scheduler, adopted):
        await scheduler.advance(90 * 60)
        status = await store.get_pet_status("user-1")
        assert status.hunger == 3
        assert status.time_since_last_fed == pytest.approx(90)
        assert status.time_since_last_played == pytest.approx(90)
        assert not status.sync_pending

    async def test_status_does_not_mutate(self, store, scheduler, repository, make_pet, now):
        await repository.save_pet(make_pet(last_fed=now - timedelta(hours=48)))
        first = await store.get_pet_status("user-1")
        second = await store.get_pet_status("user-1")
        assert first == second
        assert first.hunger == 96
        assert first.health == 70

    async def test_hungry_pet_needs_attention(self, store, repository, make_pet, now):
        await repository.save_pet(make_pet(happiness=80, last_fed=now - timedelta(hours=35)))
        status = await store.get_pet_status("user-1")
        assert status.needs_attention
        assert status.attention_reason == "hungry"
        needs = await store.get_pet_needs("user-1")
        assert [n.type.value for n in needs] == ["food"]

    async def test_recovery_plan_and_recommendation(self, store, repository, make_pet, now):
        await repository.save_pet(make_pet(last_fed=now - timedelta(hours=40)))
        plan = await store.get_recovery_plan("user-1")
        assert plan.actions[0].action == "Feed Immediately"
        assert (await store.get_feeding_recommendation("user-1"))["urgency"] == "high"


class TestCareCommands:
    async def test_feed_charges_wallet(self, store, scheduler, wallet, adopted):
        await scheduler.advance(HALF_HOUR)
        outcome = await store.feed("user-1", "basic-kibble")
        assert outcome.record.item_id == "basic-kibble"
        assert outcome.sync_error is None
        assert wallet.balance("user-1") == 95

    async def test_feed_right_after_adoption_is_on_cooldown(self, store, wallet, adopted):
        with pytest.raises(CooldownActiveError):
            await store.feed("user-1", "basic-kibble")
        assert wallet.balance("user-1") == 100

    async def test_mid_cooldown_feed_leaves_stats(self, store, scheduler, adopted):
        await scheduler.advance(HALF_HOUR)
        await store.feed("user-1")
        before = await store.get_pet("user-1")
        await scheduler.advance(5 * 60)
        with pytest.raises(CooldownActiveError):
            await store.feed("user-1")
        after = await store.get_pet("user-1")
        assert (after.hunger, after.health, after.happiness) == (before.hunger, before.health, before.happiness)

    async def test_insufficient_funds(self, store, scheduler, wallet, adopted):
        await wallet.spend("user-1", 100, "test")
        await scheduler.advance(HALF_HOUR)
        before = await store.get_pet("user-1")
        with pytest.raises(InsufficientFundsError):
            await store.feed("user-1", "gourmet-meal")
        after = await store.get_pet("user-1")
        assert after.feeding_history == before.feeding_history
        assert after.last_fed == before.last_fed

    async def test_unknown_item(self, store, adopted):
        with pytest.raises(UnknownItemError):
            await store.feed("user-1", "caviar")
        with pytest.raises(UnknownItemError):
            await store.play("user-1", "yo-yo")

    async def test_feeding_history_bounded(self, store, scheduler, adopted):
        for _ in range(15):
            await scheduler.advance(HALF_HOUR)
            await store.feed("user-1")
        pet = await store.get_pet("user-1")
        assert len(pet.feeding_history) == 10

    async def test_play_and_care(self, store, scheduler, adopted):
        await scheduler.advance(16 * 60)
        played = await store.play("user-1")
        assert played.pet.happiness == 80
        cared = await store.care("user-1")
        assert cared.pet.happiness == 85
        assert cared.pet.health == 75

    async def test_second_action_rejected_while_first_runs(self, repository, stats_provider, scheduler):
        wallet = GateWallet()
        store = PetLifecycleStore(repository, stats_provider, wallet, scheduler=scheduler)
        await store.adopt_pet("user-1", "dragon", "Ember")
        await scheduler.advance(HALF_HOUR)

        feeding = asyncio.create_task(store.feed("user-1", "basic-kibble"))
        await asyncio.sleep(0)
        with pytest.raises(ActionInProgressError):
            await store.play("user-1")
        wallet.gate.set()
        outcome = await feeding
        assert outcome.record.item_id == "basic-kibble"
        store.dispose()

    async def test_failed_save_keeps_state_and_flags_sync(self, stats_provider, wallet, scheduler):
        repository = FlakyRepository()
        store = PetLifecycleStore(repository, stats_provider, wallet, scheduler=scheduler)
        await store.adopt_pet("user-1", "dragon", "Ember")
        await scheduler.advance(HALF_HOUR)

        repository.fail = True
        outcome = await store.feed("user-1")
        assert outcome.sync_error == "mongo unavailable"
        assert (await store.get_pet("user-1")).last_fed == scheduler.now()
        assert (await store.get_pet_status("user-1")).sync_pending

        repository.fail = False
        await store.care("user-1")
        assert not (await store.get_pet_status("user-1")).sync_pending
        store.dispose()

    async def test_record_study_activity(self, store, adopted):
        pet = await store.record_study_activity("user-1", StudyActivity.STUDY_SESSION, 60)
        assert pet.experience == 4
        assert pet.happiness == 66


class TestMonitoring:
    async def test_start_stop(self, store, scheduler, adopted):
        await store.start_monitoring("user-1")
        assert len(scheduler.active_timers) == 3
        await store.start_monitoring("user-1")
        assert len(scheduler.active_timers) == 3
        store.stop_monitoring("user-1")
        assert scheduler.active_timers == []
        assert not store.is_monitoring("user-1")

    async def test_concurrent_first_loads_share_one_session(self, stats_provider, wallet, scheduler, make_pet):
        repository = SlowRepository()
        await repository.save_pet(make_pet())
        store = PetLifecycleStore(repository, stats_provider, wallet, scheduler=scheduler, monitor_on_open=True)

        pet, status = await asyncio.gather(store.get_pet("user-1"), store.get_pet_status("user-1"))
        assert pet.health == status.health
        assert sorted(scheduler.active_timers) == ["health:user-1", "hunger:user-1", "needs:user-1"]
        store.stop_monitoring("user-1")
        assert scheduler.active_timers == []
        store.dispose()

    async def test_dispose_cancels_everything(self, store, scheduler, adopted):
        await store.start_monitoring("user-1")
        store.dispose()
        assert scheduler.active_timers == []

    async def test_health_tick_applies_penalties_once_per_tick(self, store, scheduler, repository, make_pet, now):
        await repository.save_pet(make_pet(last_fed=now - timedelta(hours=45)))
        await store.start_monitoring("user-1")
        await scheduler.advance(600)

        pet = await store.get_pet("user-1")
        assert pet.hunger == 90
        assert pet.health == 66
        assert pet.happiness == 56
        assert len(await store.get_health_trends("user-1", hours=1)) == 2

    async def test_alert_raised_once_within_window(self, store, scheduler, repository, make_pet, now, events):
        await repository.save_pet(make_pet(last_fed=now - timedelta(hours=45)))
        await store.start_monitoring("user-1")
        await scheduler.advance(600)

        titles = [alert.title for _, alert in events["alerts"]]
        assert titles.count("Pet is Starving") == 1
        pending = await store.get_health_alerts("user-1", unacknowledged_only=True)
        assert len([a for a in pending if a.title == "Pet is Starving"]) == 1

    async def test_acknowledge_alert(self, store, scheduler, repository, make_pet, now):
        await repository.save_pet(make_pet(last_fed=now - timedelta(hours=45)))
        await store.start_monitoring("user-1")
        await scheduler.advance(300)

        alert = (await store.get_health_alerts("user-1"))[0]
        assert await store.acknowledge_alert("user-1", alert.id)
        assert not await store.acknowledge_alert("user-1", "missing")
        assert await store.get_health_alerts("user-1", unacknowledged_only=True) == []

    async def test_needs_callback(self, store, scheduler, adopted, events):
        await store.start_monitoring("user-1")
        await scheduler.advance(60)
        assert len(events["needs"]) == 2

    async def test_tick_failure_is_contained(self, store, scheduler, adopted, events, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("needs exploded")

        monkeypatch.setattr("studypet.services.lifecycle.generate_pet_needs", broken)
        await store.start_monitoring("user-1")
        await scheduler.advance(90)
        monkeypatch.undo()
        await scheduler.advance(30)
        assert len(events["needs"]) == 1


class TestEvolution:
    async def test_ready_callback_fires_once(self, store, scheduler, stats_provider, repository, make_pet,
                                             baby_ready_stats, events):
        stats_provider.set_stats("user-1", baby_ready_stats)
        await repository.save_pet(make_pet(level=5, happiness=75))
        await store.start_monitoring("user-1")
        await scheduler.advance(900)
        assert len(events["evolution_ready"]) == 1
        assert events["evolution_ready"][0][1].next_stage.id == "child"

    async def test_trigger_evolution(self, store, stats_provider, repository, make_pet, baby_ready_stats):
        stats_provider.set_stats("user-1", baby_ready_stats)
        await repository.save_pet(make_pet(level=5, happiness=75))
        eligibility = await store.get_evolution_eligibility("user-1")
        assert eligibility.can_evolve and eligibility.progress == 100

        result = await store.trigger_evolution("user-1")
        assert result.pet.evolution_stage == "child"
        assert (await repository.load_pet("user-1")).evolution_stage == "child"
        summary = await store.get_evolution_summary("user-1")
        assert summary.current_stage == "Child"
        assert summary.evolution_count == 1

    async def test_second_trigger_evaluates_next_stage(self, store, stats_provider, repository, make_pet,
                                                       baby_ready_stats):
        stats_provider.set_stats("user-1", baby_ready_stats)
        await repository.save_pet(make_pet(level=5, happiness=75))
        await store.trigger_evolution("user-1")

        with pytest.raises(NotEligibleError):
            await store.trigger_evolution("user-1")
        pet = await store.get_pet("user-1")
        assert pet.evolution_stage == "child"
        assert len(pet.evolution_history) == 1
        eligibility = await store.get_evolution_eligibility("user-1")
        assert eligibility.next_stage.id == "teen"
        missing = {r.type.value for r in eligibility.missing_requirements}
        assert {"study_hours", "streak_days", "level_reached", "quests_completed"} <= missing

    async def test_not_eligible(self, store, adopted):
        with pytest.raises(NotEligibleError):
            await store.trigger_evolution("user-1")
        tips = await store.get_evolution_tips("user-1")
        assert "Study 10 more hours to help your pet grow" in tips


class TestAutoCare:
    async def test_thresholds_are_clamped(self, store, adopted):
        config = await store.set_auto_care("user-1", True, 150, -5)
        assert (config.feed_threshold, config.play_threshold) == (100, 0)

    async def test_auto_feeds_hungry_pet(self, store, scheduler, repository, make_pet, now):
        await repository.save_pet(make_pet(last_fed=now - timedelta(hours=45)))
        await store.set_auto_care("user-1", True)
        await store.start_monitoring("user-1")
        await scheduler.advance(300)

        pet = await store.get_pet("user-1")
        assert len(pet.feeding_history) == 1
        assert pet.last_fed == now + timedelta(seconds=300)
        assert pet.hunger < 90

    async def test_disabled_by_default(self, store, scheduler, repository, make_pet, now):
        await repository.save_pet(make_pet(last_fed=now - timedelta(hours=45)))
        await store.start_monitoring("user-1")
        await scheduler.advance(300)
        assert (await store.get_pet("user-1")).feeding_history == []
