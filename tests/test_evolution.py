"""
tests/test_evolution.py
───────────────────────
Tests for the evolution rule engine.
"""
from datetime import timedelta

import pytest

from studypet.core.errors import NotEligibleError
from studypet.models.evolution import RewardType
from studypet.models.pet import StudyStatsSnapshot
from studypet.models.species import EvolutionRequirement, RequirementType
from studypet.services.evolution import (
    care_consistency,
    check_eligibility,
    evolution_progress_summary,
    evolution_tips,
    requirement_progress,
    trigger_evolution,
    validate_evolution_history,
)


class TestCareConsistency:
    def test_fresh_pet(self, make_pet, now):
        pet = make_pet(health=80, happiness=60)
        # (100 + 100 + 80 + 60) / 4
        assert care_consistency(pet, now) == 85

    def test_halves_round_up(self, make_pet, now):
        pet = make_pet(health=80, happiness=34)
        # (100 + 100 + 80 + 34) / 4 = 78.5
        assert care_consistency(pet, now) == 79

    def test_decays_with_time_since_care(self, make_pet, now):
        pet = make_pet(health=80, happiness=60,
                       last_fed=now - timedelta(hours=12), last_played=now - timedelta(hours=24))
        # (50 + 50 + 80 + 60) / 4
        assert care_consistency(pet, now) == 60

    def test_recency_parts_floor_at_zero(self, make_pet, now):
        pet = make_pet(health=40, happiness=40,
                       last_fed=now - timedelta(days=5), last_played=now - timedelta(days=5))
        assert care_consistency(pet, now) == 20


class TestRequirementProgress:
    def test_partial(self):
        req = EvolutionRequirement(type=RequirementType.STUDY_HOURS, target=10, current=4)
        assert requirement_progress(req) == pytest.approx(40)

    def test_capped_at_100(self):
        req = EvolutionRequirement(type=RequirementType.STUDY_HOURS, target=10, current=40)
        assert requirement_progress(req) == 100

    def test_zero_target_counts_as_complete(self):
        req = EvolutionRequirement(type=RequirementType.QUESTS_COMPLETED, target=0, current=0)
        assert requirement_progress(req) == 100


class TestCheckEligibility:
    def test_baby_meeting_child_requirements(self, make_pet, species, baby_ready_stats, now):
        pet = make_pet(level=5, happiness=75)
        eligibility = check_eligibility(pet, species, baby_ready_stats, now)
        assert eligibility.can_evolve
        assert eligibility.progress == 100
        assert eligibility.next_stage.id == "child"
        assert eligibility.missing_requirements == []

    def test_reports_missing_requirements(self, make_pet, species, now):
        pet = make_pet(level=2, happiness=75)
        stats = StudyStatsSnapshot(total_study_hours=5)
        eligibility = check_eligibility(pet, species, stats, now)
        assert not eligibility.can_evolve
        assert {r.type for r in eligibility.missing_requirements} == {
            RequirementType.STUDY_HOURS, RequirementType.LEVEL_REACHED,
        }
        # (50 + 40 + 100) / 3
        assert eligibility.progress == pytest.approx(63.3)

    def test_never_eligible_with_unmet_requirement(self, make_pet, species, now):
        for level in range(1, 8):
            for hours in (0, 5, 9.9, 10, 20):
                pet = make_pet(level=level, happiness=75)
                eligibility = check_eligibility(pet, species, StudyStatsSnapshot(total_study_hours=hours), now)
                if eligibility.can_evolve:
                    assert all(r.current >= r.target for r in eligibility.missing_requirements)
                    assert level >= 5 and hours >= 10

    def test_terminal_stage(self, make_pet, species, now):
        pet = make_pet(evolution_stage="elder")
        eligibility = check_eligibility(pet, species, StudyStatsSnapshot(), now)
        assert not eligibility.can_evolve
        assert eligibility.next_stage is None


class TestTriggerEvolution:
    def test_evolves_to_next_stage(self, make_pet, species, baby_ready_stats, now):
        pet = make_pet(level=5, happiness=75)
        result = trigger_evolution(pet, species, baby_ready_stats, now)

        assert result.pet.evolution_stage == "child"
        assert result.new_stage.id == "child"
        assert result.unlocked_abilities == ["play_bonus", "study_companion"]
        assert result.pet.abilities == ["play_bonus", "study_companion"]

        entry = result.pet.evolution_history[-1]
        assert (entry.from_stage, entry.to_stage) == ("baby", "child")
        assert entry.level_at_evolution == 5
        assert validate_evolution_history(result.pet, species)

    def test_input_pet_is_untouched(self, make_pet, species, baby_ready_stats, now):
        pet = make_pet(level=5, happiness=75)
        trigger_evolution(pet, species, baby_ready_stats, now)
        assert pet.evolution_stage == "baby"
        assert pet.evolution_history == []

    def test_celebration_rewards(self, make_pet, species, baby_ready_stats, now):
        result = trigger_evolution(make_pet(level=5, happiness=75), species, baby_ready_stats, now)
        celebration = result.celebration
        assert (celebration.from_stage, celebration.to_stage) == ("Baby", "Child")
        assert [r.type for r in celebration.rewards] == [RewardType.COINS, RewardType.XP]

    def test_adult_gets_trophy(self, make_pet, species, now):
        pet = make_pet(evolution_stage="teen", level=20, health=90, happiness=90)
        stats = StudyStatsSnapshot(total_study_hours=50, streak_days=14)
        result = trigger_evolution(pet, species, stats, now)
        assert result.new_stage.id == "adult"
        assert any(r.item_id == "evolution_trophy" for r in result.celebration.rewards)

    def test_not_eligible_raises(self, make_pet, species, now):
        with pytest.raises(NotEligibleError):
            trigger_evolution(make_pet(), species, StudyStatsSnapshot(), now)

    def test_terminal_stage_raises(self, make_pet, species, now):
        with pytest.raises(NotEligibleError):
            trigger_evolution(make_pet(evolution_stage="elder"), species, StudyStatsSnapshot(), now)


class TestValidateEvolutionHistory:
    def test_fresh_baby_is_valid(self, make_pet, species):
        assert validate_evolution_history(make_pet(), species)

    def test_stage_without_history_is_invalid(self, make_pet, species):
        assert not validate_evolution_history(make_pet(evolution_stage="teen"), species)


class TestTipsAndSummary:
    def test_ready_tip(self, make_pet, species, baby_ready_stats, now):
        eligibility = check_eligibility(make_pet(level=5, happiness=75), species, baby_ready_stats, now)
        assert evolution_tips(eligibility) == ["Your pet is ready to evolve! Check the evolution section."]

    def test_tips_show_remaining_amounts(self, make_pet, species, now):
        eligibility = check_eligibility(make_pet(level=2, happiness=75), species,
                                        StudyStatsSnapshot(total_study_hours=4), now)
        tips = evolution_tips(eligibility)
        assert "Study 6 more hours to help your pet grow" in tips
        assert "Gain 3 more levels through consistent studying" in tips

    def test_summary(self, make_pet, species, baby_ready_stats, now):
        summary = evolution_progress_summary(make_pet(level=5, happiness=75), species, baby_ready_stats, now)
        assert summary.current_stage == "Baby"
        assert summary.next_stage == "Child"
        assert summary.time_to_next_evolution == "Ready now!"
        assert summary.evolution_count == 0

    def test_summary_at_max_stage(self, make_pet, species, now):
        summary = evolution_progress_summary(make_pet(evolution_stage="elder"), species, StudyStatsSnapshot(), now)
        assert summary.next_stage is None
        assert summary.time_to_next_evolution == "Max evolution reached"
