# studypet/services/evolution.py
"""Evolution rule engine.

Stages form a fixed chain per species (baby → child → teen → adult → elder).
A transition is allowed once every requirement of the next stage is met;
`trigger_evolution` applies it to a copy of the pet and returns the
celebration payload.
"""
import math
from datetime import datetime
from typing import Optional

import structlog

from studypet.core.errors import NotEligibleError
from studypet.core.scheduler import utcnow
from studypet.models.evolution import (
    EvolutionCelebration,
    EvolutionEligibility,
    EvolutionResult,
    EvolutionSummary,
    Reward,
    RewardType,
)
from studypet.models.pet import EvolutionHistoryEntry, Pet, StudyStatsSnapshot
from studypet.models.species import EvolutionRequirement, RequirementType, SpeciesDefinition
from studypet.services.decay import hours_between

log = structlog.get_logger(__name__)

EVOLUTION_COINS = 100
EVOLUTION_XP = 50
ADULT_STAGE_ID = "adult"
ADULT_TROPHY_ID = "evolution_trophy"


def care_consistency(pet: Pet, now: Optional[datetime] = None) -> int:
    """Blend of feeding/play recency with current health and happiness.

    The recency parts are 0-100 freshness scores while health and happiness are
    absolute levels; they are averaged as-is.
    """
    now = now or utcnow()
    feeding = max(0.0, 100 - hours_between(pet.last_fed, now) / 24 * 100)
    playing = max(0.0, 100 - hours_between(pet.last_played, now) / 48 * 100)
    # Halves round up
    return math.floor((feeding + playing + pet.health + pet.happiness) / 4 + 0.5)


def resolve_requirement_value(kind: RequirementType, pet: Pet, stats: StudyStatsSnapshot, now: datetime) -> float:
    if kind == RequirementType.STUDY_HOURS:
        return stats.total_study_hours
    if kind == RequirementType.STREAK_DAYS:
        return stats.streak_days
    if kind == RequirementType.QUESTS_COMPLETED:
        return stats.quests_completed
    if kind == RequirementType.LEVEL_REACHED:
        return pet.level
    if kind == RequirementType.HAPPINESS_MAINTAINED:
        return pet.happiness
    if kind == RequirementType.HEALTH_MAINTAINED:
        return pet.health
    if kind == RequirementType.CARE_CONSISTENCY:
        return care_consistency(pet, now)
    raise ValueError(f"Unhandled requirement type: {kind}")


def requirement_progress(req: EvolutionRequirement) -> float:
    if req.target <= 0:
        return 100.0
    return min(100.0, max(0.0, req.current / req.target * 100))


def evaluate_requirements(pet: Pet, requirements: list[EvolutionRequirement],
                          stats: StudyStatsSnapshot, now: datetime) -> list[EvolutionRequirement]:
    return [
        req.model_copy(update={"current": resolve_requirement_value(req.type, pet, stats, now)})
        for req in requirements
    ]


def check_eligibility(pet: Pet, species: SpeciesDefinition, stats: StudyStatsSnapshot,
                      now: Optional[datetime] = None) -> EvolutionEligibility:
    now = now or utcnow()
    next_stage = species.next_stage(pet.evolution_stage)
    if next_stage is None:
        return EvolutionEligibility(can_evolve=False, next_stage=None, progress=100)

    evaluated = evaluate_requirements(pet, next_stage.requirements, stats, now)
    missing = [req for req in evaluated if not req.is_met]
    progress = (sum(requirement_progress(r) for r in evaluated) / len(evaluated)) if evaluated else 100.0

    return EvolutionEligibility(
        can_evolve=not missing,
        next_stage=next_stage,
        missing_requirements=missing,
        progress=round(progress, 1),
    )


def _celebration_rewards(to_stage: str) -> list[Reward]:
    rewards = [
        Reward(type=RewardType.COINS, amount=EVOLUTION_COINS),
        Reward(type=RewardType.XP, amount=EVOLUTION_XP),
    ]
    if to_stage == ADULT_STAGE_ID:
        rewards.append(Reward(type=RewardType.ITEM, item_id=ADULT_TROPHY_ID))
    return rewards


def trigger_evolution(pet: Pet, species: SpeciesDefinition, stats: StudyStatsSnapshot,
                      now: Optional[datetime] = None) -> EvolutionResult:
    now = now or utcnow()
    eligibility = check_eligibility(pet, species, stats, now)
    if eligibility.next_stage is None:
        raise NotEligibleError(f"Pet {pet.id} is already at its final stage '{pet.evolution_stage}'")
    if not eligibility.can_evolve:
        missing = ", ".join(r.type.value for r in eligibility.missing_requirements)
        raise NotEligibleError(f"Pet {pet.id} is not eligible for evolution (missing: {missing})")

    new_stage = eligibility.next_stage
    from_stage = pet.evolution_stage

    evolved = pet.model_copy(deep=True)
    evolved.evolution_stage = new_stage.id
    evolved.evolution_history.append(EvolutionHistoryEntry(
        from_stage=from_stage,
        to_stage=new_stage.id,
        timestamp=now,
        requirements=evaluate_requirements(pet, new_stage.requirements, stats, now),
        study_stats=stats.model_copy(),
        level_at_evolution=pet.level,
        happiness_at_evolution=pet.happiness,
        health_at_evolution=pet.health,
    ))
    unlocked = [a for a in new_stage.unlocked_abilities if a not in evolved.abilities]
    evolved.abilities.extend(unlocked)
    evolved.last_interaction = now

    celebration = EvolutionCelebration(
        pet_id=pet.id,
        from_stage=species.get_stage(from_stage).name,
        to_stage=new_stage.name,
        timestamp=now,
        rewards=_celebration_rewards(new_stage.id),
    )
    log.info("pet_evolved", pet_id=str(pet.id), from_stage=from_stage, to_stage=new_stage.id,
             unlocked_abilities=unlocked)
    return EvolutionResult(pet=evolved, new_stage=new_stage, unlocked_abilities=unlocked,
                           celebration=celebration)


def validate_evolution_history(pet: Pet, species: SpeciesDefinition) -> bool:
    """The last transition must have landed on the current stage from its predecessor."""
    if not pet.evolution_history:
        return species.stage_index(pet.evolution_stage) == 0
    last = pet.evolution_history[-1]
    previous = species.previous_stage(pet.evolution_stage)
    return last.to_stage == pet.evolution_stage and previous is not None and last.from_stage == previous.id


def _fmt(value: float) -> str:
    return f"{value:g}"


def evolution_tips(eligibility: EvolutionEligibility) -> list[str]:
    if eligibility.can_evolve:
        return ["Your pet is ready to evolve! Check the evolution section."]

    tips = []
    for req in eligibility.missing_requirements:
        remaining = _fmt(max(0.0, req.target - req.current))
        if req.type == RequirementType.STUDY_HOURS:
            tips.append(f"Study {remaining} more hours to help your pet grow")
        elif req.type == RequirementType.STREAK_DAYS:
            tips.append(f"Maintain your study streak for {remaining} more days")
        elif req.type == RequirementType.LEVEL_REACHED:
            tips.append(f"Gain {remaining} more levels through consistent studying")
        elif req.type == RequirementType.QUESTS_COMPLETED:
            tips.append(f"Complete {remaining} more quests to unlock evolution")
        elif req.type == RequirementType.HAPPINESS_MAINTAINED:
            tips.append(f"Raise your pet's happiness by {remaining} to reach {_fmt(req.target)} by playing regularly")
        elif req.type == RequirementType.HEALTH_MAINTAINED:
            tips.append(f"Raise your pet's health by {remaining} to reach {_fmt(req.target)} through proper care")
        elif req.type == RequirementType.CARE_CONSISTENCY:
            tips.append(f"Improve care consistency by {remaining} points by feeding and playing with your pet regularly")
    return tips


def evolution_progress_summary(pet: Pet, species: SpeciesDefinition, stats: StudyStatsSnapshot,
                               now: Optional[datetime] = None) -> EvolutionSummary:
    eligibility = check_eligibility(pet, species, stats, now)

    if eligibility.next_stage is None:
        time_to_next = "Max evolution reached"
    elif eligibility.can_evolve:
        time_to_next = "Ready now!"
    else:
        remaining = 100 - eligibility.progress
        if remaining <= 20:
            time_to_next = "1-2 days"
        elif remaining <= 50:
            time_to_next = "1-2 weeks"
        else:
            time_to_next = "2-4 weeks"

    return EvolutionSummary(
        current_stage=species.get_stage(pet.evolution_stage).name,
        next_stage=eligibility.next_stage.name if eligibility.next_stage else None,
        overall_progress=eligibility.progress,
        time_to_next_evolution=time_to_next,
        evolution_count=len(pet.evolution_history),
    )
