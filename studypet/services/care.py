# studypet/services/care.py
"""Care actions: bounded stat effects applied to a copy of the pet.

Each action returns a CareOutcome with the updated pet and the history record.
On any error the input pet is untouched. Coins are not handled here; the
lifecycle store debits the wallet before calling in.
"""
from datetime import datetime
from enum import Enum
from typing import Optional

import structlog
from pydantic import BaseModel

from studypet.core.errors import CooldownActiveError
from studypet.core.scheduler import utcnow
from studypet.core.settings import settings
from studypet.models.items import (
    BASIC_FEEDING,
    BASIC_PLAY,
    EnergyEffect,
    EvolutionBoostEffect,
    HappinessEffect,
    HealthEffect,
    HungerEffect,
    PetFood,
    PetToy,
)
from studypet.models.pet import CareAction, CareRecord, Pet
from studypet.services.decay import clamp_stat, feeding_cooldown_remaining

log = structlog.get_logger(__name__)

CARE_HEALTH_BONUS = 5
CARE_HAPPINESS_BONUS = 5


class CareOutcome(BaseModel):
    pet: Pet
    record: CareRecord
    sync_error: Optional[str] = None


def _push_bounded(history: list[CareRecord], record: CareRecord, max_size: int) -> None:
    history.append(record)
    if len(history) > max_size:
        del history[: len(history) - max_size]


def play_cooldown_remaining(last_played: datetime, now: datetime,
                            cooldown_minutes: int = settings.PLAY_COOLDOWN_MINUTES) -> float:
    minutes_since = (now - last_played).total_seconds() / 60
    return max(0.0, cooldown_minutes - minutes_since)


def ensure_can_feed(pet: Pet, now: datetime, cooldown_minutes: int = settings.FEEDING_COOLDOWN_MINUTES) -> None:
    remaining = feeding_cooldown_remaining(pet.last_fed, now, cooldown_minutes)
    if remaining > 0:
        raise CooldownActiveError("feed", remaining)


def ensure_can_play(pet: Pet, now: datetime, cooldown_minutes: int = settings.PLAY_COOLDOWN_MINUTES) -> None:
    remaining = play_cooldown_remaining(pet.last_played, now, cooldown_minutes)
    if remaining > 0:
        raise CooldownActiveError("play", remaining)


def feed(pet: Pet, food: Optional[PetFood] = None, now: Optional[datetime] = None,
         cooldown_minutes: int = settings.FEEDING_COOLDOWN_MINUTES,
         history_size: int = settings.CARE_HISTORY_SIZE) -> CareOutcome:
    now = now or utcnow()
    food = food or BASIC_FEEDING
    ensure_can_feed(pet, now, cooldown_minutes)

    # Hungrier pets get more out of a meal
    multiplier = max(0.5, pet.hunger / 100)
    hunger_reduction = min(pet.hunger, int(food.hunger_reduction * multiplier))
    health_increase = min(100 - pet.health, food.health_increase)
    happiness_increase = min(100 - pet.happiness, int(food.happiness_increase * multiplier))

    fed = pet.model_copy(deep=True)
    fed.hunger = clamp_stat(pet.hunger - hunger_reduction, "hunger")
    fed.health = clamp_stat(pet.health + health_increase, "health")
    fed.happiness = clamp_stat(pet.happiness + happiness_increase, "happiness")
    fed.hunger_baseline = fed.hunger
    fed.evolution_boost += food.evolution_boost
    fed.last_fed = now
    fed.last_interaction = now

    effects = [
        HungerEffect(value=-hunger_reduction),
        HealthEffect(value=health_increase),
        HappinessEffect(value=happiness_increase),
    ]
    if food.evolution_boost:
        effects.append(EvolutionBoostEffect(value=food.evolution_boost))

    record = CareRecord(action=CareAction.FEED, item_id=food.id, item_name=food.name,
                        timestamp=now, effects=effects, coins_spent=food.cost)
    _push_bounded(fed.feeding_history, record, history_size)

    log.info("pet_fed", pet_id=str(pet.id), food_id=food.id, hunger=fed.hunger,
             health=fed.health, happiness=fed.happiness)
    return CareOutcome(pet=fed, record=record)


def play(pet: Pet, toy: Optional[PetToy] = None, now: Optional[datetime] = None,
         cooldown_minutes: int = settings.PLAY_COOLDOWN_MINUTES,
         history_size: int = settings.CARE_HISTORY_SIZE) -> CareOutcome:
    now = now or utcnow()
    toy = toy or BASIC_PLAY
    ensure_can_play(pet, now, cooldown_minutes)

    happiness_increase = min(100 - pet.happiness, toy.happiness_increase)
    energy_decrease = min(pet.energy, toy.energy_cost)

    played = pet.model_copy(deep=True)
    played.happiness = clamp_stat(pet.happiness + happiness_increase, "happiness")
    played.energy = clamp_stat(pet.energy - energy_decrease, "energy")
    played.evolution_boost += toy.evolution_boost
    played.last_played = now
    played.last_interaction = now

    effects = [HappinessEffect(value=happiness_increase), EnergyEffect(value=-energy_decrease)]
    if toy.evolution_boost:
        effects.append(EvolutionBoostEffect(value=toy.evolution_boost))

    record = CareRecord(action=CareAction.PLAY, item_id=toy.id, item_name=toy.name,
                        timestamp=now, effects=effects, coins_spent=toy.cost)
    _push_bounded(played.play_history, record, history_size)

    log.info("pet_played", pet_id=str(pet.id), toy_id=toy.id, happiness=played.happiness, energy=played.energy)
    return CareOutcome(pet=played, record=record)


def care(pet: Pet, now: Optional[datetime] = None) -> CareOutcome:
    """Free fallback action: a small health and happiness bump, no cooldown."""
    now = now or utcnow()
    health_increase = min(100 - pet.health, CARE_HEALTH_BONUS)
    happiness_increase = min(100 - pet.happiness, CARE_HAPPINESS_BONUS)

    cared = pet.model_copy(deep=True)
    cared.health = clamp_stat(pet.health + health_increase, "health")
    cared.happiness = clamp_stat(pet.happiness + happiness_increase, "happiness")
    cared.last_interaction = now

    record = CareRecord(action=CareAction.CARE, timestamp=now,
                        effects=[HealthEffect(value=health_increase), HappinessEffect(value=happiness_increase)])
    log.info("pet_cared_for", pet_id=str(pet.id), health=cared.health, happiness=cared.happiness)
    return CareOutcome(pet=cared, record=record)


# ── Study activity ────────────────────────────────────────────────────────────

class StudyActivity(str, Enum):
    STUDY_SESSION = "study_session"
    QUEST_COMPLETE = "quest_complete"
    TODO_COMPLETE = "todo_complete"


def xp_for_next_level(level: int) -> int:
    return 100 * level


def apply_study_activity(pet: Pet, activity: StudyActivity, duration_minutes: int = 0,
                         now: Optional[datetime] = None) -> Pet:
    now = now or utcnow()
    if activity == StudyActivity.STUDY_SESSION:
        happiness_increase = min(15, duration_minutes // 10)
        xp_gain = duration_minutes // 15
    elif activity == StudyActivity.QUEST_COMPLETE:
        happiness_increase, xp_gain = 10, 5
    else:
        happiness_increase, xp_gain = 5, 2

    updated = pet.model_copy(deep=True)
    updated.happiness = clamp_stat(pet.happiness + min(100 - pet.happiness, happiness_increase), "happiness")
    updated.experience += xp_gain
    while updated.experience >= xp_for_next_level(updated.level):
        updated.experience -= xp_for_next_level(updated.level)
        updated.level += 1
        log.info("pet_leveled_up", pet_id=str(pet.id), level=updated.level)
    updated.last_interaction = now
    return updated
