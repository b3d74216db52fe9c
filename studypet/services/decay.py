# studypet/services/decay.py
"""Time-driven hunger decay and the stat penalties it causes.

Everything here is pure: the same inputs and `now` give the same output, so a
tick can be re-evaluated without double-penalizing the pet.
"""
from datetime import datetime
from typing import Optional

import structlog

from studypet.core.scheduler import utcnow
from studypet.core.settings import settings

log = structlog.get_logger(__name__)

HUNGER_RATE_PER_HOUR = 2
STAT_MIN = 0
STAT_MAX = 100


def clamp_stat(value: float, stat: str = "stat") -> int:
    """Clamp to [0, 100]. Landing outside the range means a caller bug, so it is logged."""
    clamped = int(max(STAT_MIN, min(STAT_MAX, value)))
    if clamped != int(value):
        log.warning("invariant_violation_stat_clamped", stat=stat, value=value, clamped=clamped)
    return clamped


def hours_between(earlier: datetime, later: datetime) -> float:
    return max(0.0, (later - earlier).total_seconds() / 3600)


def hunger_from_elapsed_time(last_fed: datetime, base_hunger: int = 0, now: Optional[datetime] = None) -> int:
    now = now or utcnow()
    increase = int(hours_between(last_fed, now) * HUNGER_RATE_PER_HOUR)
    return max(STAT_MIN, min(STAT_MAX, base_hunger + increase))


def health_impact_of_hunger(hunger: int, current_health: int) -> int:
    if hunger >= 95:
        return max(0, current_health - 5)
    if hunger >= 85:
        return max(0, current_health - 2)
    return current_health


def happiness_impact_of_hunger(hunger: int, current_happiness: int) -> int:
    if hunger >= 80:
        reduction = (hunger - 80) // 5
        return max(0, current_happiness - reduction)
    return current_happiness


def feeding_cooldown_remaining(last_fed: datetime, now: Optional[datetime] = None,
                               cooldown_minutes: int = settings.FEEDING_COOLDOWN_MINUTES) -> float:
    """Minutes left before the pet can be fed again (0 when it can)."""
    now = now or utcnow()
    minutes_since = (now - last_fed).total_seconds() / 60
    return max(0.0, cooldown_minutes - minutes_since)


def can_feed(last_fed: datetime, now: Optional[datetime] = None,
             cooldown_minutes: int = settings.FEEDING_COOLDOWN_MINUTES) -> bool:
    return feeding_cooldown_remaining(last_fed, now, cooldown_minutes) == 0


def feeding_recommendation(hunger: int) -> dict:
    if hunger >= 90:
        return {"urgency": "critical",
                "message": "Your pet is starving! Feed immediately to prevent health loss.",
                "recommended_food": ["premium-treats", "basic-kibble"]}
    if hunger >= 70:
        return {"urgency": "high",
                "message": "Your pet is very hungry and needs food soon.",
                "recommended_food": ["basic-kibble", "premium-treats"]}
    if hunger >= 50:
        return {"urgency": "medium",
                "message": "Your pet is getting hungry. Consider feeding soon.",
                "recommended_food": ["basic-kibble"]}
    if hunger >= 30:
        return {"urgency": "low", "message": "Your pet is slightly hungry but doing fine.",
                "recommended_food": []}
    return {"urgency": "low", "message": "Your pet is well-fed and content.", "recommended_food": []}
