# studypet/services/needs.py
"""Need & alert generation.

Needs are transient and recomputed from the current stats. Alerts are kept in a
bounded per-pet AlertBuffer that suppresses repeats of a condition that is
still unacknowledged.
"""
from collections import deque
from datetime import datetime, timedelta
from typing import Iterable, Optional

import structlog

from studypet.core.settings import settings
from studypet.models.alerts import (
    AlertType,
    Attention,
    AttentionReason,
    HealthAlert,
    NeedType,
    PetNeed,
    RecoveryAction,
    RecoveryPlan,
    RecoveryUrgency,
    Urgency,
    max_urgency,
    urgency_rank,
)
from studypet.models.pet import PetStats

log = structlog.get_logger(__name__)

NEGLECT_WARNING_HOURS = 12
NEGLECT_CRITICAL_HOURS = 24
BORED_AFTER_HOURS = 48

# Most pressing first; pairs not listed rank after everything here
ATTENTION_PRIORITY: list[tuple[Urgency, AttentionReason]] = [
    (Urgency.CRITICAL, AttentionReason.UNWELL),
    (Urgency.CRITICAL, AttentionReason.HUNGRY),
    (Urgency.CRITICAL, AttentionReason.UNHAPPY),
    (Urgency.HIGH, AttentionReason.HUNGRY),
    (Urgency.HIGH, AttentionReason.UNHAPPY),
    (Urgency.CRITICAL, AttentionReason.LONELY),
    (Urgency.HIGH, AttentionReason.UNWELL),
    (Urgency.HIGH, AttentionReason.LONELY),
    (Urgency.MEDIUM, AttentionReason.UNWELL),
    (Urgency.MEDIUM, AttentionReason.HUNGRY),
    (Urgency.MEDIUM, AttentionReason.UNHAPPY),
    (Urgency.MEDIUM, AttentionReason.BORED),
    (Urgency.LOW, AttentionReason.UNWELL),
    (Urgency.LOW, AttentionReason.HUNGRY),
    (Urgency.LOW, AttentionReason.UNHAPPY),
]
_ATTENTION_RANK = {pair: i for i, pair in enumerate(ATTENTION_PRIORITY)}

NEED_REASON: dict[NeedType, AttentionReason] = {
    NeedType.CARE: AttentionReason.UNWELL,
    NeedType.FOOD: AttentionReason.HUNGRY,
    NeedType.PLAY: AttentionReason.UNHAPPY,
}


# ── Needs ─────────────────────────────────────────────────────────────────────

def _food_need(hunger: int) -> Optional[PetNeed]:
    if hunger >= 80:
        return PetNeed(type=NeedType.FOOD, urgency=Urgency.CRITICAL,
                       description="Your pet is starving and needs food immediately!", time_remaining=0)
    if hunger >= 60:
        return PetNeed(type=NeedType.FOOD, urgency=Urgency.HIGH,
                       description="Your pet is very hungry", time_remaining=60)
    if hunger >= 40:
        return PetNeed(type=NeedType.FOOD, urgency=Urgency.MEDIUM,
                       description="Your pet is getting hungry", time_remaining=120)
    return None


def _play_need(happiness: int) -> Optional[PetNeed]:
    if happiness <= 20:
        return PetNeed(type=NeedType.PLAY, urgency=Urgency.CRITICAL,
                       description="Your pet is very sad and needs attention!", time_remaining=0)
    if happiness <= 40:
        return PetNeed(type=NeedType.PLAY, urgency=Urgency.HIGH,
                       description="Your pet wants to play", time_remaining=90)
    if happiness <= 60:
        return PetNeed(type=NeedType.PLAY, urgency=Urgency.MEDIUM,
                       description="Your pet could use some playtime", time_remaining=180)
    return None


def _care_need(health: int) -> Optional[PetNeed]:
    if health <= 30:
        return PetNeed(type=NeedType.CARE, urgency=Urgency.CRITICAL,
                       description="Your pet needs medical attention!", time_remaining=0)
    if health <= 50:
        return PetNeed(type=NeedType.CARE, urgency=Urgency.HIGH,
                       description="Your pet needs some care", time_remaining=120)
    return None


def generate_pet_needs(stats: PetStats) -> list[PetNeed]:
    """At most one need per category, at the highest tier that matches."""
    candidates = (_food_need(stats.hunger), _play_need(stats.happiness), _care_need(stats.health))
    return [need for need in candidates if need is not None]


# ── Alerts ────────────────────────────────────────────────────────────────────

def _alert(pet_id: str, kind: AlertType, title: str, message: str, action: str, now: datetime) -> HealthAlert:
    return HealthAlert(pet_id=pet_id, type=kind, title=title, message=message,
                       timestamp=now, action_required=action)


def check_health_issues(pet_id: str, stats: PetStats, hours_since_interaction: float,
                        now: datetime) -> list[HealthAlert]:
    alerts: list[HealthAlert] = []

    if stats.health <= 20:
        alerts.append(_alert(pet_id, AlertType.CRITICAL, "Critical Health Alert",
                             "Your pet's health is critically low! Immediate care is needed.",
                             "Feed your pet and provide care immediately", now))
    elif stats.health <= 40:
        alerts.append(_alert(pet_id, AlertType.WARNING, "Low Health Warning",
                             "Your pet's health is getting low. Consider providing care soon.",
                             "Feed your pet or provide care", now))

    if stats.happiness <= 20:
        alerts.append(_alert(pet_id, AlertType.CRITICAL, "Pet is Very Unhappy",
                             "Your pet is very unhappy and needs attention!",
                             "Play with your pet or provide treats", now))
    elif stats.happiness <= 40:
        alerts.append(_alert(pet_id, AlertType.WARNING, "Pet Needs Attention",
                             "Your pet is feeling down and could use some playtime.",
                             "Play with your pet", now))

    if stats.hunger >= 80:
        alerts.append(_alert(pet_id, AlertType.CRITICAL, "Pet is Starving",
                             "Your pet is very hungry and needs food immediately!",
                             "Feed your pet right away", now))
    elif stats.hunger >= 60:
        alerts.append(_alert(pet_id, AlertType.WARNING, "Pet is Hungry",
                             "Your pet is getting hungry and should be fed soon.",
                             "Feed your pet", now))

    if hours_since_interaction >= NEGLECT_CRITICAL_HOURS:
        alerts.append(_alert(pet_id, AlertType.CRITICAL, "Pet Feels Neglected",
                             "Your pet hasn't been cared for in over 24 hours and feels abandoned.",
                             "Interact with your pet immediately", now))
    elif hours_since_interaction >= NEGLECT_WARNING_HOURS:
        alerts.append(_alert(pet_id, AlertType.WARNING, "Pet Misses You",
                             "Your pet hasn't seen you in a while and misses your attention.",
                             "Spend some time with your pet", now))

    return alerts


class AlertBuffer:
    """Rolling alert log for one pet: FIFO eviction, repeat suppression."""

    def __init__(self, max_size: int = settings.ALERT_BUFFER_SIZE,
                 suppression_minutes: int = settings.ALERT_SUPPRESSION_MINUTES):
        self._alerts: deque[HealthAlert] = deque(maxlen=max_size)
        self._suppression = timedelta(minutes=suppression_minutes)

    def __len__(self) -> int:
        return len(self._alerts)

    def is_suppressed(self, alert: HealthAlert, now: datetime) -> bool:
        return any(
            a.type == alert.type
            and a.title == alert.title
            and not a.acknowledged
            and now - a.timestamp < self._suppression
            for a in self._alerts
        )

    def add(self, alert: HealthAlert, now: datetime) -> bool:
        """Store the alert unless an equivalent one is still pending. Returns True if stored."""
        if self.is_suppressed(alert, now):
            log.debug("alert_suppressed", pet_id=alert.pet_id, alert_type=alert.type.value, title=alert.title)
            return False
        self._alerts.append(alert)
        return True

    def add_all(self, alerts: Iterable[HealthAlert], now: datetime) -> list[HealthAlert]:
        return [a for a in alerts if self.add(a, now)]

    def acknowledge(self, alert_id: str) -> bool:
        for alert in self._alerts:
            if alert.id == alert_id:
                alert.acknowledged = True
                return True
        return False

    def alerts(self, unacknowledged_only: bool = False) -> list[HealthAlert]:
        if unacknowledged_only:
            return [a for a in self._alerts if not a.acknowledged]
        return list(self._alerts)

    def clear(self) -> None:
        self._alerts.clear()


# ── Attention ─────────────────────────────────────────────────────────────────

def assess_attention(needs: list[PetNeed], hours_since_interaction: float,
                     hours_since_played: float = 0.0) -> Attention:
    """Pick the single most pressing unmet condition.

    Ranked by ATTENTION_PRIORITY: critical health, hunger and happiness come
    first, then high hunger and high happiness, then everything else.
    needs_attention is only raised for high or critical conditions.
    """
    candidates: list[tuple[Urgency, AttentionReason]] = [
        (need.urgency, NEED_REASON[need.type]) for need in needs
    ]
    if hours_since_interaction >= NEGLECT_CRITICAL_HOURS:
        candidates.append((Urgency.CRITICAL, AttentionReason.LONELY))
    elif hours_since_interaction >= NEGLECT_WARNING_HOURS:
        candidates.append((Urgency.HIGH, AttentionReason.LONELY))
    if hours_since_played >= BORED_AFTER_HOURS:
        candidates.append((Urgency.MEDIUM, AttentionReason.BORED))

    if not candidates:
        return Attention()

    _, reason = min(candidates, key=lambda c: _ATTENTION_RANK.get(c, len(ATTENTION_PRIORITY)))
    needs_attention = any(urgency_rank(u) >= urgency_rank(Urgency.HIGH) for u, _ in candidates)
    return Attention(needs_attention=needs_attention, reason=reason)


# ── Recovery plan ─────────────────────────────────────────────────────────────

def health_recovery_plan(stats: PetStats) -> RecoveryPlan:
    actions: list[RecoveryAction] = []
    priority = Urgency.LOW

    if stats.health <= 30:
        priority = Urgency.CRITICAL
        actions.append(RecoveryAction(action="Feed Premium Food",
                                      description="Give your pet high-quality food to restore health quickly",
                                      urgency=RecoveryUrgency.IMMEDIATE, estimated_effect="+15-20 health"))
        actions.append(RecoveryAction(action="Provide Medical Care",
                                      description="Use health items or visit a pet care center",
                                      urgency=RecoveryUrgency.IMMEDIATE, estimated_effect="+25-30 health"))
    elif stats.health <= 50:
        priority = max_urgency(priority, Urgency.HIGH)
        actions.append(RecoveryAction(action="Regular Feeding",
                                      description="Feed your pet regularly to maintain health",
                                      urgency=RecoveryUrgency.SOON, estimated_effect="+10-15 health"))

    if stats.happiness <= 30:
        priority = max_urgency(priority, Urgency.HIGH)
        actions.append(RecoveryAction(action="Play Time",
                                      description="Spend quality time playing with your pet",
                                      urgency=RecoveryUrgency.SOON, estimated_effect="+20-25 happiness"))
        actions.append(RecoveryAction(action="Give Treats",
                                      description="Provide special treats to boost mood",
                                      urgency=RecoveryUrgency.SOON, estimated_effect="+15-20 happiness"))

    if stats.hunger >= 70:
        priority = max_urgency(priority, Urgency.HIGH)
        actions.append(RecoveryAction(action="Feed Immediately",
                                      description="Your pet is very hungry and needs food now",
                                      urgency=RecoveryUrgency.IMMEDIATE, estimated_effect="-30-40 hunger"))

    if not actions:
        return RecoveryPlan(priority=priority)

    if any(a.urgency == RecoveryUrgency.IMMEDIATE for a in actions):
        time_to_recovery = "30 minutes - 1 hour"
    elif any(a.urgency == RecoveryUrgency.SOON for a in actions):
        time_to_recovery = "2-4 hours"
    else:
        time_to_recovery = "1-2 days"

    return RecoveryPlan(priority=priority, actions=actions, time_to_recovery=time_to_recovery)
