# studypet/models/alerts.py
"""Needs, alerts and trend samples derived from a pet's stats."""
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from studypet.models.pet import PetStats


class Urgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


URGENCY_ORDER: dict[Urgency, int] = {
    Urgency.LOW: 1,
    Urgency.MEDIUM: 2,
    Urgency.HIGH: 3,
    Urgency.CRITICAL: 4,
}


def urgency_rank(urgency: Urgency) -> int:
    return URGENCY_ORDER[urgency]


def compare_urgency(a: Urgency, b: Urgency) -> int:
    """-1, 0 or 1, like a classic cmp()."""
    ra, rb = urgency_rank(a), urgency_rank(b)
    return (ra > rb) - (ra < rb)


def max_urgency(*levels: Urgency) -> Urgency:
    if not levels:
        return Urgency.LOW
    return max(levels, key=urgency_rank)


class NeedType(str, Enum):
    FOOD = "food"
    PLAY = "play"
    CARE = "care"


class PetNeed(BaseModel):
    type: NeedType
    urgency: Urgency
    description: str
    time_remaining: Optional[int] = None  # minutes until it gets worse


class AlertType(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class HealthAlert(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    pet_id: str
    type: AlertType
    title: str
    message: str
    timestamp: datetime
    acknowledged: bool = False
    action_required: Optional[str] = None


class HealthTrend(PetStats):
    timestamp: datetime


class AttentionReason(str, Enum):
    UNWELL = "unwell"
    HUNGRY = "hungry"
    UNHAPPY = "unhappy"
    LONELY = "lonely"
    BORED = "bored"


class Attention(BaseModel):
    needs_attention: bool = False
    reason: Optional[AttentionReason] = None


class RecoveryUrgency(str, Enum):
    IMMEDIATE = "immediate"
    SOON = "soon"
    WHEN_CONVENIENT = "when_convenient"


class RecoveryAction(BaseModel):
    action: str
    description: str
    urgency: RecoveryUrgency
    estimated_effect: str


class RecoveryPlan(BaseModel):
    priority: Urgency = Urgency.LOW
    actions: list[RecoveryAction] = Field(default_factory=list)
    time_to_recovery: str = "Pet is healthy"
