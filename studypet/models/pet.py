# studypet/models/pet.py
from pydantic import BaseModel, Field
from uuid import UUID, uuid4
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from studypet.models.items import PetEffect
from studypet.models.species import EvolutionRequirement


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PetStats(BaseModel):
    health: int = Field(default=70, ge=0, le=100)
    happiness: int = Field(default=60, ge=0, le=100)
    hunger: int = Field(default=0, ge=0, le=100)
    energy: int = Field(default=100, ge=0, le=100)


class StudyStatsSnapshot(BaseModel):
    """Owned by the quest/pomodoro/streak side; the engine only reads it."""
    total_study_hours: float = Field(default=0, ge=0)
    streak_days: int = Field(default=0, ge=0)
    quests_completed: int = Field(default=0, ge=0)
    average_session_length: float = Field(default=0, ge=0)


class CareAction(str, Enum):
    FEED = "feed"
    PLAY = "play"
    CARE = "care"


class CareRecord(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    action: CareAction
    item_id: Optional[str] = None
    item_name: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)
    effects: list[PetEffect] = Field(default_factory=list)
    coins_spent: int = 0


class EvolutionHistoryEntry(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    from_stage: str
    to_stage: str
    timestamp: datetime = Field(default_factory=_utcnow)
    requirements: list[EvolutionRequirement] = Field(default_factory=list)
    study_stats: StudyStatsSnapshot
    level_at_evolution: int
    happiness_at_evolution: int
    health_at_evolution: int


class Pet(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    owner_id: str
    species_id: str
    name: str

    health: int = Field(default=70, ge=0, le=100)
    happiness: int = Field(default=60, ge=0, le=100)
    hunger: int = Field(default=0, ge=0, le=100)
    energy: int = Field(default=100, ge=0, le=100)
    # Hunger right after the last feed; decay is added on top of it
    hunger_baseline: int = Field(default=0, ge=0, le=100)

    created_at: datetime = Field(default_factory=_utcnow)
    last_fed: datetime = Field(default_factory=_utcnow)
    last_played: datetime = Field(default_factory=_utcnow)
    last_interaction: datetime = Field(default_factory=_utcnow)

    level: int = Field(default=1, ge=1)
    experience: int = Field(default=0, ge=0)

    evolution_stage: str = "baby"
    evolution_history: list[EvolutionHistoryEntry] = Field(default_factory=list)
    abilities: list[str] = Field(default_factory=list)
    evolution_boost: int = Field(default=0, ge=0)

    feeding_history: list[CareRecord] = Field(default_factory=list)
    play_history: list[CareRecord] = Field(default_factory=list)

    @property
    def stats(self) -> PetStats:
        return PetStats(health=self.health, happiness=self.happiness,
                        hunger=self.hunger, energy=self.energy)


class PetStatus(BaseModel):
    health: int
    happiness: int
    hunger: int
    energy: int
    needs_attention: bool
    attention_reason: Optional[str] = None
    time_since_last_fed: float  # minutes
    time_since_last_played: float  # minutes
    evolution_progress: float
    sync_pending: bool = False
