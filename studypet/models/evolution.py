# studypet/models/evolution.py
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from studypet.models.pet import Pet
from studypet.models.species import EvolutionRequirement, EvolutionStage


class EvolutionEligibility(BaseModel):
    can_evolve: bool
    next_stage: Optional[EvolutionStage] = None
    missing_requirements: list[EvolutionRequirement] = Field(default_factory=list)
    progress: float = Field(ge=0, le=100)


class RewardType(str, Enum):
    COINS = "coins"
    XP = "xp"
    ITEM = "item"


class Reward(BaseModel):
    type: RewardType
    amount: Optional[int] = None
    item_id: Optional[str] = None


class EvolutionCelebration(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    pet_id: UUID
    from_stage: str
    to_stage: str
    timestamp: datetime
    animation: str = "evolution_sparkles"
    effects: list[str] = Field(default_factory=lambda: ["confetti", "sparkles", "glow"])
    rewards: list[Reward] = Field(default_factory=list)


class EvolutionResult(BaseModel):
    pet: Pet
    new_stage: EvolutionStage
    unlocked_abilities: list[str] = Field(default_factory=list)
    celebration: EvolutionCelebration
    sync_error: Optional[str] = None


class EvolutionSummary(BaseModel):
    current_stage: str
    next_stage: Optional[str] = None
    overall_progress: float
    time_to_next_evolution: str
    evolution_count: int
