# studypet/models/species.py
"""Species definitions: the stage chain and the requirements gating each step.

Each EvolutionStage lists the requirements for *entering* it, so the first stage
of a chain has none and the last stage is terminal.
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class RequirementType(str, Enum):
    STUDY_HOURS = "study_hours"
    STREAK_DAYS = "streak_days"
    QUESTS_COMPLETED = "quests_completed"
    LEVEL_REACHED = "level_reached"
    HAPPINESS_MAINTAINED = "happiness_maintained"
    HEALTH_MAINTAINED = "health_maintained"
    CARE_CONSISTENCY = "care_consistency"


class EvolutionRequirement(BaseModel):
    type: RequirementType
    target: float
    current: float = 0
    description: str = ""

    @property
    def is_met(self) -> bool:
        return self.current >= self.target


class EvolutionStage(BaseModel):
    id: str
    name: str
    description: str = ""
    image_url: str = ""
    unlocked_abilities: list[str] = Field(default_factory=list)
    requirements: list[EvolutionRequirement] = Field(default_factory=list)


class SpeciesDefinition(BaseModel):
    id: str
    name: str
    description: str = ""
    base_health: int = Field(default=70, ge=0, le=100)
    base_happiness: int = Field(default=60, ge=0, le=100)
    stages: list[EvolutionStage] = Field(min_length=1)

    def stage_index(self, stage_id: str) -> int:
        for i, stage in enumerate(self.stages):
            if stage.id == stage_id:
                return i
        raise KeyError(f"Stage '{stage_id}' is not part of species '{self.id}'")

    def get_stage(self, stage_id: str) -> EvolutionStage:
        return self.stages[self.stage_index(stage_id)]

    def next_stage(self, stage_id: str) -> Optional[EvolutionStage]:
        i = self.stage_index(stage_id)
        if i + 1 >= len(self.stages):
            return None
        return self.stages[i + 1]

    def previous_stage(self, stage_id: str) -> Optional[EvolutionStage]:
        i = self.stage_index(stage_id)
        return self.stages[i - 1] if i > 0 else None

    @property
    def first_stage(self) -> EvolutionStage:
        return self.stages[0]


def _req(kind: RequirementType, target: float, description: str) -> EvolutionRequirement:
    return EvolutionRequirement(type=kind, target=target, description=description)


R = RequirementType

STANDARD_REQUIREMENTS: dict[str, list[EvolutionRequirement]] = {
    "child": [
        _req(R.STUDY_HOURS, 10, "Study for 10 hours total"),
        _req(R.LEVEL_REACHED, 5, "Reach level 5"),
        _req(R.HAPPINESS_MAINTAINED, 70, "Maintain happiness above 70"),
    ],
    "teen": [
        _req(R.STUDY_HOURS, 25, "Study for 25 hours total"),
        _req(R.STREAK_DAYS, 7, "Maintain a 7-day study streak"),
        _req(R.LEVEL_REACHED, 10, "Reach level 10"),
        _req(R.QUESTS_COMPLETED, 5, "Complete 5 quests"),
    ],
    "adult": [
        _req(R.STUDY_HOURS, 50, "Study for 50 hours total"),
        _req(R.STREAK_DAYS, 14, "Maintain a 14-day study streak"),
        _req(R.LEVEL_REACHED, 20, "Reach level 20"),
        _req(R.CARE_CONSISTENCY, 80, "Maintain 80% care consistency"),
        _req(R.HEALTH_MAINTAINED, 80, "Maintain health above 80"),
    ],
    "elder": [
        _req(R.STUDY_HOURS, 100, "Study for 100 hours total"),
        _req(R.STREAK_DAYS, 30, "Maintain a 30-day study streak"),
        _req(R.LEVEL_REACHED, 35, "Reach level 35"),
        _req(R.QUESTS_COMPLETED, 25, "Complete 25 quests"),
    ],
}

STANDARD_STAGES = [
    ("baby", "Baby", "A tiny companion just starting out", []),
    ("child", "Child", "Your pet has grown into a playful child!", ["play_bonus", "study_companion"]),
    ("teen", "Teen", "Your pet is now a curious teenager!", ["focus_boost", "motivation_reminder"]),
    ("adult", "Adult", "Your pet has matured into a wise adult!",
     ["study_efficiency", "goal_tracking", "wisdom_bonus"]),
    ("elder", "Elder", "Your pet has become a wise elder with incredible abilities!",
     ["master_focus", "perfect_recall", "time_mastery"]),
]


def build_standard_chain(species_id: str) -> list[EvolutionStage]:
    return [
        EvolutionStage(
            id=stage_id,
            name=name,
            description=description,
            image_url=f"/pets/{species_id}/{stage_id}.png",
            unlocked_abilities=list(abilities),
            requirements=[r.model_copy() for r in STANDARD_REQUIREMENTS.get(stage_id, [])],
        )
        for stage_id, name, description, abilities in STANDARD_STAGES
    ]


def _species(species_id: str, name: str, description: str, health: int, happiness: int) -> SpeciesDefinition:
    return SpeciesDefinition(id=species_id, name=name, description=description,
                             base_health=health, base_happiness=happiness,
                             stages=build_standard_chain(species_id))


DEFAULT_SPECIES: list[SpeciesDefinition] = [
    _species("dragon", "Dragon", "A mystical dragon that grows stronger with your dedication to learning.", 70, 60),
    _species("phoenix", "Phoenix", "A phoenix that rises from the ashes of procrastination.", 65, 55),
    _species("owl", "Owl", "A wise owl companion perfect for night study sessions.", 60, 50),
    _species("cat", "Cat", "A curious cat that loves to sit on your books.", 55, 70),
    _species("robot", "Robot", "A high-tech companion that keeps your study schedule organized.", 80, 45),
]
