# studypet/models/items.py
"""Care items and the effects they apply.

An effect is a tagged union over the finite stat kinds, discriminated by `kind`,
so a serialized history record always round-trips to the right class.
"""
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


class HungerEffect(BaseModel):
    kind: Literal["hunger"] = "hunger"
    value: int


class HealthEffect(BaseModel):
    kind: Literal["health"] = "health"
    value: int


class HappinessEffect(BaseModel):
    kind: Literal["happiness"] = "happiness"
    value: int


class EnergyEffect(BaseModel):
    kind: Literal["energy"] = "energy"
    value: int


class EvolutionBoostEffect(BaseModel):
    kind: Literal["evolution_boost"] = "evolution_boost"
    value: int


PetEffect = Annotated[
    Union[HungerEffect, HealthEffect, HappinessEffect, EnergyEffect, EvolutionBoostEffect],
    Field(discriminator="kind"),
]


class PetFood(BaseModel):
    id: str
    name: str
    cost: int = Field(default=0, ge=0)
    hunger_reduction: int = Field(ge=0)
    health_increase: int = Field(ge=0)
    happiness_increase: int = Field(ge=0)
    evolution_boost: int = Field(default=0, ge=0)


class PetToy(BaseModel):
    id: str
    name: str
    cost: int = Field(default=0, ge=0)
    happiness_increase: int = Field(ge=0)
    energy_cost: int = Field(default=0, ge=0)
    evolution_boost: int = Field(default=0, ge=0)


# Used when the caller feeds or plays without picking an item
BASIC_FEEDING = PetFood(id="basic-feeding", name="Basic Feeding",
                        hunger_reduction=20, health_increase=3, happiness_increase=8)
BASIC_PLAY = PetToy(id="basic-play", name="Playtime", happiness_increase=20, energy_cost=10)

FOOD_CATALOG: dict[str, PetFood] = {
    "basic-kibble": PetFood(id="basic-kibble", name="Basic Kibble", cost=5,
                            hunger_reduction=30, health_increase=5, happiness_increase=10),
    "premium-treats": PetFood(id="premium-treats", name="Premium Treats", cost=15,
                              hunger_reduction=25, health_increase=8, happiness_increase=20,
                              evolution_boost=2),
    "gourmet-meal": PetFood(id="gourmet-meal", name="Gourmet Meal", cost=30,
                            hunger_reduction=40, health_increase=15, happiness_increase=25,
                            evolution_boost=5),
}

TOY_CATALOG: dict[str, PetToy] = {
    "ball": PetToy(id="ball", name="Bouncy Ball", cost=10, happiness_increase=25, energy_cost=15),
    "puzzle-box": PetToy(id="puzzle-box", name="Puzzle Box", cost=20, happiness_increase=15,
                         energy_cost=5, evolution_boost=1),
}


def find_food(food_id: Optional[str]) -> Optional[PetFood]:
    """None means basic feeding; an unknown id also returns None so the caller can reject it."""
    if food_id is None:
        return BASIC_FEEDING
    return FOOD_CATALOG.get(food_id)


def find_toy(toy_id: Optional[str]) -> Optional[PetToy]:
    if toy_id is None:
        return BASIC_PLAY
    return TOY_CATALOG.get(toy_id)
