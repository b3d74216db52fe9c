# simulation/agents.py
from abc import ABC, abstractmethod
from typing import Optional, Tuple, Dict
from studypet.models.pet import PetStatus
import random


class BaseAgent(ABC):
    def __init__(self, agent_id: str, rng: Optional[random.Random] = None):
        self.agent_id = agent_id
        self.rng = rng or random.Random()

    @abstractmethod
    def choose_action(self, status: PetStatus) -> Optional[Tuple[str, Dict]]:
        """
        Decides an action based on the pet's current status.
        Returns: Tuple of (action_name, action_params_dict) or None for no action.
        Example: ("feed", {"food_id": "basic-kibble"})
        """
        pass


class NurturingAgent(BaseAgent):
    def choose_action(self, status: PetStatus) -> Optional[Tuple[str, Dict]]:
        if status.evolution_progress >= 100:
            return ("evolve", {})

        # Critical needs first
        if status.hunger >= 60:
            return ("feed", {"food_id": "basic-kibble"})
        if status.health <= 50:
            return ("care", {})
        if status.happiness <= 40:
            return ("play", {"toy_id": None})

        # Proactive care
        if status.hunger >= 40 and self.rng.random() < 0.7:
            return ("feed", {"food_id": None})
        if status.happiness < 70 and self.rng.random() < 0.6:
            return ("play", {"toy_id": None})
        if self.rng.random() < 0.5:
            return ("study", {"activity": "study_session", "duration_minutes": self.rng.choice([25, 50, 90])})

        return None  # Pet is doing fine


class RandomAgent(BaseAgent):
    def choose_action(self, status: PetStatus) -> Optional[Tuple[str, Dict]]:
        if self.rng.random() < 0.3:  # Sometimes does nothing
            return None

        possible_actions = [
            ("feed", {"food_id": self.rng.choice([None, "basic-kibble", "premium-treats"])}),
            ("play", {"toy_id": self.rng.choice([None, "ball", "puzzle-box"])}),
            ("care", {}),
            ("study", {"activity": self.rng.choice(["study_session", "quest_complete", "todo_complete"]),
                       "duration_minutes": self.rng.randint(10, 90)}),
        ]
        return self.rng.choice(possible_actions)


class NeglectfulAgent(BaseAgent):
    """Only shows up when things are already dire, and not always then."""

    def choose_action(self, status: PetStatus) -> Optional[Tuple[str, Dict]]:
        if status.hunger >= 90 and self.rng.random() < 0.5:
            return ("feed", {"food_id": None})
        if status.happiness <= 10 and self.rng.random() < 0.3:
            return ("play", {"toy_id": None})
        return None


AGENT_TYPES = {
    "nurturing": NurturingAgent,
    "random": RandomAgent,
    "neglectful": NeglectfulAgent,
}
