# simulation/simulator.py
"""Offline episodes: an agent looks after a pet in virtual time.

Runs the real lifecycle store on a ManualScheduler with in-memory
collaborators, so a 10-day episode takes seconds. Each step is written as one
JSONL record (state, action, reward, next state).
"""
import argparse
import asyncio
import json
import random
from datetime import datetime, timezone
from typing import Optional, List, Dict

import structlog

from simulation.agents import AGENT_TYPES, BaseAgent
from studypet.core.errors import PetEngineError
from studypet.core.scheduler import ManualScheduler
from studypet.models.pet import PetStatus, StudyStatsSnapshot
from studypet.services.care import StudyActivity
from studypet.services.collaborators import InMemoryPetRepository, InMemoryWallet, StaticStudyStatsProvider
from studypet.services.lifecycle import PetLifecycleStore

log = structlog.get_logger(__name__)

SIM_EPOCH = datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)
STARTING_COINS = 500
# Coins earned per study minute, so studying funds premium items
COINS_PER_STUDY_MINUTE = 1


def calculate_reward(previous: PetStatus, current: PetStatus) -> float:
    reward = 0.0

    # Hunger: lower is better
    if current.hunger < previous.hunger:
        reward += (previous.hunger - current.hunger) * 0.2
    elif current.hunger > 85:
        reward -= (current.hunger - previous.hunger) * 0.3

    # Happiness and health: higher is better
    reward += (current.happiness - previous.happiness) * 0.3
    reward += (current.health - previous.health) * 0.4

    if current.needs_attention:
        reward -= 1.0
    if current.evolution_progress > previous.evolution_progress:
        reward += (current.evolution_progress - previous.evolution_progress) * 0.1

    # Small reward for a content pet
    if current.hunger < 50 and current.happiness > 50 and current.health > 50:
        reward += 1.0

    return round(reward, 2)


class _StudyLedger:
    """Feeds the study stats provider from the agent's own study actions."""

    def __init__(self, provider: StaticStudyStatsProvider, wallet: InMemoryWallet, user_id: str):
        self.provider = provider
        self.wallet = wallet
        self.user_id = user_id
        self.stats = StudyStatsSnapshot()
        self._study_days: set = set()

    def record(self, activity: StudyActivity, minutes: int, now: datetime) -> None:
        if activity == StudyActivity.STUDY_SESSION:
            self.stats.total_study_hours += minutes / 60
            self._study_days.add(now.date())
            self.stats.streak_days = len(self._study_days)
            self.wallet.deposit(self.user_id, minutes * COINS_PER_STUDY_MINUTE)
        elif activity == StudyActivity.QUEST_COMPLETE:
            self.stats.quests_completed += 1
        self.provider.set_stats(self.user_id, self.stats.model_copy())


async def _apply_action(store: PetLifecycleStore, ledger: _StudyLedger, user_id: str,
                        action_name: str, params: Dict, now: datetime) -> Optional[str]:
    """Run one agent action against the store. Returns the rejection message, if any."""
    try:
        if action_name == "feed":
            await store.feed(user_id, params.get("food_id"))
        elif action_name == "play":
            await store.play(user_id, params.get("toy_id"))
        elif action_name == "care":
            await store.care(user_id)
        elif action_name == "evolve":
            await store.trigger_evolution(user_id)
        elif action_name == "study":
            activity = StudyActivity(params["activity"])
            minutes = params.get("duration_minutes", 0)
            ledger.record(activity, minutes, now)
            await store.record_study_activity(user_id, activity, minutes)
        else:
            return f"unknown action '{action_name}'"
    except PetEngineError as e:
        return str(e)
    return None


async def run_episode(agent: BaseAgent, pet_name: str, species_id: str = "dragon",
                      max_steps: int = 200, step_minutes: int = 30) -> List[Dict]:
    scheduler = ManualScheduler(start=SIM_EPOCH)
    repository = InMemoryPetRepository()
    stats_provider = StaticStudyStatsProvider()
    wallet = InMemoryWallet(starting_balance=STARTING_COINS)
    store = PetLifecycleStore(repository, stats_provider, wallet, scheduler=scheduler)
    user_id = f"sim-{agent.agent_id}"
    ledger = _StudyLedger(stats_provider, wallet, user_id)

    pet = await store.adopt_pet(user_id, species_id, pet_name)
    await store.start_monitoring(user_id)
    log.info("Starting new simulation episode", pet_name=pet_name, agent_type=type(agent).__name__,
             max_steps=max_steps, step_minutes=step_minutes)

    episode_data = []
    try:
        for step in range(max_steps):
            status = await store.get_pet_status(user_id)
            action_tuple = agent.choose_action(status)

            action_name = None
            action_params = None
            rejected = None
            if action_tuple:
                action_name, action_params = action_tuple
                rejected = await _apply_action(store, ledger, user_id, action_name, action_params, scheduler.now())
                if rejected:
                    log.debug("Agent action rejected", pet_name=pet_name, step=step, action=action_name,
                              reason=rejected)

            await scheduler.advance(step_minutes * 60)
            next_status = await store.get_pet_status(user_id)
            current_pet = await store.get_pet(user_id)

            episode_data.append({
                "step": step,
                "state": status.model_dump(mode="json"),
                "action": action_name,
                "action_params": action_params,
                "rejected": rejected,
                "reward": calculate_reward(status, next_status),
                "next_state": next_status.model_dump(mode="json"),
                "evolution_stage": current_pet.evolution_stage,
                "level": current_pet.level,
                "pet_id": str(pet.id),
                "timestamp": scheduler.now().isoformat(),
            })
    finally:
        store.dispose()

    final_pet = await repository.load_pet(user_id)
    log.info("Episode finished.", pet_name=pet_name, total_steps=len(episode_data),
             final_stage=final_pet.evolution_stage if final_pet else None,
             final_health=final_pet.health if final_pet else None)
    return episode_data


def write_jsonl(records: List[Dict], output_filename: str) -> None:
    with open(output_filename, "w") as f:
        for record in records:
            f.write(json.dumps(record) + "\n")


async def generate_synthetic_data(num_episodes: int, agent_type: str = "random",
                                  output_file_prefix: str = "synthetic_data",
                                  max_steps: int = 200, seed: Optional[int] = None) -> str:
    if agent_type not in AGENT_TYPES:
        raise ValueError(f"Unknown agent type: {agent_type}")
    rng = random.Random(seed)

    all_episodes_data = []
    for i in range(num_episodes):
        agent = AGENT_TYPES[agent_type](agent_id=f"{agent_type}_{i + 1}", rng=random.Random(rng.random()))
        all_episodes_data.extend(await run_episode(agent, f"SimPet_{i + 1}", max_steps=max_steps))

    output_filename = f"{output_file_prefix}_{agent_type}_{num_episodes}_episodes.jsonl"
    write_jsonl(all_episodes_data, output_filename)
    log.info("Synthetic data generated", output_file=output_filename, total_records=len(all_episodes_data))
    return output_filename


if __name__ == "__main__":
    from studypet.core.logging_config import setup_logging

    parser = argparse.ArgumentParser(description="Generate offline pet care episodes as JSONL.")
    parser.add_argument("--episodes", type=int, default=10)
    parser.add_argument("--agent", choices=sorted(AGENT_TYPES), default="nurturing")
    parser.add_argument("--steps", type=int, default=200)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--output-prefix", default="synthetic_data")
    args = parser.parse_args()

    setup_logging(log_level_str="INFO")
    asyncio.run(generate_synthetic_data(args.episodes, args.agent, args.output_prefix, args.steps, args.seed))
