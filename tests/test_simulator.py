"""
tests/test_simulator.py
───────────────────────
Tests for the offline agent simulator.
"""
import json
import random

from simulation.agents import NeglectfulAgent, NurturingAgent, RandomAgent
from simulation.simulator import calculate_reward, generate_synthetic_data, run_episode
from studypet.models.pet import PetStatus


def _status(**overrides) -> PetStatus:
    fields = dict(health=70, happiness=60, hunger=20, energy=100, needs_attention=False,
                  time_since_last_fed=0, time_since_last_played=0, evolution_progress=0)
    fields.update(overrides)
    return PetStatus(**fields)


class TestAgents:
    def test_nurturing_feeds_hungry_pet(self):
        agent = NurturingAgent("n", rng=random.Random(1))
        assert agent.choose_action(_status(hunger=70))[0] == "feed"

    def test_nurturing_evolves_when_ready(self):
        agent = NurturingAgent("n", rng=random.Random(1))
        assert agent.choose_action(_status(evolution_progress=100)) == ("evolve", {})

    def test_neglectful_ignores_mild_needs(self):
        agent = NeglectfulAgent("x", rng=random.Random(1))
        assert agent.choose_action(_status(hunger=70, happiness=30)) is None

    def test_random_agent_is_reproducible(self):
        first = RandomAgent("r", rng=random.Random(7)).choose_action(_status())
        second = RandomAgent("r", rng=random.Random(7)).choose_action(_status())
        assert first == second


class TestReward:
    def test_feeding_is_rewarded(self):
        assert calculate_reward(_status(hunger=70), _status(hunger=40)) > 0

    def test_neglect_is_penalized(self):
        before = _status(hunger=86, health=60, happiness=40)
        after = _status(hunger=90, health=55, happiness=35, needs_attention=True)
        assert calculate_reward(before, after) < 0


class TestEpisodes:
    async def test_episode_records_every_step(self):
        records = await run_episode(NurturingAgent("n", rng=random.Random(3)), "Sim", max_steps=20)
        assert len(records) == 20
        assert [r["step"] for r in records] == list(range(20))
        for record in records:
            for stat in ("health", "happiness", "hunger", "energy"):
                assert 0 <= record["next_state"][stat] <= 100

    async def test_nurturing_keeps_pet_fed(self):
        records = await run_episode(NurturingAgent("n", rng=random.Random(3)), "Sim", max_steps=96)
        assert max(r["next_state"]["hunger"] for r in records) < 80

    async def test_neglected_pet_gets_hungry(self):
        records = await run_episode(NeglectfulAgent("x", rng=random.Random(3)), "Sim", max_steps=96)
        assert max(r["next_state"]["hunger"] for r in records) >= 80

    async def test_generate_writes_jsonl(self, tmp_path):
        output = await generate_synthetic_data(2, "random", str(tmp_path / "sim"), max_steps=5, seed=42)
        lines = open(output).read().splitlines()
        assert len(lines) == 10
        assert {"state", "action", "reward", "next_state"} <= set(json.loads(lines[0]))
