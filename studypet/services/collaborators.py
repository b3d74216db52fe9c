# studypet/services/collaborators.py
"""Interfaces the lifecycle store depends on, plus in-memory implementations.

The in-memory versions back the offline simulator and the tests; the Mongo
versions live in studypet/services/repository.py.
"""
from typing import Optional, Protocol

import structlog

from studypet.core.errors import InsufficientFundsError
from studypet.models.pet import Pet, StudyStatsSnapshot
from studypet.models.species import DEFAULT_SPECIES, SpeciesDefinition

log = structlog.get_logger(__name__)


class PetRepository(Protocol):
    async def load_pet(self, user_id: str) -> Optional[Pet]: ...

    async def save_pet(self, pet: Pet) -> None: ...

    async def load_species(self) -> list[SpeciesDefinition]: ...


class StudyStatsProvider(Protocol):
    async def get_study_stats(self, user_id: str) -> StudyStatsSnapshot: ...


class CurrencyWallet(Protocol):
    async def spend(self, user_id: str, amount: int, reason: str) -> None:
        """Debit `amount` coins or raise InsufficientFundsError."""
        ...


class InMemoryPetRepository:
    def __init__(self, species: Optional[list[SpeciesDefinition]] = None):
        self._pets: dict[str, Pet] = {}
        self._species = list(species) if species is not None else list(DEFAULT_SPECIES)
        self.save_count = 0

    async def load_pet(self, user_id: str) -> Optional[Pet]:
        pet = self._pets.get(user_id)
        return pet.model_copy(deep=True) if pet else None

    async def save_pet(self, pet: Pet) -> None:
        self._pets[pet.owner_id] = pet.model_copy(deep=True)
        self.save_count += 1

    async def load_species(self) -> list[SpeciesDefinition]:
        return list(self._species)


class StaticStudyStatsProvider:
    """Returns whatever snapshot was last set for a user."""

    def __init__(self, default: Optional[StudyStatsSnapshot] = None):
        self._default = default or StudyStatsSnapshot()
        self._stats: dict[str, StudyStatsSnapshot] = {}

    def set_stats(self, user_id: str, stats: StudyStatsSnapshot) -> None:
        self._stats[user_id] = stats

    async def get_study_stats(self, user_id: str) -> StudyStatsSnapshot:
        return self._stats.get(user_id, self._default).model_copy()


class InMemoryWallet:
    def __init__(self, starting_balance: int = 0):
        self._starting_balance = starting_balance
        self._balances: dict[str, int] = {}

    def balance(self, user_id: str) -> int:
        return self._balances.get(user_id, self._starting_balance)

    def deposit(self, user_id: str, amount: int) -> None:
        self._balances[user_id] = self.balance(user_id) + amount

    async def spend(self, user_id: str, amount: int, reason: str) -> None:
        if amount <= 0:
            return
        available = self.balance(user_id)
        if available < amount:
            raise InsufficientFundsError(amount, available)
        self._balances[user_id] = available - amount
        log.debug("coins_spent", user_id=user_id, amount=amount, reason=reason, balance=available - amount)
