# studypet/services/repository.py
"""MongoDB-backed collaborators (motor)."""
from typing import Optional

import structlog
from pydantic import ValidationError as PydanticValidationError
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from studypet.core.database import (
    PETS_COLLECTION,
    SPECIES_COLLECTION,
    STUDY_STATS_COLLECTION,
    WALLETS_COLLECTION,
    get_database,
)
from studypet.core.errors import InsufficientFundsError, TransientIOError
from studypet.models.pet import Pet, StudyStatsSnapshot
from studypet.models.species import DEFAULT_SPECIES, SpeciesDefinition

log = structlog.get_logger(__name__)


class MongoPetRepository:
    def __init__(self, db=None):
        self._db = db

    @property
    def db(self):
        return self._db if self._db is not None else get_database()

    async def load_pet(self, user_id: str) -> Optional[Pet]:
        try:
            pet_data = await self.db[PETS_COLLECTION].find_one({"owner_id": user_id})
        except PyMongoError as e:
            raise TransientIOError(f"Loading pet for {user_id} failed: {e}") from e
        if not pet_data:
            return None
        pet_data.pop("_id", None)
        return Pet.model_validate(pet_data)

    async def save_pet(self, pet: Pet) -> None:
        # mode='json' stores UUIDs as strings
        pet_dict = pet.model_dump(mode="json")
        try:
            await self.db[PETS_COLLECTION].update_one(
                {"id": pet_dict["id"]},
                {"$set": pet_dict},
                upsert=True,
            )
        except PyMongoError as e:
            raise TransientIOError(f"Saving pet {pet.id} failed: {e}") from e

    async def load_species(self) -> list[SpeciesDefinition]:
        species: list[SpeciesDefinition] = []
        try:
            async for doc in self.db[SPECIES_COLLECTION].find():
                doc.pop("_id", None)
                try:
                    species.append(SpeciesDefinition.model_validate(doc))
                except PydanticValidationError as e:
                    log.error("species_definition_invalid", species_id=doc.get("id"), error=str(e))
        except PyMongoError as e:
            raise TransientIOError(f"Loading species failed: {e}") from e
        if not species:
            log.info("species_collection_empty_using_defaults", count=len(DEFAULT_SPECIES))
            return list(DEFAULT_SPECIES)
        return species


class MongoStudyStatsProvider:
    def __init__(self, db=None):
        self._db = db

    @property
    def db(self):
        return self._db if self._db is not None else get_database()

    async def get_study_stats(self, user_id: str) -> StudyStatsSnapshot:
        try:
            doc = await self.db[STUDY_STATS_COLLECTION].find_one({"user_id": user_id})
        except PyMongoError as e:
            raise TransientIOError(f"Fetching study stats for {user_id} failed: {e}") from e
        if not doc:
            return StudyStatsSnapshot()
        return StudyStatsSnapshot.model_validate(doc)


class MongoWallet:
    def __init__(self, db=None):
        self._db = db

    @property
    def db(self):
        return self._db if self._db is not None else get_database()

    async def spend(self, user_id: str, amount: int, reason: str) -> None:
        if amount <= 0:
            return
        wallets = self.db[WALLETS_COLLECTION]
        try:
            # Conditional decrement so two concurrent spends cannot overdraw
            updated = await wallets.find_one_and_update(
                {"user_id": user_id, "coins": {"$gte": amount}},
                {"$inc": {"coins": -amount}},
                return_document=ReturnDocument.AFTER,
            )
            if updated is None:
                doc = await wallets.find_one({"user_id": user_id})
                raise InsufficientFundsError(amount, (doc or {}).get("coins", 0))
        except PyMongoError as e:
            raise TransientIOError(f"Spending coins for {user_id} failed: {e}") from e
        log.info("coins_spent", user_id=user_id, amount=amount, reason=reason, balance=updated["coins"])
