# studypet/services/lifecycle.py
"""Pet lifecycle store.

Owns one session per user: the pet, its species, the alert and trend buffers,
the auto-care config and the timer handles. Every mutation goes through here,
one action at a time per pet. State is updated in memory first and persisted
afterwards; a failed save marks the session `sync_pending` instead of rolling
back.
"""
import asyncio
from collections import deque
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from enum import Enum
from functools import partial
from typing import Any, Callable, Optional

import structlog
from pydantic import BaseModel, Field

from studypet.core.errors import (
    ActionInProgressError,
    NoPetError,
    PetAlreadyAdoptedError,
    TransientIOError,
    UnknownItemError,
    UnknownSpeciesError,
    ValidationError,
)
from studypet.core.scheduler import AsyncioScheduler, ScheduledTask, Scheduler, run_callback
from studypet.core.settings import settings
from studypet.models.alerts import Attention, HealthAlert, HealthTrend, PetNeed, RecoveryPlan
from studypet.models.evolution import EvolutionEligibility, EvolutionResult, EvolutionSummary
from studypet.models.items import find_food, find_toy
from studypet.models.pet import Pet, PetStatus, StudyStatsSnapshot
from studypet.models.species import SpeciesDefinition
from studypet.services import care as care_actions
from studypet.services import evolution
from studypet.services.care import CareOutcome, StudyActivity
from studypet.services.collaborators import CurrencyWallet, PetRepository, StudyStatsProvider
from studypet.services.decay import (
    clamp_stat,
    feeding_recommendation,
    happiness_impact_of_hunger,
    health_impact_of_hunger,
    hours_between,
    hunger_from_elapsed_time,
)
from studypet.services.needs import (
    AlertBuffer,
    assess_attention,
    check_health_issues,
    generate_pet_needs,
    health_recovery_plan,
)

log = structlog.get_logger(__name__)


class ActionState(str, Enum):
    IDLE = "idle"
    ADOPTING = "adopting"
    FEEDING = "feeding"
    PLAYING = "playing"
    CARING = "caring"
    EVOLVING = "evolving"


class AutoCareConfig(BaseModel):
    enabled: bool = False
    feed_threshold: int = Field(default=settings.AUTO_FEED_THRESHOLD, ge=0, le=100)
    play_threshold: int = Field(default=settings.AUTO_PLAY_THRESHOLD, ge=0, le=100)


class PetSession:
    def __init__(self, user_id: str, pet: Pet, species: SpeciesDefinition):
        self.user_id = user_id
        self.pet = pet
        self.species = species
        self.alerts = AlertBuffer(settings.ALERT_BUFFER_SIZE, settings.ALERT_SUPPRESSION_MINUTES)
        self.trends: deque[HealthTrend] = deque(maxlen=settings.TREND_BUFFER_SIZE)
        self.action_state = ActionState.IDLE
        self.auto_care = AutoCareConfig()
        self.sync_pending = False
        self.timers: list[ScheduledTask] = []
        self.needs: list[PetNeed] = []
        self.attention = Attention()
        self.eligibility: Optional[EvolutionEligibility] = None
        self.was_eligible = False

    @property
    def is_monitored(self) -> bool:
        return any(not t.cancelled for t in self.timers)


AlertCallback = Callable[[str, HealthAlert], Any]
NeedsCallback = Callable[[str, list[PetNeed]], Any]
EvolutionReadyCallback = Callable[[str, EvolutionEligibility], Any]


class PetLifecycleStore:
    def __init__(self, repository: PetRepository, study_stats: StudyStatsProvider, wallet: CurrencyWallet,
                 scheduler: Optional[Scheduler] = None,
                 on_alert: Optional[AlertCallback] = None,
                 on_needs: Optional[NeedsCallback] = None,
                 on_evolution_ready: Optional[EvolutionReadyCallback] = None,
                 monitor_on_open: bool = False):
        self.repository = repository
        self.study_stats = study_stats
        self.wallet = wallet
        self.scheduler = scheduler or AsyncioScheduler()
        self.on_alert = on_alert
        self.on_needs = on_needs
        self.on_evolution_ready = on_evolution_ready
        self.monitor_on_open = monitor_on_open
        self._sessions: dict[str, PetSession] = {}
        self._opening: dict[str, asyncio.Lock] = {}
        self._species: Optional[dict[str, SpeciesDefinition]] = None

    def now(self) -> datetime:
        return self.scheduler.now()

    # ── Sessions ──────────────────────────────────────────────────────────────

    async def species_catalog(self) -> dict[str, SpeciesDefinition]:
        if self._species is None:
            self._species = {s.id: s for s in await self.repository.load_species()}
        return self._species

    async def _species_for(self, species_id: str) -> SpeciesDefinition:
        species = (await self.species_catalog()).get(species_id)
        if species is None:
            raise UnknownSpeciesError(f"Unknown species '{species_id}'")
        return species

    async def open_session(self, user_id: str) -> Optional[PetSession]:
        """Return the user's session, loading the pet from the repository on first use."""
        session = self._sessions.get(user_id)
        if session is not None:
            return session
        # Concurrent first requests for a user share one load
        async with self._opening.setdefault(user_id, asyncio.Lock()):
            session = self._sessions.get(user_id)
            if session is not None:
                return session
            return await self._load_session(user_id)

    async def _load_session(self, user_id: str) -> Optional[PetSession]:
        pet = await self.repository.load_pet(user_id)
        if pet is None:
            return None
        species = await self._species_for(pet.species_id)
        if not evolution.validate_evolution_history(pet, species):
            log.warning("invariant_violation_evolution_history", user_id=user_id, pet_id=str(pet.id),
                        stage=pet.evolution_stage)

        session = PetSession(user_id, pet, species)
        self._sessions[user_id] = session
        self._apply_decay(session, self.now())
        self._refresh_needs(session, self.now())
        log.info("pet_session_opened", user_id=user_id, pet_id=str(pet.id))
        if self.monitor_on_open:
            await self.start_monitoring(user_id)
        return session

    async def _require_session(self, user_id: str) -> PetSession:
        session = await self.open_session(user_id)
        if session is None:
            raise NoPetError(user_id)
        return session

    @asynccontextmanager
    async def _action(self, session: PetSession, state: ActionState):
        if session.action_state != ActionState.IDLE:
            raise ActionInProgressError(session.action_state.value, state.value)
        session.action_state = state
        try:
            yield
        finally:
            session.action_state = ActionState.IDLE

    async def _persist(self, session: PetSession) -> Optional[str]:
        try:
            await self.repository.save_pet(session.pet)
        except TransientIOError as e:
            session.sync_pending = True
            log.error("pet_save_failed", user_id=session.user_id, pet_id=str(session.pet.id), error=str(e))
            return str(e)
        session.sync_pending = False
        return None

    async def _fetch_study_stats(self, user_id: str) -> Optional[StudyStatsSnapshot]:
        try:
            return await self.study_stats.get_study_stats(user_id)
        except TransientIOError as e:
            log.error("study_stats_fetch_failed", user_id=user_id, error=str(e))
            return None

    # ── Derived state ─────────────────────────────────────────────────────────

    @staticmethod
    def _current_hunger(pet: Pet, now: datetime) -> int:
        return hunger_from_elapsed_time(pet.last_fed, pet.hunger_baseline, now)

    def _apply_decay(self, session: PetSession, now: datetime) -> None:
        # Recomputed from last_fed, so repeated calls at the same instant agree
        session.pet.hunger = self._current_hunger(session.pet, now)

    def _view(self, session: PetSession, now: datetime) -> Pet:
        pet = session.pet.model_copy(deep=True)
        pet.hunger = self._current_hunger(pet, now)
        return pet

    def _refresh_needs(self, session: PetSession, now: datetime) -> list[PetNeed]:
        pet = session.pet
        session.needs = generate_pet_needs(pet.stats)
        session.attention = assess_attention(
            session.needs,
            hours_between(pet.last_interaction, now),
            hours_between(pet.last_played, now),
        )
        return session.needs

    async def _evaluate_eligibility(self, session: PetSession, now: datetime) -> Optional[EvolutionEligibility]:
        stats = await self._fetch_study_stats(session.user_id)
        if stats is None:
            return session.eligibility
        session.eligibility = evolution.check_eligibility(session.pet, session.species, stats, now)
        return session.eligibility

    # ── Timers ────────────────────────────────────────────────────────────────

    async def start_monitoring(self, user_id: str) -> None:
        session = await self._require_session(user_id)
        self._cancel_timers(session)
        session.timers = [
            self.scheduler.schedule(settings.HUNGER_TICK_SECONDS, partial(self._hunger_tick, user_id),
                                    name=f"hunger:{user_id}"),
            self.scheduler.schedule(settings.HEALTH_CHECK_SECONDS, partial(self._health_tick, user_id),
                                    name=f"health:{user_id}"),
            self.scheduler.schedule(settings.NEEDS_REFRESH_SECONDS, partial(self._needs_tick, user_id),
                                    name=f"needs:{user_id}"),
        ]
        log.info("pet_monitoring_started", user_id=user_id, pet_id=str(session.pet.id))

    def _cancel_timers(self, session: PetSession) -> None:
        for timer in session.timers:
            timer.cancel()
        session.timers = []

    def stop_monitoring(self, user_id: str) -> None:
        session = self._sessions.get(user_id)
        if session is None:
            return
        self._cancel_timers(session)
        log.info("pet_monitoring_stopped", user_id=user_id)

    def is_monitoring(self, user_id: str) -> bool:
        session = self._sessions.get(user_id)
        return session is not None and session.is_monitored

    def dispose(self) -> None:
        for session in self._sessions.values():
            self._cancel_timers(session)
        self._sessions.clear()
        self._opening.clear()
        log.info("pet_lifecycle_store_disposed")

    async def _hunger_tick(self, user_id: str) -> None:
        session = self._sessions.get(user_id)
        if session is None:
            return
        self._apply_decay(session, self.now())

    async def _needs_tick(self, user_id: str) -> None:
        session = self._sessions.get(user_id)
        if session is None:
            return
        needs = self._refresh_needs(session, self.now())
        if self.on_needs is not None:
            await run_callback("on_needs", partial(self.on_needs, user_id, list(needs)))

    async def _health_tick(self, user_id: str) -> None:
        session = self._sessions.get(user_id)
        if session is None:
            return
        now = self.now()
        pet = session.pet

        self._apply_decay(session, now)
        pet.health = clamp_stat(health_impact_of_hunger(pet.hunger, pet.health), "health")
        pet.happiness = clamp_stat(happiness_impact_of_hunger(pet.hunger, pet.happiness), "happiness")
        session.trends.append(HealthTrend(timestamp=now, **pet.stats.model_dump()))

        alerts = check_health_issues(str(pet.id), pet.stats, hours_between(pet.last_interaction, now), now)
        for alert in session.alerts.add_all(alerts, now):
            log.info("health_alert_raised", user_id=user_id, pet_id=alert.pet_id,
                     alert_type=alert.type.value, title=alert.title)
            if self.on_alert is not None:
                await run_callback("on_alert", partial(self.on_alert, user_id, alert))

        eligibility = await self._evaluate_eligibility(session, now)
        if eligibility is not None:
            if eligibility.can_evolve and not session.was_eligible:
                log.info("pet_evolution_ready", user_id=user_id, next_stage=eligibility.next_stage.id)
                if self.on_evolution_ready is not None:
                    await run_callback("on_evolution_ready", partial(self.on_evolution_ready, user_id, eligibility))
            session.was_eligible = eligibility.can_evolve

        if session.auto_care.enabled and session.action_state == ActionState.IDLE:
            await self._auto_care(session)

        self._refresh_needs(session, now)
        await self._persist(session)

    async def _auto_care(self, session: PetSession) -> None:
        config = session.auto_care
        if session.pet.hunger >= config.feed_threshold:
            try:
                await self.feed(session.user_id)
                log.info("auto_care_fed", user_id=session.user_id, hunger=session.pet.hunger)
            except ValidationError as e:
                log.info("auto_care_skipped", user_id=session.user_id, action="feed", reason=str(e))
        if session.pet.happiness <= config.play_threshold:
            try:
                await self.play(session.user_id)
                log.info("auto_care_played", user_id=session.user_id, happiness=session.pet.happiness)
            except ValidationError as e:
                log.info("auto_care_skipped", user_id=session.user_id, action="play", reason=str(e))

    # ── Commands ──────────────────────────────────────────────────────────────

    async def adopt_pet(self, user_id: str, species_id: str, name: str) -> Pet:
        if await self.open_session(user_id) is not None:
            raise PetAlreadyAdoptedError(f"User {user_id} already has a pet")
        species = await self._species_for(species_id)

        now = self.now()
        pet = Pet(
            owner_id=user_id,
            species_id=species.id,
            name=name,
            health=species.base_health,
            happiness=species.base_happiness,
            hunger=0,
            energy=100,
            evolution_stage=species.first_stage.id,
            abilities=list(species.first_stage.unlocked_abilities),
            created_at=now,
            last_fed=now,
            last_played=now,
            last_interaction=now,
        )
        if user_id in self._sessions:
            raise PetAlreadyAdoptedError(f"User {user_id} already has a pet")
        session = PetSession(user_id, pet, species)
        self._sessions[user_id] = session
        async with self._action(session, ActionState.ADOPTING):
            self._refresh_needs(session, now)
            await self._persist(session)
        log.info("pet_adopted", user_id=user_id, pet_id=str(pet.id), species_id=species.id, name=name)
        return pet.model_copy(deep=True)

    async def feed(self, user_id: str, food_id: Optional[str] = None) -> CareOutcome:
        session = await self._require_session(user_id)
        food = find_food(food_id)
        if food is None:
            raise UnknownItemError(f"Unknown food '{food_id}'")

        async with self._action(session, ActionState.FEEDING):
            now = self.now()
            self._apply_decay(session, now)
            care_actions.ensure_can_feed(session.pet, now)
            await self.wallet.spend(user_id, food.cost, reason=f"feed:{food.id}")
            outcome = care_actions.feed(session.pet, food, now)
            session.pet = outcome.pet
            self._refresh_needs(session, now)
            sync_error = await self._persist(session)
        return outcome.model_copy(update={"sync_error": sync_error})

    async def play(self, user_id: str, toy_id: Optional[str] = None) -> CareOutcome:
        session = await self._require_session(user_id)
        toy = find_toy(toy_id)
        if toy is None:
            raise UnknownItemError(f"Unknown toy '{toy_id}'")

        async with self._action(session, ActionState.PLAYING):
            now = self.now()
            care_actions.ensure_can_play(session.pet, now)
            await self.wallet.spend(user_id, toy.cost, reason=f"play:{toy.id}")
            outcome = care_actions.play(session.pet, toy, now)
            session.pet = outcome.pet
            self._refresh_needs(session, now)
            sync_error = await self._persist(session)
        return outcome.model_copy(update={"sync_error": sync_error})

    async def care(self, user_id: str) -> CareOutcome:
        session = await self._require_session(user_id)
        async with self._action(session, ActionState.CARING):
            now = self.now()
            outcome = care_actions.care(session.pet, now)
            session.pet = outcome.pet
            self._refresh_needs(session, now)
            sync_error = await self._persist(session)
        return outcome.model_copy(update={"sync_error": sync_error})

    async def trigger_evolution(self, user_id: str) -> EvolutionResult:
        session = await self._require_session(user_id)
        async with self._action(session, ActionState.EVOLVING):
            now = self.now()
            stats = await self.study_stats.get_study_stats(user_id)
            result = evolution.trigger_evolution(session.pet, session.species, stats, now)
            session.pet = result.pet
            session.was_eligible = False
            session.eligibility = evolution.check_eligibility(session.pet, session.species, stats, now)
            sync_error = await self._persist(session)
        return result.model_copy(update={"sync_error": sync_error})

    async def acknowledge_alert(self, user_id: str, alert_id: str) -> bool:
        session = await self._require_session(user_id)
        acknowledged = session.alerts.acknowledge(alert_id)
        if acknowledged:
            log.info("health_alert_acknowledged", user_id=user_id, alert_id=alert_id)
        return acknowledged

    async def set_auto_care(self, user_id: str, enabled: bool, feed_threshold: Optional[int] = None,
                            play_threshold: Optional[int] = None) -> AutoCareConfig:
        session = await self._require_session(user_id)
        current = session.auto_care
        session.auto_care = AutoCareConfig(
            enabled=enabled,
            feed_threshold=max(0, min(100, feed_threshold if feed_threshold is not None else current.feed_threshold)),
            play_threshold=max(0, min(100, play_threshold if play_threshold is not None else current.play_threshold)),
        )
        log.info("auto_care_configured", user_id=user_id, **session.auto_care.model_dump())
        return session.auto_care

    async def record_study_activity(self, user_id: str, activity: StudyActivity,
                                    duration_minutes: int = 0) -> Pet:
        session = await self._require_session(user_id)
        now = self.now()
        session.pet = care_actions.apply_study_activity(session.pet, activity, duration_minutes, now)
        self._refresh_needs(session, now)
        await self._persist(session)
        log.info("study_activity_recorded", user_id=user_id, activity=activity.value,
                 duration_minutes=duration_minutes, level=session.pet.level)
        return session.pet.model_copy(deep=True)

    # ── Queries ───────────────────────────────────────────────────────────────

    async def get_pet(self, user_id: str) -> Optional[Pet]:
        session = await self.open_session(user_id)
        if session is None:
            return None
        return self._view(session, self.now())

    async def get_pet_status(self, user_id: str) -> PetStatus:
        session = await self._require_session(user_id)
        now = self.now()
        pet = self._view(session, now)
        attention = assess_attention(
            generate_pet_needs(pet.stats),
            hours_between(pet.last_interaction, now),
            hours_between(pet.last_played, now),
        )
        eligibility = await self._evaluate_eligibility(session, now)
        return PetStatus(
            health=pet.health,
            happiness=pet.happiness,
            hunger=pet.hunger,
            energy=pet.energy,
            needs_attention=attention.needs_attention,
            attention_reason=attention.reason.value if attention.reason else None,
            time_since_last_fed=round(hours_between(pet.last_fed, now) * 60, 1),
            time_since_last_played=round(hours_between(pet.last_played, now) * 60, 1),
            evolution_progress=eligibility.progress if eligibility else 0,
            sync_pending=session.sync_pending,
        )

    async def get_pet_needs(self, user_id: str) -> list[PetNeed]:
        session = await self._require_session(user_id)
        return generate_pet_needs(self._view(session, self.now()).stats)

    async def get_evolution_eligibility(self, user_id: str) -> EvolutionEligibility:
        session = await self._require_session(user_id)
        stats = await self.study_stats.get_study_stats(user_id)
        return evolution.check_eligibility(self._view(session, self.now()), session.species, stats, self.now())

    async def get_health_alerts(self, user_id: str, unacknowledged_only: bool = False) -> list[HealthAlert]:
        session = await self._require_session(user_id)
        return session.alerts.alerts(unacknowledged_only)

    async def get_health_trends(self, user_id: str, hours: float = 24) -> list[HealthTrend]:
        session = await self._require_session(user_id)
        cutoff = self.now() - timedelta(hours=hours)
        return [t for t in session.trends if t.timestamp >= cutoff]

    async def get_recovery_plan(self, user_id: str) -> RecoveryPlan:
        session = await self._require_session(user_id)
        return health_recovery_plan(self._view(session, self.now()).stats)

    async def get_feeding_recommendation(self, user_id: str) -> dict:
        session = await self._require_session(user_id)
        return feeding_recommendation(self._view(session, self.now()).hunger)

    async def get_evolution_summary(self, user_id: str) -> EvolutionSummary:
        session = await self._require_session(user_id)
        stats = await self.study_stats.get_study_stats(user_id)
        return evolution.evolution_progress_summary(self._view(session, self.now()), session.species,
                                                    stats, self.now())

    async def get_evolution_tips(self, user_id: str) -> list[str]:
        return evolution.evolution_tips(await self.get_evolution_eligibility(user_id))

    async def get_auto_care(self, user_id: str) -> AutoCareConfig:
        session = await self._require_session(user_id)
        return session.auto_care
