# studypet/api/v1/endpoints/pet_interactions.py
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from studypet.core.errors import (
    ActionInProgressError,
    CooldownActiveError,
    NoPetError,
    NotEligibleError,
    PetAlreadyAdoptedError,
    PetEngineError,
    TransientIOError,
)
from studypet.models.alerts import HealthAlert, HealthTrend, PetNeed, RecoveryPlan
from studypet.models.evolution import EvolutionEligibility, EvolutionResult, EvolutionSummary
from studypet.models.pet import Pet, PetStatus
from studypet.models.species import SpeciesDefinition
from studypet.services.care import CareOutcome, StudyActivity
from studypet.services.lifecycle import AutoCareConfig, PetLifecycleStore

router = APIRouter()


class AdoptPetRequest(BaseModel):
    species_id: str
    name: str = Field(min_length=1, max_length=50)


class AutoCareRequest(BaseModel):
    enabled: bool
    feed_threshold: Optional[int] = None
    play_threshold: Optional[int] = None


class StudyActivityRequest(BaseModel):
    activity: StudyActivity
    duration_minutes: int = Field(default=0, ge=0)


def get_store(request: Request) -> PetLifecycleStore:
    return request.app.state.pet_store


def _to_http(e: PetEngineError) -> HTTPException:
    if isinstance(e, NoPetError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (ActionInProgressError, CooldownActiveError, PetAlreadyAdoptedError, NotEligibleError)):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, TransientIOError):
        return HTTPException(status_code=503, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


@router.get("/species", response_model=list[SpeciesDefinition])
async def list_species_endpoint(store: PetLifecycleStore = Depends(get_store)):
    """List the species a user can adopt."""
    try:
        return list((await store.species_catalog()).values())
    except PetEngineError as e:
        raise _to_http(e)


@router.post("/users/{user_id}/pet", response_model=Pet, status_code=201)
async def adopt_pet_endpoint(user_id: str, payload: AdoptPetRequest = Body(...),
                             store: PetLifecycleStore = Depends(get_store)):
    """Adopt a pet for the user."""
    try:
        pet = await store.adopt_pet(user_id, payload.species_id, payload.name)
        await store.start_monitoring(user_id)
    except PetEngineError as e:
        raise _to_http(e)
    return pet


@router.get("/users/{user_id}/pet", response_model=Pet)
async def get_pet_endpoint(user_id: str, store: PetLifecycleStore = Depends(get_store)):
    try:
        pet = await store.get_pet(user_id)
    except PetEngineError as e:
        raise _to_http(e)
    if not pet:
        raise HTTPException(status_code=404, detail="Pet not found")
    return pet


@router.get("/users/{user_id}/pet/status", response_model=PetStatus)
async def get_pet_status_endpoint(user_id: str, store: PetLifecycleStore = Depends(get_store)):
    try:
        return await store.get_pet_status(user_id)
    except PetEngineError as e:
        raise _to_http(e)


@router.get("/users/{user_id}/pet/needs", response_model=list[PetNeed])
async def get_pet_needs_endpoint(user_id: str, store: PetLifecycleStore = Depends(get_store)):
    try:
        return await store.get_pet_needs(user_id)
    except PetEngineError as e:
        raise _to_http(e)


@router.post("/users/{user_id}/pet/feed", response_model=CareOutcome)
async def feed_pet_endpoint(user_id: str, food_id: Optional[str] = Body(default=None, embed=True),
                            store: PetLifecycleStore = Depends(get_store)):
    """Feed the pet, optionally with a catalog food."""
    try:
        return await store.feed(user_id, food_id)
    except PetEngineError as e:
        raise _to_http(e)


@router.post("/users/{user_id}/pet/play", response_model=CareOutcome)
async def play_with_pet_endpoint(user_id: str, toy_id: Optional[str] = Body(default=None, embed=True),
                                 store: PetLifecycleStore = Depends(get_store)):
    """Play with the pet, optionally with a catalog toy."""
    try:
        return await store.play(user_id, toy_id)
    except PetEngineError as e:
        raise _to_http(e)


@router.post("/users/{user_id}/pet/care", response_model=CareOutcome)
async def care_for_pet_endpoint(user_id: str, store: PetLifecycleStore = Depends(get_store)):
    try:
        return await store.care(user_id)
    except PetEngineError as e:
        raise _to_http(e)


@router.get("/users/{user_id}/pet/evolution", response_model=EvolutionEligibility)
async def get_evolution_eligibility_endpoint(user_id: str, store: PetLifecycleStore = Depends(get_store)):
    try:
        return await store.get_evolution_eligibility(user_id)
    except PetEngineError as e:
        raise _to_http(e)


@router.get("/users/{user_id}/pet/evolution/summary", response_model=EvolutionSummary)
async def get_evolution_summary_endpoint(user_id: str, store: PetLifecycleStore = Depends(get_store)):
    try:
        return await store.get_evolution_summary(user_id)
    except PetEngineError as e:
        raise _to_http(e)


@router.get("/users/{user_id}/pet/evolution/tips", response_model=list[str])
async def get_evolution_tips_endpoint(user_id: str, store: PetLifecycleStore = Depends(get_store)):
    try:
        return await store.get_evolution_tips(user_id)
    except PetEngineError as e:
        raise _to_http(e)


@router.post("/users/{user_id}/pet/evolve", response_model=EvolutionResult)
async def trigger_evolution_endpoint(user_id: str, store: PetLifecycleStore = Depends(get_store)):
    """Evolve the pet to its next stage if every requirement is met."""
    try:
        return await store.trigger_evolution(user_id)
    except PetEngineError as e:
        raise _to_http(e)


@router.get("/users/{user_id}/pet/alerts", response_model=list[HealthAlert])
async def get_health_alerts_endpoint(user_id: str, unacknowledged_only: bool = False,
                                     store: PetLifecycleStore = Depends(get_store)):
    try:
        return await store.get_health_alerts(user_id, unacknowledged_only)
    except PetEngineError as e:
        raise _to_http(e)


@router.post("/users/{user_id}/pet/alerts/{alert_id}/acknowledge")
async def acknowledge_alert_endpoint(user_id: str, alert_id: str, store: PetLifecycleStore = Depends(get_store)):
    try:
        acknowledged = await store.acknowledge_alert(user_id, alert_id)
    except PetEngineError as e:
        raise _to_http(e)
    if not acknowledged:
        raise HTTPException(status_code=404, detail="Alert not found")
    return {"acknowledged": True}


@router.get("/users/{user_id}/pet/trends", response_model=list[HealthTrend])
async def get_health_trends_endpoint(user_id: str, hours: float = 24, store: PetLifecycleStore = Depends(get_store)):
    try:
        return await store.get_health_trends(user_id, hours)
    except PetEngineError as e:
        raise _to_http(e)


@router.get("/users/{user_id}/pet/recovery-plan", response_model=RecoveryPlan)
async def get_recovery_plan_endpoint(user_id: str, store: PetLifecycleStore = Depends(get_store)):
    try:
        return await store.get_recovery_plan(user_id)
    except PetEngineError as e:
        raise _to_http(e)


@router.get("/users/{user_id}/pet/feeding-recommendation")
async def get_feeding_recommendation_endpoint(user_id: str, store: PetLifecycleStore = Depends(get_store)):
    try:
        return await store.get_feeding_recommendation(user_id)
    except PetEngineError as e:
        raise _to_http(e)


@router.get("/users/{user_id}/pet/auto-care", response_model=AutoCareConfig)
async def get_auto_care_endpoint(user_id: str, store: PetLifecycleStore = Depends(get_store)):
    try:
        return await store.get_auto_care(user_id)
    except PetEngineError as e:
        raise _to_http(e)


@router.put("/users/{user_id}/pet/auto-care", response_model=AutoCareConfig)
async def set_auto_care_endpoint(user_id: str, payload: AutoCareRequest = Body(...),
                                 store: PetLifecycleStore = Depends(get_store)):
    try:
        return await store.set_auto_care(user_id, payload.enabled, payload.feed_threshold, payload.play_threshold)
    except PetEngineError as e:
        raise _to_http(e)


@router.post("/users/{user_id}/pet/study-activity", response_model=Pet)
async def record_study_activity_endpoint(user_id: str, payload: StudyActivityRequest = Body(...),
                                         store: PetLifecycleStore = Depends(get_store)):
    try:
        return await store.record_study_activity(user_id, payload.activity, payload.duration_minutes)
    except PetEngineError as e:
        raise _to_http(e)
