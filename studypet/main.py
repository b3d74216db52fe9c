# studypet/main.py
from typing import Optional

from fastapi import FastAPI
from studypet.api.v1.endpoints import pet_interactions
from studypet.core.settings import settings
from studypet.core.logging_config import setup_logging
from studypet.core.database import connect_to_mongo, close_mongo_connection
from studypet.services.lifecycle import PetLifecycleStore
from studypet.services.repository import MongoPetRepository, MongoStudyStatsProvider, MongoWallet
import structlog

setup_logging(log_level_str=settings.LOG_LEVEL)
log = structlog.get_logger(__name__)


def _log_alert(user_id, alert):
    log.warning("pet_health_alert", user_id=user_id, alert_type=alert.type.value, title=alert.title)


def _log_evolution_ready(user_id, eligibility):
    log.info("pet_ready_to_evolve", user_id=user_id, next_stage=eligibility.next_stage.id)


def create_app(store: Optional[PetLifecycleStore] = None) -> FastAPI:
    """Build the API. Passing a store skips MongoDB entirely (tests, demos)."""
    app = FastAPI(title=settings.PROJECT_NAME)
    app.state.pet_store = store

    @app.on_event("startup")
    async def startup_event():
        if app.state.pet_store is not None:
            log.info("Application startup: using injected pet store.")
            return
        log.info("Application startup: Connecting to database and building the pet store.")
        await connect_to_mongo()
        app.state.pet_store = PetLifecycleStore(
            repository=MongoPetRepository(),
            study_stats=MongoStudyStatsProvider(),
            wallet=MongoWallet(),
            on_alert=_log_alert,
            on_evolution_ready=_log_evolution_ready,
            monitor_on_open=True,
        )
        app.state.owns_database = True

    @app.on_event("shutdown")
    async def shutdown_event():
        log.info("Application shutdown: stopping pet timers.")
        if app.state.pet_store is not None:
            app.state.pet_store.dispose()
        if getattr(app.state, "owns_database", False):
            await close_mongo_connection()
        log.info("Application shutdown complete.")

    app.include_router(pet_interactions.router, prefix=settings.API_V1_STR, tags=["pet"])

    @app.get("/")
    async def root():
        log.info("Root endpoint accessed.")
        return {"message": f"Welcome to the {settings.PROJECT_NAME} API!"}

    return app


app = create_app()
