"""Main entry point for the care intake agent."""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from careintake.config.settings import get_settings
from careintake.core.orchestrator import IntakeOrchestrator
from careintake.core.policy import get_policy
from careintake.core.profile_model import get_field_weights
from careintake.core.profile_store_factory import ProfileStoreFactory
from careintake.services.llm_service import LLMService
from careintake.utils.logger import get_logger
from careintake.api.chat import router as chat_router
from careintake.api.health import router as health_router
from careintake.api.limiter import limiter
from careintake.api.metrics import router as metrics_router
from careintake.api.profiles import router as profiles_router
from careintake.api.webhooks import router as sms_router

logger = get_logger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Wire settings, policy, weights, store and orchestrator onto app.state.

    Policy and field weights are loaded once here and treated as immutable
    for the life of the process.
    """
    # Startup
    logger.info("Starting care intake agent...")

    app.state.settings = settings
    app.state.policy = get_policy()
    app.state.field_weights = get_field_weights()
    store_factory = ProfileStoreFactory(settings)
    app.state.store = await store_factory.open()

    llm_service = LLMService(settings) if settings.llm_enabled else None
    if llm_service is None:
        logger.info("Reply generation disabled - using static contextual replies")

    app.state.orchestrator = IntakeOrchestrator(
        store=app.state.store,
        policy=app.state.policy,
        weights=app.state.field_weights,
        llm_service=llm_service,
        settings=settings,
    )
    logger.info(
        "Application started successfully",
        extra={"store_backend": app.state.store.backend, "policy_version": app.state.policy.version}
    )

    yield

    # Shutdown
    logger.info("Initiating shutdown...")
    await store_factory.close()
    logger.info("Application shutdown complete")


app = FastAPI(
    title="Care Intake Agent",
    description="SMS and chat intake assistant for home care enrollment",
    version="1.0.0",
    lifespan=lifespan
)

# Add rate limiter to app state
app.state.limiter = limiter

# Add rate limit exceeded handler
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.include_router(health_router)
app.include_router(metrics_router)
app.include_router(sms_router)
app.include_router(chat_router)
app.include_router(profiles_router)


if __name__ == "__main__":
    import uvicorn
    import os

    # Use PORT from environment variable (Render provides this)
    port = int(os.environ.get("PORT", 8000))

    logger.info(f"Starting server on port {port}")

    uvicorn.run(
        "careintake.main:app",
        host="0.0.0.0",
        port=port,
        log_level="info"
    )
