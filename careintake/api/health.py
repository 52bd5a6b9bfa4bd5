"""Health check endpoints with dependency verification."""
import asyncio
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from careintake.config.constants import HealthCheckConfig
from careintake.utils.circuit_breaker import get_circuit_status
from careintake.utils.logger import get_logger
from careintake.utils.metrics import redis_connected

logger = get_logger(__name__)

router = APIRouter()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def check_store_health(store) -> Dict[str, Any]:
    """Check the profile store backend."""
    try:
        healthy = await asyncio.wait_for(
            store.health_check(),
            timeout=HealthCheckConfig.DEPENDENCY_CHECK_TIMEOUT_SEC
        )
    except asyncio.TimeoutError:
        healthy = False

    if store.backend == "redis":
        redis_connected.set(1 if healthy else 0)

    return {
        "status": "healthy" if healthy else "unhealthy",
        "backend": store.backend,
    }


def check_policy_health(policy) -> Dict[str, Any]:
    """An empty policy classifies everything as unknown."""
    loaded = bool(policy.emergency_keywords or policy.allowed_domain_phrases)
    return {
        "status": "healthy" if loaded else "unhealthy",
        "version": policy.version,
        "emergency_keywords": len(policy.emergency_keywords),
    }


async def check_openai_health(settings) -> Dict[str, Any]:
    """Check OpenAI API connectivity."""
    if not settings.llm_enabled:
        return {
            "status": "skipped",
            "message": "Reply generation disabled; static replies in use"
        }

    try:
        from openai import AsyncOpenAI

        client = AsyncOpenAI(
            api_key=settings.get_openai_api_key(),
            timeout=HealthCheckConfig.DEPENDENCY_CHECK_TIMEOUT_SEC
        )

        # Simple models list call to verify connectivity
        await client.models.list()

        return {
            "status": "healthy",
            "message": "OpenAI API accessible"
        }
    except Exception as e:
        logger.error(f"OpenAI health check failed: {e}")
        return {
            "status": "unhealthy",
            "message": f"OpenAI API error: {type(e).__name__}",
            "error": type(e).__name__
        }


async def check_twilio_health(settings) -> Dict[str, Any]:
    """Check Twilio API connectivity."""
    if not settings.twilio_account_sid or not settings.get_twilio_auth_token():
        return {
            "status": "skipped",
            "message": "Twilio not configured"
        }

    try:
        from twilio.rest import Client

        client = Client(
            settings.twilio_account_sid,
            settings.get_twilio_auth_token()
        )

        # Verify account is accessible; the Twilio client is synchronous
        account = await asyncio.wait_for(
            asyncio.to_thread(client.api.accounts(settings.twilio_account_sid).fetch),
            timeout=HealthCheckConfig.DEPENDENCY_CHECK_TIMEOUT_SEC
        )

        return {
            "status": "healthy",
            "message": "Twilio API accessible",
            "account_status": account.status
        }
    except Exception as e:
        logger.error(f"Twilio health check failed: {e}")
        return {
            "status": "unhealthy",
            "message": f"Twilio API error: {type(e).__name__}",
            "error": type(e).__name__
        }


@router.get("/health")
async def health_check():
    """Basic health check - returns 200 if service is running."""
    return {
        "status": "healthy",
        "service": "care-intake-agent",
        "timestamp": _now()
    }


@router.get("/health/live")
async def liveness_probe():
    """Kubernetes liveness probe - checks if service is running."""
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_probe(request: Request):
    """Readiness probe: the store answers and a policy is loaded.

    An open OpenAI circuit does not make the service unready, since replies
    fall back to static text.
    """
    state = request.app.state
    checks = {
        "store": await check_store_health(state.store),
        "policy": check_policy_health(state.policy),
    }
    circuit_breakers = get_circuit_status()

    ready = all(check["status"] == "healthy" for check in checks.values())
    if not ready:
        logger.error("Readiness check failed", extra={"checks": checks})

    return JSONResponse(
        status_code=200 if ready else 503,
        content={
            "status": "ready" if ready else "not_ready",
            "checks": checks,
            "circuit_breakers": circuit_breakers,
            "timestamp": _now(),
        }
    )


@router.get("/health/detailed")
async def detailed_health_check(request: Request):
    """Comprehensive health check with dependency verification.

    Returns 200 if all critical dependencies are healthy, 503 otherwise.
    """
    logger.info("Running detailed health check")
    state = request.app.state

    checks_coros = {
        "store": check_store_health(state.store),
        "openai": check_openai_health(state.settings),
        "twilio": check_twilio_health(state.settings),
    }
    results = await asyncio.gather(*checks_coros.values(), return_exceptions=True)

    checks = {}
    for name, result in zip(checks_coros, results):
        if isinstance(result, Exception):
            checks[name] = {
                "status": "error",
                "message": str(result),
                "error": type(result).__name__
            }
        else:
            checks[name] = result
    checks["policy"] = check_policy_health(state.policy)

    # Critical dependencies: store, policy
    critical_deps = ["store", "policy"]
    critical_healthy = all(
        checks.get(dep, {}).get("status") == "healthy"
        for dep in critical_deps
    )

    # Optional dependencies: OpenAI, Twilio (skipped is ok)
    optional_deps = ["openai", "twilio"]
    optional_healthy = all(
        checks.get(dep, {}).get("status") in ["healthy", "skipped"]
        for dep in optional_deps
    )

    circuit_breakers = get_circuit_status()
    all_healthy = critical_healthy and optional_healthy

    return JSONResponse(
        status_code=200 if critical_healthy else 503,
        content={
            "status": "healthy" if all_healthy else ("degraded" if critical_healthy else "unhealthy"),
            "timestamp": _now(),
            "checks": checks,
            "circuit_breakers": circuit_breakers,
            "summary": {
                "critical_healthy": critical_healthy,
                "optional_healthy": optional_healthy,
                "total_checks": len(checks),
                "circuit_breakers_open": sum(1 for cb in circuit_breakers.values() if cb.get("state") == "open")
            }
        }
    )
