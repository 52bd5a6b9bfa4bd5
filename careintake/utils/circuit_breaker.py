"""Circuit breaker for the reply-generation service.

When OpenAI fails repeatedly the circuit "opens" and calls fail fast, so
inbound messages are answered from static text instead of waiting on a
dead dependency.

States:
- CLOSED: Normal operation, requests flow through
- OPEN: Service failing, immediately return error (fail fast)
- HALF-OPEN: After cooldown, try one request to check if service recovered

Usage:
    result = await with_circuit_breaker(
        openai_breaker,
        client.chat.completions.create,
        model=model,
        messages=messages
    )
"""
from typing import Callable, TypeVar
from pybreaker import CircuitBreaker

from careintake.config.constants import CircuitBreakerConfig
from careintake.utils.logger import get_logger
from careintake.utils.metrics import (
    circuit_breaker_state,
    circuit_breaker_trips,
)

logger = get_logger(__name__)

T = TypeVar('T')


class CircuitBreakerListener:
    """Listener for circuit breaker state changes and metrics."""

    def __init__(self, name: str):
        self.name = name

    def before_call(self, cb: CircuitBreaker, func, *args, **kwargs):
        pass

    def state_change(self, cb: CircuitBreaker, old_state, new_state):
        """Called when the circuit breaker changes state."""
        old_name = getattr(old_state, "name", old_state)
        new_name = getattr(new_state, "name", new_state)
        logger.warning(
            f"Circuit breaker '{self.name}' state changed: {old_name} -> {new_name}"
        )
        circuit_breaker_state.labels(service=self.name).set(
            1 if new_name == "open" else 0
        )
        if new_name == "open":
            circuit_breaker_trips.labels(service=self.name).inc()

    def failure(self, cb: CircuitBreaker, exc: Exception):
        """Called when a call fails."""
        logger.debug(
            f"Circuit breaker '{self.name}' recorded failure: {type(exc).__name__}"
        )

    def success(self, cb: CircuitBreaker):
        pass  # Don't log successes to avoid noise


# OpenAI - reply generation
openai_breaker = CircuitBreaker(
    fail_max=CircuitBreakerConfig.FAIL_MAX,
    reset_timeout=CircuitBreakerConfig.RESET_TIMEOUT_SEC,
    listeners=[CircuitBreakerListener("openai")],
    name="openai",
)

BREAKERS = {
    "openai": openai_breaker,
}


async def with_circuit_breaker(
    breaker: CircuitBreaker,
    func: Callable[..., T],
    *args,
    **kwargs
) -> T:
    """Execute an async function with circuit breaker protection.

    Args:
        breaker: The CircuitBreaker instance to use
        func: The async function to call
        *args: Positional arguments to pass to func
        **kwargs: Keyword arguments to pass to func

    Returns:
        The result of the function call

    Raises:
        CircuitBreakerError: If the circuit is open
    """
    return await breaker.call_async(func, *args, **kwargs)


def get_circuit_status() -> dict:
    """Get the status of all circuit breakers.

    Returns:
        Dictionary with circuit breaker names and their states
    """
    return {
        name: {
            "state": breaker.current_state,
            "fail_count": breaker.fail_counter,
        }
        for name, breaker in BREAKERS.items()
    }
