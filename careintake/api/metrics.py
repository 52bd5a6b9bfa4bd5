"""Prometheus metrics endpoint.

Exposes application metrics in Prometheus format for scraping.
"""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics endpoint.

    Example:
        ```
        curl http://localhost:8000/metrics
        ```

    Metrics exposed:
        - careintake_messages_total: Inbound messages by channel and outcome
        - careintake_classifications_total: Policy classification results
        - careintake_phi_detections_total: PHI spans detected by type
        - careintake_profile_completion_percent: Completion after each merge
        - careintake_store_operations_total: Profile store operations
        - careintake_openai_latency_seconds: OpenAI API latency
        - careintake_circuit_breaker_open: Circuit breaker state
        - ... and more (see careintake/utils/metrics.py)
    """
    metrics_data = generate_latest()
    return Response(
        content=metrics_data,
        media_type=CONTENT_TYPE_LATEST
    )
