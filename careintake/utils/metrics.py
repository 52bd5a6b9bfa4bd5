"""Prometheus metrics for the care intake application.

This module defines and exports all Prometheus metrics used throughout
the application for monitoring and observability.

Metrics Categories:
- Message Metrics: Track inbound messages and policy outcomes
- Intake Metrics: Track extraction, stages and profile completion
- Profile Store: Track persistence operations and failures
- External Services: Track reply generation and circuit breakers
"""

from prometheus_client import Counter, Histogram, Gauge, Info
from careintake.config.constants import MetricsConfig

# =============================================================================
# Application Info
# =============================================================================

app_info = Info('careintake_app', 'Care intake application information')
app_info.info({
    'version': '1.0.0',
    'description': 'Home care SMS intake agent'
})

# =============================================================================
# Message Metrics
# =============================================================================

# Total messages counter
messages_total = Counter(
    'careintake_messages_total',
    'Total number of inbound messages handled',
    ['channel', 'outcome']  # channel: sms, chat; outcome: processed, short_circuit, degraded, error
)

# Classification outcomes
classifications = Counter(
    'careintake_classifications_total',
    'Policy classification results',
    ['category']  # emergency, blocked, soft_block, allowed, unknown
)

# Emergency escalations
escalations = Counter(
    'careintake_escalations_total',
    'Messages escalated as emergencies'
)

# Message processing time
message_processing_time = Histogram(
    'careintake_message_processing_seconds',
    'End-to-end processing time for one inbound message',
    buckets=MetricsConfig.LATENCY_BUCKETS
)

# PHI detection metrics
phi_detections = Counter(
    'careintake_phi_detections_total',
    'PHI spans detected in inbound messages',
    ['phi_type']  # ssn, credit_card, email, phone, date
)

# =============================================================================
# Intake Metrics
# =============================================================================

# Messages by stage
messages_by_stage = Counter(
    'careintake_messages_by_stage_total',
    'Processed messages per conversation stage',
    ['stage']  # intake, address, emergency_contact, medical, ...
)

# Extracted fields
fields_extracted = Counter(
    'careintake_fields_extracted_total',
    'Profile fields recognized in inbound messages',
    ['field']
)

# Completion distribution
profile_completion = Histogram(
    'careintake_profile_completion_percent',
    'Profile completion percentage after each merge',
    buckets=MetricsConfig.COMPLETION_BUCKETS
)

# Profiles created
profiles_created = Counter(
    'careintake_profiles_created_total',
    'Profiles created on first contact'
)

# =============================================================================
# Profile Store Metrics
# =============================================================================

# Store operations counter
store_operations = Counter(
    'careintake_store_operations_total',
    'Total number of profile store operations',
    ['operation', 'backend']  # operation: upsert, append, get, lock; backend: redis, memory
)

# Store operation duration
store_operation_duration = Histogram(
    'careintake_store_operation_duration_seconds',
    'Duration of profile store operations',
    ['operation', 'backend'],
    buckets=MetricsConfig.LATENCY_BUCKETS
)

# Persistence failures
persistence_failures = Counter(
    'careintake_persistence_failures_total',
    'Messages whose profile or interaction could not be persisted',
    ['backend']
)

# Redis connection status
redis_connected = Gauge(
    'careintake_redis_connected',
    'Redis connection status (1=connected, 0=disconnected)'
)

# =============================================================================
# External Service Metrics
# =============================================================================

# OpenAI LLM metrics
openai_requests = Counter(
    'careintake_openai_requests_total',
    'Total OpenAI API requests',
    ['model', 'status']  # status: success, error, timeout, circuit_open
)

openai_latency = Histogram(
    'careintake_openai_latency_seconds',
    'OpenAI API request latency',
    ['model'],
    buckets=MetricsConfig.LATENCY_BUCKETS
)

# Static fallback replies
fallback_replies = Counter(
    'careintake_fallback_replies_total',
    'Replies built from static text instead of generation',
    ['reason']  # disabled, empty, error, timeout, circuit_open
)

# Circuit breaker state
circuit_breaker_state = Gauge(
    'careintake_circuit_breaker_open',
    'Circuit breaker state (1=open, 0=closed or half-open)',
    ['service']
)

circuit_breaker_trips = Counter(
    'careintake_circuit_breaker_trips_total',
    'Number of times a circuit breaker opened',
    ['service']
)

# =============================================================================
# Helper Functions
# =============================================================================

def track_classification(category: str, escalated: bool = False) -> None:
    """Count a policy classification, and an escalation if one was raised."""
    classifications.labels(category=category).inc()
    if escalated:
        escalations.inc()


def track_phi_detections(phi_types) -> None:
    """Count detected PHI types for one message."""
    for phi_type in phi_types:
        phi_detections.labels(phi_type=phi_type).inc()


def track_intake(stage: str, field_names, completion: int) -> None:
    """Track one processed message's stage, extracted fields and completion.

    Args:
        stage: Resolved conversation stage
        field_names: Names of fields present in the extracted fragment
        completion: Profile completion after the merge
    """
    messages_by_stage.labels(stage=stage).inc()
    for field_name in field_names:
        fields_extracted.labels(field=field_name).inc()
    profile_completion.observe(completion)


def track_external_request(service: str, model: str, duration: float, status: str) -> None:
    """Track external service request metrics.

    Args:
        service: Name of the service (openai)
        model: Model name used for the request
        duration: Request duration in seconds
        status: success, error, timeout or circuit_open
    """
    if service == 'openai':
        openai_requests.labels(model=model, status=status).inc()
        openai_latency.labels(model=model).observe(duration)


def track_store_operation(operation: str, backend: str, duration: float) -> None:
    """Track profile store operation metrics.

    Args:
        operation: Type of operation (upsert, append, get, lock)
        backend: Store backend (redis, memory)
        duration: Operation duration in seconds
    """
    store_operations.labels(operation=operation, backend=backend).inc()
    store_operation_duration.labels(operation=operation, backend=backend).observe(duration)
