"""Configuration constants for the care intake agent.

This module centralizes the magic numbers and keyword tables used
throughout the application for better maintainability.
"""

# ============================================================================
# CONVERSATION CONFIGURATION
# ============================================================================

class ConversationConfig:
    """Stage detection keywords and question routing."""

    ADDRESS_KEYWORDS = ("address", "street", "moved", "live at")
    """Message keywords that move the conversation to the address stage"""

    EMERGENCY_CONTACT_KEYWORDS = ("emergency", "contact")
    """Message keywords for the emergency contact stage"""

    MEDICAL_KEYWORDS = ("medical", "condition", "medication", "diagnos", "doctor", "allerg")
    """Message keywords for the medical stage"""

    VERIFICATION_KEYWORDS = ("verify", "confirm")
    """Checked only when no earlier stage rule matched"""

    UPDATE_KEYWORDS = ("update", "change", "correct")
    """Checked only when no earlier stage rule matched"""

    MAX_HISTORY_LIMIT = 100
    """Maximum interactions returned by the history endpoint"""

    DEFAULT_HISTORY_LIMIT = 20
    """Default interactions returned by the history endpoint"""


# ============================================================================
# SCORING CONFIGURATION
# ============================================================================

class ScoringConfig:
    """Verification thresholds and data quality defaults."""

    VERIFIED_COMPLETION = 80
    """Minimum completion for a verified profile"""

    VERIFIED_QUALITY = 80
    """Minimum data quality for a verified profile"""

    PARTIAL_COMPLETION = 50
    """Completion that alone earns partial status"""

    PARTIAL_QUALITY = 60
    """Data quality that alone earns partial status"""

    BASE_QUALITY_SCORE = 50
    """Quality score until enough client-supplied fields can be validated"""

    MIN_QUALITY_FIELDS = 2
    """Validatable fields needed before the quality score leaves the base"""


# ============================================================================
# EXTRACTION CONFIGURATION
# ============================================================================

class ExtractionConfig:
    """Field extraction settings."""

    STREET_SUFFIXES = (
        "street", "st", "avenue", "ave", "road", "rd", "drive", "dr",
        "lane", "ln", "way", "blvd", "boulevard",
    )
    """Tokens that terminate a street address"""

    STREET_BREAK_WORDS = frozenset({
        "with", "and", "or", "to", "for", "of", "at", "in", "on", "my", "her",
        "his", "our", "your", "a", "an", "is", "are", "have", "has", "per",
    })
    """Words that cannot sit between a house number and its street suffix"""

    NAME_STOP_WORDS = frozenset({
        "and", "from", "in", "at", "i", "my", "but", "so", "the", "with", "zip",
        "for", "to", "of", "on", "or", "is", "was", "here", "looking", "calling",
        "need", "needs", "please", "thanks", "thank", "medicaid", "born", "live",
    })
    """A captured name is cut at the first of these tokens"""

    NOT_A_NAME = frozenset({
        "looking", "interested", "calling", "trying", "not", "a", "an", "the",
        "here", "just", "so", "very", "also", "good", "fine", "ok", "okay",
        "wondering", "asking", "needing", "in", "on", "at", "sorry", "writing",
        "really", "still", "feeling", "having", "going", "getting", "worried",
        "tired", "sick", "concerned", "new", "done", "currently", "updating",
    })
    """Leading words that mean "I'm X" is not an introduction"""

    MAX_NAME_TOKENS = 4
    """Longest accepted full name"""

    MAX_AGE = 120
    """Ages above this are discarded"""

    LANGUAGES = (
        "english", "spanish", "tagalog", "chinese", "mandarin", "cantonese",
        "vietnamese", "korean", "amharic", "arabic", "french", "russian",
    )
    """Languages recognized by the language preference rule"""

    US_STATES = frozenset({
        "AL", "AK", "AZ", "AR", "CA", "CO", "CT", "DE", "FL", "GA",
        "HI", "ID", "IL", "IN", "IA", "KS", "KY", "LA", "ME", "MD",
        "MA", "MI", "MN", "MS", "MO", "MT", "NE", "NV", "NH", "NJ",
        "NM", "NY", "NC", "ND", "OH", "OK", "OR", "PA", "RI", "SC",
        "SD", "TN", "TX", "UT", "VT", "VA", "WA", "WV", "WI", "WY", "DC",
    })
    """Two-letter US state codes"""

    RELATIONSHIPS = (
        "daughter", "son", "wife", "husband", "mother", "father", "mom", "dad",
        "sister", "brother", "niece", "nephew", "friend", "neighbor", "partner",
        "granddaughter", "grandson", "aunt", "uncle", "cousin", "spouse",
    )
    """Relationship words recognized in an emergency contact clause"""


# ============================================================================
# VALIDATION CONFIGURATION
# ============================================================================

class ValidationConfig:
    """Input validation settings."""

    MEDICAID_ID_MIN_LENGTH = 5
    """Minimum Medicaid ID length"""

    MEDICAID_ID_MAX_LENGTH = 14
    """Maximum Medicaid ID length"""

    OLDEST_BIRTH_YEAR = 1900
    """Dates of birth before this year are rejected"""


# ============================================================================
# LLM CONFIGURATION
# ============================================================================

class LLMConfig:
    """LLM service configuration."""

    TEMPERATURE_MEDIUM = 0.5
    """Temperature for conversational replies"""

    MAX_TOKENS_RESPONSE = 200
    """Max tokens for an SMS reply"""

    MAX_REPLY_CHARS = 600
    """Longest generated reply kept before truncation"""


# ============================================================================
# CIRCUIT BREAKER CONFIGURATION
# ============================================================================

class CircuitBreakerConfig:
    """Circuit breaker thresholds for external services."""

    FAIL_MAX = 5
    """Consecutive failures before the circuit opens"""

    RESET_TIMEOUT_SEC = 60
    """Seconds the circuit stays open before a trial call"""


# ============================================================================
# HEALTH CHECK CONFIGURATION
# ============================================================================

class HealthCheckConfig:
    """Health check settings."""

    DEPENDENCY_CHECK_TIMEOUT_SEC = 5
    """Timeout for individual dependency health checks"""


# ============================================================================
# LOGGING CONFIGURATION
# ============================================================================

class LoggingConfig:
    """Logging configuration."""

    MAX_LOG_TEXT_LENGTH = 160
    """Maximum redacted text length for log previews"""


# ============================================================================
# RATE LIMITING CONFIGURATION
# ============================================================================

class RateLimitConfig:
    """Rate limiting settings."""

    MESSAGES_PER_MINUTE = 30
    """Maximum inbound messages per minute per IP"""

    PROFILE_READS_PER_MINUTE = 60
    """Maximum profile inspection calls per minute"""


# ============================================================================
# METRICS CONFIGURATION
# ============================================================================

class MetricsConfig:
    """Metrics and monitoring configuration."""

    LATENCY_BUCKETS = [0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
    """Histogram buckets for latency metrics (seconds)"""

    COMPLETION_BUCKETS = [10, 20, 30, 40, 50, 60, 70, 80, 90, 100]
    """Histogram buckets for profile completion percentage"""
