"""Exception hierarchy for the intake pipeline.

Every failure in the pipeline is per-message and recoverable; these types
exist so callers can tell which collaborator failed.
"""


class IntakeError(Exception):
    """Base class for intake pipeline errors."""


class ProfileStoreError(IntakeError):
    """The profile store failed to read or write."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"{operation} failed: {message}")


class ReplyGenerationError(IntakeError):
    """The text-generation collaborator returned nothing usable."""
