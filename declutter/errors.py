"""
Custom exception hierarchy for the declutter engine.

Only configuration, ingestion and programming-invariant errors reach the
caller. Geometry and collision failures are raised internally and absorbed
by the resolver, which degrades instead of aborting the pass.
"""


class DeclutterError(Exception):
    """Base exception for all declutter errors."""


class DeclutterConfigError(DeclutterError):
    """Raised when a configuration option is missing or out of range."""

    def __init__(self, key: str, reason: str = "missing or None"):
        self.key = key
        super().__init__(f"Configuration error for '{key}': {reason}")


class EventValidationError(DeclutterError, ValueError):
    """Raised at the ingestion boundary when an event record is malformed."""

    def __init__(self, field: str, detail: str):
        self.field = field
        super().__init__(f"Invalid event field '{field}': {detail}")


class GeometryUnavailableError(DeclutterError):
    """Raised when a candidate cannot be projected or given a footprint."""

    def __init__(self, event_id, detail: str):
        self.event_id = event_id
        super().__init__(f"Geometry unavailable for event {event_id!r}: {detail}")


class CollisionEvaluationError(DeclutterError):
    """Raised when the footprint-based collision test cannot be evaluated."""

    def __init__(self, detail: str):
        super().__init__(f"Collision evaluation failed: {detail}")


class IndexStaleError(DeclutterError):
    """Raised when a pass runs against a spatial index built for another viewport."""

    def __init__(self, detail: str):
        super().__init__(f"Spatial index is stale: {detail}")
