"""
Domain error taxonomy.

An empty ping stream is not an error: a tractor with no data produces no
visits.
"""
from typing import Optional


class GeometryError(ValueError):
    """Malformed or degenerate block polygon (too few vertices, unclosed ring)."""
    pass


class DegenerateCoverageError(Exception):
    """A boolean geometry operation failed on degenerate or invalid input."""
    pass


class ResourceNotFoundError(LookupError):
    """A requested block or visit does not exist in the store."""
    pass


class PersistenceError(Exception):
    """Telemetry store read or write failure."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
