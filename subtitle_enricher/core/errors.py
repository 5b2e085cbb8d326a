"""Error taxonomy for the enrichment pipeline.

WHY: Callers must tell apart "this record can never enter the pipeline"
from "try the whole pass again later" from "two components disagree
about shape". Each gets its own exception type so handlers can catch
exactly what they can recover from.

RULES:
- ValidationError and ImmutableFieldError are fatal for the record
- TransientHelperError is safe to retry by re-running the pass
- ShapeMismatchError is an integration defect and is never tolerated
"""

from __future__ import annotations


class EnrichmentError(Exception):
    """Base class for every error raised by the pipeline."""


class ValidationError(EnrichmentError):
    """Raised by the validation gate before any external call is made.

    RULES:
    - violations lists every problem found, not just the first
    """

    def __init__(self, violations: list[str]) -> None:
        self.violations = list(violations)
        super().__init__("Record failed validation: " + "; ".join(self.violations))


class ImmutableFieldError(EnrichmentError):
    """Raised when a record's immutable ``id`` is absent or blank."""

    def __init__(self, field: str, value: object) -> None:
        self.field = field
        self.value = value
        super().__init__(f"Immutable field {field!r} is not set (got {value!r})")


class TransientHelperError(EnrichmentError):
    """Raised when an enrichment service call fails.

    WHY: A service failing for one token must not take down the whole
    record. The orchestrator catches exactly this type per leaf and turns
    it into a diagnostic.

    RULES:
    - helper names the service operation that failed
    - path is the record leaf being computed, when known
    """

    def __init__(self, helper: str, message: str, path: str | None = None) -> None:
        self.helper = helper
        self.message = message
        self.path = path
        super().__init__(f"{helper} failed: {message}")


class ServiceAPIError(TransientHelperError):
    """Raised when an HTTP service returns a non-2xx response."""

    def __init__(self, helper: str, status_code: int, message: str) -> None:
        self.status_code = status_code
        super().__init__(helper, f"HTTP {status_code}: {message}")


class ShapeMismatchError(EnrichmentError):
    """Raised when a WorkMap does not structurally mirror its record."""

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        super().__init__(f"WorkMap does not mirror record at {path or '<root>'}: {message}")
