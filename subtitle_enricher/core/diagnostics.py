"""Per-field diagnostics reported by an enrichment pass.

WHY: Operators need to see why a leaf is still empty after a pass: the
helper never ran because an input was missing, it ran and found nothing,
or it failed. Those three cases call for different actions.
"""

from __future__ import annotations

import enum
from dataclasses import asdict, dataclass


class DiagnosticStatus(str, enum.Enum):
    NOT_COMPUTED = "not_computed"
    EMPTY = "empty"
    FAILED = "failed"


@dataclass(frozen=True)
class FieldDiagnostic:
    """One leaf that a pass flagged but could not satisfy.

    RULES:
    - path is concrete, e.g. "tokens.display_thai[2].g2p"
    - helper names the service operation expected to fill the leaf
    """

    path: str
    helper: str
    status: DiagnosticStatus
    reason: str = ""

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        return data
