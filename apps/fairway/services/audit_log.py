"""
Audit trail for settlement sweeps.

Every meaningful state transition is recorded as one entry and logged as one
line, so a sweep can be reconstructed (and aggregated) from the logs alone.
"""

import json
import logging
from collections import Counter
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from fairway.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


class AuditEntry(BaseModel):
    timestamp: str
    tournament_id: str
    tournament_name: str
    action: str
    details: Dict[str, Any] = Field(default_factory=dict)


class AuditLog:
    """Collects audit entries for a single sweep."""

    def __init__(self):
        self.entries: List[AuditEntry] = []

    def record(
        self,
        tournament_id: str,
        tournament_name: str,
        action: str,
        details: Optional[Dict[str, Any]] = None,
        level: int = logging.INFO,
    ) -> AuditEntry:
        """Append an entry and emit its log line."""
        entry = AuditEntry(
            timestamp=utcnow().isoformat(),
            tournament_id=tournament_id,
            tournament_name=tournament_name,
            action=action,
            details=details or {},
        )
        self.entries.append(entry)

        line = f"[{tournament_name}] {action}"
        if entry.details:
            line += f": {json.dumps(entry.details, default=str, sort_keys=True)}"
        logger.log(level, line)
        return entry

    def action_counts(self) -> Dict[str, int]:
        """Number of entries per action, most frequent first."""
        return dict(Counter(entry.action for entry in self.entries).most_common())

    def for_tournament(self, tournament_id: str) -> List[AuditEntry]:
        return [e for e in self.entries if e.tournament_id == tournament_id]
