"""Collaborators injected into every service call."""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from src.agents.quality_oracle import QualityOracle
from src.core.db_client import DBClient
from src.services.dictionary_client import DictionaryLookup


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class Deps:
    """Dependencies passed into the validation pipeline.

    ``dictionary`` is None when no lookup service is configured; word
    validation then relies on the heuristic alone.
    """

    db: DBClient
    oracle: QualityOracle
    dictionary: DictionaryLookup | None = None
    clock: Callable[[], datetime] = field(default=_utc_now)

    def now(self) -> datetime:
        """Current time according to the injected clock."""
        return self.clock()

    def today_iso(self) -> str:
        """Current date as an ISO string."""
        return self.now().date().isoformat()
