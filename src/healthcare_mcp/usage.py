# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Per-session tool usage counters."""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, replace
import time

from .utils import get_logger


@dataclass(slots=True)
class UsageRecord:
    """Invocation count and last-seen wall-clock time for one (session, tool) pair."""

    count: int = 0
    last_seen: float = 0.0


class UsageLedger:
    """Append-only invocation counter keyed by ``(session_id, operation)``.

    Counts never decrease and records are never evicted; the ledger lives for
    the lifetime of the process.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._records: dict[tuple[str, str], UsageRecord] = {}
        self._logger = get_logger("healthcare_mcp.usage")

    def record(self, session_id: str, operation: str) -> None:
        record = self._records.get((session_id, operation))
        if record is None:
            record = self._records[(session_id, operation)] = UsageRecord()
        record.count += 1
        record.last_seen = self._clock()
        self._logger.debug("usage %s/%s -> %d", session_id, operation, record.count)

    def get(self, session_id: str, operation: str) -> UsageRecord | None:
        record = self._records.get((session_id, operation))
        return replace(record) if record is not None else None

    def summarize(self, session_id: str) -> dict[str, int]:
        """Return ``{operation: count}`` for *session_id*."""
        return {op: rec.count for (sid, op), rec in self._records.items() if sid == session_id}

    def totals(self) -> dict[str, int]:
        """Return invocation counts per operation across all sessions."""
        totals: Counter[str] = Counter()
        for (_, operation), record in self._records.items():
            totals[operation] += record.count
        return dict(totals)

    def __len__(self) -> int:
        return len(self._records)


__all__ = ["UsageLedger", "UsageRecord"]
