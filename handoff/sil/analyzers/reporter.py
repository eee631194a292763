"""
Violation reporter shared by concurrent analysis runs.
"""

import threading
from dataclasses import dataclass
from typing import List

from handoff.sil.types import Symbol
from handoff.sil.analyzers.trace import TraceInfo


@dataclass
class OwnershipViolation:
    """A field that may still be used after its value was given up"""
    trace: TraceInfo
    symbol: Symbol

    def __str__(self) -> str:
        loc = self.trace.location
        where = f" at {loc}" if loc is not None else ""
        return f"given-up value still reachable through '{self.symbol}'{where}"

    def key(self) -> tuple:
        loc = self.trace.location
        return (self.symbol, str(loc) if loc is not None else "")


class ErrorReporter:
    """
    Collects ownership violations.

    Appending is lock-protected. The reporter never drops reports on
    its own; `unique()` gives a deduplicated view on request.
    """

    def __init__(self):
        self._violations: List[OwnershipViolation] = []
        self._lock = threading.Lock()

    def report_given_up_field_ownership_error(self, trace: TraceInfo,
                                              symbol: Symbol) -> OwnershipViolation:
        """Record a given-up field ownership violation"""
        violation = OwnershipViolation(trace, symbol)
        with self._lock:
            self._violations.append(violation)
        return violation

    @property
    def violations(self) -> List[OwnershipViolation]:
        with self._lock:
            return list(self._violations)

    def __len__(self) -> int:
        with self._lock:
            return len(self._violations)

    def unique(self) -> List[OwnershipViolation]:
        """Violations deduplicated by (symbol, location), first report wins"""
        seen = set()
        result = []
        for violation in self.violations:
            key = violation.key()
            if key not in seen:
                seen.add(key)
                result.append(violation)
        return result

    def clear(self) -> None:
        with self._lock:
            self._violations.clear()
