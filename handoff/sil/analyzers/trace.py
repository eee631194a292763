"""
Error traces for ownership violations.

A TraceInfo records the call path (outermost call first) that led to a
violation plus the locations where the violating access happens. Traces
are cloned before being extended, so sibling branches of the analysis
never see each other's frames.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from handoff.sil.types import Location, Symbol


@dataclass
class TraceInfo:
    """Call/control path recorded with a violation"""
    method: Optional[str] = None
    class_name: Optional[str] = None
    symbol: Optional[Symbol] = None

    # (unit, call-site location), outermost first
    call_trace: List[Tuple[str, Location]] = field(default_factory=list)

    # Where the violating accesses happen
    error_trace: List[Location] = field(default_factory=list)

    def __str__(self) -> str:
        return "\n".join(self.lines())

    def clone(self) -> 'TraceInfo':
        """Independent copy that can be extended without affecting this one"""
        return TraceInfo(self.method, self.class_name, self.symbol,
                         list(self.call_trace), list(self.error_trace))

    def insert_call(self, unit: str, location: Location) -> None:
        """Prepend a call frame"""
        self.call_trace.insert(0, (unit, location))

    def add_error_trace(self, location: Location) -> None:
        """Append an error location"""
        self.error_trace.append(location)

    def merge(self, other: 'TraceInfo') -> None:
        """Append the frames and error locations of another trace"""
        if self.method is None:
            self.method = other.method
        if self.class_name is None:
            self.class_name = other.class_name
        if self.symbol is None:
            self.symbol = other.symbol
        self.call_trace.extend(other.call_trace)
        self.error_trace.extend(other.error_trace)

    def frames(self) -> Tuple[Tuple[str, str], ...]:
        """Comparable view of the call frames"""
        return tuple((unit, str(loc)) for unit, loc in self.call_trace)

    @property
    def location(self) -> Optional[Location]:
        """Most specific location of the violation"""
        if self.error_trace:
            return self.error_trace[-1]
        if self.call_trace:
            return self.call_trace[-1][1]
        return None

    def lines(self) -> List[str]:
        result = []
        for unit, loc in self.call_trace:
            result.append(f"call in {unit} at {loc}")
        for loc in self.error_trace:
            result.append(f"access at {loc}")
        return result
