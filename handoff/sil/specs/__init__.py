"""
Gives-up catalog and library specifications.

This module provides:
- GivesUpSpec definitions for actor sends, machine operations,
  queue and executor hand-offs
- ProcSpec definitions for builtins and container methods
"""

from handoff.sil.specs.actor_specs import (
    GivesUpSpec,
    GIVES_UP_SPECS,
    LIBRARY_SPECS,
    get_gives_up_specs,
    get_library_specs,
    parse_gives_up,
)

__all__ = [
    "GivesUpSpec",
    "GIVES_UP_SPECS",
    "LIBRARY_SPECS",
    "get_gives_up_specs",
    "get_library_specs",
    "parse_gives_up",
]
