"""
Handoff: gives-up ownership analysis for actor-style Python code

Finds fields that may still alias a value after the value was handed
to another actor, queue or task, and are read again before being
reset.

The library is organized into:
- sil.types, sil.instructions, sil.procedure: the intermediate language
- sil.frontends: tree-sitter based Python frontend
- sil.specs: gives-up catalog and library callee specs
- sil.analyzers: data flow, summaries and the ownership passes
- sil.scanner, sil.cli: file/directory scanning and reporting
"""

from handoff.sil.scanner import OwnershipScanner, ScanResult, Finding, scan_code, scan_file
from handoff.sil.specs import GivesUpSpec, parse_gives_up

__version__ = "0.1.0"
__all__ = [
    "OwnershipScanner", "ScanResult", "Finding", "scan_code", "scan_file",
    "GivesUpSpec", "parse_gives_up",
]
