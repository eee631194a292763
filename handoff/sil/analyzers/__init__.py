"""
Analyzers for handoff SIL.

- dataflow: symbol resolution, reaching definitions and the symbol-flow oracle
- function_summary: per-procedure side-effect summaries
- ownership: gives-up ownership analysis passes
"""

from handoff.sil.analyzers.context import AnalysisContext
from handoff.sil.analyzers.dataflow import DataFlowAnalysis, Definition, SymbolResolver
from handoff.sil.analyzers.function_summary import MethodSummary, SummaryTable
from handoff.sil.analyzers.ownership import (
    AnalysisError,
    GivenUpSymbol,
    OwnershipAnalysisPass,
    GivesUpOwnershipAnalysisPass,
    PASSES,
    create_pass,
)
from handoff.sil.analyzers.reporter import ErrorReporter, OwnershipViolation
from handoff.sil.analyzers.trace import TraceInfo

__all__ = [
    "AnalysisContext",
    "DataFlowAnalysis",
    "Definition",
    "SymbolResolver",
    "MethodSummary",
    "SummaryTable",
    "AnalysisError",
    "GivenUpSymbol",
    "OwnershipAnalysisPass",
    "GivesUpOwnershipAnalysisPass",
    "PASSES",
    "create_pass",
    "ErrorReporter",
    "OwnershipViolation",
    "TraceInfo",
]
