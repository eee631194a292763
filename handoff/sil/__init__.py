"""
Handoff SIL: intermediate language for gives-up ownership analysis

A small IR that captures what the ownership analysis needs:
1. Variable, field and call expressions (symbol flow)
2. Hand-off operations (GivesUp calls)
3. Procedure boundaries (for side-effect summaries)
4. Control flow (for the backward sweep and read-before-reset)

Architecture:
    Source Code → Frontend (tree-sitter) → SIL → Gives-up points → Ownership pass → Findings

Example usage:
    from handoff.sil import OwnershipScanner

    scanner = OwnershipScanner(language="python")
    result = scanner.scan(source_code)

    # Or step by step
    frontend = PythonFrontend()
    program = frontend.translate(source_code)

    context = AnalysisContext(program)
    reporter = ErrorReporter()
    for point in discover_gives_up_points(context):
        create_pass("gives-up", context, reporter).run(point)
"""

# Core types
from handoff.sil.types import (
    PVar,
    Symbol,
    SymbolKind,
    Location,
    Typ,
    TypeKind,
    # Expressions
    Exp,
    ExpVar,
    ExpConst,
    ExpBinOp,
    ExpUnOp,
    ExpFieldAccess,
    ExpIndex,
    ExpCall,
    ExpAggregate,
    ExpTernary,
)

# Instructions
from handoff.sil.instructions import (
    Instr,
    Declare,
    Assign,
    Store,
    Prune,
    Return,
    Call,
    GivesUp,
    PruneKind,
)

# Procedure and program
from handoff.sil.procedure import (
    Node,
    NodeKind,
    Statement,
    Procedure,
    ProcSpec,
    Program,
)

# Analysis
from handoff.sil.analyzers import (
    AnalysisContext,
    AnalysisError,
    ErrorReporter,
    GivenUpSymbol,
    MethodSummary,
    OwnershipViolation,
    TraceInfo,
    create_pass,
)

# Scanner
from handoff.sil.scanner import (
    OwnershipScanner,
    ScanResult,
    Finding,
    Severity,
    discover_gives_up_points,
    scan_code,
    scan_file,
)

__all__ = [
    # Types
    "PVar", "Symbol", "SymbolKind", "Location", "Typ", "TypeKind",
    "Exp", "ExpVar", "ExpConst", "ExpBinOp", "ExpUnOp",
    "ExpFieldAccess", "ExpIndex", "ExpCall", "ExpAggregate", "ExpTernary",
    # Instructions
    "Instr", "Declare", "Assign", "Store", "Prune", "Return", "Call", "GivesUp",
    "PruneKind",
    # Procedure
    "Node", "NodeKind", "Statement", "Procedure", "ProcSpec", "Program",
    # Analysis
    "AnalysisContext", "AnalysisError", "ErrorReporter", "GivenUpSymbol",
    "MethodSummary", "OwnershipViolation", "TraceInfo", "create_pass",
    # Scanner
    "OwnershipScanner", "ScanResult", "Finding", "Severity",
    "discover_gives_up_points", "scan_code", "scan_file",
]
