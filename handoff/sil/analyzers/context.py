"""
Analysis context: the queries the ownership engine asks about a program.

Wraps one Program and owns the shared, compute-once caches (per-procedure
data-flow results and the summary table), so several engine runs can
share one context.
"""

import threading
from typing import Dict, List, Optional, Union

from handoff.sil.types import Exp, ExpCall, Symbol, SymbolKind
from handoff.sil.instructions import Call
from handoff.sil.procedure import Procedure, Program, Statement
from handoff.sil.specs.actor_specs import GivesUpSpec, get_gives_up_specs
from handoff.sil.analyzers.dataflow import DataFlowAnalysis, SymbolResolver
from handoff.sil.analyzers.function_summary import MethodSummary, SummaryTable


class AnalysisContext:
    """Program-wide analysis state shared by ownership passes"""

    def __init__(self, program: Program,
                 gives_up_specs: Optional[Dict[str, GivesUpSpec]] = None):
        self.program = program
        self.gives_up_specs = gives_up_specs if gives_up_specs is not None else get_gives_up_specs()
        self._dataflow: Dict[str, DataFlowAnalysis] = {}
        self._lock = threading.Lock()
        self.summaries = SummaryTable(program, self.dataflow)

    # =========================================================================
    # Graph and symbols
    # =========================================================================

    def graph(self, unit: Union[str, Procedure]) -> Optional[Procedure]:
        """The procedure (and its CFG) for a unit name"""
        if isinstance(unit, Procedure):
            return unit
        return self.program.get_procedure(unit)

    def procedure_of(self, stmt: Statement) -> Optional[Procedure]:
        return self.program.get_procedure(stmt.procedure)

    def dataflow(self, proc: Procedure) -> DataFlowAnalysis:
        """Data-flow results for a procedure, computed once"""
        result = self._dataflow.get(proc.name)
        if result is not None:
            return result
        with self._lock:
            result = self._dataflow.get(proc.name)
            if result is None:
                result = DataFlowAnalysis(proc, self.program)
                self._dataflow[proc.name] = result
            return result

    def resolver(self, unit: Union[str, Procedure]) -> Optional[SymbolResolver]:
        proc = self.graph(unit)
        if proc is None:
            return None
        return self.dataflow(proc).resolver

    def resolve_top_level_identifier(self, exp: Exp,
                                     unit: Union[str, Procedure]) -> Optional[Symbol]:
        """Top-level symbol of an identifier or access path, or None"""
        resolver = self.resolver(unit)
        if resolver is None or exp is None:
            return None
        return resolver.resolve_top_level(exp)

    def flows_into(self, source: Symbol, target: Symbol,
                   from_stmt: Statement, to_stmt: Statement) -> bool:
        """Symbol-flow oracle (both statements in the same procedure)"""
        if from_stmt.procedure != to_stmt.procedure:
            return source == target
        proc = self.procedure_of(from_stmt)
        if proc is None:
            return False
        return self.dataflow(proc).flows_into(source, target, from_stmt, to_stmt)

    @staticmethod
    def kind(symbol: Symbol) -> SymbolKind:
        return symbol.kind

    @staticmethod
    def arguments_of(node) -> Optional[List[Exp]]:
        """Argument list of an invocation, None for anything else"""
        if isinstance(node, (Call, ExpCall)):
            return list(node.args)
        return None

    # =========================================================================
    # Summaries
    # =========================================================================

    def summary_of(self, unit: Union[str, Procedure]) -> MethodSummary:
        return self.summaries.summary_of(unit)

    def is_read_before_reset(self, symbol: Symbol, summary: MethodSummary,
                             after: Optional[Statement] = None) -> bool:
        return self.summaries.is_read_before_reset(symbol, summary, after)

    def resolve_callee(self, call: Union[Call, ExpCall], caller: Procedure) -> Optional[Procedure]:
        return self.program.resolve_callee(call, caller)
