"""
Ownership analysis passes.

Given one gives-up point (a value handed to a concurrently scheduled
entity), a pass sweeps the procedure's CFG backwards from the hand-off
and reports every field that may alias the given-up value and is read
again before being reset. Such a field lets the sender keep using a
value the receiver now owns.

The sweep:
- starts at the hand-off node and examines its statements up to and
  including the hand-off statement;
- walks predecessors breadth-first with a visited-set;
- when the hand-off node is reached again through a back-edge, it is
  examined once more in full (one extra loop iteration).

Each node is therefore examined at most twice.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from handoff.sil.types import (
    Symbol, Exp, ExpVar, ExpFieldAccess, ExpIndex, ExpCall, ExpAggregate, ExpTernary,
)
from handoff.sil.instructions import Declare, Assign, Store, Call, GivesUp
from handoff.sil.procedure import Procedure, Statement
from handoff.sil.analyzers.context import AnalysisContext
from handoff.sil.analyzers.function_summary import MethodSummary
from handoff.sil.analyzers.reporter import ErrorReporter, OwnershipViolation
from handoff.sil.analyzers.trace import TraceInfo


class AnalysisError(ValueError):
    """Malformed analysis input (unknown pass, statement outside its unit)"""
    pass


@dataclass(frozen=True)
class GivenUpSymbol:
    """One hand-off event: `symbol` is given up at `statement` in `procedure`"""
    symbol: Symbol
    statement: Statement
    procedure: str

    def __str__(self) -> str:
        return f"{self.symbol} given up at {self.statement}"


# =============================================================================
# Base pass
# =============================================================================

class OwnershipAnalysisPass:
    """
    Shared machinery for ownership passes.

    Subclasses implement one hook per statement shape. A pass keeps
    per-run state, so concurrent runs each need their own instance;
    the context and the reporter can be shared.
    """

    name = "ownership"

    def __init__(self, context: AnalysisContext, reporter: ErrorReporter):
        self.context = context
        self.reporter = reporter

        # Per-run state
        self.examined_nodes: List[int] = []
        self._procedure: Optional[Procedure] = None
        self._summary: Optional[MethodSummary] = None
        self._live: Dict[Symbol, bool] = {}
        self._violations: List[OwnershipViolation] = []

    def run(self, given_up: GivenUpSymbol,
            trace: Optional[TraceInfo] = None) -> List[OwnershipViolation]:
        """Analyze one gives-up point; returns the violations it reported"""
        proc = self.context.graph(given_up.procedure)
        if proc is None:
            raise AnalysisError(f"unknown procedure: {given_up.procedure}")
        if given_up.statement.procedure != proc.name or not proc.contains(given_up.statement):
            raise AnalysisError(f"hand-off statement {given_up.statement} is not in {proc.name}")

        self.examined_nodes = []
        self._procedure = proc
        self._summary = self.context.summary_of(proc)
        self._live = {}
        self._violations = []

        if trace is None:
            trace = TraceInfo(proc.name, proc.class_name, given_up.symbol)

        # Local reset check on the given-up field itself
        if given_up.symbol.is_field:
            self._is_live(given_up, given_up.symbol)

        self.analyze_ownership_in_control_flow_graph(given_up, trace)
        return list(self._violations)

    # =========================================================================
    # Sweep
    # =========================================================================

    def analyze_ownership_in_control_flow_graph(self, given_up: GivenUpSymbol,
                                                trace: TraceInfo) -> None:
        proc = self._procedure
        start = given_up.statement.node_id

        queue = [start]
        visited = {start}
        looped_back = False

        while queue:
            node_id = queue.pop(0)
            self.examined_nodes.append(node_id)

            statements = proc.statements(node_id)
            if node_id == start and not looped_back:
                statements = statements[:given_up.statement.index + 1]

            for stmt in statements:
                self.analyze_ownership_in_statement(given_up, stmt, trace)

            for pred in proc.predecessors(node_id):
                if not looped_back and pred == start:
                    looped_back = True
                    visited.discard(start)
                if pred not in visited:
                    queue.append(pred)
                    visited.add(pred)

    # =========================================================================
    # Dispatch
    # =========================================================================

    def analyze_ownership_in_statement(self, given_up: GivenUpSymbol, stmt: Statement,
                                       trace: TraceInfo) -> None:
        """Dispatch one statement to the hook for its shape"""
        instr = self._procedure.instr_at(stmt)

        if isinstance(instr, Declare):
            if instr.init is not None:
                self.analyze_ownership_in_declaration(given_up, instr, stmt, trace)
        elif isinstance(instr, (Assign, Store)):
            self.analyze_ownership_in_assignment(given_up, instr, stmt, trace)
        elif isinstance(instr, GivesUp) or (isinstance(instr, Call) and stmt == given_up.statement):
            self.analyze_ownership_in_gives_up_call(given_up, instr, stmt, trace)
        elif isinstance(instr, Call):
            if instr.ret is not None:
                ret = self.context.resolve_top_level_identifier(ExpVar(instr.ret), self._procedure)
                self.analyze_giving_up_field_ownership(given_up, ret, stmt, trace)
            for symbol in self.analyze_ownership_in_call(given_up, instr, stmt, trace):
                self.analyze_giving_up_field_ownership(given_up, symbol, stmt, trace)

    def analyze_ownership_in_call(self, given_up: GivenUpSymbol, call, stmt: Statement,
                                  trace: TraceInfo) -> List[Symbol]:
        """
        Follow a call into its callee.

        For a procedure of the program, the candidate-callee hook runs
        against its summary and the returned symbols are the caller
        symbols its return value may alias. For a library callee they
        come from its spec (every argument and the receiver if unknown).
        """
        if self.context.arguments_of(call) is None:
            return []

        proc = self._procedure
        callee = self.context.resolve_callee(call, proc)
        if callee is not None:
            summary = self.context.summary_of(callee)
            self.analyze_ownership_in_candidate_callee(given_up, summary, call, stmt, trace)
            return summary.resolved_return_symbols(call, proc)

        resolver = self.context.resolver(proc)
        return resolver.call_sources(call)

    # =========================================================================
    # Field-ownership check
    # =========================================================================

    def analyze_giving_up_field_ownership(self, given_up: GivenUpSymbol,
                                          symbol: Optional[Symbol], stmt: Statement,
                                          trace: TraceInfo) -> None:
        """Report `symbol` if it aliases the given-up value and is a live field"""
        if symbol is None:
            return
        if not self.context.flows_into(symbol, given_up.symbol, stmt, given_up.statement):
            return

        if symbol.is_field and self._is_live(given_up, symbol):
            new_trace = TraceInfo()
            new_trace.merge(trace)
            new_trace.add_error_trace(self._procedure.location_of(stmt))
            self._report(new_trace, symbol)

    def _is_live(self, given_up: GivenUpSymbol, symbol: Symbol) -> bool:
        """Field read before reset after the hand-off (cached per run)"""
        if symbol not in self._live:
            self._live[symbol] = self.context.is_read_before_reset(
                symbol, self._summary, given_up.statement)
        return self._live[symbol]

    def _report(self, trace: TraceInfo, symbol: Symbol) -> None:
        violation = self.reporter.report_given_up_field_ownership_error(trace, symbol)
        self._violations.append(violation)

    # =========================================================================
    # Hooks
    # =========================================================================

    def analyze_ownership_in_declaration(self, given_up: GivenUpSymbol, instr: Declare,
                                         stmt: Statement, trace: TraceInfo) -> None:
        raise NotImplementedError

    def analyze_ownership_in_assignment(self, given_up: GivenUpSymbol, instr,
                                        stmt: Statement, trace: TraceInfo) -> None:
        raise NotImplementedError

    def analyze_ownership_in_candidate_callee(self, given_up: GivenUpSymbol,
                                              callee_summary: MethodSummary, call,
                                              stmt: Statement, trace: TraceInfo) -> None:
        raise NotImplementedError

    def analyze_ownership_in_gives_up_call(self, given_up: GivenUpSymbol, call: Call,
                                           stmt: Statement, trace: TraceInfo) -> None:
        raise NotImplementedError


# =============================================================================
# Gives-up pass
# =============================================================================

class GivesUpOwnershipAnalysisPass(OwnershipAnalysisPass):
    """Reports fields that still alias a value after it was given up"""

    name = "gives-up"

    def analyze_ownership_in_declaration(self, given_up: GivenUpSymbol, instr: Declare,
                                         stmt: Statement, trace: TraceInfo) -> None:
        declared = self.context.resolve_top_level_identifier(ExpVar(instr.var), self._procedure)
        self.analyze_giving_up_field_ownership(given_up, declared, stmt, trace)
        self._analyze_ownership_in_expression(given_up, instr.init, stmt, trace)

    def analyze_ownership_in_assignment(self, given_up: GivenUpSymbol, instr,
                                        stmt: Statement, trace: TraceInfo) -> None:
        if isinstance(instr, Store):
            left, right = instr.addr, instr.value
        else:
            left, right = ExpVar(instr.id), instr.exp

        left_symbol = self.context.resolve_top_level_identifier(left, self._procedure)
        self.analyze_giving_up_field_ownership(given_up, left_symbol, stmt, trace)
        self._analyze_ownership_in_expression(given_up, right, stmt, trace)

    def analyze_ownership_in_candidate_callee(self, given_up: GivenUpSymbol,
                                              callee_summary: MethodSummary, call,
                                              stmt: Statement, trace: TraceInfo) -> None:
        args = self.context.arguments_of(call)
        if args is None:
            return

        for idx, arg in enumerate(args):
            arg_symbol = self.context.resolve_top_level_identifier(arg, self._procedure)
            if arg_symbol is None:
                continue
            if not self.context.flows_into(arg_symbol, given_up.symbol, stmt, given_up.statement):
                continue

            fields = callee_summary.fields_written_from(idx)
            if any(self._is_live(given_up, f) for f in fields):
                new_trace = trace.clone()
                new_trace.add_error_trace(self._procedure.location_of(stmt))
                self._report(new_trace, arg_symbol)

    def analyze_ownership_in_gives_up_call(self, given_up: GivenUpSymbol, call: Call,
                                           stmt: Statement, trace: TraceInfo) -> None:
        if (stmt == given_up.statement and given_up.symbol.is_field
                and self._is_live(given_up, given_up.symbol)):
            new_trace = trace.clone()
            new_trace.add_error_trace(self._procedure.location_of(stmt))
            self._report(new_trace, given_up.symbol)

    def _analyze_ownership_in_expression(self, given_up: GivenUpSymbol, exp: Exp,
                                         stmt: Statement, trace: TraceInfo) -> None:
        if isinstance(exp, (ExpVar, ExpFieldAccess, ExpIndex)):
            symbol = self.context.resolve_top_level_identifier(exp, self._procedure)
            self.analyze_giving_up_field_ownership(given_up, symbol, stmt, trace)
        elif isinstance(exp, ExpAggregate):
            for element in exp.elements:
                self._analyze_ownership_in_expression(given_up, element, stmt, trace)
        elif isinstance(exp, ExpTernary):
            # Either branch may be the value
            self._analyze_ownership_in_expression(given_up, exp.true_exp, stmt, trace)
            self._analyze_ownership_in_expression(given_up, exp.false_exp, stmt, trace)
        elif isinstance(exp, ExpCall):
            call_trace = trace.clone()
            call_trace.insert_call(self._procedure.name, self._procedure.location_of(stmt))
            for symbol in self.analyze_ownership_in_call(given_up, exp, stmt, call_trace):
                self.analyze_giving_up_field_ownership(given_up, symbol, stmt, call_trace)


# =============================================================================
# Registry
# =============================================================================

PASSES: Dict[str, Callable[[AnalysisContext, ErrorReporter], OwnershipAnalysisPass]] = {
    GivesUpOwnershipAnalysisPass.name: GivesUpOwnershipAnalysisPass,
}


def create_pass(name: str, context: AnalysisContext,
                reporter: ErrorReporter) -> OwnershipAnalysisPass:
    """Create an ownership pass by name"""
    factory = PASSES.get(name)
    if factory is None:
        raise AnalysisError(f"unknown ownership pass: {name!r} "
                            f"(available: {', '.join(sorted(PASSES))})")
    return factory(context, reporter)
