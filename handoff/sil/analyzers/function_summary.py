"""
Side-effect summaries for inter-procedural ownership analysis.

A MethodSummary records, for one procedure:
1. Side effects: which parameter positions may be written into which fields
2. Return value: which fields and parameter positions it may alias
3. Given-up parameters: which parameters the procedure hands off
4. Field accesses: statements that read or reset each field, and the
   fields reset on every path through the procedure

Summaries are built lazily by the SummaryTable and cached for the
lifetime of the table. The table also answers whether a field may be
read again before it is reset.
"""

import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, List, Optional, Set, Tuple, Union

from handoff.sil.types import Symbol, ExpCall
from handoff.sil.instructions import Call, GivesUp, Return
from handoff.sil.procedure import Procedure, Program, Statement
from handoff.sil.analyzers.dataflow import DataFlowAnalysis, Definition, SymbolResolver


@dataclass
class MethodSummary:
    """
    Summary of one procedure's effects, read-only once built.

    Parameter positions exclude the receiver: position 0 of `send_to(self, e)`
    is `e`.
    """
    procedure: str
    class_name: Optional[str] = None
    is_constructor: bool = False

    # Field -> parameter positions whose incoming value may be stored in it
    side_effects: Dict[Symbol, Set[int]] = field(default_factory=dict)

    # What the return value may alias
    return_fields: Set[Symbol] = field(default_factory=set)
    return_params: Set[int] = field(default_factory=set)

    # Parameter positions handed off (directly or by a callee)
    gives_up_params: Set[int] = field(default_factory=set)

    # Field -> statements that read it / replace its value
    field_reads: Dict[Symbol, List[Statement]] = field(default_factory=dict)
    field_writes: Dict[Symbol, List[Statement]] = field(default_factory=dict)

    # Fields whose value is replaced on every path from entry to exit
    reset_fields: Set[Symbol] = field(default_factory=set)

    def __str__(self) -> str:
        effects = ", ".join(f"{f}<-{sorted(p)}" for f, p in self.side_effects.items())
        return f"MethodSummary({self.procedure}: {effects or 'no side effects'})"

    @property
    def is_empty(self) -> bool:
        return not (self.side_effects or self.return_fields or self.return_params
                    or self.gives_up_params or self.field_reads or self.field_writes
                    or self.reset_fields)

    def fields_written_from(self, position: int) -> List[Symbol]:
        """Fields that parameter `position` may be stored into"""
        return sorted((f for f, p in self.side_effects.items() if position in p), key=str)

    def resolved_return_symbols(self, call: Union[Call, ExpCall], caller: Procedure) -> List[Symbol]:
        """
        Map what the return value may alias back to symbols of the caller.

        Return parameters become the matching call arguments. Return
        fields stay fields when the call is on `self`, otherwise they
        become the receiver. A constructor returns the new object, which
        holds whatever its arguments were stored into.
        """
        resolver = SymbolResolver(caller)
        result: Dict[Symbol, None] = {}

        def add_arg(i: int) -> None:
            if 0 <= i < len(call.args):
                arg = call.args[i]
                top = resolver.resolve_top_level(arg)
                if top is not None:
                    result[top] = None
                else:
                    for s in resolver.flowing_symbols(arg):
                        result[s] = None

        if self.is_constructor:
            positions = set()
            for p in self.side_effects.values():
                positions |= p
            for i in sorted(positions):
                add_arg(i)
            return list(result)

        for i in sorted(self.return_params):
            add_arg(i)

        if call.receiver is not None:
            for f in sorted(self.return_fields, key=str):
                if resolver.is_self(call.receiver):
                    result[f] = None
                else:
                    top = resolver.resolve_top_level(call.receiver)
                    if top is not None:
                        result[top] = None

        return list(result)


class SummaryTable:
    """
    Process-wide summary cache.

    Each summary is computed once under a lock. A request for a
    summary that is still being built (recursion) gets an empty
    provisional summary, so mutually recursive procedures terminate.
    """

    def __init__(self, program: Program,
                 dataflow_of: Callable[[Procedure], DataFlowAnalysis]):
        self.program = program
        self._dataflow_of = dataflow_of
        self._summaries: Dict[str, MethodSummary] = {}
        self._in_progress: Set[str] = set()
        self._lock = threading.RLock()

    def __contains__(self, name: str) -> bool:
        return name in self._summaries

    def __len__(self) -> int:
        return len(self._summaries)

    def summary_of(self, unit: Union[Procedure, str]) -> MethodSummary:
        """Get (building if needed) the summary of a procedure"""
        name = unit.name if isinstance(unit, Procedure) else unit

        cached = self._summaries.get(name)
        if cached is not None:
            return cached

        with self._lock:
            cached = self._summaries.get(name)
            if cached is not None:
                return cached

            proc = self.program.get_procedure(name)
            if proc is None:
                return MethodSummary(name)
            if name in self._in_progress:
                return MethodSummary(name, proc.class_name, proc.is_constructor)

            self._in_progress.add(name)
            try:
                summary = self._build(proc)
            finally:
                self._in_progress.discard(name)

            self._summaries[name] = summary
            return summary

    # =========================================================================
    # Summary construction
    # =========================================================================

    def _build(self, proc: Procedure) -> MethodSummary:
        df = self._dataflow_of(proc)
        resolver = df.resolver
        summary = MethodSummary(proc.name, proc.class_name, proc.is_constructor)
        reset_candidates: Dict[Symbol, None] = {}

        for stmt, instr in proc.iter_statements():
            for sym in df.reads_at(stmt):
                if sym.is_field:
                    summary.field_reads.setdefault(sym, []).append(stmt)

            for effect in df.effects_at(stmt):
                if not effect.symbol.is_field:
                    continue
                if effect.strong:
                    summary.field_writes.setdefault(effect.symbol, []).append(stmt)
                d = Definition(effect.symbol, stmt)
                positions = df.parameter_positions(df.origins.get(d, frozenset([d])))
                if positions:
                    summary.side_effects.setdefault(effect.symbol, set()).update(positions)

            if isinstance(instr, Return) and instr.value is not None:
                for d in df.value_set_of(instr.value, stmt):
                    if d.symbol.is_field:
                        summary.return_fields.add(d.symbol)
                summary.return_params |= df.parameter_positions(df.value_set_of(instr.value, stmt))

            if isinstance(instr, GivesUp):
                for arg in instr.given_up_args():
                    parts = arg.args if isinstance(arg, ExpCall) else [arg]
                    for part in parts:
                        summary.gives_up_params |= df.parameter_positions(df.value_set_of(part, stmt))

            if isinstance(instr, Call):
                callee = self.program.resolve_callee(instr, proc)
                if callee is None:
                    continue
                callee_summary = self.summary_of(callee)

                for idx in callee_summary.gives_up_params:
                    if idx < len(instr.args):
                        summary.gives_up_params |= df.parameter_positions(
                            df.value_set_of(instr.args[idx], stmt))

                # Stores done by another method on the same object
                if instr.receiver is not None and resolver.is_self(instr.receiver):
                    for fld in callee_summary.reset_fields:
                        reset_candidates[fld] = None
                    for fld, idxs in callee_summary.side_effects.items():
                        for idx in idxs:
                            if idx < len(instr.args):
                                positions = df.parameter_positions(
                                    df.value_set_of(instr.args[idx], stmt))
                                if positions:
                                    summary.side_effects.setdefault(fld, set()).update(positions)

        for fld in summary.field_writes:
            reset_candidates[fld] = None
        for fld in reset_candidates:
            if self._resets_on_every_path(fld, proc, df):
                summary.reset_fields.add(fld)

        return summary

    def _resets_on_every_path(self, fld: Symbol, proc: Procedure, df: DataFlowAnalysis) -> bool:
        """Check that no path from entry to exit keeps the incoming value of `fld`"""
        queue = [proc.entry_node]
        visited = {proc.entry_node}

        while queue:
            node_id = queue.pop(0)
            node = proc.get_node(node_id)
            if node is None:
                continue
            if any(self._resets_field(fld, proc, df, Statement(proc.name, node_id, i))
                   for i in range(len(node.instrs))):
                continue
            if not node.succs:
                return False
            for succ in node.succs:
                if succ not in visited:
                    visited.add(succ)
                    queue.append(succ)

        return True

    # =========================================================================
    # Read-before-reset
    # =========================================================================

    def is_read_before_reset(self, fld: Symbol, summary: MethodSummary,
                             after: Optional[Statement] = None,
                             escalate: bool = True,
                             _active: FrozenSet[Tuple[Symbol, str]] = frozenset()) -> bool:
        """
        Check if some path from `after` (or the procedure entry) reads
        `fld` before replacing its value.

        A path reaching the procedure exit leaves the field alive for the
        next handler, so the other non-constructor methods of the class
        are checked from their own entry (one level deep).
        """
        proc = self.program.get_procedure(summary.procedure)
        if proc is None or not fld.is_field:
            return False

        key = (fld, proc.name)
        if key in _active:
            return False
        active = _active | {key}

        df = self._dataflow_of(proc)

        if after is not None and proc.contains(after):
            start = (after.node_id, after.index + 1)
        else:
            start = (proc.entry_node, 0)

        queue = [start]
        visited = set()
        escaped = False

        while queue:
            node_id, index = queue.pop(0)
            node = proc.get_node(node_id)
            if node is None:
                continue

            cut = False
            for i in range(index, len(node.instrs)):
                stmt = Statement(proc.name, node_id, i)
                if self._reads_field(fld, proc, df, stmt, active):
                    return True
                if self._resets_field(fld, proc, df, stmt):
                    cut = True
                    break
            if cut:
                continue

            if not node.succs:
                escaped = True
            for succ in node.succs:
                if succ not in visited:
                    visited.add(succ)
                    queue.append((succ, 0))

        if escaped and escalate and proc.class_name and fld.owner == proc.class_name:
            for sibling in self.program.methods_of_class(proc.class_name):
                if sibling.name == proc.name or sibling.is_constructor:
                    continue
                if self.is_read_before_reset(fld, self.summary_of(sibling), None,
                                             escalate=False, _active=active):
                    return True

        return False

    def _reads_field(self, fld: Symbol, proc: Procedure, df: DataFlowAnalysis,
                     stmt: Statement, active: FrozenSet[Tuple[Symbol, str]]) -> bool:
        if fld in df.reads_at(stmt):
            return True

        instr = proc.instr_at(stmt)
        if isinstance(instr, Call) and instr.receiver is not None \
                and df.resolver.is_self(instr.receiver):
            callee = self.program.resolve_callee(instr, proc)
            if callee is not None and not callee.is_constructor:
                return self.is_read_before_reset(fld, self.summary_of(callee), None,
                                                 escalate=False, _active=active)
        return False

    def _resets_field(self, fld: Symbol, proc: Procedure, df: DataFlowAnalysis,
                      stmt: Statement) -> bool:
        """A strong write of `fld`, or a self-call whose callee always replaces it"""
        if df.resets(fld, stmt):
            return True

        instr = proc.instr_at(stmt)
        if isinstance(instr, Call) and instr.receiver is not None \
                and df.resolver.is_self(instr.receiver):
            callee = self.program.resolve_callee(instr, proc)
            if callee is not None and not callee.is_constructor:
                return fld in self.summary_of(callee).reset_fields
        return False
