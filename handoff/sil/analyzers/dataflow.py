"""
Symbol resolution and the symbol-flow oracle.

For one procedure this module computes:

1. Reaching definitions: which writes of each symbol may reach each
   statement. Parameters, fields and locals have an entry definition
   standing for the value they hold when the procedure starts.
2. Value origins: for each definition, the set of definitions whose
   values it may hold (x = y makes every origin of y an origin of x).

Two symbol occurrences flow into each other when their value sets
(reaching definitions plus origins) intersect. The relation is a
conservative may-alias/may-derive approximation; it never misses a
direct assignment or a direct argument pass.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from handoff.sil.types import (
    Symbol, SymbolKind, Exp, ExpVar, ExpConst, ExpBinOp, ExpUnOp,
    ExpFieldAccess, ExpIndex, ExpCall, ExpAggregate, ExpTernary,
)
from handoff.sil.instructions import Instr, Declare, Assign, Store, Call
from handoff.sil.procedure import Procedure, Program, Statement


# =============================================================================
# Definitions
# =============================================================================

@dataclass(frozen=True)
class Definition:
    """A write of `symbol` at `statement` (None: the value on entry)"""
    symbol: Symbol
    statement: Optional[Statement] = None

    @property
    def is_entry(self) -> bool:
        return self.statement is None

    def __str__(self) -> str:
        where = "entry" if self.statement is None else str(self.statement)
        return f"{self.symbol}@{where}"


@dataclass(frozen=True)
class Effect:
    """
    What an instruction writes: `symbol` receives values derived from
    `sources`. A strong effect replaces the old value, a weak one adds
    to it (x.f = v mutates x but x still refers to the same object).
    """
    symbol: Symbol
    strong: bool
    sources: Tuple[Symbol, ...] = ()


def _ordered(symbols: Iterable[Symbol]) -> List[Symbol]:
    seen = {}
    for s in symbols:
        if s is not None and s not in seen:
            seen[s] = None
    return list(seen)


# =============================================================================
# Symbol resolution
# =============================================================================

class SymbolResolver:
    """
    Maps expressions of one procedure to symbols.

    Top-level identifier resolution:
        x            -> local or parameter x
        self.f       -> field f of the enclosing class
        self.f.g     -> field f
        self.f[i]    -> field f
        x.f, x[i]    -> x
        f().x        -> None
    """

    def __init__(self, procedure: Procedure, program: Optional[Program] = None):
        self.procedure = procedure
        self.program = program
        self._params = set(procedure.get_param_names())

    def symbol_for_var(self, name: str) -> Symbol:
        """Symbol for a bare variable name"""
        kind = SymbolKind.PARAMETER if name in self._params else SymbolKind.LOCAL
        return Symbol(name, kind, self.procedure.name)

    def field_symbol(self, name: str) -> Symbol:
        """Symbol for a field of the enclosing class"""
        return Symbol(name, SymbolKind.FIELD, self.procedure.class_name or "")

    def is_self(self, exp: Exp) -> bool:
        self_name = self.procedure.self_name
        return self_name is not None and isinstance(exp, ExpVar) and exp.var.name == self_name

    def is_self_field(self, exp: Exp) -> bool:
        """Check for a direct field access: self.f"""
        return isinstance(exp, ExpFieldAccess) and self.is_self(exp.base)

    def resolve_top_level(self, exp: Exp) -> Optional[Symbol]:
        """Resolve the top-level symbol of an identifier or access path"""
        if isinstance(exp, ExpVar):
            return self.symbol_for_var(exp.var.name)

        if not isinstance(exp, (ExpFieldAccess, ExpIndex)):
            return None

        # Walk down to the root, remembering the access applied to it
        first = exp
        root = exp.base
        while isinstance(root, (ExpFieldAccess, ExpIndex)):
            first = root
            root = root.base

        if not isinstance(root, ExpVar):
            return None
        if self.is_self(root) and isinstance(first, ExpFieldAccess):
            return self.field_symbol(first.field_name)
        return self.symbol_for_var(root.var.name)

    def call_sources(self, call) -> List[Symbol]:
        """
        Symbols whose values the result of a call may hold.

        Uses the callee's library spec when there is one, otherwise every
        argument and the receiver.
        """
        spec = self.program.get_call_spec(call) if self.program else None
        if spec is not None and spec.return_aliases is not None:
            result = []
            for i in spec.return_aliases:
                if 0 <= i < len(call.args):
                    result.extend(self.flowing_symbols(call.args[i]))
            if spec.return_from_receiver and call.receiver is not None:
                result.extend(self.flowing_symbols(call.receiver))
            return _ordered(result)

        result = []
        for arg in call.args:
            result.extend(self.flowing_symbols(arg))
        if call.receiver is not None:
            result.extend(self.flowing_symbols(call.receiver))
        return _ordered(result)

    def flowing_symbols(self, exp: Optional[Exp]) -> List[Symbol]:
        """Symbols whose values may flow into the value of `exp`"""
        if exp is None or isinstance(exp, ExpConst):
            return []

        if isinstance(exp, (ExpVar, ExpFieldAccess, ExpIndex)):
            top = self.resolve_top_level(exp)
            if top is not None:
                return [top]
            return self.flowing_symbols(exp.base)

        if isinstance(exp, ExpCall):
            return self.call_sources(exp)
        if isinstance(exp, ExpBinOp):
            return _ordered(self.flowing_symbols(exp.left) + self.flowing_symbols(exp.right))
        if isinstance(exp, ExpUnOp):
            return self.flowing_symbols(exp.operand)
        if isinstance(exp, ExpAggregate):
            result = []
            for element in exp.elements:
                result.extend(self.flowing_symbols(element))
            return _ordered(result)
        if isinstance(exp, ExpTernary):
            return _ordered(self.flowing_symbols(exp.condition)
                            + self.flowing_symbols(exp.true_exp)
                            + self.flowing_symbols(exp.false_exp))
        return []

    # =========================================================================
    # Reads and writes
    # =========================================================================

    def _collect_reads(self, exp: Optional[Exp], out: Dict[Symbol, None]) -> None:
        if exp is None or isinstance(exp, ExpConst):
            return
        if isinstance(exp, (ExpVar, ExpFieldAccess, ExpIndex)):
            top = self.resolve_top_level(exp)
            if top is not None:
                out[top] = None
            node = exp
            while isinstance(node, (ExpFieldAccess, ExpIndex)):
                if isinstance(node, ExpIndex):
                    self._collect_reads(node.index, out)
                node = node.base
            if top is None:
                self._collect_reads(node, out)
            return
        if isinstance(exp, ExpCall):
            for arg in exp.args:
                self._collect_reads(arg, out)
            self._collect_reads(exp.receiver, out)
        elif isinstance(exp, ExpBinOp):
            self._collect_reads(exp.left, out)
            self._collect_reads(exp.right, out)
        elif isinstance(exp, ExpUnOp):
            self._collect_reads(exp.operand, out)
        elif isinstance(exp, ExpAggregate):
            for element in exp.elements:
                self._collect_reads(element, out)
        elif isinstance(exp, ExpTernary):
            self._collect_reads(exp.condition, out)
            self._collect_reads(exp.true_exp, out)
            self._collect_reads(exp.false_exp, out)

    def read_symbols(self, instr: Instr) -> List[Symbol]:
        """Symbols whose current value an instruction reads"""
        out: Dict[Symbol, None] = {}
        if isinstance(instr, Store):
            self._collect_reads(instr.value, out)
            # Writing self.f does not read f, writing self.f.g does
            addr = instr.addr
            if isinstance(addr, ExpFieldAccess):
                self._collect_reads(addr.base, out)
            elif isinstance(addr, ExpIndex):
                self._collect_reads(addr.base, out)
                self._collect_reads(addr.index, out)
        elif isinstance(instr, Declare):
            self._collect_reads(instr.init, out)
        elif isinstance(instr, Assign):
            self._collect_reads(instr.exp, out)
        elif isinstance(instr, Call):
            for arg in instr.args:
                self._collect_reads(arg, out)
            self._collect_reads(instr.receiver, out)
        else:
            for attr in ("condition", "value"):
                self._collect_reads(getattr(instr, attr, None), out)
        return list(out)

    def effects(self, instr: Instr) -> List[Effect]:
        """What an instruction writes"""
        if isinstance(instr, Declare):
            if instr.init is None:
                return []
            return [Effect(self.symbol_for_var(instr.var.name), True,
                           tuple(self.flowing_symbols(instr.init)))]

        if isinstance(instr, Assign):
            return [Effect(self.symbol_for_var(instr.id.name), True,
                           tuple(self.flowing_symbols(instr.exp)))]

        if isinstance(instr, Store):
            top = self.resolve_top_level(instr.addr)
            if top is None:
                return []
            return [Effect(top, self.is_self_field(instr.addr),
                           tuple(self.flowing_symbols(instr.value)))]

        if isinstance(instr, Call):
            result = []
            if instr.ret is not None:
                result.append(Effect(self.symbol_for_var(instr.ret.name), True,
                                     tuple(self.call_sources(instr))))
            spec = self.program.get_call_spec(instr) if self.program else None
            if spec is not None and spec.flows_into_receiver and instr.receiver is not None:
                target = self.resolve_top_level(instr.receiver)
                if target is not None:
                    sources = []
                    for i in spec.flows_into_receiver:
                        if 0 <= i < len(instr.args):
                            sources.extend(self.flowing_symbols(instr.args[i]))
                    result.append(Effect(target, False, tuple(_ordered(sources))))
            return result

        return []


# =============================================================================
# Data-flow analysis
# =============================================================================

State = FrozenSet[Definition]


class DataFlowAnalysis:
    """
    Reaching definitions and value origins for one procedure.

    Built once; all queries afterwards are read-only.
    """

    def __init__(self, procedure: Procedure, program: Optional[Program] = None):
        self.procedure = procedure
        self.resolver = SymbolResolver(procedure, program)

        self._effects: Dict[Statement, List[Effect]] = {}
        self._reads: Dict[Statement, List[Symbol]] = {}
        self.pre_states: Dict[Statement, State] = {}
        self.post_states: Dict[Statement, State] = {}
        self.origins: Dict[Definition, FrozenSet[Definition]] = {}

        self._collect()
        self._compute_reaching_definitions()
        self._compute_origins()

    # =========================================================================
    # Construction
    # =========================================================================

    def _collect(self) -> None:
        symbols: Dict[Symbol, None] = {}
        for name in self.procedure.get_param_names():
            symbols[self.resolver.symbol_for_var(name)] = None

        for stmt, instr in self.procedure.iter_statements():
            effects = self.resolver.effects(instr)
            reads = self.resolver.read_symbols(instr)
            self._effects[stmt] = effects
            self._reads[stmt] = reads
            for effect in effects:
                symbols[effect.symbol] = None
                for s in effect.sources:
                    symbols[s] = None
            for s in reads:
                symbols[s] = None

        self.symbols = list(symbols)
        self.entry_state: State = frozenset(Definition(s) for s in self.symbols)

    @staticmethod
    def _apply(state: State, stmt: Statement, effects: List[Effect]) -> State:
        if not effects:
            return state
        result = set(state)
        for effect in effects:
            if effect.strong:
                result = {d for d in result if d.symbol != effect.symbol}
        for effect in effects:
            result.add(Definition(effect.symbol, stmt))
        return frozenset(result)

    def _compute_reaching_definitions(self) -> None:
        proc = self.procedure
        order = proc.reverse_postorder()
        out_states: Dict[int, State] = {node.id: frozenset() for node in order}

        changed = True
        while changed:
            changed = False
            for node in order:
                state: Set[Definition] = set()
                if node.id == proc.entry_node:
                    state |= self.entry_state
                for pred in node.preds:
                    state |= out_states.get(pred, frozenset())
                current: State = frozenset(state)

                for stmt in proc.statements(node.id):
                    self.pre_states[stmt] = current
                    current = self._apply(current, stmt, self._effects[stmt])
                    self.post_states[stmt] = current

                if current != out_states[node.id]:
                    out_states[node.id] = current
                    changed = True

        self.out_states = out_states

    def _compute_origins(self) -> None:
        for d in self.entry_state:
            self.origins[d] = frozenset([d])
        for stmt, effects in self._effects.items():
            for effect in effects:
                d = Definition(effect.symbol, stmt)
                self.origins[d] = frozenset([d])

        changed = True
        while changed:
            changed = False
            for stmt, effects in self._effects.items():
                pre = self.pre_states.get(stmt, frozenset())
                for effect in effects:
                    d = Definition(effect.symbol, stmt)
                    values = set(self.origins[d])
                    for source in effect.sources:
                        for source_def in self.definitions_of(source, pre):
                            values |= self.origins.get(source_def, frozenset([source_def]))
                    if len(values) != len(self.origins[d]):
                        self.origins[d] = frozenset(values)
                        changed = True

    # =========================================================================
    # Queries
    # =========================================================================

    @staticmethod
    def definitions_of(symbol: Symbol, state: State) -> List[Definition]:
        """Definitions of `symbol` in a state (its entry value if none reach)"""
        defs = [d for d in state if d.symbol == symbol]
        return defs if defs else [Definition(symbol)]

    def effects_at(self, stmt: Statement) -> List[Effect]:
        return self._effects.get(stmt, [])

    def reads_at(self, stmt: Statement) -> List[Symbol]:
        return self._reads.get(stmt, [])

    def defines(self, symbol: Symbol, stmt: Statement) -> bool:
        """Check if a statement writes `symbol`"""
        return any(e.symbol == symbol for e in self._effects.get(stmt, []))

    def resets(self, symbol: Symbol, stmt: Statement) -> bool:
        """Check if a statement replaces the value of `symbol`"""
        return any(e.symbol == symbol and e.strong for e in self._effects.get(stmt, []))

    def reaching_definitions(self, symbol: Symbol, stmt: Statement,
                             after: bool = False) -> List[Definition]:
        states = self.post_states if after else self.pre_states
        return self.definitions_of(symbol, states.get(stmt, frozenset()))

    def value_set(self, symbol: Symbol, stmt: Statement, after: bool = False) -> Set[Definition]:
        """Every definition whose value `symbol` may hold at `stmt`"""
        result: Set[Definition] = set()
        for d in self.reaching_definitions(symbol, stmt, after):
            result |= self.origins.get(d, frozenset([d]))
        return result

    def value_set_of(self, exp: Exp, stmt: Statement) -> Set[Definition]:
        """Value set of an expression evaluated just before `stmt`"""
        result: Set[Definition] = set()
        for s in self.resolver.flowing_symbols(exp):
            result |= self.value_set(s, stmt)
        return result

    def flows_into(self, source: Symbol, target: Symbol,
                   from_stmt: Statement, to_stmt: Statement) -> bool:
        """
        Check if the value of `source` read at `from_stmt` (just after it,
        when `from_stmt` writes `source`) may be observed as or
        incorporated into `target` at `to_stmt`.
        """
        if source is None or target is None:
            return False
        if from_stmt not in self.pre_states or to_stmt not in self.pre_states:
            return source == target

        source_values = self.value_set(source, from_stmt, after=self.defines(source, from_stmt))
        target_values = self.value_set(target, to_stmt)
        return not source_values.isdisjoint(target_values)

    def parameter_positions(self, values: Iterable[Definition]) -> Set[int]:
        """Call-site positions of parameters whose entry values are in `values`"""
        result = set()
        for d in values:
            if d.is_entry and d.symbol.kind == SymbolKind.PARAMETER:
                pos = self.procedure.param_position(d.symbol.name)
                if pos is not None:
                    result.add(pos)
        return result
