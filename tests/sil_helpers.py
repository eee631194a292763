"""
Builders for hand-made SIL procedures used by the analysis tests.

Lets a test describe a CFG as {node_id: [instrs]} plus an edge list
instead of going through the Python frontend.
"""

from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from handoff.sil.types import (
    PVar, Typ, Location, Symbol, SymbolKind, Exp, ExpVar, ExpConst, ExpFieldAccess,
)
from handoff.sil.instructions import Instr, GivesUp, Prune, PruneKind
from handoff.sil.procedure import Node, NodeKind, Procedure, Program, Statement
from handoff.sil.specs.actor_specs import get_library_specs
from handoff.sil.analyzers.context import AnalysisContext
from handoff.sil.analyzers.ownership import GivenUpSymbol, create_pass
from handoff.sil.analyzers.reporter import ErrorReporter


FILE = "actor.py"


def loc(line: int) -> Location:
    return Location(FILE, line)


def self_field(name: str) -> ExpFieldAccess:
    """self.<name>"""
    return ExpFieldAccess(ExpVar(PVar("self")), name)


def field_symbol(name: str, class_name: str = "Actor") -> Symbol:
    return Symbol(name, SymbolKind.FIELD, class_name)


def local_symbol(name: str, proc: str) -> Symbol:
    return Symbol(name, SymbolKind.LOCAL, proc)


def param_symbol(name: str, proc: str) -> Symbol:
    return Symbol(name, SymbolKind.PARAMETER, proc)


def send(value: Exp, line: int) -> GivesUp:
    """self.send(self.target, value), handing off `value`"""
    return GivesUp(loc(line), None, ExpConst("send"), [self_field("target"), value],
                   ExpVar(PVar("self")), [1])


def prune(line: int, taken: bool = True) -> Prune:
    return Prune(loc(line), ExpConst(True), taken, PruneKind.WHILE_TRUE)


def make_procedure(name: str,
                   nodes: Dict[int, List[Instr]],
                   edges: Iterable[Tuple[int, int]] = (),
                   params: Sequence[str] = ("self",),
                   class_name: Optional[str] = "Actor",
                   entry: Optional[int] = None,
                   exit: Optional[int] = None) -> Procedure:
    """
    Build a procedure from {node_id: instrs} and (from, to) edges.

    The entry defaults to the smallest node id and the exit to the
    largest. Methods (class_name set) take `self` as first parameter.
    """
    is_method = class_name is not None
    qualified = f"{class_name}.{name}" if is_method else name
    proc = Procedure(
        name=qualified,
        params=[(PVar(p), Typ.unknown_type()) for p in params],
        loc=loc(1),
        is_method=is_method,
        class_name=class_name,
        is_constructor=name == "__init__",
    )

    for node_id in sorted(nodes):
        proc.add_node(Node(id=node_id, instrs=list(nodes[node_id])))
    for src, dst in edges:
        proc.connect(src, dst)

    proc.entry_node = entry if entry is not None else min(nodes)
    proc.exit_node = exit if exit is not None else max(nodes)
    proc.nodes[proc.entry_node].kind = NodeKind.ENTRY
    proc.nodes[proc.exit_node].kind = NodeKind.EXIT
    return proc


def make_program(*procedures: Procedure) -> Program:
    program = Program(library_specs=get_library_specs())
    program.source_files.append(FILE)
    for proc in procedures:
        program.add_procedure(proc)
    return program


def run_pass(program: Program, symbol: Symbol, proc: Procedure, node_id: int, index: int,
             reporter: Optional[ErrorReporter] = None,
             context: Optional[AnalysisContext] = None):
    """Run the gives-up pass on one hand-off; returns (pass, violations)"""
    context = context or AnalysisContext(program)
    reporter = reporter if reporter is not None else ErrorReporter()
    ownership_pass = create_pass("gives-up", context, reporter)
    point = GivenUpSymbol(symbol, Statement(proc.name, node_id, index), proc.name)
    return ownership_pass, ownership_pass.run(point)


def violation_lines(violations) -> List[int]:
    return sorted(v.trace.location.line for v in violations)
