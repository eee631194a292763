"""
Procedure and Control Flow Graph definitions for handoff SIL.

This module defines:
- ProcSpec: Library callee specification (what the return value aliases)
- Node: A basic block in the CFG
- Statement: A stable handle to one instruction inside a procedure
- Procedure: A function/method with its CFG
- Program: A complete program with all procedures

The graph is an arena of nodes keyed by integer id, so cycles are
plain id references and nodes can be used directly in visited-sets.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Optional, Tuple, Iterator
from enum import Enum, auto

from .types import PVar, Typ, Location, ExpVar
from .instructions import Instr, Call


# =============================================================================
# Procedure Specification
# =============================================================================

@dataclass
class ProcSpec:
    """
    Specification of a library callee whose body is not analyzed.

    Used by the symbol-flow oracle to decide which arguments the
    return value of an unresolved call may alias.
    """

    # Argument positions the return value may alias or be derived from.
    # None means unknown: every argument and the receiver.
    return_aliases: Optional[List[int]] = None

    # Does the return value alias the receiver or its contents (list.pop)?
    return_from_receiver: bool = False

    # Argument positions stored into the receiver (list.append(x))
    flows_into_receiver: List[int] = field(default_factory=list)

    # Human-readable description
    description: str = ""

    def returns_fresh_value(self) -> bool:
        """Check if the return value is unrelated to any argument"""
        return (self.return_aliases is not None and len(self.return_aliases) == 0
                and not self.return_from_receiver)


# =============================================================================
# CFG Node
# =============================================================================

class NodeKind(Enum):
    """Kind of CFG node"""
    ENTRY = auto()        # Function entry point
    EXIT = auto()         # Function exit point
    NORMAL = auto()       # Normal basic block
    JOIN = auto()         # Join point (merge of branches)
    LOOP_HEAD = auto()    # Loop header
    EXCEPTION = auto()    # Exception handler


@dataclass
class Node:
    """
    A node in the Control Flow Graph.

    Each node holds an ordered list of instructions. Control flow is
    represented by successor/predecessor id lists.
    """

    # Unique identifier within procedure
    id: int

    # Instructions in this basic block
    instrs: List[Instr] = field(default_factory=list)

    # Control flow edges
    succs: List[int] = field(default_factory=list)    # Successor node IDs
    preds: List[int] = field(default_factory=list)    # Predecessor node IDs

    # Node metadata
    kind: NodeKind = NodeKind.NORMAL

    def __str__(self) -> str:
        lines = [f"Node {self.id} ({self.kind.name}):"]
        for instr in self.instrs:
            lines.append(f"  {instr}")
        if self.succs:
            lines.append(f"  -> {self.succs}")
        return "\n".join(lines)

    def add_instr(self, instr: Instr) -> None:
        """Add an instruction to this node"""
        self.instrs.append(instr)

    def add_succ(self, node_id: int) -> None:
        """Add a successor edge"""
        if node_id not in self.succs:
            self.succs.append(node_id)

    def add_pred(self, node_id: int) -> None:
        """Add a predecessor edge"""
        if node_id not in self.preds:
            self.preds.append(node_id)

    def is_empty(self) -> bool:
        """Check if this node has no instructions"""
        return len(self.instrs) == 0


# =============================================================================
# Statement handle
# =============================================================================

@dataclass(frozen=True, order=True)
class Statement:
    """
    Handle to one instruction: (procedure name, node id, index in node).

    Hashable and totally ordered, so it can key caches and be sorted
    for deterministic output.
    """
    procedure: str
    node_id: int
    index: int

    def __str__(self) -> str:
        return f"{self.procedure}@{self.node_id}:{self.index}"


# =============================================================================
# Procedure
# =============================================================================

@dataclass
class Procedure:
    """
    A procedure (function/method) in SIL.

    Contains:
    - Signature (name, parameters)
    - Control flow graph (CFG)
    - Method metadata (owning class, receiver)
    """

    # Procedure name ("f" for functions, "Class.method" for methods)
    name: str

    # Parameters with types, receiver included for methods
    params: List[Tuple[PVar, Typ]] = field(default_factory=list)

    # Control flow graph
    nodes: Dict[int, Node] = field(default_factory=dict)
    entry_node: int = 0
    exit_node: int = -1

    # Source location
    loc: Optional[Location] = None

    # Additional metadata
    is_method: bool = False           # Is this a method (has self)?
    class_name: Optional[str] = None  # Class name if method
    is_static: bool = False           # Is this a static method?
    is_constructor: bool = False      # Is this __init__?

    # Internal state for building CFG
    _next_node_id: int = field(default=0, repr=False)

    def __str__(self) -> str:
        params_str = ", ".join(f"{p.name}: {t}" for p, t in self.params)
        return f"def {self.name}({params_str})"

    def __hash__(self) -> int:
        return hash(self.name)

    def __eq__(self, other) -> bool:
        return isinstance(other, Procedure) and other.name == self.name

    # =========================================================================
    # CFG Construction
    # =========================================================================

    def new_node(self, kind: NodeKind = NodeKind.NORMAL) -> Node:
        """Create a new CFG node"""
        node = Node(id=self._next_node_id, kind=kind)
        self._next_node_id += 1
        return node

    def add_node(self, node: Node) -> None:
        """Add a node to the CFG"""
        self.nodes[node.id] = node
        if node.id >= self._next_node_id:
            self._next_node_id = node.id + 1

    def connect(self, from_id: int, to_id: int) -> None:
        """Connect two nodes with an edge"""
        if from_id in self.nodes and to_id in self.nodes:
            self.nodes[from_id].add_succ(to_id)
            self.nodes[to_id].add_pred(from_id)

    def get_node(self, node_id: int) -> Optional[Node]:
        """Get a node by ID"""
        return self.nodes.get(node_id)

    # =========================================================================
    # Graph queries
    # =========================================================================

    def statements(self, node_id: int) -> List[Statement]:
        """Ordered statements of a node"""
        node = self.nodes.get(node_id)
        if node is None:
            return []
        return [Statement(self.name, node_id, i) for i in range(len(node.instrs))]

    def predecessors(self, node_id: int) -> List[int]:
        node = self.nodes.get(node_id)
        return list(node.preds) if node else []

    def successors(self, node_id: int) -> List[int]:
        node = self.nodes.get(node_id)
        return list(node.succs) if node else []

    def contains(self, stmt: Statement) -> bool:
        """Check if a statement handle points into this procedure"""
        if stmt.procedure != self.name:
            return False
        node = self.nodes.get(stmt.node_id)
        return node is not None and 0 <= stmt.index < len(node.instrs)

    def instr_at(self, stmt: Statement) -> Optional[Instr]:
        """Get the instruction a statement handle points to"""
        if not self.contains(stmt):
            return None
        return self.nodes[stmt.node_id].instrs[stmt.index]

    def location_of(self, stmt: Statement) -> Location:
        """Source location of a statement"""
        instr = self.instr_at(stmt)
        if instr is None:
            return self.loc or Location.unknown()
        return instr.loc

    def iter_statements(self) -> Iterator[Tuple[Statement, Instr]]:
        """Iterate over every (statement, instruction) in node id order"""
        for node_id in sorted(self.nodes):
            for i, instr in enumerate(self.nodes[node_id].instrs):
                yield Statement(self.name, node_id, i), instr

    # =========================================================================
    # CFG Traversal
    # =========================================================================

    def cfg_iter(self) -> Iterator[Node]:
        """Iterate over nodes in CFG order (BFS from entry)"""
        if self.entry_node not in self.nodes:
            return

        visited = set()
        queue = [self.entry_node]

        while queue:
            node_id = queue.pop(0)
            if node_id in visited or node_id not in self.nodes:
                continue

            visited.add(node_id)
            yield self.nodes[node_id]

            queue.extend(self.nodes[node_id].succs)

    def reverse_postorder(self) -> List[Node]:
        """Get nodes in reverse postorder (useful for dataflow)"""
        visited = set()
        postorder = []

        def dfs(node_id: int):
            if node_id in visited or node_id not in self.nodes:
                return
            visited.add(node_id)
            for succ_id in self.nodes[node_id].succs:
                dfs(succ_id)
            postorder.append(self.nodes[node_id])

        dfs(self.entry_node)
        order = list(reversed(postorder))
        # Unreachable nodes still take part in dataflow, after the rest
        for node_id in sorted(self.nodes):
            if node_id not in visited:
                order.append(self.nodes[node_id])
        return order

    # =========================================================================
    # Parameters
    # =========================================================================

    @property
    def self_name(self) -> Optional[str]:
        """Name of the receiver parameter, if this is an instance method"""
        if self.is_method and not self.is_static and self.params:
            return self.params[0][0].name
        return None

    def get_param_names(self) -> List[str]:
        """Get list of parameter names (receiver included)"""
        return [p.name for p, _ in self.params]

    def positional_params(self) -> List[str]:
        """Parameter names by call-site position (receiver excluded)"""
        names = self.get_param_names()
        if self.self_name is not None:
            return names[1:]
        return names

    def param_position(self, name: str) -> Optional[int]:
        """Call-site position of a parameter, or None"""
        params = self.positional_params()
        return params.index(name) if name in params else None


# =============================================================================
# Program
# =============================================================================

@dataclass
class Program:
    """
    A complete SIL program.

    Contains:
    - All procedures
    - Library specifications (for callees without a body)
    """

    # All procedures indexed by name
    procedures: Dict[str, Procedure] = field(default_factory=dict)

    # Library specifications for external functions
    library_specs: Dict[str, ProcSpec] = field(default_factory=dict)

    # Source file information
    source_files: List[str] = field(default_factory=list)

    def __str__(self) -> str:
        lines = [f"Program with {len(self.procedures)} procedures:"]
        for name in self.procedures:
            lines.append(f"  - {name}")
        return "\n".join(lines)

    # =========================================================================
    # Procedure management
    # =========================================================================

    def add_procedure(self, proc: Procedure) -> None:
        """Add a procedure to the program"""
        self.procedures[proc.name] = proc

    def get_procedure(self, name: str) -> Optional[Procedure]:
        """Get a procedure by name"""
        return self.procedures.get(name)

    def methods_of_class(self, class_name: str) -> List[Procedure]:
        """All methods of a class, in definition order"""
        return [p for p in self.procedures.values() if p.class_name == class_name]

    def classes(self) -> List[str]:
        result = []
        for proc in self.procedures.values():
            if proc.class_name and proc.class_name not in result:
                result.append(proc.class_name)
        return result

    # =========================================================================
    # Call resolution
    # =========================================================================

    def resolve_callee(self, call: Call, caller: Procedure) -> Optional[Procedure]:
        """
        Resolve the procedure a call invokes.

        - self.m(...) inside a method of C -> C.m
        - f(...) -> module function f
        - C(...) -> C.__init__
        Anything else (calls on other objects, library calls) is unresolved.
        """
        name = call.get_func_name()
        receiver = call.receiver

        if receiver is not None:
            if (isinstance(receiver, ExpVar) and caller.self_name is not None
                    and receiver.var.name == caller.self_name):
                return self.procedures.get(f"{caller.class_name}.{name}")
            return None

        proc = self.procedures.get(name)
        if proc is not None and not proc.is_method:
            return proc
        return self.procedures.get(f"{name}.__init__")

    # =========================================================================
    # Specification lookup
    # =========================================================================

    def get_spec(self, func_name: str) -> Optional[ProcSpec]:
        """
        Get specification for a library function.

        Looks up in order:
        1. Library specs (exact match)
        2. Library specs (method name match for var.method patterns)
        """
        spec = self.library_specs.get(func_name)
        if spec:
            return spec

        if '.' in func_name:
            method_name = func_name.split('.')[-1]
            for prefix in ['list', 'dict', 'set', 'str', 'bytes', 'object']:
                spec = self.library_specs.get(f"{prefix}.{method_name}")
                if spec:
                    return spec

        return None

    def get_call_spec(self, call: Call) -> Optional[ProcSpec]:
        """Get the library specification for a call site"""
        if call.receiver is not None:
            return self.get_spec(f"object.{call.get_func_name()}")
        return self.get_spec(call.get_func_name())
