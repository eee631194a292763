"""
Core type definitions for handoff SIL.

This module defines the fundamental types used throughout the SIL:
- Program variables and symbols
- Source locations for error reporting
- Type representations
- Expression AST nodes
"""

from dataclasses import dataclass
from typing import List, Optional, Union, Any
from enum import Enum, auto


# =============================================================================
# Variables and Symbols
# =============================================================================

@dataclass(frozen=True)
class PVar:
    """
    Program variable - a variable from the source code.

    These correspond directly to variables in the analyzed program.

    Example: self, event, payload
    """
    name: str

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"PVar({self.name!r})"


class SymbolKind(Enum):
    """What a resolved symbol denotes"""
    FIELD = auto()       # Persists across handler invocations
    LOCAL = auto()       # Invocation-scoped
    PARAMETER = auto()   # Invocation-scoped, bound at entry


@dataclass(frozen=True)
class Symbol:
    """
    Resolved symbol - an opaque, hashable handle.

    Fields are owned by a class, locals and parameters by a procedure.
    Two symbols are the same only if name, kind and owner all match.
    """
    name: str
    kind: SymbolKind
    owner: str = ""

    def __str__(self) -> str:
        if self.kind == SymbolKind.FIELD:
            return f"{self.owner}.{self.name}" if self.owner else self.name
        return self.name

    def __repr__(self) -> str:
        return f"Symbol({self.name!r}, {self.kind.name}, {self.owner!r})"

    @property
    def is_field(self) -> bool:
        return self.kind == SymbolKind.FIELD


@dataclass(frozen=True)
class Location:
    """
    Source location for error reporting.

    Tracks where in the analyzed source code an instruction originated.
    """
    file: str
    line: int
    column: int = 0
    end_line: Optional[int] = None
    end_column: Optional[int] = None

    def __str__(self) -> str:
        if self.column:
            return f"{self.file}:{self.line}:{self.column}"
        return f"{self.file}:{self.line}"

    def __repr__(self) -> str:
        return f"Location({self.file!r}, {self.line}, {self.column})"

    @classmethod
    def unknown(cls) -> 'Location':
        """Create an unknown location"""
        return cls("<unknown>", 0)


# =============================================================================
# Types
# =============================================================================

class TypeKind(Enum):
    """Basic type kinds"""
    INT = auto()
    BOOL = auto()
    STRING = auto()
    LIST = auto()
    DICT = auto()
    CLASS = auto()
    NONE = auto()
    UNKNOWN = auto()


@dataclass
class Typ:
    """Type representation (annotations are kept by name only)"""
    kind: TypeKind
    name: Optional[str] = None

    def __str__(self) -> str:
        if self.name:
            return self.name
        return self.kind.name.lower()

    @classmethod
    def unknown_type(cls) -> 'Typ':
        return cls(TypeKind.UNKNOWN)

    @classmethod
    def named(cls, name: str) -> 'Typ':
        return cls(TypeKind.CLASS, name=name)


# =============================================================================
# Expressions
# =============================================================================

@dataclass
class Exp:
    """Base class for expressions"""

    def __str__(self) -> str:
        return "<exp>"


@dataclass
class ExpVar(Exp):
    """Variable reference"""
    var: PVar

    def __str__(self) -> str:
        return str(self.var)

    def __repr__(self) -> str:
        return f"ExpVar({self.var!r})"


@dataclass
class ExpConst(Exp):
    """
    Constant value.

    Includes integers, floats, strings, booleans, and None/null.
    """
    value: Union[int, float, str, bool, None]

    def __str__(self) -> str:
        if self.value is None:
            return "None"
        if isinstance(self.value, str):
            escaped = self.value.replace('\\', '\\\\').replace('"', '\\"')
            if len(escaped) > 50:
                escaped = escaped[:47] + "..."
            return f'"{escaped}"'
        return str(self.value)

    def __repr__(self) -> str:
        return f"ExpConst({self.value!r})"

    @classmethod
    def null(cls) -> 'ExpConst':
        return cls(None)


@dataclass
class ExpBinOp(Exp):
    """Binary operation (arithmetic, comparison, logical)"""
    op: str
    left: Exp
    right: Exp

    def __str__(self) -> str:
        return f"({self.left} {self.op} {self.right})"

    def __repr__(self) -> str:
        return f"ExpBinOp({self.op!r}, {self.left!r}, {self.right!r})"


@dataclass
class ExpUnOp(Exp):
    """Unary operation"""
    op: str
    operand: Exp

    def __str__(self) -> str:
        return f"{self.op}({self.operand})"

    def __repr__(self) -> str:
        return f"ExpUnOp({self.op!r}, {self.operand!r})"


@dataclass
class ExpFieldAccess(Exp):
    """Attribute access: base.field_name"""
    base: Exp
    field_name: str

    def __str__(self) -> str:
        return f"{self.base}.{self.field_name}"

    def __repr__(self) -> str:
        return f"ExpFieldAccess({self.base!r}, {self.field_name!r})"


@dataclass
class ExpIndex(Exp):
    """Subscript access: base[index]"""
    base: Exp
    index: Exp

    def __str__(self) -> str:
        return f"{self.base}[{self.index}]"

    def __repr__(self) -> str:
        return f"ExpIndex({self.base!r}, {self.index!r})"


@dataclass
class ExpCall(Exp):
    """
    Call expression nested inside another expression or statement.

    Different from the Call instruction - this is for f(g(x)) and for
    event constructions passed to a gives-up operation.
    """
    func: Exp
    args: List[Exp]
    receiver: Optional[Exp] = None

    def __str__(self) -> str:
        args_str = ", ".join(str(a) for a in self.args)
        if self.receiver is not None:
            return f"{self.receiver}.{self.func}({args_str})"
        return f"{self.func}({args_str})"

    def __repr__(self) -> str:
        return f"ExpCall({self.func!r}, {self.args!r})"

    def get_func_name(self) -> str:
        """Get the bare function name"""
        if isinstance(self.func, ExpVar):
            return self.func.var.name
        if isinstance(self.func, ExpConst) and isinstance(self.func.value, str):
            return self.func.value
        return str(self.func)


@dataclass
class ExpAggregate(Exp):
    """
    Collection display or comprehension: [a, b], (a, b), {k: v}.

    Holds every element whose value may be stored in the collection.
    """
    elements: List[Exp]

    def __str__(self) -> str:
        return "[" + ", ".join(str(e) for e in self.elements) + "]"

    def __repr__(self) -> str:
        return f"ExpAggregate({self.elements!r})"


@dataclass
class ExpTernary(Exp):
    """Conditional expression: true_exp if condition else false_exp"""
    condition: Exp
    true_exp: Exp
    false_exp: Exp

    def __str__(self) -> str:
        return f"({self.true_exp} if {self.condition} else {self.false_exp})"

    def __repr__(self) -> str:
        return f"ExpTernary({self.condition!r}, {self.true_exp!r}, {self.false_exp!r})"


# =============================================================================
# Helper functions
# =============================================================================

def var(name: str) -> ExpVar:
    """Create a variable expression from a name"""
    return ExpVar(PVar(name))


def const(value: Any) -> ExpConst:
    """Create a constant expression"""
    return ExpConst(value)


def field_of(base: Union[Exp, str], name: str) -> ExpFieldAccess:
    """Create a field access expression (`field_of("self", "f")` is self.f)"""
    if isinstance(base, str):
        base = var(base)
    return ExpFieldAccess(base, name)


def call_exp(func: str, *args: Exp, receiver: Optional[Exp] = None) -> ExpCall:
    """Create a call expression"""
    return ExpCall(ExpConst(func), list(args), receiver)
