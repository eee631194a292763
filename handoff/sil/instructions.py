"""
SIL instruction definitions.

This module defines the instructions that the ownership analysis walks:

- Declare: Local declaration with optional initializer (x: T = e)
- Assign: Local write (x = e)
- Store: Field or element write (self.f = e, a[i] = e)
- Call: Function/method call or object construction
- GivesUp: A call that hands off some of its arguments
- Prune: Branch assumption
- Return: Procedure return
"""

from dataclasses import dataclass, field
from typing import List, Optional
from enum import Enum, auto

from .types import PVar, Exp, ExpVar, ExpConst, Typ, Location


# =============================================================================
# Enumerations
# =============================================================================

class PruneKind(Enum):
    """Kind of prune instruction (what control flow construct it came from)"""
    IF_TRUE = auto()      # True branch of if statement
    IF_FALSE = auto()     # False branch of if statement
    WHILE_TRUE = auto()   # While loop body
    WHILE_FALSE = auto()  # While loop exit
    FOR_ENTER = auto()    # For loop body
    FOR_EXIT = auto()     # For loop exit


# =============================================================================
# Base Instruction
# =============================================================================

@dataclass
class Instr:
    """
    Base class for all SIL instructions.

    Every instruction has a source location for error reporting.
    """
    loc: Location

    def __str__(self) -> str:
        return "<instr>"


# =============================================================================
# Writes
# =============================================================================

@dataclass
class Declare(Instr):
    """
    Local declaration: var: typ = init

    The initializer is optional; a declaration without one only
    introduces the name.
    """
    var: PVar
    typ: Typ
    init: Optional[Exp] = None

    def __str__(self) -> str:
        if self.init is not None:
            return f"{self.var}: {self.typ} = {self.init}"
        return f"{self.var}: {self.typ}"


@dataclass
class Assign(Instr):
    """
    Direct assignment to a local or parameter: id = exp
    """
    id: PVar                # Destination
    exp: Exp                # Source expression

    def __str__(self) -> str:
        return f"{self.id} = {self.exp}"


@dataclass
class Store(Instr):
    """
    Store through an access path: addr = value

    `addr` is an ExpFieldAccess (self.f, a.b) or an ExpIndex (a[i]).
    Writing `self.f` replaces field f; writing `a.b` or `a[i]` only
    mutates whatever `a` refers to.
    """
    addr: Exp               # Destination access path
    value: Exp              # Value to store

    def __str__(self) -> str:
        return f"{self.addr} = {self.value}"


# =============================================================================
# Control Flow Instructions
# =============================================================================

@dataclass
class Prune(Instr):
    """
    Conditional prune: assume(condition)

    For an if statement:
        if x > 0: A
        else: B

    Becomes:
        Node1: prune(x > 0, true)  -> A
        Node2: prune(x > 0, false) -> B
    """
    condition: Exp          # Condition to assume
    is_true_branch: bool    # True = assume condition, False = assume negation
    kind: PruneKind = PruneKind.IF_TRUE

    def __str__(self) -> str:
        branch = "true" if self.is_true_branch else "false"
        return f"prune({self.condition}, {branch})"


@dataclass
class Return(Instr):
    """Return from procedure"""
    value: Optional[Exp] = None

    def __str__(self) -> str:
        if self.value is not None:
            return f"return {self.value}"
        return "return"


# =============================================================================
# Function Calls
# =============================================================================

@dataclass
class Call(Instr):
    """
    Function call: ret = receiver.func(args)

    Object construction (Event(payload)) is a Call whose function name
    is the class name.
    """
    ret: Optional[PVar]                # Return variable (None when discarded)
    func: Exp                          # Function name
    args: List[Exp]                    # Arguments
    receiver: Optional[Exp] = None     # Object receiver for method calls

    def __str__(self) -> str:
        args_str = ", ".join(str(a) for a in self.args)
        call_str = f"{self.get_full_name()}({args_str})"
        if self.ret is not None:
            return f"{self.ret} = {call_str}"
        return call_str

    def get_func_name(self) -> str:
        """Get the function name as a string"""
        if isinstance(self.func, ExpVar):
            return str(self.func.var)
        if isinstance(self.func, ExpConst) and isinstance(self.func.value, str):
            return self.func.value
        return str(self.func)

    def get_full_name(self) -> str:
        """Get full qualified name including receiver"""
        if self.receiver is not None:
            return f"{self.receiver}.{self.get_func_name()}"
        return self.get_func_name()


@dataclass
class GivesUp(Call):
    """
    Gives-up call: a call that hands the arguments at `given_up` to a
    concurrently scheduled entity (an actor send, a queue put, an
    executor submit).

    After this instruction the sender must no longer use those values.
    """
    given_up: List[int] = field(default_factory=list)
    description: str = ""

    def __str__(self) -> str:
        return f"gives_up[{', '.join(str(i) for i in self.given_up)}] {super().__str__()}"

    def given_up_args(self) -> List[Exp]:
        """Arguments handed off by this call"""
        return [self.args[i] for i in self.given_up if 0 <= i < len(self.args)]


# =============================================================================
# Instruction builders
# =============================================================================

def mk_declare(name: str, init: Optional[Exp] = None, typ: Optional[Typ] = None,
               loc: Optional[Location] = None) -> Declare:
    """Create a declaration"""
    return Declare(loc or Location.unknown(), PVar(name), typ or Typ.unknown_type(), init)


def mk_assign(name: str, exp: Exp, loc: Optional[Location] = None) -> Assign:
    """Create an assignment to a local"""
    return Assign(loc or Location.unknown(), PVar(name), exp)


def mk_store(addr: Exp, value: Exp, loc: Optional[Location] = None) -> Store:
    """Create a store through an access path"""
    return Store(loc or Location.unknown(), addr, value)


def mk_call(func: str, args: List[Exp], ret: Optional[str] = None,
            receiver: Optional[Exp] = None, loc: Optional[Location] = None) -> Call:
    """Create a call instruction"""
    return Call(loc or Location.unknown(), PVar(ret) if ret else None,
                ExpConst(func), list(args), receiver)


def mk_gives_up(func: str, args: List[Exp], given_up: List[int],
                receiver: Optional[Exp] = None, ret: Optional[str] = None,
                loc: Optional[Location] = None) -> GivesUp:
    """Create a gives-up call"""
    return GivesUp(loc or Location.unknown(), PVar(ret) if ret else None,
                   ExpConst(func), list(args), receiver, list(given_up))


def mk_return(value: Optional[Exp] = None, loc: Optional[Location] = None) -> Return:
    """Create a return instruction"""
    return Return(loc or Location.unknown(), value)
