"""
Python to handoff SIL Frontend.

This module translates Python source code to SIL using tree-sitter
for parsing. It handles:
- Module functions and class methods (the first parameter of an
  instance method is the receiver)
- Assignments, annotated declarations and augmented assignments
- Function calls, with gives-up operations recognized by name
- Control flow (if/elif/else, while, for, try, with, return, break,
  continue, raise)
- Collections and comprehensions (every referenced value is kept)
"""

from typing import Dict, List, Optional, Tuple, Any

try:
    import tree_sitter_python as tspython
    from tree_sitter import Language, Parser, Node as TSNode
    TREE_SITTER_AVAILABLE = True
except ImportError:
    TREE_SITTER_AVAILABLE = False
    TSNode = Any  # Type hint fallback

from handoff.sil.types import (
    PVar, Typ, Location,
    Exp, ExpVar, ExpConst, ExpBinOp, ExpUnOp,
    ExpFieldAccess, ExpIndex, ExpCall, ExpAggregate, ExpTernary,
)
from handoff.sil.instructions import (
    Instr, Declare, Assign, Store, Call, GivesUp, Prune, Return, PruneKind,
)
from handoff.sil.procedure import Procedure, Node, NodeKind, ProcSpec, Program
from handoff.sil.specs.actor_specs import GivesUpSpec, get_gives_up_specs, get_library_specs


_COLLECTIONS = ("list", "tuple", "set", "dictionary", "expression_list", "pattern_list",
                "tuple_pattern", "list_pattern")
_COMPREHENSIONS = ("list_comprehension", "set_comprehension", "dictionary_comprehension",
                   "generator_expression")
_PUNCTUATION = ("(", ")", "[", "]", "{", "}", ",", ":", "comment")


class PythonFrontend:
    """
    Translates Python source code to SIL.

    Usage:
        frontend = PythonFrontend()
        program = frontend.translate(source_code, "actors.py")

        for proc in program.procedures.values():
            print(proc)
    """

    def __init__(self, gives_up_specs: Dict[str, GivesUpSpec] = None,
                 library_specs: Dict[str, ProcSpec] = None):
        """
        Initialize the Python frontend.

        Args:
            gives_up_specs: Gives-up operations by name (defaults to GIVES_UP_SPECS)
            library_specs: Library callee specifications (defaults to LIBRARY_SPECS)
        """
        if not TREE_SITTER_AVAILABLE:
            raise ImportError(
                "tree-sitter and tree-sitter-python are required. "
                "Install with: pip install tree-sitter tree-sitter-python"
            )

        self.parser = Parser(Language(tspython.language()))
        self.gives_up_specs = gives_up_specs if gives_up_specs is not None else get_gives_up_specs()
        self.library_specs = library_specs if library_specs is not None else get_library_specs()

        # State during translation
        self._filename = "<unknown>"
        self._source = b""
        self._current_proc: Optional[Procedure] = None
        self._current_node: Optional[Node] = None
        self._current_class: Optional[str] = None
        self._exit_preds: List[int] = []
        self._loops: List[Tuple[int, Node]] = []
        self._temp_counter = 0

    def translate(self, source_code: str, filename: str = "<unknown>") -> Program:
        """
        Translate Python source code to SIL Program.

        Args:
            source_code: Python source code string
            filename: Source file name for error reporting

        Returns:
            SIL Program containing all translated procedures
        """
        self._filename = filename
        self._source = bytes(source_code, "utf8")
        self._temp_counter = 0

        tree = self.parser.parse(self._source)

        program = Program(library_specs=self.library_specs.copy())
        program.source_files.append(filename)

        self._translate_module(tree.root_node, program)

        return program

    def _translate_module(self, root: TSNode, program: Program) -> None:
        """Translate module-level definitions"""
        for child in root.children:
            definition = self._unwrap_decorated(child)
            if definition is None:
                continue
            if definition.type == "function_definition":
                proc = self._translate_function(definition, program=program)
                if proc:
                    program.add_procedure(proc)
            elif definition.type == "class_definition":
                self._translate_class(definition, program)

    def _unwrap_decorated(self, node: TSNode) -> Optional[TSNode]:
        if node.type in ("function_definition", "class_definition"):
            return node
        if node.type == "decorated_definition":
            for c in node.children:
                if c.type in ("function_definition", "class_definition"):
                    return c
        return None

    def _translate_class(self, node: TSNode, program: Program) -> None:
        """Translate class definition"""
        name_node = node.child_by_field_name("name")
        class_name = self._get_text(name_node) if name_node else "UnknownClass"

        self._current_class = class_name

        body_node = node.child_by_field_name("body")
        if body_node:
            for child in body_node.children:
                definition = self._unwrap_decorated(child)
                if definition is None or definition.type != "function_definition":
                    continue
                proc = self._translate_function(definition, is_method=True, program=program)
                if proc:
                    program.add_procedure(proc)

        self._current_class = None

    def _translate_function(self, node: TSNode, is_method: bool = False,
                            program: Program = None) -> Optional[Procedure]:
        """Translate function definition to SIL Procedure"""
        name_node = node.child_by_field_name("name")
        if not name_node:
            return None
        func_name = self._get_text(name_node)

        params = []
        params_node = node.child_by_field_name("parameters")
        if params_node:
            params = self._translate_parameters(params_node)

        proc = Procedure(
            name=f"{self._current_class}.{func_name}" if is_method else func_name,
            params=params,
            loc=self._get_location(node),
            is_method=is_method,
            class_name=self._current_class if is_method else None,
            is_constructor=is_method and func_name == "__init__",
        )

        # Check for static method decorator
        if is_method:
            parent = node.parent
            if parent and parent.type == "decorated_definition":
                for child in parent.children:
                    if child.type == "decorator":
                        decorator_text = self._get_text(child)
                        if "staticmethod" in decorator_text or "classmethod" in decorator_text:
                            proc.is_static = True

        saved = (self._current_proc, self._current_node, self._exit_preds, self._loops)
        self._current_proc = proc
        self._exit_preds = []
        self._loops = []

        entry = proc.new_node(NodeKind.ENTRY)
        proc.add_node(entry)
        proc.entry_node = entry.id
        self._current_node = entry

        # Translate body (pass program for nested functions)
        body_node = node.child_by_field_name("body")
        if body_node:
            self._translate_block(body_node, program=program)

        exit_node = proc.new_node(NodeKind.EXIT)
        proc.add_node(exit_node)
        proc.exit_node = exit_node.id

        if self._current_node:
            proc.connect(self._current_node.id, exit_node.id)
        for node_id in self._exit_preds:
            proc.connect(node_id, exit_node.id)

        self._current_proc, self._current_node, self._exit_preds, self._loops = saved
        return proc

    def _translate_parameters(self, node: TSNode) -> List[Tuple[PVar, Typ]]:
        """Translate function parameters"""
        params = []
        for child in node.children:
            if child.type == "identifier":
                params.append((PVar(self._get_text(child)), Typ.unknown_type()))

            elif child.type in ("typed_parameter", "default_parameter", "typed_default_parameter"):
                name_node = child.child_by_field_name("name")
                if name_node is None:
                    # typed_parameter holds its name as the first child
                    name_node = next((c for c in child.children if c.type == "identifier"), None)
                typ = Typ.unknown_type()
                type_node = child.child_by_field_name("type")
                if type_node:
                    typ = Typ.named(self._get_text(type_node))
                if name_node:
                    params.append((PVar(self._get_text(name_node)), typ))

            elif child.type in ("list_splat_pattern", "dictionary_splat_pattern"):
                # *args, **kwargs
                for c in child.children:
                    if c.type == "identifier":
                        params.append((PVar(self._get_text(c)), Typ.unknown_type()))

        return params

    # =========================================================================
    # Statements
    # =========================================================================

    def _translate_block(self, node: TSNode, program: Program = None) -> None:
        """Translate a block of statements"""
        for child in node.children:
            if child.type in ("function_definition", "decorated_definition"):
                # Nested functions become procedures of their own
                definition = self._unwrap_decorated(child)
                if program and definition is not None and definition.type == "function_definition":
                    saved_class = self._current_class
                    self._current_class = None
                    proc = self._translate_function(definition, program=program)
                    self._current_class = saved_class
                    if proc:
                        program.add_procedure(proc)
            else:
                self._translate_statement(child, program)

    def _translate_statement(self, node: TSNode, program: Program = None) -> None:
        """Translate a single statement"""
        if node.type == "expression_statement":
            self._translate_expression_statement(node)

        elif node.type == "assignment":
            self._translate_assignment(node)

        elif node.type == "augmented_assignment":
            self._translate_augmented_assignment(node)

        elif node.type == "return_statement":
            self._translate_return(node)

        elif node.type == "if_statement":
            self._translate_if(node, program)

        elif node.type == "while_statement":
            self._translate_while(node, program)

        elif node.type == "for_statement":
            self._translate_for(node, program)

        elif node.type == "try_statement":
            self._translate_try(node, program)

        elif node.type == "with_statement":
            self._translate_with(node, program)

        elif node.type == "raise_statement":
            self._end_path()

        elif node.type == "break_statement":
            if self._loops and self._current_node:
                self._current_proc.connect(self._current_node.id, self._loops[-1][1].id)
            self._current_node = None

        elif node.type == "continue_statement":
            if self._loops and self._current_node:
                self._current_proc.connect(self._current_node.id, self._loops[-1][0])
            self._current_node = None

    def _translate_expression_statement(self, node: TSNode) -> None:
        """Translate expression statement (usually a call or assignment)"""
        for child in node.children:
            child = self._unwrap(child)
            if child.type == "call":
                self._add_instr(self._translate_call(child, self._get_location(child)))

            elif child.type == "assignment":
                self._translate_assignment(child)

            elif child.type == "augmented_assignment":
                self._translate_augmented_assignment(child)

    def _translate_assignment(self, node: TSNode) -> None:
        """Translate assignment: target = value, target: T = value"""
        left = node.child_by_field_name("left")
        right = node.child_by_field_name("right")
        type_node = node.child_by_field_name("type")
        loc = self._get_location(node)

        if not left:
            return

        if right is not None and right.type == "assignment":
            # a = b = value: translate the inner assignment, then copy
            self._translate_assignment(right)
            inner_left = right.child_by_field_name("left")
            value = self._translate_expression(inner_left)
            self._assign_targets(left, value, loc)
            return

        if type_node is not None and left.type == "identifier":
            typ = Typ.named(self._get_text(type_node))
            init = self._translate_value(right, loc) if right is not None else None
            self._add_instr(Declare(loc, PVar(self._get_text(left)), typ, init))
            return

        if right is None:
            return

        right = self._unwrap(right)
        if self._is_pairwise(left, right):
            self._translate_pairwise(left, right, loc)
            return

        self._assign_value(left, right, loc)

    def _assign_value(self, left: TSNode, right: TSNode, loc: Location) -> None:
        right = self._unwrap(right)
        if left.type == "identifier" and right.type == "call":
            # x = func(...)
            self._add_instr(self._translate_call(right, loc, ret=self._get_text(left)))
            return

        value = self._translate_value(right, loc)
        self._assign_targets(left, value, loc)

    def _is_pairwise(self, left: TSNode, right: TSNode) -> bool:
        """a, b = x, y with matching arity and no starred elements"""
        if left.type not in _COLLECTIONS or right.type not in ("expression_list", "tuple", "list"):
            return False
        targets = [c for c in left.named_children if c.type != "comment"]
        values = [c for c in right.named_children if c.type != "comment"]
        if len(targets) != len(values):
            return False
        return not any(c.type in ("list_splat_pattern", "list_splat") for c in targets + values)

    def _translate_pairwise(self, left: TSNode, right: TSNode, loc: Location) -> None:
        targets = [c for c in left.named_children if c.type != "comment"]
        values = [c for c in right.named_children if c.type != "comment"]

        names = set()
        for target in targets:
            names.update(self._get_text(t) for t in self._targets(target))

        if not any(self._mentions(v, names) for v in values):
            for target, value in zip(targets, values):
                self._assign_value(target, value, loc)
            return

        # a, b = b, a: every value is read before any target is written
        temps = []
        for value in values:
            temp = self._new_temp()
            self._assign_value_to_temp(temp, value, loc)
            temps.append(ExpVar(PVar(temp)))
        for target, temp in zip(targets, temps):
            self._assign_targets(target, temp, loc)

    def _assign_value_to_temp(self, temp: str, value: TSNode, loc: Location) -> None:
        value = self._unwrap(value)
        if value.type == "call":
            self._add_instr(self._translate_call(value, loc, ret=temp))
        else:
            self._add_instr(Assign(loc, PVar(temp), self._translate_value(value, loc)))

    def _mentions(self, node: TSNode, names: set) -> bool:
        """Check if any identifier or access path below `node` is one of `names`"""
        if node.type in ("identifier", "attribute", "subscript") and self._get_text(node) in names:
            return True
        return any(self._mentions(c, names) for c in node.named_children)

    def _assign_targets(self, left: TSNode, value: Exp, loc: Location) -> None:
        targets = self._targets(left)
        if len(targets) > 1 and isinstance(value, ExpCall):
            # Evaluate the call once, then unpack
            temp = self._new_temp()
            self._add_instr(Assign(loc, PVar(temp), value))
            value = ExpVar(PVar(temp))

        for target in targets:
            if target.type == "identifier":
                self._add_instr(Assign(loc, PVar(self._get_text(target)), value))
            elif target.type in ("attribute", "subscript"):
                self._add_instr(Store(loc, self._translate_expression(target), value))

    def _targets(self, node: TSNode) -> List[TSNode]:
        """Flatten an assignment target (a, (b, c), *d) into simple targets"""
        if node.type in ("identifier", "attribute", "subscript"):
            return [node]
        if node.type in ("list_splat_pattern", "parenthesized_expression"):
            result = []
            for c in node.named_children:
                result.extend(self._targets(c))
            return result
        if node.type in _COLLECTIONS:
            result = []
            for c in node.named_children:
                result.extend(self._targets(c))
            return result
        return []

    def _translate_augmented_assignment(self, node: TSNode) -> None:
        """Translate augmented assignment: x += y"""
        left = node.child_by_field_name("left")
        right = node.child_by_field_name("right")
        op_node = node.child_by_field_name("operator")

        if not left or not right:
            return

        loc = self._get_location(node)

        # Get operator (+=, -=, *=, etc.)
        op = self._get_text(op_node) if op_node else "+="
        bin_op = op[:-1] if op.endswith("=") else "+"

        # Translate as: target = target op value
        left_exp = self._translate_expression(left)
        combined = ExpBinOp(bin_op, left_exp, self._translate_value(right, loc))

        if left.type == "identifier":
            self._add_instr(Assign(loc, PVar(self._get_text(left)), combined))
        elif left.type in ("attribute", "subscript"):
            self._add_instr(Store(loc, left_exp, combined))

    def _translate_return(self, node: TSNode) -> None:
        """Translate return statement"""
        loc = self._get_location(node)

        value_exp = None
        for child in node.named_children:
            value_exp = self._translate_value(child, loc)
            break

        self._add_instr(Return(loc, value_exp))
        self._end_path()

    def _end_path(self) -> None:
        """Current path leaves the procedure"""
        if self._current_node:
            self._exit_preds.append(self._current_node.id)
        self._current_node = None

    def _translate_if(self, node: TSNode, program: Program = None) -> None:
        """Translate if statement (elif clauses chain as nested ifs)"""
        proc = self._current_proc
        if not proc:
            return

        join_node = proc.new_node(NodeKind.JOIN)
        proc.add_node(join_node)

        clauses = [(node.child_by_field_name("condition"), node.child_by_field_name("consequence"),
                    self._get_location(node))]
        else_body = None
        for alternative in node.children_by_field_name("alternative"):
            if alternative.type == "elif_clause":
                clauses.append((alternative.child_by_field_name("condition"),
                                alternative.child_by_field_name("consequence"),
                                self._get_location(alternative)))
            elif alternative.type == "else_clause":
                else_body = self._block_of(alternative)

        for condition, consequence, loc in clauses:
            condition_exp = self._translate_expression(condition) if condition else ExpConst(True)
            before_node = self._current_node

            true_node = proc.new_node(NodeKind.NORMAL)
            proc.add_node(true_node)

            false_node = proc.new_node(NodeKind.NORMAL)
            proc.add_node(false_node)

            if before_node:
                before_node.add_instr(Prune(loc, condition_exp, True, PruneKind.IF_TRUE))
                proc.connect(before_node.id, true_node.id)

                before_node.add_instr(Prune(loc, condition_exp, False, PruneKind.IF_FALSE))
                proc.connect(before_node.id, false_node.id)

            self._current_node = true_node
            if consequence:
                self._translate_block(consequence, program)
            if self._current_node:
                proc.connect(self._current_node.id, join_node.id)

            self._current_node = false_node

        if else_body:
            self._translate_block(else_body, program)
        if self._current_node:
            proc.connect(self._current_node.id, join_node.id)

        self._current_node = join_node

    def _translate_while(self, node: TSNode, program: Program = None) -> None:
        """Translate while loop"""
        proc = self._current_proc
        if not proc:
            return

        loc = self._get_location(node)

        condition = node.child_by_field_name("condition")
        condition_exp = self._translate_expression(condition) if condition else ExpConst(True)

        before_node = self._current_node

        loop_head = proc.new_node(NodeKind.LOOP_HEAD)
        proc.add_node(loop_head)

        body_node = proc.new_node(NodeKind.NORMAL)
        proc.add_node(body_node)

        after_node = proc.new_node(NodeKind.NORMAL)
        proc.add_node(after_node)

        if before_node:
            proc.connect(before_node.id, loop_head.id)

        loop_head.add_instr(Prune(loc, condition_exp, True, PruneKind.WHILE_TRUE))
        proc.connect(loop_head.id, body_node.id)

        loop_head.add_instr(Prune(loc, condition_exp, False, PruneKind.WHILE_FALSE))
        proc.connect(loop_head.id, after_node.id)

        body = node.child_by_field_name("body")
        self._current_node = body_node
        self._loops.append((loop_head.id, after_node))
        if body:
            self._translate_block(body, program)
        self._loops.pop()

        # Back edge
        if self._current_node:
            proc.connect(self._current_node.id, loop_head.id)

        self._current_node = after_node

    def _translate_for(self, node: TSNode, program: Program = None) -> None:
        """Translate for loop (target = next(iterable) at the top of each iteration)"""
        proc = self._current_proc
        if not proc:
            return

        loc = self._get_location(node)

        left = node.child_by_field_name("left")
        right = node.child_by_field_name("right")
        iterable_exp = self._translate_expression(right) if right else ExpConst.null()

        before_node = self._current_node

        loop_head = proc.new_node(NodeKind.LOOP_HEAD)
        proc.add_node(loop_head)

        body_node = proc.new_node(NodeKind.NORMAL)
        proc.add_node(body_node)

        after_node = proc.new_node(NodeKind.NORMAL)
        proc.add_node(after_node)

        if before_node:
            proc.connect(before_node.id, loop_head.id)

        cond = ExpConst(True)
        loop_head.add_instr(Prune(loc, cond, True, PruneKind.FOR_ENTER))
        proc.connect(loop_head.id, body_node.id)

        loop_head.add_instr(Prune(loc, cond, False, PruneKind.FOR_EXIT))
        proc.connect(loop_head.id, after_node.id)

        self._current_node = body_node
        if left is not None:
            self._assign_targets(left, ExpCall(ExpConst("next"), [iterable_exp]), loc)

        body = node.child_by_field_name("body")
        self._loops.append((loop_head.id, after_node))
        if body:
            self._translate_block(body, program)
        self._loops.pop()

        if self._current_node:
            proc.connect(self._current_node.id, loop_head.id)

        self._current_node = after_node

    def _translate_try(self, node: TSNode, program: Program = None) -> None:
        """
        Translate try/except/else/finally.

        Each handler may start either before the try body or after it;
        all paths meet before the finally block.
        """
        proc = self._current_proc
        if not proc:
            return

        before_node = self._current_node

        body = node.child_by_field_name("body")
        if body:
            self._translate_block(body, program)

        handlers = [c for c in node.children if c.type in ("except_clause", "except_group_clause")]
        else_clause = next((c for c in node.children if c.type == "else_clause"), None)
        finally_clause = next((c for c in node.children if c.type == "finally_clause"), None)

        if else_clause is not None:
            else_body = self._block_of(else_clause)
            if else_body:
                self._translate_block(else_body, program)

        if not handlers:
            if finally_clause is not None:
                finally_body = self._block_of(finally_clause)
                if finally_body:
                    self._translate_block(finally_body, program)
            return

        body_end = self._current_node
        join_node = proc.new_node(NodeKind.JOIN)
        proc.add_node(join_node)
        if body_end:
            proc.connect(body_end.id, join_node.id)

        for handler in handlers:
            handler_node = proc.new_node(NodeKind.EXCEPTION)
            proc.add_node(handler_node)
            for pred in (before_node, body_end):
                if pred:
                    proc.connect(pred.id, handler_node.id)
            self._current_node = handler_node
            handler_body = self._block_of(handler)
            if handler_body:
                self._translate_block(handler_body, program)
            if self._current_node:
                proc.connect(self._current_node.id, join_node.id)

        self._current_node = join_node

        if finally_clause is not None:
            finally_body = self._block_of(finally_clause)
            if finally_body:
                self._translate_block(finally_body, program)

    def _translate_with(self, node: TSNode, program: Program = None) -> None:
        """Translate with statement: with expr as var: body"""
        loc = self._get_location(node)

        for child in node.children:
            if child.type != "with_clause":
                continue
            for item in child.named_children:
                if item.type != "with_item":
                    continue
                value = item.child_by_field_name("value") or (
                    item.named_children[0] if item.named_children else None)
                if value is None:
                    continue

                alias = None
                if value.type == "as_pattern":
                    expr = value.named_children[0] if value.named_children else None
                    for as_child in value.named_children[1:]:
                        if as_child.type == "as_pattern_target":
                            targets = [t for t in as_child.named_children]
                            alias = targets[0] if targets else None
                    value = expr
                if value is None:
                    continue

                value = self._unwrap(value)
                if alias is not None and alias.type == "identifier" and value.type == "call":
                    self._add_instr(self._translate_call(value, loc, ret=self._get_text(alias)))
                elif alias is not None:
                    self._assign_targets(alias, self._translate_value(value, loc), loc)
                elif value.type == "call":
                    self._add_instr(self._translate_call(value, loc))

        body = node.child_by_field_name("body")
        if body:
            self._translate_block(body, program)

    # =========================================================================
    # Calls
    # =========================================================================

    def _translate_call(self, node: TSNode, loc: Location, ret: Optional[str] = None) -> Call:
        """Translate a call into a Call or, for hand-off operations, a GivesUp"""
        func_name, receiver = self._get_call_target(node)
        arguments = self._get_call_arguments(node)
        # Hand-offs among the arguments run first, as their own instructions
        args = [self._translate_value(a, loc) for a, _ in arguments]
        ret_var = PVar(ret) if ret else None

        spec = self.gives_up_specs.get(func_name)
        if spec is not None:
            positional = [i for i, (_, kw) in enumerate(arguments) if kw is None]
            given_up = [positional[p] for p in spec.given_up_positions(len(positional))]
            given_up += [i for i, (_, kw) in enumerate(arguments)
                         if kw is not None and spec.hands_off_keyword(kw)]
            return GivesUp(loc, ret_var, ExpConst(func_name), args, receiver,
                           given_up, spec.description)
        return Call(loc, ret_var, ExpConst(func_name), args, receiver)

    def _translate_value(self, node: TSNode, loc: Location) -> Exp:
        """
        Translate a right-hand side. A hand-off call is emitted as its own
        GivesUp instruction and its result read from a temporary.
        """
        node = self._unwrap(node)
        if node.type == "call":
            func_name, _ = self._get_call_target(node)
            if func_name in self.gives_up_specs:
                temp = self._new_temp()
                self._add_instr(self._translate_call(node, loc, ret=temp))
                return ExpVar(PVar(temp))
        return self._translate_expression(node)

    def _get_call_target(self, call_node: TSNode) -> Tuple[str, Optional[Exp]]:
        """Get (final name, receiver expression) of the called function"""
        func = call_node.child_by_field_name("function")
        if func is None:
            return "", None
        if func.type == "attribute":
            obj = func.child_by_field_name("object")
            attr = func.child_by_field_name("attribute")
            return self._get_text(attr), self._translate_expression(obj)
        return self._get_text(func), None

    def _get_call_args(self, call_node: TSNode) -> List[TSNode]:
        """Get argument nodes from call"""
        return [node for node, _ in self._get_call_arguments(call_node)]

    def _get_call_arguments(self, call_node: TSNode) -> List[Tuple[TSNode, Optional[str]]]:
        """
        Get (value node, keyword) for each argument in source order.
        The keyword is None for positional arguments and `**` for a
        dictionary splat.
        """
        args = []
        args_node = call_node.child_by_field_name("arguments")
        if args_node is None:
            return args
        if args_node.type == "generator_expression":
            return [(args_node, None)]
        for child in args_node.children:
            if child.type in _PUNCTUATION:
                continue
            if child.type == "keyword_argument":
                name = child.child_by_field_name("name")
                value = child.child_by_field_name("value")
                if value:
                    args.append((value, self._get_text(name)))
            elif child.type == "list_splat":
                args.extend((c, None) for c in child.named_children[:1])
            elif child.type == "dictionary_splat":
                args.extend((c, "**") for c in child.named_children[:1])
            else:
                args.append((child, None))
        return args

    # =========================================================================
    # Expressions
    # =========================================================================

    def _translate_expression(self, node: TSNode) -> Exp:
        """Translate expression to SIL Exp"""
        if node is None:
            return ExpConst.null()

        node = self._unwrap(node)

        if node.type == "identifier":
            return ExpVar(PVar(self._get_text(node)))

        elif node.type == "integer":
            text = self._get_text(node)
            try:
                return ExpConst(int(text, 0))
            except ValueError:
                return ExpConst(0)

        elif node.type == "float":
            try:
                return ExpConst(float(self._get_text(node)))
            except ValueError:
                return ExpConst(0.0)

        elif node.type in ("string", "concatenated_string"):
            # f-string interpolations produce a fresh string
            return ExpConst(self._get_text(node))

        elif node.type in ("true", "false"):
            return ExpConst(node.type == "true")

        elif node.type == "none":
            return ExpConst.null()

        elif node.type in ("binary_operator", "boolean_operator"):
            left = node.child_by_field_name("left")
            right = node.child_by_field_name("right")
            op_node = node.child_by_field_name("operator")
            op = self._get_text(op_node) if op_node else "+"
            return ExpBinOp(op, self._translate_expression(left), self._translate_expression(right))

        elif node.type == "comparison_operator":
            children = node.named_children
            if len(children) >= 2:
                return ExpBinOp("cmp", self._translate_expression(children[0]),
                                self._translate_expression(children[1]))
            return ExpConst(True)

        elif node.type in ("unary_operator", "not_operator"):
            operand = node.child_by_field_name("argument")
            op = "not" if node.type == "not_operator" else "-"
            op_node = node.child_by_field_name("operator")
            if op_node:
                op = self._get_text(op_node)
            return ExpUnOp(op, self._translate_expression(operand))

        elif node.type == "attribute":
            obj = node.child_by_field_name("object")
            attr = node.child_by_field_name("attribute")
            return ExpFieldAccess(self._translate_expression(obj), self._get_text(attr) if attr else "")

        elif node.type == "subscript":
            value = node.child_by_field_name("value")
            subscript = node.child_by_field_name("subscript")
            return ExpIndex(self._translate_expression(value), self._translate_expression(subscript))

        elif node.type == "call":
            func_name, receiver = self._get_call_target(node)
            args = [self._translate_expression(a) for a in self._get_call_args(node)]
            return ExpCall(ExpConst(func_name), args, receiver)

        elif node.type in _COLLECTIONS:
            elements = []
            for child in node.named_children:
                if child.type == "pair":
                    elements.append(self._translate_expression(child.child_by_field_name("key")))
                    elements.append(self._translate_expression(child.child_by_field_name("value")))
                else:
                    elements.append(self._translate_expression(child))
            return ExpAggregate(elements)

        elif node.type == "conditional_expression":
            # value_if_true if condition else value_if_false
            parts = node.named_children
            if len(parts) == 3:
                return ExpTernary(self._translate_expression(parts[1]),
                                  self._translate_expression(parts[0]),
                                  self._translate_expression(parts[2]))

        elif node.type in ("list_splat", "dictionary_splat", "keyword_argument"):
            inner = node.child_by_field_name("value")
            if inner is None and node.named_children:
                inner = node.named_children[-1]
            return self._translate_expression(inner)

        elif node.type == "lambda":
            return ExpConst.null()

        # Comprehensions and anything else: keep every value referenced inside
        return ExpAggregate(self._collect_references(node))

    def _collect_references(self, node: TSNode) -> List[Exp]:
        """Outermost identifiers, attributes and subscripts below a node"""
        refs = []
        for child in node.named_children:
            if child.type in ("identifier", "attribute", "subscript", "call"):
                refs.append(self._translate_expression(child))
            elif child.type not in ("string", "integer", "float", "true", "false", "none",
                                    "comment", "lambda"):
                refs.extend(self._collect_references(child))
        return refs

    def _unwrap(self, node: TSNode) -> TSNode:
        """Strip await and parentheses"""
        while node is not None and node.type in ("await", "parenthesized_expression"):
            inner = node.named_children
            if not inner:
                break
            node = inner[0]
        return node

    # =========================================================================
    # Helpers
    # =========================================================================

    def _block_of(self, node: TSNode) -> Optional[TSNode]:
        """Body block of a clause"""
        body = node.child_by_field_name("body")
        if body is not None:
            return body
        return next((c for c in node.children if c.type == "block"), None)

    def _get_text(self, node: TSNode) -> str:
        """Get text of a node"""
        if node is None:
            return ""
        return self._source[node.start_byte:node.end_byte].decode("utf8", errors="replace")

    def _get_location(self, node: TSNode) -> Location:
        """Get source location for a node"""
        return Location(
            file=self._filename,
            line=node.start_point[0] + 1,
            column=node.start_point[1],
            end_line=node.end_point[0] + 1,
            end_column=node.end_point[1]
        )

    def _new_temp(self) -> str:
        """Create a new unique temporary name"""
        name = f"__tmp_{self._temp_counter}"
        self._temp_counter += 1
        return name

    def _add_instr(self, instr: Instr) -> None:
        """Add instruction to current node"""
        if self._current_node:
            self._current_node.add_instr(instr)
