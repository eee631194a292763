"""
Tests for the Python to SIL frontend.
"""

import pytest

# Check if tree-sitter is available
try:
    import tree_sitter_python
    TREE_SITTER_AVAILABLE = True
except ImportError:
    TREE_SITTER_AVAILABLE = False


# Skip all tests if tree-sitter not available
pytestmark = pytest.mark.skipif(
    not TREE_SITTER_AVAILABLE,
    reason="tree-sitter-python not installed"
)


def translate(code: str):
    from handoff.sil.frontends.python_frontend import PythonFrontend
    return PythonFrontend().translate(code, "actors.py")


def instrs_of(proc, kind=None):
    result = []
    for _, instr in proc.iter_statements():
        if kind is None or isinstance(instr, kind):
            result.append(instr)
    return result


class TestDefinitions:
    """Functions, classes and methods"""

    def test_module_function(self):
        """Test translating a simple function"""
        program = translate("""
def hello(name, greeting="Hello"):
    message = greeting + name
    return message
""")
        assert "hello" in program.procedures
        proc = program.procedures["hello"]
        assert proc.get_param_names() == ["name", "greeting"]
        assert not proc.is_method
        assert program.source_files == ["actors.py"]

    def test_class_methods(self):
        """Methods are named Class.method and take self as receiver"""
        program = translate("""
class Pinger:
    def __init__(self, target):
        self.target = target

    def on_pong(self, event: Pong):
        self.count += 1

    @staticmethod
    def build(config):
        return Pinger(config)
""")
        assert set(program.procedures) == {"Pinger.__init__", "Pinger.on_pong", "Pinger.build"}

        init = program.procedures["Pinger.__init__"]
        assert init.is_constructor
        assert init.class_name == "Pinger"
        assert init.self_name == "self"

        on_pong = program.procedures["Pinger.on_pong"]
        assert on_pong.positional_params() == ["event"]
        assert str(on_pong.params[1][1]) == "Pong"

        build = program.procedures["Pinger.build"]
        assert build.is_static
        assert build.self_name is None

    def test_nested_function(self):
        program = translate("""
def outer(x):
    def inner(y):
        return y
    return inner(x)
""")
        assert "outer" in program.procedures
        assert "inner" in program.procedures

    def test_library_specs_attached(self):
        program = translate("def f():\n    pass\n")
        assert program.get_spec("len") is not None


class TestStatements:
    """Assignments, stores and calls"""

    def test_field_store_and_local_assign(self):
        from handoff.sil.instructions import Assign, Store
        from handoff.sil.types import ExpFieldAccess

        program = translate("""
class A:
    def m(self, x):
        y = x
        self.f = y
""")
        proc = program.procedures["A.m"]
        assigns = instrs_of(proc, Assign)
        stores = instrs_of(proc, Store)
        assert [str(a) for a in assigns] == ["y = x"]
        assert len(stores) == 1
        assert isinstance(stores[0].addr, ExpFieldAccess)
        assert stores[0].addr.field_name == "f"

    def test_call_with_result(self):
        from handoff.sil.instructions import Call

        program = translate("""
def f(items):
    n = len(items)
""")
        calls = instrs_of(program.procedures["f"], Call)
        assert len(calls) == 1
        assert calls[0].ret.name == "n"
        assert calls[0].get_func_name() == "len"

    def test_annotated_declaration(self):
        from handoff.sil.instructions import Declare

        program = translate("""
def f(items):
    first: Item = items[0]
""")
        decls = instrs_of(program.procedures["f"], Declare)
        assert len(decls) == 1
        assert decls[0].var.name == "first"
        assert str(decls[0].typ) == "Item"

    def test_tuple_unpacking(self):
        from handoff.sil.instructions import Assign

        program = translate("""
def f(pair):
    a, b = pair
""")
        names = [a.id.name for a in instrs_of(program.procedures["f"], Assign)]
        assert names == ["a", "b"]

    def test_tuple_assignment_is_pairwise(self):
        """a, b = x, y binds each target to its own value"""
        from handoff.sil.instructions import Assign

        program = translate("""
class A:
    def m(self):
        a, b = self.payload, self.other
""")
        assigns = instrs_of(program.procedures["A.m"], Assign)
        assert [str(a) for a in assigns] == ["a = self.payload", "b = self.other"]

    def test_swap_reads_before_writing(self):
        from handoff.sil.instructions import Assign

        program = translate("""
def f(a, b):
    a, b = b, a
""")
        assigns = instrs_of(program.procedures["f"], Assign)
        assert [str(a) for a in assigns] == [
            "__tmp_0 = b", "__tmp_1 = a", "a = __tmp_0", "b = __tmp_1",
        ]

    def test_starred_unpacking_keeps_whole_value(self):
        from handoff.sil.instructions import Assign

        program = translate("""
def f(items):
    first, *rest = items
""")
        assigns = instrs_of(program.procedures["f"], Assign)
        assert [str(a) for a in assigns] == ["first = items", "rest = items"]

    def test_augmented_assignment(self):
        from handoff.sil.instructions import Store
        from handoff.sil.types import ExpBinOp

        program = translate("""
class A:
    def m(self, n):
        self.total += n
""")
        stores = instrs_of(program.procedures["A.m"], Store)
        assert len(stores) == 1
        assert isinstance(stores[0].value, ExpBinOp)
        assert stores[0].value.op == "+"


class TestGivesUp:
    """Recognition of hand-off operations"""

    def test_send_is_gives_up(self):
        from handoff.sil.instructions import GivesUp
        from handoff.sil.types import ExpCall

        program = translate("""
class Pinger:
    def on_tick(self):
        self.send(self.target, Ping(self.payload))
""")
        gives_up = instrs_of(program.procedures["Pinger.on_tick"], GivesUp)
        assert len(gives_up) == 1
        handed_off = gives_up[0].given_up_args()
        assert len(handed_off) == 1
        assert isinstance(handed_off[0], ExpCall)
        assert handed_off[0].get_func_name() == "Ping"

    def test_queue_put(self):
        from handoff.sil.instructions import GivesUp

        program = translate("""
def produce(queue, job):
    queue.put(job)
""")
        gives_up = instrs_of(program.procedures["produce"], GivesUp)
        assert len(gives_up) == 1
        assert [str(a) for a in gives_up[0].given_up_args()] == ["job"]

    def test_executor_submit_varargs(self):
        from handoff.sil.instructions import GivesUp

        program = translate("""
def run(pool, a, b):
    future = pool.submit(work, a, b)
""")
        gives_up = instrs_of(program.procedures["run"], GivesUp)
        assert len(gives_up) == 1
        assert gives_up[0].given_up == [1, 2]
        assert gives_up[0].ret.name == "future"

    def test_nested_gives_up_is_hoisted(self):
        """A hand-off inside an expression becomes its own instruction"""
        from handoff.sil.instructions import GivesUp, Call

        program = translate("""
def f(actor, msg):
    result = wrap(actor.ask(msg))
""")
        proc = program.procedures["f"]
        gives_up = instrs_of(proc, GivesUp)
        assert len(gives_up) == 1
        assert gives_up[0].ret.name.startswith("__tmp_")
        wrap = [c for c in instrs_of(proc, Call) if c.get_func_name() == "wrap"]
        assert wrap[0].ret.name == "result"
        assert str(wrap[0].args[0]) == gives_up[0].ret.name

    def test_keyword_arguments(self):
        """Hand-offs by keyword follow the keyword name, not source order"""
        from handoff.sil.instructions import GivesUp

        program = translate("""
def produce(queue, pool, job, wait, extra):
    queue.put(block=wait, item=job)
    queue.put(job, timeout=wait)
    pool.submit(work, job, retries=extra)
""")
        gives_up = instrs_of(program.procedures["produce"], GivesUp)
        handed_off = [[str(a) for a in g.given_up_args()] for g in gives_up]
        assert handed_off == [["job"], ["job"], ["job", "extra"]]

    def test_awaited_hand_off(self):
        from handoff.sil.instructions import GivesUp

        program = translate("""
class Producer:
    async def on_item(self):
        await self.queue.put(self.pending)
""")
        gives_up = instrs_of(program.procedures["Producer.on_item"], GivesUp)
        assert len(gives_up) == 1
        assert [str(a) for a in gives_up[0].given_up_args()] == ["self.pending"]

    def test_custom_catalog(self):
        from handoff.sil.frontends.python_frontend import PythonFrontend
        from handoff.sil.instructions import GivesUp
        from handoff.sil.specs import get_gives_up_specs, parse_gives_up

        frontend = PythonFrontend(gives_up_specs=get_gives_up_specs([parse_gives_up("dispatch:1")]))
        program = frontend.translate("""
def f(bus, event):
    bus.dispatch("topic", event)
""")
        gives_up = instrs_of(program.procedures["f"], GivesUp)
        assert [str(a) for a in gives_up[0].given_up_args()] == ["event"]


class TestControlFlow:
    """CFG shape"""

    def test_if_else_join(self):
        from handoff.sil.instructions import Prune
        from handoff.sil.procedure import NodeKind

        program = translate("""
def f(x):
    if x:
        y = 1
    else:
        y = 2
    return y
""")
        proc = program.procedures["f"]
        prunes = instrs_of(proc, Prune)
        assert {p.is_true_branch for p in prunes} == {True, False}

        joins = [n for n in proc.nodes.values() if n.kind == NodeKind.JOIN]
        assert len(joins) == 1
        assert len(joins[0].preds) == 2

    def test_elif_chain(self):
        from handoff.sil.instructions import Prune

        program = translate("""
def f(x):
    if x == 1:
        y = 1
    elif x == 2:
        y = 2
    else:
        y = 3
""")
        prunes = instrs_of(program.procedures["f"], Prune)
        assert len(prunes) == 4

    def test_while_back_edge(self):
        from handoff.sil.procedure import NodeKind

        program = translate("""
class Worker:
    def run(self):
        while self.running:
            self.step()
""")
        proc = program.procedures["Worker.run"]
        heads = [n for n in proc.nodes.values() if n.kind == NodeKind.LOOP_HEAD]
        assert len(heads) == 1
        head = heads[0]
        # entry edge plus the back-edge from the body
        assert len(head.preds) == 2
        assert any(head.id in proc.successors(p) and p > head.id for p in head.preds)

    def test_for_target_reads_iterable(self):
        from handoff.sil.instructions import Assign
        from handoff.sil.types import ExpCall

        program = translate("""
def f(items):
    for item in items:
        g(item)
""")
        assigns = instrs_of(program.procedures["f"], Assign)
        assert assigns[0].id.name == "item"
        assert isinstance(assigns[0].exp, ExpCall)
        assert assigns[0].exp.get_func_name() == "next"

    def test_return_reaches_exit(self):
        program = translate("""
def f(x):
    if x:
        return 1
    return 2
""")
        proc = program.procedures["f"]
        assert len(proc.predecessors(proc.exit_node)) >= 2

    def test_break_leaves_loop(self):
        program = translate("""
def f(items):
    while True:
        if items:
            break
    done()
""")
        proc = program.procedures["f"]
        reachable = {n.id for n in proc.cfg_iter()}
        assert proc.exit_node in reachable

    def test_try_handlers(self):
        from handoff.sil.procedure import NodeKind

        program = translate("""
def f(conn):
    try:
        conn.open()
    except OSError:
        log(conn)
    finally:
        conn.close()
""")
        proc = program.procedures["f"]
        handlers = [n for n in proc.nodes.values() if n.kind == NodeKind.EXCEPTION]
        assert len(handlers) == 1
        assert len(handlers[0].preds) >= 1

    def test_with_alias(self):
        from handoff.sil.instructions import Call

        program = translate("""
def f(path):
    with open(path) as fh:
        data = fh.read()
""")
        calls = instrs_of(program.procedures["f"], Call)
        assert calls[0].get_func_name() == "open"
        assert calls[0].ret.name == "fh"
