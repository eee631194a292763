"""
Tests for the SIL graph model, call resolution and the spec catalogs.
"""

import pytest

from handoff.sil.types import ExpVar, PVar, Location
from handoff.sil.instructions import mk_call, mk_gives_up
from handoff.sil.procedure import Statement
from handoff.sil.specs import GIVES_UP_SPECS, get_gives_up_specs, parse_gives_up

from tests.sil_helpers import loc, make_procedure, make_program, self_field, send


SELF = ExpVar(PVar("self"))


class TestProcedureGraph:
    """Statements, edges and traversal order"""

    def setup_method(self):
        self.proc = make_procedure("run", {
            0: [],
            1: [send(self_field("payload"), 10)],
            2: [mk_call("print", [], loc=loc(11)), mk_call("log", [], loc=loc(12))],
            3: [],
            7: [],
        }, [(0, 1), (1, 2), (2, 1), (1, 3)], exit=3)

    def test_statements(self):
        assert self.proc.statements(2) == [Statement("Actor.run", 2, 0), Statement("Actor.run", 2, 1)]
        assert self.proc.statements(42) == []

    def test_edges(self):
        assert self.proc.predecessors(1) == [0, 2]
        assert self.proc.successors(1) == [2, 3]

    def test_contains_and_instr_at(self):
        stmt = Statement("Actor.run", 2, 1)
        assert self.proc.contains(stmt)
        assert self.proc.instr_at(stmt).get_func_name() == "log"
        assert self.proc.location_of(stmt) == loc(12)
        assert not self.proc.contains(Statement("Actor.run", 2, 2))
        assert not self.proc.contains(Statement("Other.run", 2, 0))
        assert self.proc.instr_at(Statement("Actor.run", 9, 0)) is None

    def test_reverse_postorder_includes_unreachable(self):
        order = [n.id for n in self.proc.reverse_postorder()]
        assert order[0] == 0
        assert order.index(1) < order.index(2)
        assert order[-1] == 7
        assert sorted(order) == [0, 1, 2, 3, 7]

    def test_cfg_iter_skips_unreachable(self):
        assert {n.id for n in self.proc.cfg_iter()} == {0, 1, 2, 3}

    def test_statements_are_ordered(self):
        stmts = [s for s, _ in self.proc.iter_statements()]
        assert stmts == sorted(stmts)
        assert len(stmts) == 3

    def test_parameters(self):
        proc = make_procedure("on_msg", {0: []}, params=("self", "sender", "msg"))
        assert proc.self_name == "self"
        assert proc.positional_params() == ["sender", "msg"]
        assert proc.param_position("msg") == 1
        assert proc.param_position("self") is None

    def test_static_method_has_no_receiver(self):
        proc = make_procedure("build", {0: []}, params=("config",))
        proc.is_static = True
        assert proc.self_name is None
        assert proc.param_position("config") == 0


class TestCallResolution:
    """Which procedure a call site invokes"""

    def setup_method(self):
        self.helper = make_procedure("helper", {0: []}, params=("x",), class_name=None)
        self.keep = make_procedure("keep", {0: []}, params=("self", "x"))
        self.init = make_procedure("__init__", {0: []}, params=("self", "body"), class_name="Ping")
        self.caller = make_procedure("on_tick", {0: []})
        self.program = make_program(self.helper, self.keep, self.init, self.caller)

    def test_self_method(self):
        call = mk_call("keep", [], receiver=SELF)
        assert self.program.resolve_callee(call, self.caller) is self.keep

    def test_module_function(self):
        assert self.program.resolve_callee(mk_call("helper", []), self.caller) is self.helper

    def test_constructor(self):
        assert self.program.resolve_callee(mk_call("Ping", []), self.caller) is self.init

    def test_other_receiver_is_unresolved(self):
        call = mk_call("keep", [], receiver=ExpVar(PVar("other")))
        assert self.program.resolve_callee(call, self.caller) is None

    def test_library_call_is_unresolved(self):
        assert self.program.resolve_callee(mk_call("len", []), self.caller) is None

    def test_methods_of_class(self):
        assert self.program.methods_of_class("Actor") == [self.keep, self.caller]
        assert self.program.classes() == ["Actor", "Ping"]


class TestLibrarySpecs:
    """Spec lookup for callees without a body"""

    def setup_method(self):
        self.program = make_program()

    def test_exact_match(self):
        assert self.program.get_spec("len").returns_fresh_value()

    def test_method_fallback(self):
        """items.append is found through list.append"""
        spec = self.program.get_spec("items.append")
        assert spec is not None
        assert spec.flows_into_receiver == [0]

    def test_call_spec_with_receiver(self):
        call = mk_call("pop", [], receiver=self_field("queue"))
        spec = self.program.get_call_spec(call)
        assert spec.return_from_receiver

    def test_logger_calls_are_fresh(self):
        call = mk_call("info", [self_field("payload")], receiver=ExpVar(PVar("log")))
        assert self.program.get_call_spec(call).returns_fresh_value()

    def test_unknown(self):
        assert self.program.get_spec("frobnicate") is None


class TestGivesUpCatalog:
    """Default and user-defined hand-off operations"""

    def test_defaults(self):
        assert GIVES_UP_SPECS["send"].given_up_positions(2) == [1]
        assert GIVES_UP_SPECS["put"].given_up_positions(1) == [0]
        assert GIVES_UP_SPECS["submit"].given_up_positions(3) == [1, 2]

    def test_keywords(self):
        assert GIVES_UP_SPECS["put"].hands_off_keyword("item")
        assert not GIVES_UP_SPECS["put"].hands_off_keyword("block")
        assert GIVES_UP_SPECS["submit"].hands_off_keyword("retries")
        assert not parse_gives_up("dispatch:1").hands_off_keyword("event")

    def test_positions_beyond_arguments_are_dropped(self):
        assert GIVES_UP_SPECS["send"].given_up_positions(1) == []

    def test_parse(self):
        spec = parse_gives_up("dispatch:0,2")
        assert spec.name == "dispatch"
        assert spec.given_up_positions(3) == [0, 2]

    def test_parse_varargs(self):
        spec = parse_gives_up("spawn:1+")
        assert spec.given_up_positions(4) == [1, 2, 3]

    @pytest.mark.parametrize("text", ["dispatch", "dispatch:", ":0", "dispatch:x", "dispatch:+"])
    def test_parse_invalid(self, text):
        with pytest.raises(ValueError):
            parse_gives_up(text)

    def test_user_entries_extend_defaults(self):
        specs = get_gives_up_specs([parse_gives_up("dispatch:0")])
        assert "dispatch" in specs
        assert "send" in specs
        assert "dispatch" not in GIVES_UP_SPECS

    def test_gives_up_args(self):
        instr = mk_gives_up("submit", [ExpVar(PVar("fn")), ExpVar(PVar("a")), ExpVar(PVar("b"))],
                            [1, 2], receiver=ExpVar(PVar("pool")))
        assert [str(a) for a in instr.given_up_args()] == ["a", "b"]
        assert instr.get_full_name() == "pool.submit"

    def test_location_str(self):
        assert str(Location("actor.py", 3)) == "actor.py:3"
        assert str(Location("actor.py", 3, 4)) == "actor.py:3:4"
