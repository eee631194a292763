"""
Tests for symbol resolution and the symbol-flow oracle.
"""

from handoff.sil.types import (
    ExpCall, ExpConst, ExpFieldAccess, ExpIndex, ExpVar, PVar, Symbol, SymbolKind, const,
)
from handoff.sil.instructions import mk_assign, mk_call, mk_store
from handoff.sil.procedure import Statement
from handoff.sil.analyzers.dataflow import DataFlowAnalysis, SymbolResolver

from tests.sil_helpers import (
    field_symbol, local_symbol, param_symbol, loc, make_procedure, make_program, self_field,
)


def v(name: str) -> ExpVar:
    return ExpVar(PVar(name))


class TestSymbolResolver:
    """Top-level symbol of identifiers and access paths"""

    def setup_method(self):
        self.proc = make_procedure("on_msg", {0: []}, params=("self", "msg"))
        self.resolver = SymbolResolver(self.proc)

    def test_parameter_and_local(self):
        assert self.resolver.resolve_top_level(v("msg")) == param_symbol("msg", self.proc.name)
        assert self.resolver.resolve_top_level(v("tmp")) == local_symbol("tmp", self.proc.name)

    def test_self_field(self):
        assert self.resolver.resolve_top_level(self_field("payload")) == field_symbol("payload")

    def test_nested_self_path_resolves_to_root_field(self):
        """self.buf.items[0] is the field buf"""
        exp = ExpIndex(ExpFieldAccess(self_field("buf"), "items"), const(0))
        assert self.resolver.resolve_top_level(exp) == field_symbol("buf")

    def test_path_on_other_object(self):
        """msg.body resolves to the variable msg"""
        exp = ExpFieldAccess(v("msg"), "body")
        assert self.resolver.resolve_top_level(exp) == param_symbol("msg", self.proc.name)

    def test_unresolvable(self):
        """A path rooted in a call has no top-level identifier"""
        exp = ExpFieldAccess(ExpCall(ExpConst("make"), []), "x")
        assert self.resolver.resolve_top_level(exp) is None
        assert self.resolver.resolve_top_level(const(1)) is None

    def test_module_function_has_no_fields(self):
        """In a plain function `self` is an ordinary parameter"""
        proc = make_procedure("helper", {0: []}, params=("self",), class_name=None)
        resolver = SymbolResolver(proc)
        assert resolver.resolve_top_level(self_field("x")) == Symbol("self", SymbolKind.PARAMETER, "helper")


class TestFlowsInto:
    """May-alias relation between symbols across statements"""

    def test_copy_chain(self):
        """y = self.payload; z = y -> payload flows into z"""
        proc = make_procedure("on_tick", {
            0: [mk_assign("y", self_field("payload"), loc(1)),
                mk_assign("z", v("y"), loc(2)),
                mk_call("print", [v("z")], loc=loc(3))],
        })
        df = DataFlowAnalysis(proc, make_program(proc))
        z = local_symbol("z", proc.name)

        assert df.flows_into(field_symbol("payload"), z,
                             Statement(proc.name, 0, 0), Statement(proc.name, 0, 2))

    def test_overwrite_kills_flow(self):
        """x = self.a; x = None -> a no longer flows into x"""
        proc = make_procedure("on_tick", {
            0: [mk_assign("x", self_field("a"), loc(1)),
                mk_assign("x", const(None), loc(2)),
                mk_call("print", [v("x")], loc=loc(3))],
        })
        df = DataFlowAnalysis(proc, make_program(proc))
        x = local_symbol("x", proc.name)

        assert not df.flows_into(field_symbol("a"), x,
                                 Statement(proc.name, 0, 0), Statement(proc.name, 0, 2))

    def test_branch_merge_keeps_both_values(self):
        """Both branch definitions reach the join"""
        proc = make_procedure("on_tick", {
            0: [],
            1: [mk_assign("x", self_field("a"), loc(2))],
            2: [mk_assign("x", self_field("b"), loc(3))],
            3: [mk_call("print", [v("x")], loc=loc(4))],
        }, [(0, 1), (0, 2), (1, 3), (2, 3)])
        df = DataFlowAnalysis(proc, make_program(proc))
        x = local_symbol("x", proc.name)
        use = Statement(proc.name, 3, 0)

        assert df.flows_into(field_symbol("a"), x, Statement(proc.name, 1, 0), use)
        assert df.flows_into(field_symbol("b"), x, Statement(proc.name, 2, 0), use)

    def test_container_append_flows_into_receiver(self):
        """batch.append(msg) makes msg reachable through batch"""
        proc = make_procedure("on_msg", {
            0: [mk_assign("batch", ExpCall(ExpConst("list"), []), loc(1)),
                mk_call("append", [v("msg")], receiver=v("batch"), loc=loc(2)),
                mk_call("print", [v("batch")], loc=loc(3))],
        }, params=("self", "msg"))
        df = DataFlowAnalysis(proc, make_program(proc))

        assert df.flows_into(param_symbol("msg", proc.name), local_symbol("batch", proc.name),
                             Statement(proc.name, 0, 0), Statement(proc.name, 0, 2))

    def test_fresh_library_result(self):
        """n = len(self.items) does not alias items"""
        proc = make_procedure("on_tick", {
            0: [mk_assign("n", ExpCall(ExpConst("len"), [self_field("items")]), loc(1)),
                mk_call("print", [v("n")], loc=loc(2))],
        })
        df = DataFlowAnalysis(proc, make_program(proc))

        assert not df.flows_into(field_symbol("items"), local_symbol("n", proc.name),
                                 Statement(proc.name, 0, 0), Statement(proc.name, 0, 1))

    def test_unknown_call_is_conservative(self):
        """An unknown callee's result may alias every argument"""
        proc = make_procedure("on_tick", {
            0: [mk_call("transform", [self_field("items")], ret="out", loc=loc(1)),
                mk_call("print", [v("out")], loc=loc(2))],
        })
        df = DataFlowAnalysis(proc, make_program(proc))

        assert df.flows_into(field_symbol("items"), local_symbol("out", proc.name),
                             Statement(proc.name, 0, 0), Statement(proc.name, 0, 1))

    def test_self_field_store_is_strong(self):
        """self.a = x replaces a; resets() reports it"""
        proc = make_procedure("on_tick", {
            0: [mk_store(self_field("a"), v("x"), loc(1)),
                mk_store(ExpFieldAccess(self_field("a"), "b"), v("x"), loc(2))],
        })
        df = DataFlowAnalysis(proc, make_program(proc))
        a = field_symbol("a")

        assert df.resets(a, Statement(proc.name, 0, 0))
        assert df.defines(a, Statement(proc.name, 0, 1))
        assert not df.resets(a, Statement(proc.name, 0, 1))

    def test_loop_carried_value(self):
        """A value assigned at the bottom of a loop reaches its top"""
        proc = make_procedure("run", {
            0: [],
            1: [mk_call("print", [v("last")], loc=loc(2))],
            2: [mk_assign("last", self_field("current"), loc(3))],
            3: [],
        }, [(0, 1), (1, 2), (2, 1), (1, 3)])
        df = DataFlowAnalysis(proc, make_program(proc))

        assert df.flows_into(field_symbol("current"), local_symbol("last", proc.name),
                             Statement(proc.name, 2, 0), Statement(proc.name, 1, 0))

    def test_parameter_positions(self):
        """Entry values of parameters map to call-site positions"""
        proc = make_procedure("store", {
            0: [mk_store(self_field("slot"), v("b"), loc(1))],
        }, params=("self", "a", "b"))
        df = DataFlowAnalysis(proc, make_program(proc))
        values = df.value_set_of(v("b"), Statement(proc.name, 0, 0))

        assert df.parameter_positions(values) == {1}
