import math

import pytest

from fnl.fnl_datatypes import (
    Environment, HaltSignal, ExecutionContext, Literal, VarRef, Operator,
    FnlSyntaxError, SemanticError,
)
from fnl.fnl_evaluator import evaluate_postfix, resolve
from fnl.fnl_host import FnlHost, OutputSink, OfflineFetcher


def make_ctx(**variables):
    return ExecutionContext(
        env=Environment(dict(variables)),
        halt=HaltSignal(),
        host=FnlHost(fetcher=OfflineFetcher()),
        sink=OutputSink(),
    )


def L(v):
    return Literal(v)


def Op(s):
    return Operator(s)


def test_arithmetic_and_comparison():
    ctx = make_ctx()
    assert evaluate_postfix([L(7.0), L(2.0), Op("-")], 1, ctx) == 5.0
    assert evaluate_postfix([L("3"), L(2.0), Op("*")], 1, ctx) == 6.0
    assert evaluate_postfix([L(1.0), L(0.0), Op("/")], 1, ctx) == math.inf
    assert evaluate_postfix([L("1"), L(1.0), Op("==")], 1, ctx) is True
    assert evaluate_postfix([L("1"), L(1.0), Op("!=")], 1, ctx) is False
    assert evaluate_postfix([L(2.0), L(10.0), Op("<")], 1, ctx) is True
    assert evaluate_postfix([L("2"), L("10"), Op("<")], 1, ctx) is False


def test_binary_operators_resolve_references():
    ctx = make_ctx(a=4.0)
    assert evaluate_postfix([VarRef("a"), L(1.0), Op("+")], 1, ctx) == 5.0
    assert evaluate_postfix([VarRef("nope"), L("x"), Op("+")], 1, ctx) == "nullx"


def test_lone_reference_stays_unresolved_until_resolve():
    ctx = make_ctx(a=4.0)
    out = evaluate_postfix([VarRef("a")], 1, ctx)
    assert out == VarRef("a")
    assert resolve(out, ctx) == 4.0
    assert resolve(VarRef("unbound"), ctx) is None


def test_push_appends_in_place_and_returns_same_array():
    arr = [1.0]
    ctx = make_ctx(a=arr)
    out = evaluate_postfix([VarRef("a"), L(2.0), Op("push")], 1, ctx)
    assert out is arr
    assert arr == [1.0, 2.0]


def test_push_resolves_the_pushed_value():
    ctx = make_ctx(a=[], b=9.0)
    evaluate_postfix([VarRef("a"), VarRef("b"), Op("push")], 1, ctx)
    assert ctx.env["a"] == [9.0]


def test_pop_removes_last_or_yields_null():
    ctx = make_ctx(a=[1.0, 2.0], e=[])
    assert evaluate_postfix([VarRef("a"), Op("pop")], 1, ctx) == 2.0
    assert ctx.env["a"] == [1.0]
    assert evaluate_postfix([VarRef("e"), Op("pop")], 1, ctx) is None


def test_slice_never_mutates():
    arr = [1.0, 2.0, 3.0, 4.0]
    ctx = make_ctx(a=arr, lo=1.0)
    out = evaluate_postfix([VarRef("a"), VarRef("lo"), L(3.0), Op("slice")], 1, ctx)
    assert out == [2.0, 3.0]
    assert out is not arr
    assert arr == [1.0, 2.0, 3.0, 4.0]


def test_splice_mutates_and_returns_same_array():
    arr = [1.0, 2.0, 3.0, 4.0]
    ctx = make_ctx(a=arr)
    out = evaluate_postfix([VarRef("a"), L(1.0), L(2.0), Op("splice")], 1, ctx)
    assert out is arr
    assert arr == [1.0, 4.0]


def test_array_operator_errors():
    ctx = make_ctx(n=5.0)
    with pytest.raises(SemanticError, match="push target must be a var reference"):
        evaluate_postfix([L([1.0]), L(2.0), Op("push")], 1, ctx)
    with pytest.raises(SemanticError, match="Variable 'n' is not an array"):
        evaluate_postfix([VarRef("n"), Op("pop")], 1, ctx)
    with pytest.raises(SemanticError, match="slice requires"):
        evaluate_postfix([VarRef("n"), L(1.0), Op("slice")], 1, ctx)


def test_operand_count_errors():
    ctx = make_ctx()
    with pytest.raises(SemanticError, match="Not enough operands for '\\+'"):
        evaluate_postfix([L(1.0), Op("+")], 7, ctx)
    with pytest.raises(FnlSyntaxError, match="stack not reduced to single result") as exc:
        evaluate_postfix([L(1.0), L(2.0)], 7, ctx)
    assert exc.value.line == 7
