"""
The FNL postfix stack evaluator.

Variable references are pushed unresolved: the array operators need the
name of the binding they mutate, not a copy of its value. Arithmetic and
comparison resolve their operands as they pop them.
"""
from typing import Any, List

from fnl.fnl_coerce import add, divide, to_number, loose_equals, compare, slice_list, splice_list
from fnl.fnl_datatypes import (
    ExecutionContext, Literal, VarRef, Operator,
    FnlSyntaxError, SemanticError,
)

BINARY_OPS = ("+", "-", "*", "/", "==", "!=", "<", ">", "<=", ">=")
ARRAY_OPS = ("push", "pop", "slice", "splice")


def resolve(value: Any, ctx: ExecutionContext) -> Any:
    """Follow VarRef markers to the bound value; unbound names read as Null."""
    while isinstance(value, VarRef):
        value = ctx.env.lookup(value.name)
    return value


def _apply_binary(op: str, a: Any, b: Any) -> Any:
    match op:
        case "+":
            return add(a, b)
        case "-":
            return to_number(a) - to_number(b)
        case "*":
            return to_number(a) * to_number(b)
        case "/":
            return divide(a, b)
        case "==":
            return loose_equals(a, b)
        case "!=":
            return not loose_equals(a, b)
        case _:
            return compare(op, a, b)


def _target_array(ref: Any, op: str, line: int, ctx: ExecutionContext) -> list:
    if not isinstance(ref, VarRef):
        raise SemanticError(f"{op} target must be a var reference", line)
    arr = ctx.env.lookup(ref.name)
    if not isinstance(arr, list):
        raise SemanticError(f"Variable '{ref.name}' is not an array", line)
    return arr


def _apply_array_op(op: str, stack: List[Any], line: int, ctx: ExecutionContext):
    match op:
        case "push":
            if len(stack) < 2:
                raise SemanticError("push requires [arrayVar, value]", line)
            val = resolve(stack.pop(), ctx)
            arr = _target_array(stack.pop(), op, line, ctx)
            arr.append(val)
            stack.append(arr)
        case "pop":
            if len(stack) < 1:
                raise SemanticError("pop requires [arrayVar]", line)
            arr = _target_array(stack.pop(), op, line, ctx)
            stack.append(arr.pop() if arr else None)
        case "slice":
            if len(stack) < 3:
                raise SemanticError("slice requires [array, start, end]", line)
            end = resolve(stack.pop(), ctx)
            start = resolve(stack.pop(), ctx)
            arr = _target_array(stack.pop(), op, line, ctx)
            stack.append(slice_list(arr, start, end))
        case "splice":
            if len(stack) < 3:
                raise SemanticError("splice requires [array, start, deleteCount]", line)
            delete_count = resolve(stack.pop(), ctx)
            start = resolve(stack.pop(), ctx)
            arr = _target_array(stack.pop(), op, line, ctx)
            splice_list(arr, start, delete_count)
            stack.append(arr)


def evaluate_postfix(rpn: List[Any], line: int, ctx: ExecutionContext) -> Any:
    """Run a compiled expression; the result may still be a VarRef."""
    stack: List[Any] = []
    for item in rpn:
        if isinstance(item, Literal):
            stack.append(item.value)
        elif isinstance(item, VarRef):
            stack.append(item)
        elif isinstance(item, Operator) and item.symbol in BINARY_OPS:
            if len(stack) < 2:
                raise SemanticError(f"Not enough operands for '{item.symbol}'", line)
            b = resolve(stack.pop(), ctx)
            a = resolve(stack.pop(), ctx)
            stack.append(_apply_binary(item.symbol, a, b))
        elif isinstance(item, Operator) and item.symbol in ARRAY_OPS:
            _apply_array_op(item.symbol, stack, line, ctx)
        else:
            raise FnlSyntaxError(f"Unknown RPN token '{item!r}'", line)

    if len(stack) != 1:
        raise FnlSyntaxError("Invalid expression (stack not reduced to single result)", line)
    return stack[0]
