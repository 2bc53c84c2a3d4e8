"""
The FNL expression compiler.

Turns the token slice of one expression into postfix form with a
shunting-yard pass. Capability calls (`fnl:fetch`, `random`, ...) are not
deferred: they run while compiling and are replaced by the value they
produce, so a compiled expression only ever holds literals, variable
references and operators.
"""
import json
from typing import Any, List

from fnl.fnl_coerce import parse_number_literal, to_number, to_string, add, js_round
from fnl.fnl_datatypes import (
    ExecutionContext, Literal, VarRef, Operator,
    FnlSyntaxError, ExternalError, dbg,
)
from fnl.fnl_evaluator import evaluate_postfix, resolve

PRECEDENCE = {
    "==": 0, "!=": 0, "<": 0, ">": 0, "<=": 0, ">=": 0,
    "+": 1, "-": 1,
    "*": 2, "/": 2,
    "push": 3, "pop": 3, "slice": 3, "splice": 3,
}

REF_PREFIXES = ("ref:", "var:")

KEYWORDS = {"true": True, "false": False, "null": None}

CompiledExpression = List[Any]


def _is_string_token(tok: str) -> bool:
    return tok.startswith('"') and tok.endswith('"')


def split_parens(tokens: List[str]) -> List[str]:
    """Peel `(` and `)` glued to bare tokens: `(2` -> `(`, `2`."""
    out: List[str] = []
    for tok in tokens:
        if _is_string_token(tok) or tok[:1] in ("[", "{"):
            out.append(tok)
            continue
        while len(tok) > 1 and tok.startswith("("):
            out.append("(")
            tok = tok[1:]
        closing = 0
        while len(tok) > 1 and tok.endswith(")") and tok.count(")") > tok.count("("):
            closing += 1
            tok = tok[:-1]
        out.append(tok)
        out.extend(")" * closing)
    return out


async def _capability_arg(tokens: List[str], i: int, name: str, line: int, ctx: ExecutionContext) -> Any:
    if i >= len(tokens):
        raise FnlSyntaxError(f"'{name}' expects an argument", line)
    return await evaluate_expression([tokens[i]], line, ctx)


async def _fetch(url: Any, line: int, ctx: ExecutionContext) -> dict:
    url = to_string(url)
    if len(url) >= 2 and url.startswith('"') and url.endswith('"'):
        url = url[1:-1]
    try:
        resp = await ctx.host.fetcher.request(url)
    except Exception as e:
        raise ExternalError(f"Failed to fetch '{url}' ({e})", line) from e
    return resp.to_record()


async def compile_expression(tokens: List[str], line: int, ctx: ExecutionContext) -> CompiledExpression:
    """Shunting-yard: token slice to a list of Literal / VarRef / Operator items."""
    tokens = split_parens(tokens)
    output: CompiledExpression = []
    ops: List[str] = []
    i = 0

    while i < len(tokens):
        token = tokens[i]
        number = parse_number_literal(token)

        if number is not None:
            output.append(Literal(number))
        elif _is_string_token(token):
            output.append(Literal(token[1:-1]))

        # --- capability calls, resolved now ---
        elif token == "fnl:performance":
            output.append(Literal(ctx.host.clock() - ctx.started_at))
        elif token in ("fnl:width", "fnl:height", "fnl.height"):
            canvas = ctx.host.canvas
            size = canvas.height if token.endswith("height") else canvas.width
            output.append(Literal(float(size)))
        elif token == "fnl:idbGet":
            i += 1
            key = await _capability_arg(tokens, i, token, line, ctx)
            try:
                value = await ctx.host.store.get(to_string(key))
            except Exception as e:
                raise ExternalError(f"Failed to read '{to_string(key)}' from storage ({e})", line) from e
            output.append(Literal(value))
        elif token == "fnl:fetch":
            i += 1
            url = await _capability_arg(tokens, i, token, line, ctx)
            output.append(Literal(await _fetch(url, line, ctx)))
        elif token == "random":
            lo = await _capability_arg(tokens, i + 1, token, line, ctx)
            hi = await _capability_arg(tokens, i + 2, token, line, ctx)
            i += 2
            span = to_number(hi) - to_number(lo) + 1
            output.append(Literal(add(ctx.host.rng() * span, lo)))
        elif token == "round":
            i += 1
            num = await _capability_arg(tokens, i, token, line, ctx)
            output.append(Literal(js_round(num)))

        elif token.startswith(REF_PREFIXES):
            output.append(VarRef(token[4:]))
        elif token in PRECEDENCE:
            while ops and ops[-1] in PRECEDENCE and PRECEDENCE[token] <= PRECEDENCE[ops[-1]]:
                output.append(Operator(ops.pop()))
            ops.append(token)
        elif token == "(":
            ops.append(token)
        elif token == ")":
            while ops and ops[-1] != "(":
                output.append(Operator(ops.pop()))
            if not ops:
                raise FnlSyntaxError("Mismatched parentheses", line)
            ops.pop()
        elif (token.startswith("{") and token.endswith("}")) or (token.startswith("[") and token.endswith("]")):
            try:
                output.append(Literal(json.loads(token, parse_int=float)))
            except ValueError:
                raise FnlSyntaxError(f"Invalid JSON literal '{token}'", line)
        elif token in KEYWORDS:
            output.append(Literal(KEYWORDS[token]))
        elif token in ctx.env:
            output.append(VarRef(token))
        else:
            raise FnlSyntaxError(f"Unknown token '{token}'", line)
        i += 1

    while ops:
        op = ops.pop()
        if op in ("(", ")"):
            raise FnlSyntaxError("Mismatched parentheses", line)
        output.append(Operator(op))

    if ctx.debug:
        dbg("COMPILE", line, tokens, "->", output)
    return output


async def evaluate_expression(tokens: List[str], line: int, ctx: ExecutionContext) -> Any:
    """Compile and evaluate; an empty expression is Null and a VarRef result is resolved."""
    rpn = await compile_expression(tokens, line, ctx)
    if not rpn:
        return None
    result = evaluate_postfix(rpn, line, ctx)
    return resolve(result, ctx)
