"""
The FNL statement interpreter.

A tree walk over statements: every block entry (`if`, `loop`, `while`,
function call) is a nested coroutine call carrying the ExecutionContext.
Errors are raised as FnlError by any component and caught once per
statement, where they turn into a halt plus a message on the error sink.
Every statement loop checks the halt signal before its next statement, which
is how a failure deep inside nested blocks stops the whole program.
"""
import dataclasses
import re
from contextlib import contextmanager
from typing import Any, List, Optional, Tuple

from fnl.fnl_coerce import truthy, parse_float, to_string
from fnl.fnl_compiler import evaluate_expression
from fnl.fnl_datatypes import (
    Statement, FunctionDef, ExecutionContext, BREAK,
    FnlError, FnlSyntaxError, SemanticError, RuntimeLimitError, ExternalError, dbg,
)
from fnl.fnl_lexer import parse_program, tokenize
from fnl.fnl_printer import Printer

_FUNC_HEADER_RE = re.compile(r'^(\w+)\((.*)\)$', re.S)
_CALL_RE = re.compile(r'^(?:func:)?(\w+)\((.*)\)$', re.S)
_QUOTE_EDGES_RE = re.compile(r'^["\']|["\']$')


def split_by_comma(s: str) -> List[str]:
    """Split on top-level commas, respecting double quotes and brackets."""
    parts: List[str] = []
    cur: List[str] = []
    in_q = False
    depth = 0
    for c in s:
        if c == '"':
            in_q = not in_q
        elif not in_q and c in "([{":
            depth += 1
        elif not in_q and c in ")]}":
            depth = max(0, depth - 1)
        elif not in_q and depth == 0 and c == ",":
            parts.append("".join(cur).strip())
            cur = []
            continue
        cur.append(c)
    tail = "".join(cur).strip()
    if tail or parts:
        parts.append(tail)
    return parts


class Interpreter:
    """Runs parsed statements against an ExecutionContext."""

    def __init__(self):
        self.printer = Printer()
        self._commands = {
            "#": self._comment,
            "exit": self._exit,
            "var": self._var,
            "log": self._log,
            "func": self._func,
            "if": self._if,
            "loop": self._loop,
            "while": self._while,
            "eval": self._eval,
            "break": self._break,
            "rend": self._rend,
            "fnl:idbSet": self._idb_set,
        }

    # --- entry points ---

    async def execute(self, source: str, ctx: ExecutionContext):
        """Run a whole program; returns when statements run out or the run halts."""
        try:
            statements = parse_program(source)
        except FnlError as e:
            self._fail(e, ctx)
            return
        for stmt in statements:
            if ctx.halt.halted:
                break
            # a top-level break has nothing to leave
            await self.run_statement(stmt, ctx)

    async def run_body(self, statements: List[Statement], ctx: ExecutionContext) -> Any:
        """Run one pass over a block body; stops early on halt or BREAK."""
        for stmt in statements:
            if ctx.halt.halted:
                break
            if await self.run_statement(stmt, ctx) is BREAK:
                return BREAK
        return None

    async def run_statement(self, stmt: Statement, ctx: ExecutionContext) -> Any:
        if ctx.debug:
            dbg("STMT", stmt.line, stmt.command, stmt.arguments, "depth", ctx.depth)
        handler = self._commands.get(stmt.command, self._call)
        try:
            return await handler(stmt, ctx)
        except FnlError as e:
            if e.line is None:
                e.line = stmt.line
            self._fail(e, ctx)
            return None

    def _fail(self, e: FnlError, ctx: ExecutionContext):
        ctx.halt.set(1)
        ctx.sink.write_error(e.format())
        if ctx.debug:
            dbg("HALT", e.format())

    # --- helpers ---

    @contextmanager
    def _guard(self, ctx: ExecutionContext, line: int):
        """Count one nested block entry against the shared depth ceiling."""
        ctx.depth += 1
        try:
            if ctx.depth > ctx.max_depth:
                raise RuntimeLimitError(f"Maximum recursion depth ({ctx.max_depth}) reached", line)
            yield
        finally:
            ctx.depth -= 1

    def _split_block(self, stmt: Statement, required: str, what: str) -> Tuple[List[str], str]:
        """Return (tokens before `{`, raw body text) of a block statement."""
        args = stmt.arguments
        if len(args) < 3:
            raise SemanticError(required, stmt.line)
        if "{" not in args:
            raise FnlSyntaxError(f"Missing '{{' in {what} statement", stmt.line)
        body_start = args.index("{")
        body_end = len(args) - 1 - args[::-1].index("}") if "}" in args else -1
        if body_end <= body_start:
            raise FnlSyntaxError("Body must be wrapped in { }", stmt.line)
        return args[:body_start], args[body_start + 1]

    # --- commands ---

    async def _comment(self, stmt: Statement, ctx: ExecutionContext):
        return None

    async def _exit(self, stmt: Statement, ctx: ExecutionContext):
        ctx.halt.set(stmt.arguments[0] if stmt.arguments else 0)

    async def _break(self, stmt: Statement, ctx: ExecutionContext):
        return BREAK

    async def _var(self, stmt: Statement, ctx: ExecutionContext):
        args = stmt.arguments
        if len(args) < 3:
            raise SemanticError("Expression expected", stmt.line)
        if args[1] not in ("=", "=="):
            raise FnlSyntaxError("Assignment operator expected", stmt.line)
        ctx.env[args[0]] = await evaluate_expression(args[2:], stmt.line, ctx)

    async def _log(self, stmt: Statement, ctx: ExecutionContext):
        if not stmt.arguments:
            raise SemanticError("At least one argument required for log", stmt.line)
        value = await evaluate_expression(stmt.arguments, stmt.line, ctx)
        ctx.sink.write_log(self.printer.pformat(value))

    async def _func(self, stmt: Statement, ctx: ExecutionContext):
        args = stmt.arguments
        if len(args) < 3:
            raise SemanticError("Function name and body required", stmt.line)
        head_end = args.index("{") if "{" in args else len(args)
        header = "".join(args[:head_end])
        m = _FUNC_HEADER_RE.match(header)
        if not m:
            raise FnlSyntaxError("Invalid function declaration", stmt.line)
        _, body_text = self._split_block(stmt, "Function name and body required", "func")
        name = m.group(1)
        params = [p.strip() for p in m.group(2).split(",") if p.strip()]
        ctx.env.functions[name] = FunctionDef(name, params, parse_program(body_text))

    async def _if(self, stmt: Statement, ctx: ExecutionContext):
        cond_tokens, body_text = self._split_block(stmt, "If statement and body required", "if")
        cond = await evaluate_expression(cond_tokens, stmt.line, ctx)
        if not truthy(cond):
            return None
        body = parse_program(body_text)
        with self._guard(ctx, stmt.line):
            # BREAK ends this body only; it does not reach an enclosing loop
            await self.run_body(body, ctx)
        return None

    async def _loop(self, stmt: Statement, ctx: ExecutionContext):
        count_tokens, body_text = self._split_block(stmt, "Loop amount and body required", "loop")
        count = parse_float(await evaluate_expression(count_tokens, stmt.line, ctx))
        if count <= 0:
            return None
        body = parse_program(body_text)
        with self._guard(ctx, stmt.line):
            i = 0
            while i < count:
                if ctx.halt.halted:
                    break
                await self.run_body(body, ctx)
                i += 1
        return None

    async def _while(self, stmt: Statement, ctx: ExecutionContext):
        cond_tokens, body_text = self._split_block(stmt, "Loop amount and body required", "while")
        if not truthy(await evaluate_expression(cond_tokens, stmt.line, ctx)):
            return None
        body = parse_program(body_text)
        with self._guard(ctx, stmt.line):
            while not ctx.halt.halted:
                # checked again before every pass, including the first
                if not truthy(await evaluate_expression(cond_tokens, stmt.line, ctx)):
                    break
                # unlike `loop`, a break ends the whole while
                if await self.run_body(body, ctx) is BREAK:
                    break
        return None

    async def _eval(self, stmt: Statement, ctx: ExecutionContext):
        if not stmt.arguments:
            raise SemanticError("1 or more inputs expected", stmt.line)
        code = await evaluate_expression(stmt.arguments, stmt.line, ctx)
        if not isinstance(code, str):
            raise SemanticError(f"eval expects a string, got {self.printer.pformat(code)}", stmt.line)
        # Nested program: same environment and halt signal, depth counted from zero
        await self.execute(code, dataclasses.replace(ctx, depth=0))

    async def _rend(self, stmt: Statement, ctx: ExecutionContext):
        parts = " ".join(stmt.arguments).split(",")
        shape = _QUOTE_EDGES_RE.sub("", parts[0].strip())
        if shape != "sqr":
            return None
        if len(parts) < 6:
            raise SemanticError("6 inputs expected", stmt.line)
        color = _QUOTE_EDGES_RE.sub("", parts[1].strip())
        x, y, w, h = [await evaluate_expression(tokenize(p.strip()), stmt.line, ctx) for p in parts[2:6]]
        canvas = ctx.host.canvas
        canvas.set_fill_color(color)
        canvas.fill_rect(x, y, w, h)

    async def _idb_set(self, stmt: Statement, ctx: ExecutionContext):
        if len(stmt.arguments) < 2:
            raise SemanticError("2 inputs expected", stmt.line)
        key = to_string(await evaluate_expression([stmt.arguments[0]], stmt.line, ctx))
        data = await evaluate_expression([stmt.arguments[1]], stmt.line, ctx)
        try:
            await ctx.host.store.put(key, data)
        except Exception as e:
            raise ExternalError(f"Failed to write '{key}' to storage ({e})", stmt.line) from e

    async def _call(self, stmt: Statement, ctx: ExecutionContext):
        """Fallback: invoke a user function, `name(a, b)` or `name a b`."""
        name, arg_slices = self._parse_call(stmt)
        func: Optional[FunctionDef] = ctx.env.functions.get(name)
        if func is None:
            raise SemanticError(f"Unknown command '{stmt.command}'", stmt.line)

        with self._guard(ctx, stmt.line):
            values = []
            for i in range(len(func.params)):
                if i < len(arg_slices):
                    values.append(await evaluate_expression(arg_slices[i], stmt.line, ctx))
                else:
                    values.append(None)

            frame = ctx.env.derive()
            for pname, value in zip(func.params, values):
                frame[pname] = value
            caller = ctx.env
            ctx.env = frame
            try:
                # BREAK acts as an early return
                await self.run_body(func.body, ctx)
            finally:
                ctx.env = caller
        return None

    def _parse_call(self, stmt: Statement) -> Tuple[str, List[List[str]]]:
        text = " ".join([stmt.command] + stmt.arguments)
        m = _CALL_RE.match(text)
        if m:
            return m.group(1), [tokenize(piece) for piece in split_by_comma(m.group(2))]
        name = stmt.command[5:] if stmt.command.startswith("func:") else stmt.command
        return name, [[tok] for tok in stmt.arguments]
