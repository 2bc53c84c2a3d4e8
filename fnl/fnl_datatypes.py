"""
Defines the core data types for the FNL runtime.

This module provides the parsed statement, the postfix expression items the
compiler emits, the environment (variable and function tables), the halt
signal and the error taxonomy shared by every component.
"""

import sys
from dataclasses import dataclass
from typing import Any, Dict, List, Optional


# =================================================================
# Errors
# =================================================================

class FnlError(Exception):
    """Base class for all errors raised while running an FNL program."""
    kind = "Error"

    def __init__(self, message: str, line: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.line = line

    def format(self) -> str:
        if self.line is None:
            return f"{self.kind}: {self.message}"
        return f"{self.kind}: {self.message}. Line: {self.line}"


class FnlSyntaxError(FnlError):
    kind = "SyntaxError"


class SemanticError(FnlError):
    kind = "SemanticError"


class RuntimeLimitError(FnlError):
    kind = "RuntimeLimitError"


class ExternalError(FnlError):
    kind = "ExternalError"


# =================================================================
# Statements and compiled expressions
# =================================================================

@dataclass
class Statement:
    """One command with its argument tokens and its index within the split."""
    command: str
    arguments: List[str]
    line: int


class Literal:
    __slots__ = ("value",)

    def __init__(self, value: Any):
        self.value = value

    def __eq__(self, other):
        return isinstance(other, Literal) and other.value == self.value

    def __repr__(self):
        return f"Literal({self.value!r})"


class VarRef:
    """Evaluator stack marker for a variable; carries the name, not the value."""
    __slots__ = ("name",)

    def __init__(self, name: str):
        self.name = name

    def __eq__(self, other):
        return isinstance(other, VarRef) and other.name == self.name

    def __repr__(self):
        return f"VarRef({self.name!r})"


class Operator:
    __slots__ = ("symbol",)

    def __init__(self, symbol: str):
        self.symbol = symbol

    def __eq__(self, other):
        return isinstance(other, Operator) and other.symbol == self.symbol

    def __repr__(self):
        return f"Operator({self.symbol!r})"


# =================================================================
# Runtime state
# =================================================================

@dataclass
class FunctionDef:
    name: str
    params: List[str]
    body: List[Statement]


class Environment:
    """Binding table for one frame: variables plus the function table."""

    def __init__(self, variables: Optional[Dict[str, Any]] = None,
                 functions: Optional[Dict[str, FunctionDef]] = None):
        self.variables: Dict[str, Any] = variables if variables is not None else {}
        self.functions: Dict[str, FunctionDef] = functions if functions is not None else {}

    def derive(self) -> 'Environment':
        """Call frame: both tables are copied, the values in them are not.

        Lists and dicts stay shared with the caller, so `push`/`splice` in a
        callee is visible after the call returns.
        """
        return Environment(dict(self.variables), dict(self.functions))

    def lookup(self, name: str) -> Any:
        return self.variables.get(name)

    def __getitem__(self, name: str) -> Any:
        return self.variables[name]

    def __setitem__(self, name: str, value: Any):
        self.variables[name] = value

    def __contains__(self, name: str) -> bool:
        return name in self.variables

    def __repr__(self):
        return f"<Environment vars={sorted(self.variables)} funcs={sorted(self.functions)}>"


_UNSET = object()


class HaltSignal:
    """Records that execution must stop, with the raw exit payload."""

    def __init__(self):
        self._payload: Any = _UNSET

    @property
    def halted(self) -> bool:
        return self._payload is not _UNSET

    @property
    def payload(self) -> Any:
        return None if self._payload is _UNSET else self._payload

    def set(self, payload: Any = 1):
        self._payload = payload


class _Break:
    def __repr__(self):
        return "BREAK"


BREAK = _Break()


@dataclass
class ExecutionContext:
    """Everything one program run threads through the compiler, evaluator and interpreter.

    `env` is swapped for the duration of a function call. `halt` is shared
    with nested `eval` programs; `depth` is not.
    """
    env: Environment
    halt: HaltSignal
    host: Any
    sink: Any
    started_at: float = 0.0
    max_depth: int = 5000
    depth: int = 0
    debug: bool = False


def dbg(*parts):
    try:
        print("[DBG]", *parts, file=sys.stderr)
    except Exception:
        pass
