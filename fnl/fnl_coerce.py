"""
Value coercions for the FNL runtime.

FNL values follow the loose rules of the browser sandbox the language was
born in: numbers are doubles, `+` concatenates unless both sides are
numbers, `==` is loose equality and `[]` is truthy. These helpers are the
only place those rules live; the evaluator and interpreter call them and
never compare raw Python values directly.
"""
import math
import re
from decimal import Decimal
from typing import Any, Optional

NAN = float("nan")

_DECIMAL_RE = re.compile(r'^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$')
_RADIX_RE = re.compile(r'^0(?:[xX][0-9a-fA-F]+|[oO][0-7]+|[bB][01]+)$')
_FLOAT_PREFIX_RE = re.compile(r'^[+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)')


def is_number(v: Any) -> bool:
    # bool is an int subclass but never a number here
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def parse_number_literal(text: str) -> Optional[float]:
    """Parse `text` with `Number()` rules; returns None when it is not numeric."""
    s = text.strip()
    if s == "":
        return 0.0
    if _DECIMAL_RE.match(s):
        return float(s)
    if _RADIX_RE.match(s):
        return float(int(s, 0))
    if s in ("Infinity", "+Infinity"):
        return math.inf
    if s == "-Infinity":
        return -math.inf
    return None


def to_number(v: Any) -> float:
    match v:
        case None:
            return 0.0
        case bool():
            return 1.0 if v else 0.0
        case int() | float():
            return float(v)
        case str():
            n = parse_number_literal(v)
            return NAN if n is None else n
        case list():
            return to_number(to_string(v))
        case _:
            return NAN


def parse_float(v: Any) -> float:
    """`parseFloat()`: the longest numeric prefix of the string form."""
    if is_number(v):
        return float(v)
    m = _FLOAT_PREFIX_RE.match(to_string(v).lstrip())
    if not m:
        return NAN
    text = m.group(0)
    if text.lstrip("+-") == "Infinity":
        return -math.inf if text.startswith("-") else math.inf
    return float(text)


def format_number(x: float) -> str:
    """Render a double the way `Number.prototype.toString` does."""
    if isinstance(x, int):
        x = float(x)
    if math.isnan(x):
        return "NaN"
    if math.isinf(x):
        return "Infinity" if x > 0 else "-Infinity"
    if x == 0:
        return "0"
    sign = "-" if x < 0 else ""
    d = Decimal(repr(abs(x))).normalize()
    _, digit_tuple, exp = d.as_tuple()
    digits = "".join(str(c) for c in digit_tuple)
    k = len(digits)
    n = exp + k
    if k <= n <= 21:
        out = digits + "0" * (n - k)
    elif 0 < n <= 21:
        out = digits[:n] + "." + digits[n:]
    elif -6 < n <= 0:
        out = "0." + "0" * (-n) + digits
    else:
        e = n - 1
        mant = digits[0] + ("." + digits[1:] if k > 1 else "")
        out = f"{mant}e{'+' if e >= 0 else '-'}{abs(e)}"
    return sign + out


def to_string(v: Any) -> str:
    match v:
        case None:
            return "null"
        case bool():
            return "true" if v else "false"
        case str():
            return v
        case int() | float():
            return format_number(v)
        case list():
            return ",".join("" if item is None else to_string(item) for item in v)
        case dict():
            return "[object Object]"
        case _:
            return str(v)


def truthy(v: Any) -> bool:
    match v:
        case None:
            return False
        case bool():
            return v
        case int() | float():
            return not (v == 0 or math.isnan(v))
        case str():
            return v != ""
        case _:
            return True


def _to_primitive(v: Any) -> Any:
    if isinstance(v, (list, dict)):
        return to_string(v)
    return v


def loose_equals(a: Any, b: Any) -> bool:
    """Abstract equality (`==`)."""
    if a is None or b is None:
        return a is None and b is None
    if isinstance(a, (list, dict)) and isinstance(b, (list, dict)):
        return a is b
    if is_number(a) and is_number(b):
        return float(a) == float(b)
    if isinstance(a, str) and isinstance(b, str):
        return a == b
    if isinstance(a, bool) and isinstance(b, bool):
        return a == b
    if isinstance(a, bool):
        return loose_equals(to_number(a), b)
    if isinstance(b, bool):
        return loose_equals(a, to_number(b))
    if isinstance(a, (list, dict)):
        return loose_equals(_to_primitive(a), b)
    if isinstance(b, (list, dict)):
        return loose_equals(a, _to_primitive(b))
    # number vs string
    return to_number(a) == to_number(b)


def _less_than(a: Any, b: Any) -> Optional[bool]:
    """Abstract relational comparison; None stands for the undefined result."""
    pa, pb = _to_primitive(a), _to_primitive(b)
    if isinstance(pa, str) and isinstance(pb, str):
        return pa < pb
    na, nb = to_number(pa), to_number(pb)
    if math.isnan(na) or math.isnan(nb):
        return None
    return na < nb


def compare(op: str, a: Any, b: Any) -> bool:
    match op:
        case "<":
            return _less_than(a, b) is True
        case ">":
            return _less_than(b, a) is True
        case "<=":
            r = _less_than(b, a)
            return r is False
        case ">=":
            r = _less_than(a, b)
            return r is False
    raise ValueError(f"not a relational operator: {op}")


def add(a: Any, b: Any) -> Any:
    if is_number(a) and is_number(b):
        return float(a) + float(b)
    return to_string(a) + to_string(b)


def divide(a: Any, b: Any) -> float:
    x, y = to_number(a), to_number(b)
    if y == 0:
        if x == 0 or math.isnan(x):
            return NAN
        # the sign of a zero divisor matters: 1 / -0 is -Infinity
        negative = (x < 0) != (math.copysign(1.0, y) < 0)
        return -math.inf if negative else math.inf
    return x / y


def js_round(v: Any) -> float:
    """`Math.round`: halves round towards +Infinity."""
    x = to_number(v)
    if math.isnan(x) or math.isinf(x):
        return x
    return float(math.floor(x + 0.5))


def _relative_index(v: Any, length: int, default: int) -> int:
    if v is None:
        return default
    x = to_number(v)
    if math.isnan(x):
        return 0
    if math.isinf(x):
        return length if x > 0 else 0
    i = int(x)
    if i < 0:
        return max(length + i, 0)
    return min(i, length)


def slice_list(items: list, start: Any, end: Any) -> list:
    n = len(items)
    lo = _relative_index(start, n, 0)
    hi = _relative_index(end, n, n)
    return items[lo:hi] if hi > lo else []


def splice_list(items: list, start: Any, delete_count: Any) -> list:
    """Remove `delete_count` items from `start` in place; returns the removed items."""
    n = len(items)
    lo = _relative_index(start, n, 0)
    count = to_number(delete_count)
    if math.isnan(count) or count < 0:
        count = 0
    count = min(int(count) if not math.isinf(count) else n, n - lo)
    removed = items[lo:lo + count]
    del items[lo:lo + count]
    return removed


def exit_code(payload: Any) -> int:
    """Exit code for a halt payload: `Math.round(parseFloat(p)) || 0`.

    Process exit statuses are integers, so an infinite result maps to 0 where
    the browser sandbox would report `Infinity`.
    """
    r = js_round(parse_float(payload))
    if math.isnan(r) or math.isinf(r):
        return 0
    return int(r)
