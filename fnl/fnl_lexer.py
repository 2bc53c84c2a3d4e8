"""Splits FNL source into statements and statements into tokens."""
import re
from typing import List

from fnl.fnl_datatypes import Statement, FnlSyntaxError

BLOCK_COMMANDS = ("if", "loop", "while", "func")

# A token is a run of non-space, non-quote characters and "quoted runs"
_TOKEN_RE = re.compile(r'(?:[^\s"]+|"[^"]*")+')


def tokenize(text: str) -> List[str]:
    """Split on whitespace, keeping double-quoted runs (quotes included) intact."""
    return [m.group(0) for m in _TOKEN_RE.finditer(text)]


def split_statements(source: str) -> List[str]:
    """Split source into trimmed statement texts.

    `;`, `\\n` and `\\r` end a statement only outside braces, so a block
    body stays inside the statement that owns it.
    """
    parts: List[str] = []
    cur: List[str] = []
    depth = 0

    for c in source:
        if c == "{":
            depth += 1
            cur.append(c)
        elif c == "}":
            depth = max(0, depth - 1)
            cur.append(c)
        elif c in (";", "\n", "\r") and depth == 0:
            stmt = "".join(cur).strip()
            if stmt:
                parts.append(stmt)
            cur = []
        else:
            cur.append(c)

    leftover = "".join(cur).strip()
    if leftover:
        parts.append(leftover)
    return parts


def parse_statement(text: str, line: int) -> Statement:
    if not text:
        raise FnlSyntaxError("Empty command", line)

    first_word = text.split(None, 1)[0]
    if first_word in BLOCK_COMMANDS and "{" in text and "}" in text:
        open_at = text.index("{")
        head = text[:open_at].split()
        body = text[open_at + 1:text.rindex("}")].strip()
        return Statement(head[0], head[1:] + ["{", body, "}"], line)

    tokens = tokenize(text)
    if not tokens:
        raise FnlSyntaxError("Missing command", line)
    return Statement(tokens[0], tokens[1:], line)


def parse_program(source: str) -> List[Statement]:
    """Source text to statements; lines are 1-based indexes within this split."""
    return [parse_statement(text, idx + 1) for idx, text in enumerate(split_statements(source))]
