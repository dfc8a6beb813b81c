"""Positional parameter handling: type codes, tagged values, placeholders.

Callers write ``?`` placeholders. Before execution the statement is rewritten
to psycopg2's ``%s`` style and each value gets a one-letter type code:

    i  integer        d  double        s  string
    b  blob / other   n  NULL
"""

import re
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

import psycopg2

INTEGER = "i"
DOUBLE = "d"
STRING = "s"
BLOB = "b"
NULL = "n"

KINDS = (INTEGER, DOUBLE, STRING, BLOB, NULL)


@dataclass(frozen=True)
class Param:
    """A parameter whose kind is chosen by the caller instead of inferred."""

    kind: str
    value: Any

    def __post_init__(self):
        if self.kind not in KINDS:
            raise ValueError(f"Unknown parameter kind {self.kind!r}, expected one of {KINDS}")

    @classmethod
    def integer(cls, value) -> "Param":
        return cls(INTEGER, int(value))

    @classmethod
    def double(cls, value) -> "Param":
        return cls(DOUBLE, float(value))

    @classmethod
    def text(cls, value) -> "Param":
        return cls(STRING, str(value))

    @classmethod
    def blob(cls, value) -> "Param":
        return cls(BLOB, bytes(value))

    @classmethod
    def null(cls) -> "Param":
        return cls(NULL, None)

    def adapt(self):
        """Value in the form psycopg2 should receive."""
        if self.kind == NULL:
            return None
        if self.kind == BLOB:
            return psycopg2.Binary(self.value)
        return self.value


def type_code(value) -> str:
    """Classify one parameter. bool counts as an integer."""
    if isinstance(value, Param):
        return value.kind
    if value is None:
        return NULL
    if isinstance(value, int):
        return INTEGER
    if isinstance(value, float):
        return DOUBLE
    if isinstance(value, str):
        return STRING
    return BLOB


def param_types(params: Iterable) -> str:
    """Concatenate type codes in positional order."""
    return "".join(type_code(p) for p in params)


def bind_values(params: Sequence) -> tuple:
    """Unwrap tagged parameters into the tuple handed to cursor.execute()."""
    return tuple(p.adapt() if isinstance(p, Param) else p for p in params)


_DOLLAR_TAG = re.compile(r"\$(?:[A-Za-z_][A-Za-z0-9_]*)?\$")


def _skip_to(sql: str, start: int, terminator: str, inclusive: bool = True) -> int:
    end = sql.find(terminator, start)
    if end == -1:
        return len(sql)
    return end + len(terminator) if inclusive else end


def _skip_escape_string(sql: str, start: int) -> int:
    """End of an E'...' literal whose body starts at ``start``."""
    i = start
    n = len(sql)
    while i < n:
        ch = sql[i]
        if ch == "\\":
            i += 2
        elif ch == "'":
            if sql.startswith("''", i):
                i += 2
            else:
                return i + 1
        else:
            i += 1
    return n


def _follows_identifier(sql: str, i: int) -> bool:
    return i > 0 and (sql[i - 1].isalnum() or sql[i - 1] in "_$")


def _literal_end(sql: str, i: int):
    """End index of the literal, identifier or comment starting at ``i``."""
    ch = sql[i]
    if ch in "Ee" and sql.startswith("'", i + 1) and not _follows_identifier(sql, i):
        return _skip_escape_string(sql, i + 2)
    if ch in ("'", '"'):
        return _skip_to(sql, i + 1, ch)
    if sql.startswith("--", i):
        return _skip_to(sql, i + 2, "\n", inclusive=False)
    if sql.startswith("/*", i):
        return _skip_to(sql, i + 2, "*/")
    if ch == "$" and not _follows_identifier(sql, i):
        match = _DOLLAR_TAG.match(sql, i)
        if match:
            return _skip_to(sql, match.end(), match.group())
    return None


def translate_placeholders(sql: str, escape_percent: bool = True) -> tuple[str, int]:
    """Rewrite ``?`` placeholders to ``%s``.

    Quoted literals (including E'...' and dollar-quoted bodies), quoted
    identifiers and comments are copied verbatim, apart from ``%`` which is
    doubled whenever ``escape_percent`` is set (psycopg2 formats the whole
    statement when parameters are passed).

    Returns the rewritten statement and the number of placeholders found.
    """
    out = []
    count = 0
    i = 0
    n = len(sql)
    while i < n:
        end = _literal_end(sql, i)
        if end is not None:
            chunk = sql[i:end]
            out.append(chunk.replace("%", "%%") if escape_percent else chunk)
            i = end
            continue

        ch = sql[i]
        if ch == "?":
            out.append("%s")
            count += 1
        elif ch == "%" and escape_percent:
            out.append("%%")
        else:
            out.append(ch)
        i += 1
    return "".join(out), count
