"""Quoting of values interpolated into PowerShell command lines.

PowerShell re-parses the ``-Command`` argument as script text, so every
value that reaches it must be quoted. Two styles are used:

* single quotes (:func:`escape_pwsh`) for verbatim argument values. Nothing
  is expanded inside single quotes; an embedded quote is written twice.
* double quotes (:func:`escape_pwsh_double`) for values placed in
  expandable strings. The backtick escapes quotes and ``$``.

The PowerShell tokenizer also treats the typographic quotes as string
delimiters, so they are escaped like their ASCII counterparts.
"""

from typing import Iterable, List

# ' and the left, right, low-9 and reversed-9 single quotation marks.
SINGLE_QUOTES = frozenset("'‘’‚‛")
# " and the left, right and low-9 double quotation marks.
DOUBLE_QUOTES = frozenset('"“”„')


def escape_pwsh(value: str) -> str:
    """Quote ``value`` as a verbatim PowerShell string literal."""
    escaped = []
    for ch in value:
        if ch in SINGLE_QUOTES:
            escaped.append(ch)
        escaped.append(ch)
    return "'" + "".join(escaped) + "'"


def escape_pwsh_double(value: str) -> str:
    """Quote ``value`` as an expandable PowerShell string literal with no
    expansions left in it."""
    escaped = []
    for ch in value:
        if ch in ("`", "$") or ch in DOUBLE_QUOTES:
            escaped.append("`")
        escaped.append(ch)
    return '"' + "".join(escaped) + '"'


def pwsh_array(values: Iterable[str]) -> List[str]:
    """Build the ``@( ... )`` array tokens for already-escaped values."""
    items = list(values)
    tokens = ["@("]
    for i, item in enumerate(items):
        tokens.append(item if i == len(items) - 1 else item + ",")
    tokens.append(")")
    return tokens
