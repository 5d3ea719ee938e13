"""Helpers for reading a JSON array out of free-form model text."""
from __future__ import annotations

import re

_FENCE_RE = re.compile(r"```[\w-]*[ \t]*\n?(.*?)(?:```|\Z)", re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_CLOSERS = {"[": "]", "{": "}"}
# Raw control characters a model leaves inside string literals.
_IN_STRING = {"\n": "\\n", "\t": "\\t", "\r": ""}


def strip_code_fences(text: str) -> str:
    """Body of the first fenced block (closed or not), else the stripped text."""
    m = _FENCE_RE.search(text)
    return m.group(1).strip() if m else text.strip()


def extract_array(text: str, *, repair: bool = False) -> str | None:
    """First ``[...]`` span of ``text``, scanned with string literals in mind.

    Without ``repair`` the span is returned as found, which for a truncated
    reply is everything from the opening bracket on. With ``repair``, control
    characters inside strings are escaped, an open string and any open
    brackets are closed, and trailing commas are dropped.
    """
    start = text.find("[")
    if start == -1:
        return None
    out: list[str] = []
    pending: list[str] = []
    in_str = escaped = False
    for ch in text[start:]:
        if in_str:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_str = False
            elif repair and ch in _IN_STRING:
                out.append(_IN_STRING[ch])
                continue
            out.append(ch)
            continue
        out.append(ch)
        if ch == '"':
            in_str = True
        elif ch in _CLOSERS:
            pending.append(_CLOSERS[ch])
        elif pending and ch == pending[-1]:
            pending.pop()
            if not pending:
                break

    span = "".join(out)
    if not repair:
        return span
    if in_str:
        span += '"'
    span += "".join(reversed(pending))
    return _TRAILING_COMMA_RE.sub(r"\1", span)
