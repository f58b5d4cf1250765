"""Best-effort Cython → Python stripper.

This is a line-oriented text transform, NOT a compiler. It drops the parts
of Cython that only carry static type information so the remainder can run
on the in-host Python path:

  - type-only imports:        ``cimport x``, ``from x cimport y``, ``import cython``
  - type declarations:        ``ctypedef ...``, ``cdef struct/union/enum/extern`` blocks,
                              ``ctypedef fused`` (generic type sets)
  - typed bindings:           ``cdef int x = 1``  →  ``x = 1`` (bare ``cdef int x`` is dropped)
  - typed functions:          ``cpdef double f(int a, double[:] b) except? -1 nogil:``
                              →  ``def f(a, b):``
  - extension classes:        ``cdef class X`` → ``class X``; ``cdef public int n`` dropped
  - casts:                    ``<int>x``, ``<Foo?>obj`` → ``x``, ``obj``
  - modifiers:                ``public``, ``readonly``, ``api``, ``inline``, ``nogil``, ``noexcept``
  - pure-Python mode noise:   ``@cython.*`` decorators, ``: cython.T`` annotations

Removed lines become blank (or ``pass`` inside a block), so line numbers in
error messages still match the user's buffer. Malformed or unusual input can
come out as invalid Python and then fail at execution; that is expected.
"""

from __future__ import annotations

import re

# ── Line classifiers ─────────────────────────────────────────────────────────

_BLOCK_DECL = re.compile(
    r"^\s*(?:cdef|cpdef|ctypedef)\s+(?:(?:public|api|packed|readonly)\s+)*"
    r"(?:extern|struct|union|enum|cppclass|fused)\b.*:\s*(?:#.*)?$"
)
_CDEF_BLOCK = re.compile(r"^\s*cdef\s*:\s*(?:#.*)?$")
_TYPE_ONLY = re.compile(
    r"^\s*(?:cimport\s|from\s+\S+\s+cimport\s|import\s+cython\s*(?:#.*)?$|ctypedef\s|include\s+['\"])"
)
_CYTHON_ONLY_BINDING = re.compile(
    r"^\s*[A-Za-z_]\w*\s*:\s*cython\.[\w.]+(?:\[[^\]]*\])?\s*(?:#.*)?$"
)
_CYTHON_DECORATOR = re.compile(r"^\s*@cython\.")
_DEF_CONST = re.compile(r"^(\s*)DEF\s+(\w+\s*=.*)$")
_GIL_BLOCK = re.compile(r"^(\s*)with\s+(?:nogil|gil)\b.*:\s*(?:#.*)?$")
_CLASS = re.compile(r"^(\s*)c(?:p)?def\s+(?:(?:public|api|final|readonly)\s+)*class\s+(.*)$")
_CDEF = re.compile(r"^\s*c(?:p)?def\s")
_PLAIN_DEF = re.compile(r"^\s*(?:async\s+)?def\s")

# ── Inline rewrites ──────────────────────────────────────────────────────────

_CAST = re.compile(
    r"(?<![\w)\]])<(?:(?:unsigned|signed|const|long|short) )*"
    r"[A-Za-z_][\w.]*(?:\[[^\]\s]*\])?\**\??>(?=\s*[\w(\[&\-\"'])"
)
_CYTHON_ANNOTATION = re.compile(r"\s*:\s*cython\.[\w.]+(?:\[[^\]]*\])?")
_CYTHON_RETURN = re.compile(r"\s*->\s*cython\.[\w.]+(?:\[[^\]]*\])?")
_CLASS_OBJECT_SPEC = re.compile(r"\s*\[[^\]]*\]\s*(?=[:(])")
_DECL_MODIFIERS = re.compile(r"^(?:(?:cdef|cpdef|public|readonly|api|inline|extern)\s+)+")
_NONE_CHECK = re.compile(r"\s+(?:not|or)\s+None\s*$")
_TRAILING_NAME = re.compile(r"([A-Za-z_]\w*)\s*(?:\[[^\]]*\])?\s*$")
_IDENT = re.compile(r"[A-Za-z_]\w*")

_OPENERS = "([{"
_CLOSERS = ")]}"


def strip_cython(source: str) -> str:
    """Reduce Cython ``source`` to Python. Lossy; see module docstring."""
    lines = source.splitlines()
    out: list[str] = []
    i = 0
    while i < len(lines):
        line = lines[i]
        stripped = line.strip()
        indent = line[: len(line) - len(line.lstrip())]

        if not stripped or stripped.startswith("#"):
            out.append(line)
            i += 1
            continue

        if _BLOCK_DECL.match(line):
            end = _block_end(lines, i)
            out.append(_removed(indent))
            out.extend("" for _ in range(i + 1, end))
            i = end
            continue

        if _CDEF_BLOCK.match(line):
            end = _block_end(lines, i)
            out.append(_removed(indent))
            for body in lines[i + 1:end]:
                text = body.strip()
                if not text or text.startswith("#"):
                    out.append("")
                else:
                    out.append(_declaration(indent, "cdef " + text))
            i = end
            continue

        if _TYPE_ONLY.match(line) or _CYTHON_ONLY_BINDING.match(line):
            out.append(_removed(indent))
            i += 1
            continue

        if _CYTHON_DECORATOR.match(line):
            out.append("")
            i += 1
            continue

        m = _DEF_CONST.match(line)
        if m:
            out.append(_inline(m.group(1) + m.group(2)))
            i += 1
            continue

        m = _GIL_BLOCK.match(line)
        if m:
            out.append(f"{m.group(1)}if True:")
            i += 1
            continue

        m = _CLASS.match(line)
        if m:
            out.append(f"{m.group(1)}class {_CLASS_OBJECT_SPEC.sub('', m.group(2))}")
            i += 1
            continue

        is_cdef = bool(_CDEF.match(line))
        if _PLAIN_DEF.match(line) or (is_cdef and "(" in _split_assignment(stripped)[0]):
            end, header = _gather_signature(lines, i)
            converted = _function(header, is_cdef)
            if converted is None:
                if is_cdef:
                    # forward declaration or something we cannot read
                    out.append(_removed(indent))
                    out.extend("" for _ in range(i + 1, end))
                else:
                    out.extend(_inline(original) for original in lines[i:end])
            else:
                out.append(converted)
                out.extend("" for _ in range(i + 1, end))
            i = end
            continue

        if is_cdef:
            out.append(_declaration(indent, stripped))
            i += 1
            continue

        out.append(_inline(line))
        i += 1

    result = "\n".join(out)
    return result + "\n" if source.endswith("\n") else result


# ── Pieces ───────────────────────────────────────────────────────────────────

def _removed(indent: str) -> str:
    # Inside a block a bare blank could leave the block empty.
    return f"{indent}pass" if indent else ""


def _inline(line: str) -> str:
    line = _CYTHON_RETURN.sub("", line)
    line = _CYTHON_ANNOTATION.sub("", line)
    return _CAST.sub("", line)


def _block_end(lines: list[str], start: int) -> int:
    """Index one past the indented body that follows ``lines[start]``."""
    base = len(lines[start]) - len(lines[start].lstrip())
    end = start + 1
    while end < len(lines):
        line = lines[end]
        if line.strip() and len(line) - len(line.lstrip()) <= base:
            break
        end += 1
    # Leave trailing blank lines to whatever comes next.
    while end > start + 1 and not lines[end - 1].strip():
        end -= 1
    return end


def _declaration(indent: str, text: str) -> str:
    """``cdef <type> name = value`` → ``name = value``; no value → removed."""
    head, value = _split_assignment(_DECL_MODIFIERS.sub("", text.strip()))
    if value is None:
        return _removed(indent)
    m = _TRAILING_NAME.search(head)
    if not m:
        return _removed(indent)
    return _inline(f"{indent}{m.group(1)} = {value.strip()}")


def _gather_signature(lines: list[str], start: int) -> tuple[int, str]:
    """Join a (possibly multi-line) signature until its parentheses balance."""
    parts: list[str] = []
    depth = 0
    end = start
    while end < len(lines):
        text = lines[end]
        parts.append(text.strip() if parts else text.rstrip())
        depth += _paren_delta(text)
        end += 1
        if depth <= 0:
            break
    return end, " ".join(parts)


def _function(header: str, is_cdef: bool) -> str | None:
    """Rewrite one signature line. None when nothing (usable) changes."""
    indent = header[: len(header) - len(header.lstrip())]
    open_at = header.find("(")
    close_at = _matching_paren(header, open_at)
    if open_at < 0 or close_at < 0:
        return None

    suffix = _strip_comment(header[close_at + 1:]).strip()
    if not suffix.endswith(":"):
        return None

    name_match = _TRAILING_NAME.search(header[:open_at])
    if not name_match:
        return None
    name = name_match.group(1)
    prefix = header[:open_at].strip()
    is_async = prefix.startswith("async ")

    raw_params = _split_top_level(header[open_at + 1:close_at])
    params = [_param(p) for p in raw_params]
    if not is_cdef and params == [p.strip() for p in raw_params]:
        return None

    returns = ""
    tail = suffix[:-1].strip()
    if not is_cdef and tail.startswith("->"):
        returns = " " + _CYTHON_RETURN.sub("", " " + tail).strip()
        returns = "" if returns.strip() == "" else returns
    keyword = "async def" if is_async else "def"
    return f"{indent}{keyword} {name}({', '.join(p for p in params if p)}){returns}:"


def _param(param: str) -> str:
    param = param.strip()
    if not param or param.startswith("*") or param == "/":
        return param
    head, default = _split_assignment(param)
    if _find_top_level(head, ":") >= 0:
        # Python annotation; only Cython-typed ones are removed
        return _inline(param)
    head = _NONE_CHECK.sub("", head).strip()
    m = _TRAILING_NAME.search(head)
    name = m.group(1) if m else head
    if default is None:
        return name
    return f"{name}={default.strip()}"


# ── Tokenish helpers ─────────────────────────────────────────────────────────

def _split_assignment(text: str) -> tuple[str, str | None]:
    at = _find_top_level(text, "=")
    if at < 0:
        return text, None
    return text[:at].rstrip(), text[at + 1:]


def _find_top_level(text: str, char: str) -> int:
    """Index of ``char`` outside brackets and quotes, or -1.

    For ``=`` the comparison operators ``==``, ``<=``, ``>=``, ``!=`` are skipped.
    """
    depth = 0
    quote = ""
    for i, c in enumerate(text):
        if quote:
            if c == quote and text[i - 1] != "\\":
                quote = ""
            continue
        if c in "\"'":
            quote = c
        elif c in _OPENERS:
            depth += 1
        elif c in _CLOSERS:
            depth -= 1
        elif c == char and depth == 0:
            if char == "=":
                before = text[i - 1] if i else ""
                after = text[i + 1] if i + 1 < len(text) else ""
                if after == "=" or before in "=<>!":
                    continue
            return i
    return -1


def _split_top_level(text: str) -> list[str]:
    parts: list[str] = []
    depth = 0
    quote = ""
    current = []
    for i, c in enumerate(text):
        if quote:
            current.append(c)
            if c == quote and text[i - 1] != "\\":
                quote = ""
            continue
        if c in "\"'":
            quote = c
        elif c in _OPENERS:
            depth += 1
        elif c in _CLOSERS:
            depth -= 1
        elif c == "," and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(c)
    if "".join(current).strip() or parts:
        parts.append("".join(current))
    return parts


def _matching_paren(text: str, open_at: int) -> int:
    if open_at < 0:
        return -1
    depth = 0
    quote = ""
    for i in range(open_at, len(text)):
        c = text[i]
        if quote:
            if c == quote and text[i - 1] != "\\":
                quote = ""
            continue
        if c in "\"'":
            quote = c
        elif c in _OPENERS:
            depth += 1
        elif c in _CLOSERS:
            depth -= 1
            if depth == 0:
                return i if c == ")" else -1
    return -1


def _paren_delta(text: str) -> int:
    code = _strip_comment(text)
    return sum(code.count(c) for c in _OPENERS) - sum(code.count(c) for c in _CLOSERS)


def _strip_comment(text: str) -> str:
    quote = ""
    for i, c in enumerate(text):
        if quote:
            if c == quote and text[i - 1] != "\\":
                quote = ""
        elif c in "\"'":
            quote = c
        elif c == "#":
            return text[:i]
    return text
