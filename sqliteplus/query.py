"""Parameterized query templates with textual value binding.

Placeholders:
  - named:      :name, @name, $name  (the sigil is not part of the key, so
                :id and @id share one value)
  - positional: ?NNN (explicit 1-based index) or bare ? (one past the highest
                index seen so far, as SQLite numbers them). ?0 can never
                be bound and always fails bind()

Quoted literals, quoted/bracketed identifiers and comments are copied through
untouched, so ':x' inside a string is never a placeholder.

Binding is plain text substitution. Values are NOT escaped: the caller is
responsible for passing safe SQL fragments (see QueryBinder.quote). Never bind
untrusted input without quoting it first.
"""
from __future__ import annotations
import re
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Tuple, Union

Key = Union[str, int]

_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_DIGITS_RE = re.compile(r"[0-9]+")
_SIGILS = ":@$"
_QUOTES = {"'": "'", '"': '"', "`": "`", "[": "]"}


class BindError(LookupError):
    """Raised when a template references placeholders with no bound value."""

    def __init__(self, missing: List[str]):
        self.missing = tuple(missing)
        super().__init__("missing binding for " + ", ".join(self.missing))

    def __str__(self) -> str:
        return self.args[0]


class _Placeholder(NamedTuple):
    key: Key
    text: str


def _normalize_key(key: Key) -> Key:
    if isinstance(key, bool):
        raise ValueError(f"invalid placeholder key: {key!r}")
    if isinstance(key, int):
        if key < 1:
            raise ValueError(f"positional placeholders start at 1, got {key}")
        return key
    if not isinstance(key, str):
        raise ValueError(f"invalid placeholder key: {key!r}")
    if key.startswith("?"):
        digits = key[1:]
        if _DIGITS_RE.fullmatch(digits):
            return _normalize_key(int(digits))
        raise ValueError(f"invalid positional placeholder: {key!r}")
    name = key[1:] if key and key[0] in _SIGILS else key
    if not _NAME_RE.fullmatch(name):
        raise ValueError(f"invalid placeholder name: {key!r}")
    return name


def _skip_quoted(template: str, start: int) -> int:
    """Return the index just past the quoted token opening at start."""
    close = _QUOTES[template[start]]
    i = start + 1
    n = len(template)
    while i < n:
        if template[i] == close:
            # doubled quote is an escaped quote; brackets have no escape
            if close != "]" and i + 1 < n and template[i + 1] == close:
                i += 2
                continue
            return i + 1
        i += 1
    return n


def _compile(template: str) -> Tuple[Union[str, _Placeholder], ...]:
    segments: List[Union[str, _Placeholder]] = []
    literal_start = 0
    highest = 0
    i = 0
    n = len(template)

    def flush(end: int) -> None:
        if end > literal_start:
            segments.append(template[literal_start:end])

    while i < n:
        ch = template[i]
        if ch in _QUOTES:
            i = _skip_quoted(template, i)
            continue
        if template.startswith("--", i):
            nl = template.find("\n", i)
            i = n if nl < 0 else nl
            continue
        if template.startswith("/*", i):
            end = template.find("*/", i + 2)
            i = n if end < 0 else end + 2
            continue
        if ch in _SIGILS:
            m = _NAME_RE.match(template, i + 1)
            if m:
                flush(i)
                segments.append(_Placeholder(m.group(), template[i:m.end()]))
                i = literal_start = m.end()
                continue
        elif ch == "?":
            m = _DIGITS_RE.match(template, i + 1)
            if m:
                index = int(m.group())
                end = m.end()
            else:
                index = highest + 1
                end = i + 1
            # ?0 is kept as a key no value can take, so bind() reports it
            highest = max(highest, index)
            flush(i)
            segments.append(_Placeholder(index, f"?{index}"))
            i = literal_start = end
            continue
        i += 1
    flush(n)
    return tuple(segments)


class QueryBinder:
    """A query template plus the values to substitute into it.

    The template is fixed at construction; values can be set any number of
    times, in any order, before (and between) calls to bind().
    """

    def __init__(self, template: str, values: Optional[Mapping[Key, Any]] = None, **named: Any):
        if not isinstance(template, str):
            raise TypeError("template must be a string")
        self._template = template
        self._segments = _compile(template)
        self._values: Dict[Key, str] = {}
        self.update(values, **named)

    @property
    def template(self) -> str:
        return self._template

    @property
    def placeholders(self) -> Tuple[Key, ...]:
        """Distinct placeholder keys in order of first appearance."""
        seen: Dict[Key, None] = {}
        for seg in self._segments:
            if isinstance(seg, _Placeholder):
                seen.setdefault(seg.key, None)
        return tuple(seen)

    @property
    def values(self) -> Dict[Key, str]:
        return dict(self._values)

    def set(self, key: Key, value: Any) -> "QueryBinder":
        self._values[_normalize_key(key)] = str(value)
        return self

    __setitem__ = set

    def update(self, values: Optional[Mapping[Key, Any]] = None, **named: Any) -> "QueryBinder":
        if values:
            for key, value in values.items():
                self.set(key, value)
        for key, value in named.items():
            self.set(key, value)
        return self

    def set_positional(self, *values: Any) -> "QueryBinder":
        """Bind values to ?1, ?2, ... in order."""
        for index, value in enumerate(values, start=1):
            self.set(index, value)
        return self

    def missing(self) -> List[str]:
        """Placeholder spellings that have no bound value (first spelling per key)."""
        out: Dict[Key, str] = {}
        for seg in self._segments:
            if isinstance(seg, _Placeholder) and seg.key not in self._values:
                out.setdefault(seg.key, seg.text)
        return list(out.values())

    def bind(self) -> str:
        """Resolve the template; raises BindError if any placeholder is unbound."""
        missing = self.missing()
        if missing:
            raise BindError(missing)
        return "".join(
            seg if isinstance(seg, str) else self._values[seg.key]
            for seg in self._segments
        )

    @staticmethod
    def quote(value: Any) -> str:
        """Render value as a SQL literal: NULL, a bare number or a quoted string."""
        if value is None:
            return "NULL"
        if isinstance(value, bool):
            return "1" if value else "0"
        if isinstance(value, (int, float)):
            return repr(value)
        if isinstance(value, (bytes, bytearray)):
            return "X'" + bytes(value).hex().upper() + "'"
        return "'" + str(value).replace("'", "''") + "'"

    def __repr__(self) -> str:
        return f"QueryBinder({self._template!r}, bound={sorted(map(str, self._values))})"
