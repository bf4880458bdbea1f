"""Tolerant partial-JSON parser for progressive display of streamed payloads.

``parse(text)`` never raises. Complete JSON is returned exactly as
``json.loads`` would return it. A truncated document yields the largest
structure its characters actually encode:

- complete nested objects and arrays are kept as-is;
- an unterminated string value is kept with its partial content (an
  incomplete escape sequence or a dangling high surrogate is dropped);
- an unterminated key, a key without a value, and a number or literal not
  yet followed by a delimiter are omitted, since more characters could still
  change them.

So for any document ``D``, ``parse(D[:k])`` never contains data that
contradicts ``parse(D)``. When nothing can be derived the result is ``{}``.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

_MISSING: Any = object()

_NUMBER_RE = re.compile(r"-?(?:0|[1-9][0-9]*)(?:\.[0-9]+)?(?:[eE][+-]?[0-9]+)?")
_HIGH_SURROGATE_RE = re.compile(r"[dD][89abAB][0-9a-fA-F]{2}")
_WHITESPACE = " \t\n\r"
_NUMBER_DELIMITERS = _WHITESPACE + ",}]"
_LITERALS: tuple[tuple[str, Any], ...] = (("true", True), ("false", False), ("null", None))


class _Stop(Exception):
    """Parsing ended early (truncated or invalid input).

    Carries the best value derived for the structure being parsed, or
    ``_MISSING`` when nothing usable was read.
    """

    def __init__(self, partial: Any = _MISSING):
        self.partial = partial
        super().__init__()


def parse(text: str) -> Any:
    """Parse possibly-truncated JSON text.

    Args:
        text: JSON text, complete or a prefix of a complete document.

    Returns:
        The parsed value for complete JSON; otherwise the partial object or
        array derivable from the prefix, or ``{}``.
    """
    if not isinstance(text, str):
        return {}
    try:
        return json.loads(text)
    except (ValueError, RecursionError):
        pass

    try:
        value = _PartialParser(text).parse()
    except _Stop as stop:
        value = stop.partial
    except RecursionError:
        logger.debug("Partial JSON nested too deeply, giving up")
        return {}

    if isinstance(value, dict | list):
        return value
    return {}


class _PartialParser:
    """Recursive-descent parser that reports partial values via _Stop."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0
        self.end = len(text)

    def parse(self) -> Any:
        return self._value()

    # -------------------------------------------------------------------------
    # values
    # -------------------------------------------------------------------------

    def _value(self) -> Any:
        self._skip_ws()
        char = self._peek()
        if char == "{":
            return self._object()
        if char == "[":
            return self._array()
        if char == '"':
            return self._string()
        if char and char in "-0123456789":
            return self._number()
        for literal, value in _LITERALS:
            if self.text.startswith(literal, self.pos):
                self.pos += len(literal)
                return value
        # end of input, truncated literal or garbage
        raise _Stop()

    def _object(self) -> dict[str, Any]:
        obj: dict[str, Any] = {}
        self.pos += 1
        self._skip_ws()
        if self._peek() == "}":
            self.pos += 1
            return obj

        while True:
            self._skip_ws()
            if self._peek() != '"':
                raise _Stop(obj)
            try:
                key = self._string()
            except _Stop:
                raise _Stop(obj) from None

            self._skip_ws()
            if self._peek() != ":":
                raise _Stop(obj)
            self.pos += 1

            try:
                value = self._value()
            except _Stop as stop:
                if stop.partial is not _MISSING:
                    obj[key] = stop.partial
                raise _Stop(obj) from None
            obj[key] = value

            self._skip_ws()
            char = self._peek()
            if char == ",":
                self.pos += 1
            elif char == "}":
                self.pos += 1
                return obj
            else:
                raise _Stop(obj)

    def _array(self) -> list[Any]:
        arr: list[Any] = []
        self.pos += 1
        self._skip_ws()
        if self._peek() == "]":
            self.pos += 1
            return arr

        while True:
            try:
                value = self._value()
            except _Stop as stop:
                if stop.partial is not _MISSING:
                    arr.append(stop.partial)
                raise _Stop(arr) from None
            arr.append(value)

            self._skip_ws()
            char = self._peek()
            if char == ",":
                self.pos += 1
            elif char == "]":
                self.pos += 1
                return arr
            else:
                raise _Stop(arr)

    def _string(self) -> str:
        start = self.pos + 1
        index = start
        while index < self.end:
            char = self.text[index]
            if char == '"':
                self.pos = index + 1
                decoded = _decode_string(self.text[start:index])
                if decoded is _MISSING:
                    raise _Stop()
                return decoded
            index += 2 if char == "\\" else 1

        self.pos = self.end
        raise _Stop(_decode_string(_trim_partial_escape(self.text[start:])))

    def _number(self) -> int | float:
        match = _NUMBER_RE.match(self.text, self.pos)
        if match is None:
            raise _Stop()
        # Digits at the very end may still continue: "12" could become "123"
        if match.end() >= self.end or self.text[match.end()] not in _NUMBER_DELIMITERS:
            raise _Stop()
        self.pos = match.end()
        return json.loads(match.group())

    # -------------------------------------------------------------------------
    # helpers
    # -------------------------------------------------------------------------

    def _peek(self) -> str:
        return self.text[self.pos] if self.pos < self.end else ""

    def _skip_ws(self) -> None:
        while self.pos < self.end and self.text[self.pos] in _WHITESPACE:
            self.pos += 1


def _decode_string(raw: str) -> Any:
    try:
        return json.loads(f'"{raw}"', strict=False)
    except ValueError:
        return _MISSING


def _trim_partial_escape(raw: str) -> str:
    """Drop an escape sequence cut off by the end of input."""
    index = 0
    last_escape = -1
    while index < len(raw):
        if raw[index] == "\\":
            last_escape = index
            index += 2
        else:
            index += 1

    if last_escape < 0:
        return raw
    if index > len(raw):
        return _trim_partial_escape(raw[:last_escape])
    if raw[last_escape + 1] == "u":
        digits = raw[last_escape + 2 : last_escape + 6]
        if len(digits) < 4:
            return _trim_partial_escape(raw[:last_escape])
        # A high surrogate at the end pairs with an escape that has not arrived yet
        if last_escape + 6 == len(raw) and _HIGH_SURROGATE_RE.fullmatch(digits):
            return raw[:last_escape]
    return raw
