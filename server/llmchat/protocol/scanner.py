"""Lenient string scanning over JSON text.

Provider payloads are read without a JSON parser: every extractor and catalog
parser is built on :func:`find_string_value`, which finds the first string
value for a key and tolerates partial or unfamiliar documents. A missing key
is "no result", never an exception.
"""

from __future__ import annotations
import re
from typing import Iterator, Optional, Tuple

ERROR_KEY = '"error"'
MESSAGE_KEY = '"message"'

_WHITESPACE = " \t\r\n"
_ESCAPE = re.compile(r"\\(.)", re.DOTALL)
_UNESCAPES = {"n": "\n", "t": "\t", '"': '"', "\\": "\\"}


def _skip_whitespace(text: str, pos: int) -> int:
    while pos < len(text) and text[pos] in _WHITESPACE:
        pos += 1
    return pos


def scan_string(text: str, quote: int) -> Optional[int]:
    """Return the index of the quote closing the string opened at ``quote``.

    A backslash escapes the following character, so ``\\"`` does not end the
    string. Returns None when the string is not terminated yet.
    """
    pos = quote + 1
    while pos < len(text):
        ch = text[pos]
        if ch == "\\":
            pos += 2
            continue
        if ch == '"':
            return pos
        pos += 1
    return None


def find_string_value(text: str, key: str, start: int = 0) -> Optional[Tuple[str, int]]:
    """Find the first string value for ``key`` at or after ``start``.

    Returns ``(raw_value, end)`` where ``raw_value`` is still JSON-escaped and
    ``end`` is the index just past the closing quote. Occurrences of the key
    that are not followed by ``:`` and a string (e.g. the word used as a value,
    or ``"content": null``) are skipped.
    """
    needle = f'"{key}"'
    pos = text.find(needle, start)
    while pos >= 0:
        colon = _skip_whitespace(text, pos + len(needle))
        if colon >= len(text):
            return None
        if text[colon] == ":":
            quote = _skip_whitespace(text, colon + 1)
            if quote >= len(text):
                return None
            if text[quote] == '"':
                end = scan_string(text, quote)
                if end is None:
                    return None
                return text[quote + 1:end], end + 1
        pos = text.find(needle, pos + len(needle))
    return None


def iter_string_values(text: str, key: str) -> Iterator[str]:
    """Yield every raw string value for ``key`` in order of appearance.

    Each search resumes after the previous value, and an unterminated value
    ends the scan.
    """
    pos = 0
    while True:
        found = find_string_value(text, key, pos)
        if found is None:
            return
        value, pos = found
        yield value


def unescape(raw: str) -> str:
    """Decode ``\\n``, ``\\t``, ``\\"`` and ``\\\\`` in one left-to-right pass.

    Other escapes are kept as written.
    """
    return _ESCAPE.sub(lambda m: _UNESCAPES.get(m.group(1), m.group(0)), raw)


def has_error_payload(text: str) -> bool:
    return ERROR_KEY in text and MESSAGE_KEY in text


def message_pending(text: str) -> bool:
    """True while a ``"message"`` value could still turn out to be a string.

    False once every ``"message"`` key is followed by a value that is not a
    string, so no readable message can arrive.
    """
    pos = text.find(MESSAGE_KEY)
    while pos >= 0:
        colon = _skip_whitespace(text, pos + len(MESSAGE_KEY))
        if colon >= len(text):
            return True
        if text[colon] == ":":
            value = _skip_whitespace(text, colon + 1)
            if value >= len(text) or text[value] == '"':
                return True
        pos = text.find(MESSAGE_KEY, pos + len(MESSAGE_KEY))
    return False


def extract_error_message(text: str) -> Optional[str]:
    found = find_string_value(text, "message")
    if found is None:
        return None
    return unescape(found[0])
