"""Java-properties compatible key/value files for cache metadata."""

from __future__ import annotations

import logging
import os
import tempfile
import time
from typing import Dict, Iterator, Optional, Tuple

from common.logging_utils import extra_context, is_debug_enabled

logger = logging.getLogger(__name__)

_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}
_KEY_SPECIALS = " :=#!"


def _unescape(text: str) -> str:
    out = []
    chars = iter(text)
    for char in chars:
        if char != "\\":
            out.append(char)
            continue
        nxt = next(chars, "")
        if nxt == "u":
            code = "".join(next(chars, "") for _ in range(4))
            out.append(chr(int(code, 16)))
        else:
            out.append(_ESCAPES.get(nxt, nxt))
    return "".join(out)


def _escape(text: str, is_key: bool) -> str:
    out = []
    for index, char in enumerate(text):
        if char == "\\":
            out.append("\\\\")
        elif char == "\t":
            out.append("\\t")
        elif char == "\n":
            out.append("\\n")
        elif char == "\r":
            out.append("\\r")
        elif char == "\f":
            out.append("\\f")
        elif (is_key and char in _KEY_SPECIALS) or (char == " " and index == 0):
            out.append("\\" + char)
        elif not is_key and char in "#!=:" and index == 0:
            out.append("\\" + char)
        else:
            out.append(char)
    return "".join(out)


def _logical_lines(content: str) -> Iterator[str]:
    pending = ""
    for raw in content.splitlines():
        line = raw.lstrip(" \t\f") if not pending else raw.lstrip()
        if not pending and (not line or line[0] in "#!"):
            continue
        trailing = len(line) - len(line.rstrip("\\"))
        if trailing % 2 == 1:
            pending += line[:-1]
            continue
        yield pending + line
        pending = ""
    if pending:
        yield pending


def _split(line: str) -> Tuple[str, str]:
    index = 0
    while index < len(line) and line[index] not in "=: \t\f":
        index += 2 if line[index] == "\\" else 1
    rest = line[index:].lstrip(" \t\f")
    if rest[:1] in ("=", ":"):
        rest = rest[1:].lstrip(" \t\f")
    return _unescape(line[:index]), _unescape(rest)


def parse_properties(content: str) -> Dict[str, str]:
    """Parse properties text into an insertion-ordered dict."""
    props: Dict[str, str] = {}
    for line in _logical_lines(content):
        key, value = _split(line)
        props[key] = value
    return props


def format_properties(props: Dict[str, str], header: Optional[str] = None) -> str:
    lines = []
    if header:
        lines.append(f"#{header}")
    lines.append("#" + time.strftime("%a %b %d %H:%M:%S %Z %Y"))
    for key, value in props.items():
        lines.append(f"{_escape(key, True)}={_escape(value, False)}")
    return "\n".join(lines) + "\n"


class PropertiesFile:
    """A properties file loaded on construction and flushed on every ``save``.

    Writes go through a temporary file in the same directory and
    ``os.replace`` so readers never observe a partially written file.
    """

    def __init__(self, path: str, header: Optional[str] = None):
        self.path = path
        self.header = header
        self._props: Dict[str, str] = {}
        self.load()

    def load(self) -> None:
        if not os.path.exists(self.path):
            self._props = {}
            return
        with open(self.path, "r", encoding="utf-8") as fh:
            self._props = parse_properties(fh.read())

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._props.get(key, default)

    def set(self, key: str, value: str) -> None:
        self._props[key] = str(value)

    def remove(self, key: str) -> None:
        self._props.pop(key, None)

    def keys(self):
        return list(self._props)

    def __contains__(self, key: str) -> bool:
        return key in self._props

    def save(self) -> None:
        """Atomically write the current content to disk."""
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        content = format_properties(self._props, self.header)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".props-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(content)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        if is_debug_enabled(logger):
            logger.debug(
                "Saved properties",
                extra=extra_context(event="save", component="properties", target=self.path, count=len(self._props)),
            )
