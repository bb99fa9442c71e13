"""Placeholder substitution and flat property-file parsing.

Two small text utilities shared by the configuration and mapper builders:

* :func:`resolve_placeholders` expands ``${name}`` and ``${name:default}``
  references against the document variables.  Unknown names without a
  default are left untouched so that later stages (or the database) see
  the original text.
* :func:`parse_properties` reads ``key=value`` / ``key: value`` lines from
  ``.properties`` files, where deployments usually keep connection details.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

# ${name} or ${name:default}; the name may contain dots and dashes.
_PLACEHOLDER_RE = re.compile(r"\$\{\s*([\w.\-]+)\s*(?::([^}]*))?\}")


def resolve_placeholders(text: str, variables: Mapping[str, Any] | None) -> str:
    """Return *text* with every resolvable ``${...}`` reference expanded."""
    if "${" not in text:
        return text

    def _replace(match: re.Match[str]) -> str:
        name, default = match.group(1), match.group(2)
        if variables is not None and name in variables:
            return str(variables[name])
        if default is not None:
            return default
        return match.group(0)

    return _PLACEHOLDER_RE.sub(_replace, text)


def parse_properties(text: str) -> dict[str, str]:
    """Parse ``.properties`` text into a flat ``str -> str`` mapping.

    Supports ``#`` and ``!`` comments, ``=`` or ``:`` separators, and
    backslash line continuations.  Later keys override earlier ones.
    """
    result: dict[str, str] = {}
    pending = ""

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not pending and (not line or line[0] in "#!"):
            continue

        if _continues(line):
            pending += line[:-1]
            continue

        line = pending + line
        pending = ""

        key, value = _split_property_line(line)
        if key:
            result[key] = value

    if pending:
        key, value = _split_property_line(pending)
        if key:
            result[key] = value

    return result


def _split_property_line(line: str) -> tuple[str, str]:
    """Split one logical line at the first unescaped ``=`` or ``:``."""
    for index, char in enumerate(line):
        if char in "=:" and (index == 0 or line[index - 1] != "\\"):
            return line[:index].strip(), line[index + 1 :].strip()
    return line.strip(), ""


def _continues(line: str) -> bool:
    """True when *line* ends in an odd run of backslashes."""
    trailing = len(line) - len(line.rstrip("\\"))
    return trailing % 2 == 1
