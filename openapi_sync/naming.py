"""Derive stable identifiers for types and endpoints.

Default pattern: {Method}{SanitizedPath}{code}{Kind}
  - GET  /pets                 -> GetPets
  - GET  /pets/{id}            -> GetPetsId
  - GET  /pets/{id}, 200 resp  -> GetPetsId200Response
  - POST /pets, request body   -> PostPetsDTO
  - GET  /pets, query params   -> GetPetsQuery

With ``useOperationId`` the operationId replaces method + path:
  - getPetById                 -> getPetById (endpoint)
  - getPetById, 200 resp       -> GetPetById200Response (type)

A configured formatter receives ``(data, default_name)`` and wins when it
returns a non-empty string.
"""

from __future__ import annotations

import re
from typing import Any, Callable

from .errors import NameCollisionError

Formatter = Callable[[dict[str, Any], str], "str | None"]

_NON_IDENTIFIER = re.compile(r"[^A-Za-z0-9_]+")

# Words that cannot name a binding in a TypeScript module.
RESERVED_WORDS = frozenset({
    "arguments", "await", "break", "case", "catch", "class", "const", "continue",
    "debugger", "default", "delete", "do", "else", "enum", "eval", "export",
    "extends", "false", "finally", "for", "function", "if", "implements",
    "import", "in", "instanceof", "interface", "let", "new", "null", "package",
    "private", "protected", "public", "return", "static", "super", "switch",
    "this", "throw", "true", "try", "typeof", "var", "void", "while", "with",
    "yield",
})

KIND_SUFFIXES: dict[str, str] = {
    "": "",
    "query": "Query",
    "dto": "DTO",
    "response": "Response",
}


def capitalize(text: str) -> str:
    """Uppercase the first character only."""
    return text[:1].upper() + text[1:]


def to_identifier(text: str, upper_first: bool = False) -> str:
    """Turn arbitrary text into a camelCase identifier.

    ``get-pet by.id`` -> ``getPetById``; leading digits get an underscore.
    Reserved words get a trailing underscore: ``delete`` -> ``delete_``.
    """
    parts = [p for p in _NON_IDENTIFIER.split(str(text)) if p]
    if not parts:
        return "_"
    name = parts[0] + "".join(capitalize(p) for p in parts[1:])
    if upper_first:
        name = capitalize(name)
    if name[0].isdigit():
        name = "_" + name
    if name in RESERVED_WORDS:
        name += "_"
    return name


def sanitize_path(path: str) -> str:
    """``/pets/{id}/toys`` -> ``PetsIdToys``."""
    return "".join(capitalize(p) for p in _NON_IDENTIFIER.split(path) if p)


def _apply_formatter(formatter: Formatter | None, data: dict[str, Any], default: str) -> str:
    if formatter is None:
        return default
    formatted = formatter(data, default)
    if formatted:
        return to_identifier(formatted)
    return default


def build_name(
    method: str,
    path: str,
    operation_id: str | None = None,
    use_operation_id: bool = False,
    code: str = "",
    kind: str = "",
    formatter: Formatter | None = None,
    source: str = "endpoint",
    summary: str = "",
    tags: list[str] | None = None,
    upper_first: bool = False,
) -> str:
    """Build a name from operationId or method + path, plus code and kind."""
    if use_operation_id and operation_id:
        base = to_identifier(operation_id, upper_first=upper_first)
    else:
        base = capitalize(method.lower()) + sanitize_path(path)

    suffix = KIND_SUFFIXES.get(kind, capitalize(kind))
    default = f"{base}{code}{suffix}"

    data = {
        "source": source,
        "method": method.upper(),
        "path": path,
        "operationId": operation_id,
        "code": code,
        "type": kind,
        "summary": summary,
        "tags": list(tags or []),
    }
    return _apply_formatter(formatter, data, default)


def shared_type_name(
    schema_name: str,
    prefix: str = "I",
    formatter: Formatter | None = None,
) -> str:
    """Name of a declaration generated for a named component schema."""
    default = to_identifier(schema_name, upper_first=True)
    name = _apply_formatter(formatter, {"source": "shared", "name": schema_name}, default)
    return f"{prefix}{name}"


class NameRegistry:
    """Hands out unique names within one API namespace.

    The first claimant keeps a name; later ones get ``_2``, ``_3``, ... in
    the order they are claimed.
    """

    def __init__(self, max_attempts: int = 1000):
        self.max_attempts = max_attempts
        self._taken: set[str] = set()

    def __contains__(self, name: str) -> bool:
        return name in self._taken

    def claim(self, name: str) -> str:
        if name not in self._taken:
            self._taken.add(name)
            return name
        for n in range(2, self.max_attempts + 2):
            candidate = f"{name}_{n}"
            if candidate not in self._taken:
                self._taken.add(candidate)
                return candidate
        raise NameCollisionError(name, self.max_attempts)


def deduplicate_names(names: list[str]) -> list[str]:
    """Make every name unique, preserving order."""
    registry = NameRegistry()
    return [registry.claim(name) for name in names]
