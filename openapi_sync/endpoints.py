"""Turn operations into endpoint descriptors.

Path variables may be written as ``{id}``, ``<id>`` or ``:id`` (the last
only at the start of a segment), mixed freely in one template. A name only
counts as a variable when it is a valid identifier: a letter, ``_`` or ``$``
followed by letters, digits, ``_`` or ``$``. Anything else inside the
delimiters is left as literal text.
"""

from __future__ import annotations

import json
import re
from typing import Any

from .config import EndpointFilter, EndpointRule, ReplaceWord
from .models import EndpointInfo, EndpointParameter, Operation
from .schema_parser import ResolvedSchema, SchemaKind

IDENTIFIER = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")

_VARIABLE_TOKEN = re.compile(r"\{([^{}]*)\}|<([^<>]*)>|(?:(?<=/)|^):([^/{}<>:]*)")

# Recursion cap for synthesized request examples.
_EXAMPLE_DEPTH = 4


def _token_name(match: re.Match[str]) -> str:
    return next(group for group in match.groups() if group is not None)


def extract_path_variables(path: str, dedupe: bool = False) -> list[str]:
    """Variable names in ``path``, left to right.

    Repeated names are kept unless ``dedupe`` is set, in which case only
    the first occurrence survives.
    """
    variables = [
        name for name in (_token_name(m) for m in _VARIABLE_TOKEN.finditer(path))
        if IDENTIFIER.match(name)
    ]
    if dedupe:
        return list(dict.fromkeys(variables))
    return variables


def template_path(path: str) -> str:
    """Rewrite every valid variable token as ``${name}``."""
    def substitute(match: re.Match[str]) -> str:
        name = _token_name(match)
        if IDENTIFIER.match(name):
            return "${" + name + "}"
        return match.group(0)

    return _VARIABLE_TOKEN.sub(substitute, path.replace("`", "\\`"))


def replace_words(text: str, rules: list[ReplaceWord]) -> str:
    for rule in rules:
        text = re.sub(rule.replace, rule.with_, text)
    return text


def render_url(
    path: str,
    server: str = "",
    rules: list[ReplaceWord] | None = None,
) -> str:
    """TypeScript expression for an endpoint URL.

    ``/pets`` -> ``"/pets"``;  ``/pets/{id}`` -> ``(id: string | number) => `/pets/${id}```
    """
    arguments = list(dict.fromkeys(extract_path_variables(path)))
    body = replace_words(server.rstrip("/") + template_path(path), rules or [])
    if not arguments:
        return json.dumps(body.replace("\\`", "`"), ensure_ascii=False)
    params = ", ".join(f"{name}: string | number" for name in arguments)
    return f"({params}) => `{body}`"


def _matches_rule(rule: EndpointRule, operation: Operation) -> bool:
    if rule.method and rule.method.lower() != operation.method:
        return False
    if rule.path is not None:
        return rule.path == operation.path
    if rule.regex:
        return re.search(rule.regex, operation.path) is not None
    return bool(rule.method)


def matches_filter(flt: EndpointFilter, operation: Operation) -> bool:
    if flt.tags and set(flt.tags) & set(operation.tags):
        return True
    return any(_matches_rule(rule, operation) for rule in flt.endpoints)


def is_excluded(
    operation: Operation,
    exclude: EndpointFilter | None = None,
    include: EndpointFilter | None = None,
) -> bool:
    """True when the operation is filtered out by include/exclude rules."""
    if include is not None and (include.tags or include.endpoints):
        if not matches_filter(include, operation):
            return True
    if exclude is not None and matches_filter(exclude, operation):
        return True
    return False


def example_value(
    schema: ResolvedSchema | None,
    table: dict[str, ResolvedSchema],
    depth: int = 0,
    seen: frozenset[str] = frozenset(),
) -> Any:
    """Synthesize a plausible JSON value for a schema (for curl examples)."""
    if schema is None or depth > _EXAMPLE_DEPTH:
        return None
    kind = schema.kind
    if kind is SchemaKind.REFERENCE:
        if not schema.ref or schema.ref in seen or schema.ref not in table:
            return None
        return example_value(table[schema.ref], table, depth, seen | {schema.ref})
    if kind is SchemaKind.ENUM:
        return schema.enum_values[0] if schema.enum_values else None
    if kind is SchemaKind.PRIMITIVE:
        return {"string": "string", "integer": 0, "number": 0, "boolean": True}.get(
            schema.primitive or "",
        )
    if kind is SchemaKind.ARRAY:
        item = example_value(schema.items, table, depth + 1, seen)
        return [] if item is None else [item]
    if kind in (SchemaKind.UNION, SchemaKind.INTERSECTION) and schema.members:
        if kind is SchemaKind.UNION:
            return example_value(schema.members[0], table, depth + 1, seen)
        merged: dict[str, Any] = {}
        for member in schema.members:
            value = example_value(member, table, depth + 1, seen)
            if isinstance(value, dict):
                merged.update(value)
        return merged
    if kind is SchemaKind.OBJECT:
        return {
            name: example_value(field.node, table, depth + 1, seen)
            for name, field in schema.properties.items()
        }
    return None


def build_curl(
    method: str,
    path: str,
    server: str = "",
    query: list[EndpointParameter] | None = None,
    body: Any = None,
    has_body: bool = False,
) -> str:
    """Example request line an operator can paste into a shell."""
    url = server.rstrip("/") + path
    required_query = [p for p in (query or []) if p.required]
    if required_query:
        url += "?" + "&".join(f"{p.name}={{{p.name}}}" for p in required_query)
    parts = [f'curl -X {method.upper()} "{url}"', '-H "Accept: application/json"']
    if has_body:
        parts.append('-H "Content-Type: application/json"')
        payload = json.dumps(body if body is not None else {}, ensure_ascii=False)
        parts.append("-d '" + payload.replace("'", "'\\''") + "'")
    return " \\\n  ".join(parts)


def format_security(security: list[Any] | None) -> list[str]:
    """``[{"oauth": ["read"]}]`` -> ``["oauth (read)"]``."""
    lines: list[str] = []
    for requirement in security or []:
        if not isinstance(requirement, dict):
            continue
        for scheme, scopes in requirement.items():
            if isinstance(scopes, list) and scopes:
                lines.append(f"{scheme} ({', '.join(str(s) for s in scopes)})")
            else:
                lines.append(str(scheme))
    return lines


def render_doc(
    operation: Operation,
    query_type: str | None = None,
    dto_type: str | None = None,
    response_types: dict[str, str] | None = None,
    security: list[Any] | None = None,
    curl: str = "",
) -> str:
    """JSDoc block placed above an endpoint descriptor."""
    lines: list[str] = []
    if operation.description:
        lines.extend(operation.description.strip().splitlines())
    lines.append(f"**Method**: `{operation.method.upper()}`")
    lines.append(f"**Summary**: {operation.summary}")
    lines.append(f"**Tags**: [{', '.join(operation.tags)}]")
    lines.append(f"**OperationId**: {operation.operation_id or ''}")
    if operation.deprecated:
        lines.append("@deprecated")
    if query_type:
        lines.append(f"**Query**: `{query_type}`")
    if dto_type:
        lines.append(f"**DTO**: `{dto_type}`")
    if response_types:
        lines.append("**Response**:")
        lines.extend(f"  - **{code}**: `{name}`" for code, name in response_types.items())
    security_lines = format_security(security)
    if security_lines:
        lines.append("**Security**:")
        lines.extend(f"  - {line}" for line in security_lines)
    if curl:
        lines.append("**Example**:")
        lines.append("```bash")
        lines.extend(curl.splitlines())
        lines.append("```")
    body = "".join(f" * {line}".rstrip() + "\n" for line in lines)
    return "/**\n" + body.replace("*/", "*\\/") + " */"


def build_endpoint_info(
    name: str,
    operation: Operation,
    parameters: list[EndpointParameter],
    query_type: str | None = None,
    dto_type: str | None = None,
    response_types: dict[str, str] | None = None,
    server: str = "",
    rules: list[ReplaceWord] | None = None,
    dedupe_variables: bool = False,
    doc: bool = True,
    security: list[Any] | None = None,
    curl: str = "",
    has_body: bool | None = None,
) -> EndpointInfo:
    """Assemble the ``EndpointInfo`` for one operation."""
    response_types = response_types or {}
    success = [code for code in response_types if code.startswith("2")]
    response_type = response_types[success[0]] if success else None
    return EndpointInfo(
        name=name,
        method=operation.method,
        path=operation.path,
        path_variables=extract_path_variables(operation.path, dedupe=dedupe_variables),
        operation_id=operation.operation_id,
        summary=operation.summary,
        tags=operation.tags,
        parameters=parameters,
        has_body=dto_type is not None if has_body is None else has_body,
        query_type=query_type,
        dto_type=dto_type,
        response_type=response_type,
        response_types=response_types,
        doc=render_doc(operation, query_type, dto_type, response_types, security, curl) if doc else "",
        curl=curl,
        url_expression=render_url(operation.path, server, rules),
    )
