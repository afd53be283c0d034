"""Render resolved schemas as TypeScript type declarations."""

from __future__ import annotations

import json
from typing import Any

from .schema_parser import ResolvedSchema, SchemaKind

INDENT = "  "

TS_PRIMITIVES: dict[str, str] = {
    "string": "string",
    "integer": "number",
    "number": "number",
    "boolean": "boolean",
    "null": "null",
}


def literal(value: Any) -> str:
    """JSON-encode an enum value as a TypeScript literal."""
    return json.dumps(value, ensure_ascii=False)


def quote_key(name: str) -> str:
    return json.dumps(name, ensure_ascii=False)


def doc_comment(text: str, indent: str = "") -> str:
    """``/** ... */`` block, one line per description line."""
    lines = [line.rstrip().replace("*/", "*\\/") for line in text.strip().splitlines()] or [""]
    if len(lines) == 1:
        return f"{indent}/** {lines[0]} */\n"
    body = "".join(f"{indent} * {line}\n" for line in lines)
    return f"{indent}/**\n{body}{indent} */\n"


def wrap_nullable(text: str) -> str:
    """Parenthesize a nullable rendering so it can sit inside ``&`` or before ``[]``."""
    return f"({text})" if text.endswith(" | null") else text


def field_optionality(schema: ResolvedSchema) -> dict[str, bool]:
    """Map of field name -> required flag for an object schema."""
    if schema.kind is not SchemaKind.OBJECT:
        return {}
    return {name: field.required for name, field in schema.properties.items()}


def required_fields(schema: ResolvedSchema) -> set[str]:
    return {name for name, required in field_optionality(schema).items() if required}


class TypeEmitter:
    """Converts ``ResolvedSchema`` nodes into TypeScript type expressions.

    ``ref_names`` maps canonical ref paths to declared type names; inside
    the shared types file ``namespace`` is None, elsewhere references are
    qualified (``Shared.IPet``).
    """

    def __init__(
        self,
        ref_names: dict[str, str],
        table: dict[str, ResolvedSchema] | None = None,
        namespace: str | None = None,
        with_docs: bool = True,
    ):
        self.ref_names = ref_names
        self.table = table or {}
        self.namespace = namespace
        self.with_docs = with_docs
        self._inlining: set[str] = set()

    def declaration(self, name: str, schema: ResolvedSchema) -> str:
        doc = doc_comment(schema.description) if self.with_docs and schema.description else ""
        return f"{doc}export type {name} = {self.render(schema)};\n"

    def render(self, schema: ResolvedSchema, depth: int = 0) -> str:
        rendered = self._render_kind(schema, depth)
        if schema.nullable and rendered not in ("any", "null"):
            return f"{rendered} | null"
        return rendered

    def reference(self, schema: ResolvedSchema, depth: int = 0) -> str:
        ref = schema.ref or ""
        name = self.ref_names.get(ref)
        if name is not None:
            return f"{self.namespace}.{name}" if self.namespace else name
        # Non-component ref (e.g. into paths/): inline its target once.
        target = self.table.get(ref)
        if target is None or ref in self._inlining:
            return "any"
        self._inlining.add(ref)
        try:
            return self._render_kind(target, depth)
        finally:
            self._inlining.discard(ref)

    def _render_kind(self, schema: ResolvedSchema, depth: int) -> str:
        kind = schema.kind
        if kind is SchemaKind.REFERENCE:
            return self.reference(schema, depth)
        if kind is SchemaKind.PRIMITIVE:
            return TS_PRIMITIVES.get(schema.primitive or "", "any")
        if kind is SchemaKind.ENUM:
            values = [literal(v) for v in schema.enum_values]
            if len(values) == 1:
                return values[0]
            return "(" + " | ".join(values) + ")"
        if kind is SchemaKind.UNION:
            return "(" + " | ".join(self.render(m, depth) for m in schema.members) + ")"
        if kind is SchemaKind.INTERSECTION:
            return "(" + " & ".join(wrap_nullable(self.render(m, depth)) for m in schema.members) + ")"
        if kind is SchemaKind.ARRAY:
            items = schema.items
            if items is None:
                return "any[]"
            return f"{wrap_nullable(self.render(items, depth))}[]"
        if kind is SchemaKind.OBJECT:
            return self._render_object(schema, depth)
        return "any"

    def _render_object(self, schema: ResolvedSchema, depth: int) -> str:
        if not schema.properties:
            value = self.render(schema.additional, depth) if schema.additional else "any"
            return f"{{ [k: string]: {value} }}"

        pad = INDENT * (depth + 1)
        lines = ["{\n"]
        for name, field in schema.properties.items():
            if self.with_docs and field.node.description:
                lines.append(doc_comment(field.node.description, pad))
            optional = "" if field.required else "?"
            lines.append(f"{pad}{quote_key(name)}{optional}: {self.render(field.node, depth + 1)};\n")
        if schema.additional is not None:
            lines.append(f"{pad}[k: string]: any;\n")
        lines.append(f"{INDENT * depth}}}")
        return "".join(lines)


def render_type(
    schema: ResolvedSchema,
    ref_names: dict[str, str],
    table: dict[str, ResolvedSchema] | None = None,
    shared_namespace: str | None = None,
) -> str:
    return TypeEmitter(ref_names, table, namespace=shared_namespace).render(schema)


def emit_shared_types(
    named: dict[str, ResolvedSchema],
    type_names: dict[str, str],
    ref_names: dict[str, str],
    table: dict[str, ResolvedSchema] | None = None,
    with_docs: bool = True,
) -> list[str]:
    """One declaration per named schema, in declaration order.

    ``type_names`` maps schema name -> declared type name.
    """
    emitter = TypeEmitter(ref_names, table, with_docs=with_docs)
    return [emitter.declaration(type_names[name], schema) for name, schema in named.items()]
