"""Resolve OpenAPI schemas into a cycle-safe in-memory graph.

Handles:
- $ref resolution within the same document
- shared references (one table entry per canonical ref path)
- reference cycles (lazy reference nodes for back-edges)
- allOf/oneOf/anyOf composition
- enum/const literals
- nullable (3.0 ``nullable`` and 3.1 ``type: [..., "null"]``)
- additionalProperties maps
- validation constraints carried through for the validation emitter

Dangling references are logged and recorded; the offending field is skipped
rather than failing the pass.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from .errors import UnresolvedReferenceError
from .loader import get_schemas, resolve_ref
from .models import SpecDocument

logger = logging.getLogger(__name__)

PRIMITIVE_TYPES = {"string", "integer", "number", "boolean", "null"}

CONSTRAINT_KEYS = (
    "minLength", "maxLength", "pattern", "format",
    "minimum", "maximum", "exclusiveMinimum", "exclusiveMaximum", "multipleOf",
    "minItems", "maxItems", "uniqueItems",
)


class SchemaKind(str, Enum):
    OBJECT = "object"
    ARRAY = "array"
    ENUM = "enum"
    UNION = "union"
    INTERSECTION = "intersection"
    PRIMITIVE = "primitive"
    REFERENCE = "reference"
    ANY = "any"


class SchemaField(BaseModel):
    node: ResolvedSchema
    required: bool = False


class ResolvedSchema(BaseModel):
    """Canonical node of the schema graph.

    Reference nodes only carry ``ref`` and ``name``; the target lives in the
    resolver table under the same ``ref`` key.
    """

    kind: SchemaKind
    name: str | None = None
    ref: str | None = None
    primitive: str | None = None
    properties: dict[str, SchemaField] = Field(default_factory=dict)
    additional: ResolvedSchema | None = None
    items: ResolvedSchema | None = None
    members: list[ResolvedSchema] = Field(default_factory=list)
    enum_values: list[Any] = Field(default_factory=list)
    nullable: bool = False
    description: str = ""
    constraints: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_reference(self) -> bool:
        return self.kind is SchemaKind.REFERENCE


SchemaField.model_rebuild()

ANY_SCHEMA = ResolvedSchema(kind=SchemaKind.ANY)


def ref_name(ref: str) -> str:
    """Last pointer segment of a ref, e.g. ``#/components/schemas/Pet`` -> ``Pet``."""
    return ref.rsplit("/", 1)[-1].replace("~1", "/").replace("~0", "~")


def _escape(token: str) -> str:
    return token.replace("~", "~0").replace("/", "~1")


class SchemaResolver:
    """Depth-first resolver with a table keyed by canonical ref path."""

    def __init__(self, document: SpecDocument | dict[str, Any]):
        self.spec = document.raw if isinstance(document, SpecDocument) else document
        self.table: dict[str, ResolvedSchema] = {}
        self.errors: list[UnresolvedReferenceError] = []
        self._stack: list[str] = []
        components = self.spec.get("components")
        if isinstance(components, dict) and isinstance(components.get("schemas"), dict):
            self.schema_prefix = "#/components/schemas/"
        else:
            self.schema_prefix = "#/definitions/"

    def component_ref(self, name: str) -> str:
        return self.schema_prefix + _escape(name)

    def resolve_components(self) -> dict[str, ResolvedSchema]:
        """Resolve every named schema, in declaration order."""
        named: dict[str, ResolvedSchema] = {}
        for name in get_schemas(self.spec):
            ref = self.component_ref(str(name))
            self.resolve_reference(ref)
            named[str(name)] = self.table[ref]
        return named

    def resolve(self, raw: Any) -> ResolvedSchema:
        """Resolve one raw schema. Raises on a dangling top-level ``$ref``."""
        if not isinstance(raw, dict) or not raw:
            return ANY_SCHEMA
        if "$ref" in raw:
            node = self.resolve_reference(raw["$ref"])
            if raw.get("nullable"):
                node = node.model_copy(update={"nullable": True})
            return node
        return self._build(raw)

    def resolve_or_any(self, raw: Any, context: str = "") -> ResolvedSchema:
        """Like ``resolve`` but degrades a dangling ref to ``any``."""
        try:
            return self.resolve(raw)
        except UnresolvedReferenceError as e:
            self.report(e, context)
            return ANY_SCHEMA

    def resolve_reference(self, ref: str) -> ResolvedSchema:
        """Return a lazy reference node, resolving the target once."""
        if ref not in self.table and ref not in self._stack:
            target = resolve_ref(self.spec, ref)
            self._stack.append(ref)
            try:
                node = self._build(target if isinstance(target, dict) else {}, context=ref)
            finally:
                self._stack.pop()
            self.table[ref] = node
        return ResolvedSchema(kind=SchemaKind.REFERENCE, ref=ref, name=ref_name(ref))

    def target(self, node: ResolvedSchema) -> ResolvedSchema:
        """Follow reference nodes to the schema they point at."""
        seen: set[str] = set()
        while node.is_reference and node.ref and node.ref not in seen:
            seen.add(node.ref)
            resolved = self.table.get(node.ref)
            if resolved is None:
                break
            node = resolved
        return node

    def report(self, error: UnresolvedReferenceError, context: str) -> None:
        where = f" in {context}" if context else ""
        logger.warning("%s%s; field skipped", error, where)
        self.errors.append(error)

    def _build(self, raw: dict[str, Any], context: str = "") -> ResolvedSchema:
        if "$ref" in raw:
            # Component that is only an alias of another component.
            return self.resolve_or_any(raw, context)

        common: dict[str, Any] = {
            "nullable": bool(raw.get("nullable", False)),
            "description": str(raw.get("description") or ""),
            "constraints": {k: raw[k] for k in CONSTRAINT_KEYS if k in raw},
        }

        schema_type = raw.get("type")
        if isinstance(schema_type, list):
            if "null" in schema_type:
                common["nullable"] = True
            types = [t for t in schema_type if t != "null"]
            if len(types) > 1 and not any(k in raw for k in ("enum", "const", "properties", "items")):
                members = [self._build({"type": t}, context) for t in types]
                return ResolvedSchema(kind=SchemaKind.UNION, members=members, **common)
            schema_type = types[0] if types else None

        if isinstance(raw.get("enum"), list) and raw["enum"]:
            values = [v for v in raw["enum"] if v is not None]
            if len(values) < len(raw["enum"]):
                common["nullable"] = True
            return ResolvedSchema(
                kind=SchemaKind.ENUM, enum_values=values, primitive=schema_type, **common,
            )
        if "const" in raw:
            return ResolvedSchema(kind=SchemaKind.ENUM, enum_values=[raw["const"]], **common)

        for key in ("oneOf", "anyOf"):
            if isinstance(raw.get(key), list) and raw[key]:
                members = [
                    self.resolve_or_any(sub, f"{context}/{key}/{i}")
                    for i, sub in enumerate(raw[key])
                ]
                return ResolvedSchema(kind=SchemaKind.UNION, members=members, **common)

        if isinstance(raw.get("allOf"), list) and raw["allOf"]:
            subs = list(raw["allOf"])
            if "properties" in raw:
                subs.append({"type": "object", "properties": raw["properties"],
                             "required": raw.get("required", [])})
            members = [
                self.resolve_or_any(sub, f"{context}/allOf/{i}") for i, sub in enumerate(subs)
            ]
            if len(members) == 1:
                node = members[0]
                if common["nullable"] and not node.nullable:
                    node = node.model_copy(update={"nullable": True})
                return node
            return ResolvedSchema(kind=SchemaKind.INTERSECTION, members=members, **common)

        if schema_type == "array" or "items" in raw:
            items = self.resolve_or_any(raw.get("items"), f"{context}/items")
            return ResolvedSchema(kind=SchemaKind.ARRAY, items=items, **common)

        if schema_type == "object" or "properties" in raw or "additionalProperties" in raw:
            return self._build_object(raw, context, common)

        if schema_type in PRIMITIVE_TYPES:
            return ResolvedSchema(kind=SchemaKind.PRIMITIVE, primitive=schema_type, **common)

        return ResolvedSchema(kind=SchemaKind.ANY, **common)

    def _build_object(
        self, raw: dict[str, Any], context: str, common: dict[str, Any],
    ) -> ResolvedSchema:
        required = raw.get("required")
        required_names = {str(r) for r in required} if isinstance(required, list) else set()
        properties: dict[str, SchemaField] = {}
        raw_properties = raw.get("properties")
        if isinstance(raw_properties, dict):
            for prop_name, prop_schema in raw_properties.items():
                try:
                    node = self.resolve(prop_schema)
                except UnresolvedReferenceError as e:
                    self.report(e, f"{context}/properties/{prop_name}")
                    continue
                properties[str(prop_name)] = SchemaField(
                    node=node, required=str(prop_name) in required_names,
                )

        additional = None
        raw_additional = raw.get("additionalProperties")
        if isinstance(raw_additional, dict):
            additional = self.resolve_or_any(raw_additional, f"{context}/additionalProperties")
        elif raw_additional is True:
            additional = ANY_SCHEMA

        return ResolvedSchema(
            kind=SchemaKind.OBJECT, properties=properties, additional=additional, **common,
        )
