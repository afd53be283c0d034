"""Render resolved schemas as runtime validators (Zod, Yup or Joi).

Traversal mirrors ``TypeEmitter``: every object field that the type output
marks optional is optional here too, and every required field is required.
"""

from __future__ import annotations

import json
from typing import Any

from .schema_parser import ResolvedSchema, SchemaKind
from .types_emitter import INDENT, quote_key


class ValidationEmitter:
    """Base emitter; subclasses supply the library-specific vocabulary."""

    library = ""
    import_line = ""

    def __init__(
        self,
        ref_names: dict[str, str],
        table: dict[str, ResolvedSchema] | None = None,
        namespace: str | None = None,
    ):
        self.ref_names = ref_names
        self.table = table or {}
        self.namespace = namespace
        self.declared: set[str] = set()
        self._inlining: set[str] = set()

    def declaration(self, name: str, schema: ResolvedSchema) -> str:
        rendered = self.render(schema)
        self.declared.add(name)
        return f"export const {name} = {rendered};\n"

    def render(self, schema: ResolvedSchema, depth: int = 0, required: bool | None = None) -> str:
        """Validator expression; ``required`` is None outside object fields."""
        if schema.is_reference:
            name = self.ref_names.get(schema.ref or "")
            if name is not None:
                qualified = f"{self.namespace}.{name}" if self.namespace else name
                return self.reference(qualified, name, self.modifiers(schema.nullable, required))
            target = self.table.get(schema.ref or "")
            if target is None or schema.ref in self._inlining:
                return self.any() + self.modifiers(schema.nullable, required)
            self._inlining.add(schema.ref or "")
            try:
                merged = target.model_copy(update={"nullable": target.nullable or schema.nullable})
                return self.render(merged, depth, required)
            finally:
                self._inlining.discard(schema.ref or "")
        return self.render_kind(schema, depth) + self.modifiers(schema.nullable, required)

    def render_kind(self, schema: ResolvedSchema, depth: int) -> str:
        kind = schema.kind
        if kind is SchemaKind.PRIMITIVE:
            return self.primitive(schema)
        if kind is SchemaKind.ENUM:
            return self.enum(schema.enum_values)
        if kind is SchemaKind.UNION:
            members = [self.render(m, depth) for m in schema.members]
            return members[0] if len(members) == 1 else self.union(members)
        if kind is SchemaKind.INTERSECTION:
            members = [self.render(m, depth) for m in schema.members]
            return members[0] if len(members) == 1 else self.intersection(members)
        if kind is SchemaKind.ARRAY:
            items = self.render(schema.items, depth) if schema.items else self.any()
            return self.array(items, schema.constraints)
        if kind is SchemaKind.OBJECT:
            return self.object(schema, depth)
        return self.any()

    def object(self, schema: ResolvedSchema, depth: int) -> str:
        if not schema.properties:
            value = self.render(schema.additional, depth) if schema.additional else self.any()
            return self.record(value)
        pad = INDENT * (depth + 1)
        fields = "".join(
            f"{pad}{quote_key(name)}: {self.render(field.node, depth + 1, field.required)},\n"
            for name, field in schema.properties.items()
        )
        body = "{\n" + fields + INDENT * depth + "}"
        return self.shape(body, schema.additional is not None)

    # Library vocabulary

    def reference(self, qualified: str, name: str, modifiers: str) -> str:
        raise NotImplementedError

    def modifiers(self, nullable: bool, required: bool | None) -> str:
        raise NotImplementedError

    def primitive(self, schema: ResolvedSchema) -> str:
        raise NotImplementedError

    def enum(self, values: list[Any]) -> str:
        raise NotImplementedError

    def union(self, members: list[str]) -> str:
        raise NotImplementedError

    def intersection(self, members: list[str]) -> str:
        raise NotImplementedError

    def array(self, items: str, constraints: dict[str, Any]) -> str:
        raise NotImplementedError

    def shape(self, body: str, open_ended: bool) -> str:
        raise NotImplementedError

    def record(self, value: str) -> str:
        raise NotImplementedError

    def any(self) -> str:
        raise NotImplementedError


def _js(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def _bounds(constraints: dict[str, Any], low: str, high: str, method_low: str, method_high: str) -> str:
    out = ""
    if low in constraints:
        out += f".{method_low}({_js(constraints[low])})"
    if high in constraints:
        out += f".{method_high}({_js(constraints[high])})"
    return out


class ZodEmitter(ValidationEmitter):
    library = "zod"
    import_line = 'import { z } from "zod";'

    def reference(self, qualified, name, modifiers):
        return f"z.lazy(() => {qualified}){modifiers}"

    def modifiers(self, nullable, required):
        out = ".nullable()" if nullable else ""
        if required is False:
            out += ".optional()"
        return out

    def primitive(self, schema):
        c = schema.constraints
        if schema.primitive == "string":
            out = "z.string()" + _bounds(c, "minLength", "maxLength", "min", "max")
            if "pattern" in c:
                out += f".regex(new RegExp({_js(c['pattern'])}))"
            out += {"email": ".email()", "uri": ".url()", "uuid": ".uuid()"}.get(c.get("format"), "")
            return out
        if schema.primitive in ("integer", "number"):
            out = "z.number()" + (".int()" if schema.primitive == "integer" else "")
            return out + _bounds(c, "minimum", "maximum", "min", "max")
        if schema.primitive == "boolean":
            return "z.boolean()"
        if schema.primitive == "null":
            return "z.null()"
        return "z.any()"

    def enum(self, values):
        if values and all(isinstance(v, str) for v in values):
            return f"z.enum([{', '.join(_js(v) for v in values)}])"
        literals = [f"z.literal({_js(v)})" for v in values]
        if len(literals) == 1:
            return literals[0]
        return f"z.union([{', '.join(literals)}])"

    def union(self, members):
        return f"z.union([{', '.join(members)}])"

    def intersection(self, members):
        return members[0] + "".join(f".and({m})" for m in members[1:])

    def array(self, items, constraints):
        return f"z.array({items})" + _bounds(constraints, "minItems", "maxItems", "min", "max")

    def shape(self, body, open_ended):
        return f"z.object({body})" + (".passthrough()" if open_ended else "")

    def record(self, value):
        return f"z.record(z.string(), {value})"

    def any(self):
        return "z.any()"


class YupEmitter(ValidationEmitter):
    library = "yup"
    import_line = 'import * as yup from "yup";'

    def reference(self, qualified, name, modifiers):
        # Lazy schemas take no modifiers of their own; apply them to the target.
        return f"yup.lazy(() => {qualified}{modifiers})"

    def modifiers(self, nullable, required):
        out = ".nullable()" if nullable else ""
        if required is True:
            out += ".defined()" if nullable else ".required()"
        elif required is False:
            out += ".optional()"
        return out

    def primitive(self, schema):
        c = schema.constraints
        if schema.primitive == "string":
            out = "yup.string()" + _bounds(c, "minLength", "maxLength", "min", "max")
            if "pattern" in c:
                out += f".matches(new RegExp({_js(c['pattern'])}))"
            out += {"email": ".email()", "uri": ".url()", "uuid": ".uuid()"}.get(c.get("format"), "")
            return out
        if schema.primitive in ("integer", "number"):
            out = "yup.number()" + (".integer()" if schema.primitive == "integer" else "")
            return out + _bounds(c, "minimum", "maximum", "min", "max")
        if schema.primitive == "boolean":
            return "yup.boolean()"
        if schema.primitive == "null":
            return "yup.mixed().oneOf([null])"
        return "yup.mixed()"

    def enum(self, values):
        return f"yup.mixed().oneOf([{', '.join(_js(v) for v in values)}])"

    def union(self, members):
        return "yup.mixed()"

    def intersection(self, members):
        return "yup.mixed()"

    def array(self, items, constraints):
        return f"yup.array().of({items})" + _bounds(constraints, "minItems", "maxItems", "min", "max")

    def shape(self, body, open_ended):
        return f"yup.object({body})"

    def record(self, value):
        return "yup.object()"

    def any(self):
        return "yup.mixed()"


class JoiEmitter(ValidationEmitter):
    """Joi has no lazy combinator.

    A schema not yet declared is inlined at the point of use, and a
    reference back to a schema that is currently being rendered becomes a
    ``Joi.link`` to that ancestor, which carries the matching ``.id``.
    """

    library = "joi"
    import_line = 'import Joi from "joi";'

    def __init__(self, ref_names, table=None, namespace=None):
        super().__init__(ref_names, table, namespace)
        self._ancestors: list[str] = []
        self._links: list[str] = []

    def declaration(self, name, schema):
        self._ancestors.append(name)
        try:
            rendered = self.render(schema)
        finally:
            self._ancestors.pop()
        self.declared.add(name)
        return f"export const {name} = {rendered}.id({_js(name)});\n"

    def render(self, schema, depth=0, required=None):
        name = self.ref_names.get(schema.ref or "") if schema.is_reference else None
        if name is None or self.namespace or name in self.declared or name in self._ancestors:
            return super().render(schema, depth, required)
        target = self.table.get(schema.ref or "")
        if target is None:
            return self.any() + self.modifiers(schema.nullable, required)
        return self.inline(name, target, depth) + self.modifiers(
            schema.nullable and not target.nullable, required,
        )

    def inline(self, name: str, target: ResolvedSchema, depth: int) -> str:
        """Render ``target`` in place; give it an id when something links back to it."""
        mark = len(self._links)
        self._ancestors.append(name)
        try:
            rendered = self.render(target, depth)
        finally:
            self._ancestors.pop()
        if name in self._links[mark:]:
            rendered += f".id({_js(name)})"
        return rendered

    def reference(self, qualified, name, modifiers):
        if self.namespace or name in self.declared:
            return f"{qualified}{modifiers}"
        self._links.append(name)
        return f"Joi.link({_js('#' + name)}){modifiers}"

    def modifiers(self, nullable, required):
        out = ".allow(null)" if nullable else ""
        if required is True:
            out += ".required()"
        elif required is False:
            out += ".optional()"
        return out

    def primitive(self, schema):
        c = schema.constraints
        if schema.primitive == "string":
            out = "Joi.string()" + _bounds(c, "minLength", "maxLength", "min", "max")
            if "pattern" in c:
                out += f".pattern(new RegExp({_js(c['pattern'])}))"
            out += {"email": ".email()", "uri": ".uri()", "uuid": ".guid()"}.get(c.get("format"), "")
            return out
        if schema.primitive in ("integer", "number"):
            out = "Joi.number()" + (".integer()" if schema.primitive == "integer" else "")
            return out + _bounds(c, "minimum", "maximum", "min", "max")
        if schema.primitive == "boolean":
            return "Joi.boolean()"
        if schema.primitive == "null":
            return "Joi.valid(null)"
        return "Joi.any()"

    def enum(self, values):
        return f"Joi.valid({', '.join(_js(v) for v in values)})"

    def union(self, members):
        return f"Joi.alternatives().try({', '.join(members)})"

    def intersection(self, members):
        return f'Joi.alternatives().match("all").try({", ".join(members)})'

    def array(self, items, constraints):
        return f"Joi.array().items({items})" + _bounds(constraints, "minItems", "maxItems", "min", "max")

    def shape(self, body, open_ended):
        return f"Joi.object({body})" + (".unknown(true)" if open_ended else "")

    def record(self, value):
        return f"Joi.object().pattern(Joi.string(), {value})"

    def any(self):
        return "Joi.any()"


VALIDATION_EMITTERS: dict[str, type[ValidationEmitter]] = {
    "zod": ZodEmitter,
    "yup": YupEmitter,
    "joi": JoiEmitter,
}


def validation_name(base: str, prefix: str = "", suffix: str = "Schema") -> str:
    """``Pet`` -> ``PetSchema``; ``GetPetsQuery`` -> ``GetPetsQuerySchema``."""
    return f"{prefix}{base}{suffix}"
