"""Tests for the validation module."""

import re

import pytest

from conftest import PETSTORE
from openapi_sync.schema_parser import ResolvedSchema, SchemaField, SchemaKind, SchemaResolver
from openapi_sync.types_emitter import TypeEmitter
from openapi_sync.validation import (
    JoiEmitter,
    VALIDATION_EMITTERS,
    YupEmitter,
    ZodEmitter,
    validation_name,
)

_FIELD = re.compile(r'^  "(\w+)"(\??): (.*?)[;,]?$')


def _top_fields(declaration):
    """(name, optional marker, value) for each top-level field; nested bodies are folded."""
    fields = []
    open_field = None
    for line in declaration.splitlines():
        if open_field is not None:
            if line.startswith("  }"):
                name, marker, start = open_field
                fields.append((name, marker, start + line.strip().rstrip(",;")))
                open_field = None
            continue
        match = _FIELD.match(line)
        if not match:
            continue
        if match.group(3).endswith("{"):
            open_field = match.groups()
        else:
            fields.append(match.groups())
    return fields


def _petstore():
    resolver = SchemaResolver(PETSTORE)
    named = resolver.resolve_components()
    return resolver, named


def _declare_all(emitter_class):
    resolver, named = _petstore()
    refs = {resolver.component_ref(name): validation_name(name) for name in named}
    emitter = emitter_class(refs, resolver.table)
    return {name: emitter.declaration(validation_name(name), schema) for name, schema in named.items()}


def _string(**constraints):
    return ResolvedSchema(kind=SchemaKind.PRIMITIVE, primitive="string", constraints=constraints)


class TestOptionalityParity:
    """Every library marks the same fields optional as the TypeScript types."""

    @classmethod
    def setup_class(cls):
        resolver, named = _petstore()
        refs = {resolver.component_ref(name): f"I{name}" for name in named}
        emitter = TypeEmitter(refs, resolver.table)
        cls.optional = {}
        for name, schema in named.items():
            declaration = emitter.declaration(f"I{name}", schema)
            cls.optional[name] = {field for field, marker, _ in _top_fields(declaration) if marker}

    @pytest.mark.parametrize("library", ["zod", "yup", "joi"])
    def test_optional_fields_match_types(self, library):
        """Fields optional in TS are optional in the validator and vice versa."""
        declarations = _declare_all(VALIDATION_EMITTERS[library])
        for name, declaration in declarations.items():
            fields = _top_fields(declaration)
            optional = {field for field, _, value in fields if ".optional()" in value}
            assert optional == self.optional[name], name
            if library != "zod":
                required = {field for field, _, value in fields if re.search(r"\.(required|defined)\(\)", value)}
                assert required == {field for field, _, _ in fields} - optional, name


class TestZod:
    """Zod output."""

    def test_pet(self):
        """Objects, optional fields and lazy references."""
        assert _declare_all(ZodEmitter)["Pet"] == (
            "export const PetSchema = z.object({\n"
            '  "id": z.number().int(),\n'
            '  "name": z.string(),\n'
            '  "tag": z.string().optional(),\n'
            '  "owner": z.lazy(() => OwnerSchema).optional(),\n'
            "});\n"
        )

    def test_nullable_optional(self):
        """nullable comes before optional."""
        schema = ResolvedSchema(
            kind=SchemaKind.OBJECT,
            properties={"a": {"node": _string().model_copy(update={"nullable": True})}},
        )
        assert '"a": z.string().nullable().optional(),' in ZodEmitter({}).render(schema)

    def test_string_constraints(self):
        """Length bounds and formats are kept."""
        assert ZodEmitter({}).render(_string(minLength=1, maxLength=5, format="email")) == (
            "z.string().min(1).max(5).email()"
        )

    def test_enums(self):
        """String enums use z.enum, other literals a union."""
        emitter = ZodEmitter({})
        assert emitter.render(ResolvedSchema(kind=SchemaKind.ENUM, enum_values=["a", "b"])) == 'z.enum(["a", "b"])'
        assert emitter.render(ResolvedSchema(kind=SchemaKind.ENUM, enum_values=[1, 2])) == (
            "z.union([z.literal(1), z.literal(2)])"
        )

    def test_record(self):
        """Maps become records."""
        schema = ResolvedSchema(
            kind=SchemaKind.OBJECT,
            additional=ResolvedSchema(kind=SchemaKind.PRIMITIVE, primitive="number"),
        )
        assert ZodEmitter({}).render(schema) == "z.record(z.string(), z.number())"

    def test_namespaced_reference(self):
        """Outside the shared file references are qualified."""
        ref = ResolvedSchema(kind=SchemaKind.REFERENCE, ref="#/components/schemas/Pet")
        emitter = ZodEmitter({"#/components/schemas/Pet": "PetSchema"}, namespace="Shared")
        assert emitter.render(ref) == "z.lazy(() => Shared.PetSchema)"


class TestYup:
    """Yup output."""

    def test_reference_modifiers_inside_lazy(self):
        """Optionality applies to the lazily referenced schema."""
        assert '"owner": yup.lazy(() => OwnerSchema.optional()),' in _declare_all(YupEmitter)["Pet"]

    def test_required_nullable_accepts_null(self):
        """A required nullable field must be defined but may be null."""
        schema = ResolvedSchema(
            kind=SchemaKind.OBJECT,
            properties={"name": SchemaField(node=_string().model_copy(update={"nullable": True}), required=True)},
        )
        assert '"name": yup.string().nullable().defined(),' in YupEmitter({}).render(schema)

    def test_union_is_mixed(self):
        """Unions fall back to mixed."""
        schema = ResolvedSchema(kind=SchemaKind.UNION, members=[_string(), _string()])
        assert YupEmitter({}).render(schema) == "yup.mixed()"

    def test_array(self):
        """Arrays use of() with bounds."""
        schema = ResolvedSchema(kind=SchemaKind.ARRAY, items=_string(), constraints={"minItems": 1})
        assert YupEmitter({}).render(schema) == "yup.array().of(yup.string()).min(1)"


class TestJoi:
    """Joi output."""

    @classmethod
    def setup_class(cls):
        cls.declarations = _declare_all(JoiEmitter)

    def test_declarations_have_ids(self):
        """Every declaration is registered under its name."""
        for name, declaration in self.declarations.items():
            assert declaration.endswith(f'.id("{name}Schema");\n')

    def test_forward_reference_inlined(self):
        """A schema declared later is rendered in place, with a link back to its ancestor."""
        assert self.declarations["Pet"] == (
            "export const PetSchema = Joi.object({\n"
            '  "id": Joi.number().integer().required(),\n'
            '  "name": Joi.string().required(),\n'
            '  "tag": Joi.string().optional(),\n'
            '  "owner": Joi.object({\n'
            '    "name": Joi.string().required(),\n'
            '    "pets": Joi.array().items(Joi.link("#PetSchema")).optional(),\n'
            "  }).optional(),\n"
            '}).id("PetSchema");\n'
        )

    def test_backward_reference_direct(self):
        """A schema already declared is referenced by name."""
        assert '"pets": Joi.array().items(PetSchema).optional(),' in self.declarations["Owner"]

    def test_links_only_reach_ancestors(self):
        """A reference to a later schema never becomes a dangling link."""
        spec = {
            "openapi": "3.0.0",
            "components": {
                "schemas": {
                    "Owner": {"type": "object", "properties": {"pet": {"$ref": "#/components/schemas/Pet"}}},
                    "Pet": {"type": "object", "properties": {"name": {"type": "string"}}},
                },
            },
        }
        resolver = SchemaResolver(spec)
        named = resolver.resolve_components()
        emitter = JoiEmitter({resolver.component_ref(n): validation_name(n) for n in named}, resolver.table)
        owner = emitter.declaration("OwnerSchema", named["Owner"])
        assert "Joi.link" not in owner
        assert '  "pet": Joi.object({\n    "name": Joi.string().optional(),\n  }).optional(),\n' in owner

    def test_inlined_cycle_gets_id(self):
        """An inlined schema that links to itself carries its own id."""
        spec = {
            "openapi": "3.0.0",
            "components": {
                "schemas": {
                    "Tree": {"type": "object", "properties": {"root": {"$ref": "#/components/schemas/Node"}}},
                    "Node": {
                        "type": "object",
                        "properties": {"children": {"type": "array", "items": {"$ref": "#/components/schemas/Node"}}},
                    },
                },
            },
        }
        resolver = SchemaResolver(spec)
        named = resolver.resolve_components()
        emitter = JoiEmitter({resolver.component_ref(n): validation_name(n) for n in named}, resolver.table)
        tree = emitter.declaration("TreeSchema", named["Tree"])
        assert '"children": Joi.array().items(Joi.link("#NodeSchema")).optional(),' in tree
        assert '  }).id("NodeSchema").optional(),\n' in tree

    def test_nullable(self):
        """Null is allowed explicitly."""
        assert JoiEmitter({}).render(_string().model_copy(update={"nullable": True})) == "Joi.string().allow(null)"


class TestValidationName:
    """Validator naming."""

    def test_default_suffix(self):
        """The default suffix is Schema."""
        assert validation_name("Pet") == "PetSchema"

    def test_prefix_and_suffix(self):
        """Prefix and suffix are configurable."""
        assert validation_name("Pet", prefix="v", suffix="") == "vPet"
