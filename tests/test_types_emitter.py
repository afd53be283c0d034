"""Tests for the types_emitter module."""

from conftest import PETSTORE
from openapi_sync.schema_parser import ResolvedSchema, SchemaKind, SchemaResolver
from openapi_sync.types_emitter import (
    TypeEmitter,
    doc_comment,
    emit_shared_types,
    render_type,
    required_fields,
)


def _primitive(name, **extra):
    return ResolvedSchema(kind=SchemaKind.PRIMITIVE, primitive=name, **extra)


class TestSharedTypes:
    """Declarations for the petstore components."""

    @classmethod
    def setup_class(cls):
        resolver = SchemaResolver(PETSTORE)
        named = resolver.resolve_components()
        type_names = {name: f"I{name}" for name in named}
        cls.ref_names = {resolver.component_ref(name): f"I{name}" for name in named}
        cls.table = resolver.table
        cls.named = named
        cls.declarations = emit_shared_types(named, type_names, cls.ref_names, resolver.table)

    def test_one_declaration_per_schema(self):
        """Each named schema is declared once, in order."""
        assert [d.split(" = ")[0].split()[-1] for d in self.declarations] == ["IPet", "INewPet", "IOwner"]

    def test_pet(self):
        """Required fields are plain, optional fields get ?, refs use the declared name."""
        assert self.declarations[0] == (
            "/** A pet in the store */\n"
            "export type IPet = {\n"
            '  "id": number;\n'
            '  "name": string;\n'
            '  "tag"?: string;\n'
            '  "owner"?: IOwner;\n'
            "};\n"
        )

    def test_cycle_closes_through_names(self):
        """Owner refers back to Pet by name."""
        assert self.declarations[2] == (
            "export type IOwner = {\n"
            '  "name": string;\n'
            '  "pets"?: IPet[];\n'
            "};\n"
        )

    def test_docs_disabled(self):
        """with_docs=False drops description comments."""
        emitter = TypeEmitter(self.ref_names, self.table, with_docs=False)
        assert emitter.declaration("IPet", self.named["Pet"]).startswith("export type IPet = {")

    def test_required_fields(self):
        """required_fields() lists the fields declared without ?."""
        assert required_fields(self.named["Pet"]) == {"id", "name"}
        assert required_fields(self.named["Owner"]) == {"name"}

    def test_namespaced_reference(self):
        """Outside the shared file references are qualified."""
        node = self.named["Pet"].properties["owner"].node
        assert render_type(node, self.ref_names, self.table, shared_namespace="Shared") == "Shared.IOwner"


class TestRenderType:
    """Individual schema shapes."""

    def test_nullable(self):
        """Nullable primitives add | null."""
        assert render_type(_primitive("string", nullable=True), {}) == "string | null"

    def test_intersection_with_nullable_member(self):
        """A nullable member keeps its null inside the intersection."""
        refs = {"#/components/schemas/Pet": "IPet", "#/components/schemas/Owner": "IOwner"}
        schema = ResolvedSchema(
            kind=SchemaKind.INTERSECTION,
            members=[
                ResolvedSchema(kind=SchemaKind.REFERENCE, ref="#/components/schemas/Pet", nullable=True),
                ResolvedSchema(kind=SchemaKind.REFERENCE, ref="#/components/schemas/Owner"),
            ],
        )
        assert render_type(schema, refs) == "((IPet | null) & IOwner)"

    def test_array_of_nullable(self):
        """Nullable items are parenthesised."""
        schema = ResolvedSchema(kind=SchemaKind.ARRAY, items=_primitive("integer", nullable=True))
        assert render_type(schema, {}) == "(number | null)[]"

    def test_enum(self):
        """Enums are unions of literals."""
        schema = ResolvedSchema(kind=SchemaKind.ENUM, enum_values=["a", "b"])
        assert render_type(schema, {}) == '("a" | "b")'
        assert render_type(ResolvedSchema(kind=SchemaKind.ENUM, enum_values=[1]), {}) == "1"

    def test_union_and_intersection(self):
        """oneOf and allOf map to | and &."""
        members = [_primitive("string"), _primitive("number")]
        assert render_type(ResolvedSchema(kind=SchemaKind.UNION, members=members), {}) == "(string | number)"
        assert render_type(ResolvedSchema(kind=SchemaKind.INTERSECTION, members=members), {}) == "(string & number)"

    def test_map(self):
        """additionalProperties without properties is an index signature."""
        schema = ResolvedSchema(kind=SchemaKind.OBJECT, additional=_primitive("integer"))
        assert render_type(schema, {}) == "{ [k: string]: number }"

    def test_open_object(self):
        """Objects with properties and additionalProperties keep an index signature."""
        schema = ResolvedSchema(
            kind=SchemaKind.OBJECT,
            properties={"a": {"node": _primitive("string"), "required": True}},
            additional=ResolvedSchema(kind=SchemaKind.ANY),
        )
        assert render_type(schema, {}) == '{\n  "a": string;\n  [k: string]: any;\n}'

    def test_non_component_reference_inlined(self):
        """A ref with no declared name is inlined from the table."""
        ref = ResolvedSchema(kind=SchemaKind.REFERENCE, ref="#/paths/~1pets/get/x")
        assert render_type(ref, {}, {"#/paths/~1pets/get/x": _primitive("boolean")}) == "boolean"
        assert render_type(ref, {}) == "any"

    def test_any(self):
        """Unknown shapes are any, even when nullable."""
        assert render_type(ResolvedSchema(kind=SchemaKind.ANY, nullable=True), {}) == "any"

    def test_multiline_doc_comment(self):
        """Multi-line descriptions become a block comment."""
        assert doc_comment("one\ntwo", "  ") == "  /**\n   * one\n   * two\n   */\n"
