"""Tests for the loader module."""

import json

import httpx
import pytest
import yaml

from conftest import PETSTORE
from openapi_sync.errors import SpecParseError, SpecUnreachableError, UnresolvedReferenceError
from openapi_sync.loader import (
    build_document,
    fetch_source,
    get_operations,
    get_servers,
    load_spec,
    parse_spec_text,
    resolve_ref,
)

SPEC_URL = "https://petstore.example.com/openapi.json"


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestLoadFromDisk:
    """Local JSON and YAML files."""

    async def test_json_file(self, write_spec):
        """A JSON file loads into a document with title and operations."""
        path = write_spec(PETSTORE)
        document = await load_spec(str(path))
        assert document.title == "Petstore"
        assert document.version == "1.0.0"
        assert len(document.operations) == 4

    async def test_yaml_file(self, tmp_path):
        """A YAML file produces the same document as JSON."""
        path = tmp_path / "openapi.yaml"
        path.write_text(yaml.safe_dump(PETSTORE, sort_keys=False), encoding="utf-8")
        document = await load_spec(str(path))
        assert [op.operation_id for op in document.operations] == [
            "listPets", "createPet", "getPetById", "deletePet",
        ]

    async def test_missing_file_is_unreachable(self, tmp_path):
        """A path that does not exist raises SpecUnreachableError."""
        with pytest.raises(SpecUnreachableError) as exc:
            await load_spec(str(tmp_path / "nope.json"))
        assert exc.value.source.endswith("nope.json")

    async def test_invalid_yaml_is_parse_error(self, tmp_path):
        """Bytes that are neither JSON nor YAML raise SpecParseError."""
        path = tmp_path / "broken.yaml"
        path.write_text("paths: [unclosed", encoding="utf-8")
        with pytest.raises(SpecParseError):
            await load_spec(str(path))


class TestLoadFromUrl:
    """Remote specs, served through httpx.MockTransport."""

    async def test_json_response(self):
        """A JSON response is fetched and parsed."""
        def handler(request):
            assert str(request.url) == SPEC_URL
            return httpx.Response(200, json=PETSTORE)

        async with _client(handler) as client:
            document = await load_spec(SPEC_URL, client=client)
        assert document.source == SPEC_URL
        assert document.servers == ["https://petstore.example.com/v1"]

    async def test_yaml_response_by_content_type(self):
        """A YAML body is recognised from its content type."""
        body = yaml.safe_dump(PETSTORE, sort_keys=False).encode("utf-8")

        def handler(request):
            return httpx.Response(200, content=body, headers={"content-type": "application/yaml"})

        async with _client(handler) as client:
            document = await load_spec("https://petstore.example.com/spec", client=client)
        assert len(document.operations) == 4

    async def test_http_error_status(self):
        """A non-2xx response raises SpecUnreachableError."""
        async with _client(lambda request: httpx.Response(503)) as client:
            with pytest.raises(SpecUnreachableError) as exc:
                await fetch_source(SPEC_URL, client=client)
        assert exc.value.source == SPEC_URL
        assert "503" in exc.value.reason

    async def test_connection_error(self):
        """A transport failure raises SpecUnreachableError."""
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(SpecUnreachableError, match="connection refused"):
                await fetch_source(SPEC_URL, client=client)


class TestParseSpecText:
    """JSON/YAML detection."""

    def test_json_detected_by_brace(self):
        """Text starting with a brace parses as JSON."""
        assert parse_spec_text(json.dumps({"openapi": "3.0.0"})) == {"openapi": "3.0.0"}

    def test_wrong_json_hint_falls_back_to_yaml(self):
        """YAML served with a JSON hint still parses."""
        assert parse_spec_text("openapi: 3.0.0\n", hint="json") == {"openapi": "3.0.0"}

    def test_non_mapping_rejected(self):
        """A document that is not a mapping raises SpecParseError."""
        with pytest.raises(SpecParseError, match="not a mapping"):
            parse_spec_text("- a\n- b\n", "list.yaml")


class TestDocumentExtraction:
    """Operations, servers and refs."""

    def test_path_level_parameters_merged(self):
        """Path-level parameters are visible on every operation of the path."""
        operations = {op.operation_id: op for op in get_operations(PETSTORE)}
        names = [p["name"] for p in operations["getPetById"].parameters]
        assert names == ["id"]

    def test_operation_parameter_overrides_path_level(self):
        """An operation parameter with the same name and location wins."""
        spec = {"paths": {"/a/{id}": {
            "parameters": [{"name": "id", "in": "path", "schema": {"type": "string"}}],
            "get": {"parameters": [{"name": "id", "in": "path", "schema": {"type": "integer"}}]},
        }}}
        (operation,) = get_operations(spec)
        assert operation.parameters == [{"name": "id", "in": "path", "schema": {"type": "integer"}}]

    def test_methods_lowercased_and_extensions_skipped(self):
        """Only HTTP methods become operations."""
        spec = {"paths": {"/a": {"GET": {}, "x-internal": {}, "summary": "A"}}}
        assert [op.method for op in get_operations(spec)] == ["get"]

    def test_swagger2_servers(self):
        """Swagger 2 host and basePath become a server URL."""
        spec = {"swagger": "2.0", "host": "api.example.com", "basePath": "/v2", "schemes": ["http"]}
        assert get_servers(spec) == ["http://api.example.com/v2"]

    def test_base_paths(self):
        """Server paths are recorded as base paths."""
        document = build_document(PETSTORE)
        assert document.base_paths == ["/v1"]

    def test_resolve_ref_with_escaped_segment(self):
        """JSON pointer escapes are decoded."""
        node = resolve_ref(PETSTORE, "#/paths/~1pets~1{id}/get")
        assert node["operationId"] == "getPetById"

    def test_resolve_ref_missing(self):
        """A pointer to nothing raises UnresolvedReferenceError."""
        with pytest.raises(UnresolvedReferenceError) as exc:
            resolve_ref(PETSTORE, "#/components/schemas/Missing")
        assert exc.value.ref == "#/components/schemas/Missing"

    def test_external_ref_unsupported(self):
        """Refs into other documents are not followed."""
        with pytest.raises(UnresolvedReferenceError):
            resolve_ref(PETSTORE, "other.yaml#/Pet")
