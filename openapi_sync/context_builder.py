"""Build the template context for one API from a loaded spec.

Assigns each operation to a folder group, names its endpoint and types,
renders type and validation declarations, and assembles the context
consumed by the file templates.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from .config import SyncConfig
from .endpoints import build_curl, build_endpoint_info, example_value, is_excluded
from .errors import UnresolvedReferenceError
from .loader import resolve_ref
from .models import EndpointInfo, EndpointParameter, Operation, SpecDocument
from .naming import NameRegistry, build_name, sanitize_path, shared_type_name, to_identifier
from .schema_parser import ANY_SCHEMA, ResolvedSchema, SchemaField, SchemaKind, SchemaResolver
from .types_emitter import TypeEmitter, emit_shared_types
from .validation import VALIDATION_EMITTERS, validation_name

logger = logging.getLogger(__name__)

SHARED_NAMESPACE = "Shared"

DEFAULT_FOLDER = "default"

_JSON_MEDIA = re.compile(r"^application/(.+\+)?json")

_WHITESPACE = re.compile(r"\s+")


def select_server(document: SpecDocument, server: int | str | None) -> str:
    """Pick the server URL by index or literal value (defaults to the first)."""
    if isinstance(server, str):
        return server
    index = server or 0
    if 0 <= index < len(document.servers):
        return document.servers[index]
    return document.servers[0] if document.servers else ""


def folder_for_endpoint(operation: Operation, config: SyncConfig) -> str:
    """Folder group for an operation when folder splitting is on."""
    split = config.folder_split
    if split is not None and split.custom_folder is not None:
        folder = split.custom_folder({
            "method": operation.method.upper(),
            "path": operation.path,
            "summary": operation.summary,
            "operationId": operation.operation_id,
            "tags": list(operation.tags),
        })
        if folder:
            return str(folder)
    if split is not None and split.by_tags and operation.tags:
        return _WHITESPACE.sub("-", operation.tags[0].strip().lower()) or DEFAULT_FOLDER
    return DEFAULT_FOLDER


def _media_schema(content: Any) -> tuple[bool, Any]:
    """(has content, raw schema) for a content map, preferring JSON."""
    if not isinstance(content, dict) or not content:
        return False, None
    for media, entry in content.items():
        if _JSON_MEDIA.match(str(media)) and isinstance(entry, dict):
            return True, entry.get("schema")
    entry = next(iter(content.values()))
    return True, entry.get("schema") if isinstance(entry, dict) else None


class _ApiBuilder:
    """Holds per-API naming state while operations are processed."""

    def __init__(self, document: SpecDocument, config: SyncConfig):
        self.document = document
        self.config = config
        self.resolver = SchemaResolver(document)
        self.type_names = NameRegistry()
        self.endpoint_names = NameRegistry()
        self.validation_names = NameRegistry()
        self.server = select_server(document, config.server)
        self.ref_names: dict[str, str] = {}
        self.validation_refs: dict[str, str] = {}

    # Shared schemas

    def shared(self) -> dict[str, Any]:
        options = self.config.types
        named = self.resolver.resolve_components()
        type_names = {
            name: self.type_names.claim(
                shared_type_name(name, options.name.prefix, options.name.format),
            )
            for name in named
        }
        self.ref_names = {self.resolver.component_ref(name): type_names[name] for name in named}
        declarations = emit_shared_types(
            named, type_names, self.ref_names, self.resolver.table,
            with_docs=not options.doc.disable,
        )

        validations: list[str] = []
        if self.config.validations_enabled:
            naming = self.config.validations.name
            for name in named:
                self.validation_refs[self.resolver.component_ref(name)] = self.validation_names.claim(
                    validation_name(to_identifier(name, upper_first=True), naming.prefix, naming.suffix),
                )
            emitter = self._validation_emitter(namespace=None)
            validations = [
                emitter.declaration(self.validation_refs[self.resolver.component_ref(name)], schema)
                for name, schema in named.items()
            ]
        return {"types": declarations, "validations": validations}

    def _validation_emitter(self, namespace: str | None):
        emitter_class = VALIDATION_EMITTERS[self.config.validations.library]
        return emitter_class(self.validation_refs, self.resolver.table, namespace=namespace)

    # Operations

    def _resolve_parameter(self, param: dict[str, Any]) -> dict[str, Any] | None:
        if "$ref" not in param:
            return param
        try:
            resolved = resolve_ref(self.document.raw, param["$ref"])
        except UnresolvedReferenceError as e:
            self.resolver.report(e, "parameters")
            return None
        return resolved if isinstance(resolved, dict) else None

    def parameters(self, operation: Operation) -> list[tuple[EndpointParameter, ResolvedSchema]]:
        result = []
        for raw in operation.parameters:
            param = self._resolve_parameter(raw)
            if param is None or param.get("in") in ("body", "formData") or not param.get("name"):
                continue
            location = str(param.get("in", "query"))
            # Swagger 2 parameters carry their type inline.
            raw_schema = param.get("schema", {k: v for k, v in param.items() if k not in ("name", "in")})
            schema = self.resolver.resolve_or_any(raw_schema, f"{operation.path} parameter {param['name']}")
            target = self.resolver.target(schema)
            primitive = target.primitive or (
                target.kind.value if target.kind in (SchemaKind.ARRAY, SchemaKind.OBJECT) else "string"
            )
            endpoint_param = EndpointParameter(
                name=str(param["name"]),
                location=location,
                required=location == "path" or bool(param.get("required", False)),
                type=primitive,
            )
            if param.get("description") and not schema.description and not schema.is_reference:
                schema = schema.model_copy(update={"description": str(param["description"])})
            result.append((endpoint_param, schema))
        return result

    def request_body(self, operation: Operation) -> tuple[bool, ResolvedSchema | None]:
        context = f"{operation.method.upper()} {operation.path} request body"
        for raw in operation.parameters:
            param = self._resolve_parameter(raw)
            if param is not None and param.get("in") == "body":
                return True, self.resolver.resolve_or_any(param.get("schema"), context)
        body = operation.request_body
        if isinstance(body, dict) and "$ref" in body:
            try:
                body = resolve_ref(self.document.raw, body["$ref"])
            except UnresolvedReferenceError as e:
                self.resolver.report(e, context)
                return True, ANY_SCHEMA
        if not isinstance(body, dict):
            return False, None
        has_content, raw_schema = _media_schema(body.get("content"))
        if not has_content:
            return False, None
        return True, self.resolver.resolve_or_any(raw_schema, context)

    def responses(self, operation: Operation) -> list[tuple[str, ResolvedSchema]]:
        result = []
        for code, response in operation.responses.items():
            if isinstance(response, dict) and "$ref" in response:
                try:
                    response = resolve_ref(self.document.raw, response["$ref"])
                except UnresolvedReferenceError as e:
                    self.resolver.report(e, f"{operation.path} response {code}")
                    continue
            if not isinstance(response, dict):
                continue
            if "schema" in response:
                raw_schema = response["schema"]
            else:
                has_content, raw_schema = _media_schema(response.get("content"))
                if not has_content:
                    continue
            context = f"{operation.method.upper()} {operation.path} response {code}"
            result.append((code, self.resolver.resolve_or_any(raw_schema, context)))
        return result

    def type_name(self, operation: Operation, kind: str, code: str = "") -> tuple[str, str]:
        """(declared type name, unprefixed base) for an endpoint type."""
        options = self.config.types.name
        base = build_name(
            operation.method,
            operation.path,
            operation_id=operation.operation_id,
            use_operation_id=options.use_operation_id,
            code=sanitize_path(code),
            kind=kind,
            formatter=options.format,
            source="type",
            summary=operation.summary,
            tags=operation.tags,
            upper_first=True,
        )
        return self.type_names.claim(f"{options.prefix}{base}{options.suffix}"), base

    def endpoint_name(self, operation: Operation) -> str:
        options = self.config.endpoints.name
        base = build_name(
            operation.method,
            operation.path,
            operation_id=operation.operation_id,
            use_operation_id=options.use_operation_id,
            formatter=options.format,
            source="endpoint",
            summary=operation.summary,
            tags=operation.tags,
        )
        return self.endpoint_names.claim(f"{options.prefix}{base}{options.suffix}")

    def operation(self, operation: Operation) -> tuple[EndpointInfo, list[str], list[str]]:
        """Endpoint info plus its type and validation declarations."""
        type_emitter = TypeEmitter(
            self.ref_names, self.resolver.table, namespace=SHARED_NAMESPACE,
            with_docs=not self.config.types.doc.disable,
        )
        validation_options = self.config.validations
        validation_emitter = (
            self._validation_emitter(namespace=SHARED_NAMESPACE)
            if self.config.validations_enabled else None
        )
        type_declarations: list[str] = []
        validation_declarations: list[str] = []

        def add_validation(base: str, schema: ResolvedSchema) -> None:
            naming = validation_options.name
            name = self.validation_names.claim(validation_name(base, naming.prefix, naming.suffix))
            validation_declarations.append(validation_emitter.declaration(name, schema))

        endpoint_name = self.endpoint_name(operation)
        params = self.parameters(operation)

        query_type = None
        query_params = [(p, s) for p, s in params if p.location == "query"]
        if query_params:
            query_schema = ResolvedSchema(
                kind=SchemaKind.OBJECT,
                properties={p.name: SchemaField(node=s, required=p.required) for p, s in query_params},
            )
            query_type, base = self.type_name(operation, "query")
            type_declarations.append(type_emitter.declaration(query_type, query_schema))
            if validation_emitter is not None and validation_options.generate.query:
                add_validation(base, query_schema)

        dto_type = None
        has_body, body_schema = self.request_body(operation)
        if has_body:
            dto_type, base = self.type_name(operation, "dto")
            type_declarations.append(type_emitter.declaration(dto_type, body_schema or ANY_SCHEMA))
            if validation_emitter is not None and validation_options.generate.dto:
                add_validation(base, body_schema or ANY_SCHEMA)

        response_types: dict[str, str] = {}
        for code, schema in self.responses(operation):
            name, _ = self.type_name(operation, "response", code)
            response_types[code] = name
            type_declarations.append(type_emitter.declaration(name, schema))

        doc_options = self.config.endpoints.doc
        curl = ""
        if doc_options.show_curl:
            curl = build_curl(
                operation.method,
                operation.path,
                self.server,
                query=[p for p, _ in query_params],
                body=example_value(body_schema, self.resolver.table),
                has_body=has_body,
            )
        security = operation.security
        if security is None:
            security = self.document.raw.get("security")
        value = self.config.endpoints.value
        info = build_endpoint_info(
            endpoint_name,
            operation,
            [p for p, _ in params],
            query_type=query_type,
            dto_type=dto_type,
            response_types=response_types,
            server=self.server if value.include_server else "",
            rules=value.replace_words,
            dedupe_variables=value.dedupe_variables,
            doc=not doc_options.disable,
            security=security if isinstance(security, list) else None,
            curl=curl,
            has_body=has_body,
        )
        return info, type_declarations, validation_declarations


def _new_group() -> dict[str, Any]:
    return {"endpoints": [], "types": [], "validations": []}


def build_context(document: SpecDocument, config: SyncConfig, api_name: str) -> dict[str, Any]:
    """Build the full template context for one API."""
    builder = _ApiBuilder(document, config)
    shared = builder.shared()
    split = config.folder_split_enabled

    groups: dict[str | None, dict[str, Any]] = {} if split else {None: _new_group()}
    endpoints: list[EndpointInfo] = []
    excluded = 0
    for operation in document.operations:
        if is_excluded(operation, config.endpoints.exclude, config.endpoints.include):
            excluded += 1
            continue
        folder = folder_for_endpoint(operation, config) if split else None
        info, types, validations = builder.operation(operation)
        info = info.model_copy(update={"group": folder})
        group = groups.setdefault(folder, _new_group())
        group["endpoints"].append(info)
        group["types"].extend(types)
        group["validations"].extend(validations)
        endpoints.append(info)

    if excluded:
        logger.debug("%s: %d operations excluded by filters", api_name, excluded)

    validation_import = ""
    if config.validations_enabled:
        validation_import = VALIDATION_EMITTERS[config.validations.library].import_line

    return {
        "api_name": api_name,
        "title": document.title,
        "version": document.version,
        "shared_types": shared["types"],
        "shared_validations": shared["validations"],
        "validation_import": validation_import,
        "groups": groups,
        "endpoints": endpoints,
        "endpoint_count": len(endpoints),
        "errors": list(builder.resolver.errors),
    }
