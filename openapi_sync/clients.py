"""Client emitters: fetch, axios, react-query, swr and rtk-query.

Every flavor renders the same per-endpoint context (function name, typed
``params`` argument, URL call, request call) through its own template, and
each generated module is self-contained. Generated functions take one
structured argument::

    getPetById(params: { url: { id: number } })
    createPet(params: { data: IPostPetsDTO })
    listPets(params?: { query?: IGetPetsQuery })
"""

from __future__ import annotations

import json
import logging
from typing import Any

from .codegen import get_environment
from .config import ClientGenerationOptions
from .models import EndpointInfo
from .naming import NameRegistry, capitalize, to_identifier

logger = logging.getLogger(__name__)

PARAM_TYPES = {
    "string": "string",
    "integer": "number",
    "number": "number",
    "boolean": "boolean",
    "array": "any[]",
    "object": "any",
}

MUTATION_METHODS = {"post", "put", "patch", "delete"}


def filter_endpoints(
    endpoints: list[EndpointInfo] | tuple[EndpointInfo, ...],
    options: ClientGenerationOptions,
) -> list[EndpointInfo]:
    """Keep endpoints matching the configured tags and endpoint names."""
    selected = list(endpoints)
    if options.tags:
        selected = [e for e in selected if set(e.tags) & set(options.tags)]
    if options.endpoints:
        selected = [
            e for e in selected
            if e.name in options.endpoints or (e.operation_id or "") in options.endpoints
        ]
    return selected


class ClientEmitter:
    """Shared path-building and type-binding for every client flavor."""

    client_type = ""
    template = ""
    filename = "index.ts"

    def __init__(
        self,
        options: ClientGenerationOptions,
        types_import: str = "../types",
        endpoints_import: str = "../endpoints",
    ):
        self.options = options
        self.types_import = types_import
        self.endpoints_import = endpoints_import

    def function_name(self, endpoint: EndpointInfo) -> str:
        naming = self.options.name
        if naming.format is not None:
            formatted = naming.format(
                {
                    "method": endpoint.method.upper(),
                    "path": endpoint.path,
                    "summary": endpoint.summary,
                    "operationId": endpoint.operation_id,
                    "tags": list(endpoint.tags),
                },
                endpoint.name,
            )
            if formatted:
                return to_identifier(formatted)
        if naming.use_operation_id and endpoint.operation_id:
            return to_identifier(endpoint.operation_id)
        return f"{naming.prefix}{endpoint.name}{naming.suffix}"

    @staticmethod
    def alias(endpoint: EndpointInfo) -> str:
        return f"{endpoint.name}_endpoint"

    def url_call(self, endpoint: EndpointInfo, holder: str = "url") -> str:
        """``getPetById_endpoint(url.id)`` or ``listPets_endpoint``."""
        if not endpoint.url_arguments:
            return self.alias(endpoint)
        args = ", ".join(f"{holder}.{name}" for name in endpoint.url_arguments)
        return f"{self.alias(endpoint)}({args})"

    def url_fields(self, endpoint: EndpointInfo) -> list[tuple[str, str]]:
        declared = {p.name: p for p in endpoint.params_in("path")}
        fields = []
        for name in endpoint.url_arguments:
            param = declared.get(name)
            ts_type = PARAM_TYPES.get(param.type, "any") if param else "string | number"
            fields.append((name, ts_type))
        return fields

    def query_optional(self, endpoint: EndpointInfo) -> bool:
        return not any(p.required for p in endpoint.params_in("query"))

    def params_type(self, endpoint: EndpointInfo, indent: str = "") -> str | None:
        """Structured ``{ url, query, data }`` argument type, or None."""
        lines = []
        inner = indent + "  "
        if endpoint.url_arguments:
            fields = "; ".join(f"{name}: {ts}" for name, ts in self.url_fields(endpoint))
            lines.append(f"{inner}url: {{ {fields} }};")
        if endpoint.params_in("query"):
            optional = "?" if self.query_optional(endpoint) else ""
            lines.append(f"{inner}query{optional}: {endpoint.query_type or 'Record<string, any>'};")
        if endpoint.has_body:
            lines.append(f"{inner}data: {endpoint.dto_type or 'any'};")
        if not lines:
            return None
        return "{\n" + "\n".join(lines) + f"\n{indent}}}"

    def params_optional(self, endpoint: EndpointInfo) -> bool:
        return (
            not endpoint.url_arguments
            and not endpoint.has_body
            and self.query_optional(endpoint)
        )

    def destructure(self, endpoint: EndpointInfo) -> str:
        parts = []
        if endpoint.url_arguments:
            parts.append("url")
        if endpoint.params_in("query"):
            parts.append("query")
        if endpoint.has_body:
            parts.append("data")
        return ", ".join(parts)

    def request_options(self, endpoint: EndpointInfo) -> str:
        parts = [f'method: "{endpoint.method.upper()}"']
        if endpoint.params_in("query"):
            parts.append("query")
        if endpoint.has_body:
            parts.append("body: data")
        return "{ " + ", ".join(parts) + " }"

    def doc(self, endpoint: EndpointInfo, indent: str = "") -> str:
        lines = []
        if endpoint.summary:
            lines.append(endpoint.summary.replace("*/", "*\\/"))
        lines.append(f"@method {endpoint.method.upper()}")
        lines.append(f"@path {endpoint.path}")
        if endpoint.tags:
            lines.append(f"@tags {', '.join(endpoint.tags)}")
        body = "".join(f"{indent} * {line}\n" for line in lines)
        return f"{indent}/**\n{body}{indent} */"

    def callable_context(self, endpoint: EndpointInfo, fn: str | None = None) -> dict[str, Any]:
        fn = fn or self.function_name(endpoint)
        response = endpoint.response_type or "any"
        return {
            "endpoint": endpoint,
            "fn": fn,
            "hook": "use" + capitalize(fn),
            "alias": self.alias(endpoint),
            "doc": self.doc(endpoint),
            "member_doc": self.doc(endpoint, "  "),
            "params_type": self.params_type(endpoint),
            "member_params_type": self.params_type(endpoint, "  "),
            "params_optional": self.params_optional(endpoint),
            "params_default": " = {}" if self.params_optional(endpoint) else "",
            "destructure": self.destructure(endpoint),
            "url_call": self.url_call(endpoint),
            "request_call": (
                f"request<{response}>({self.url_call(endpoint)}, {self.request_options(endpoint)})"
            ),
            "response": response,
            "method": endpoint.method.lower(),
            "method_upper": endpoint.method.upper(),
            "is_query": endpoint.method.lower() == "get",
            "is_mutation": endpoint.method.lower() in MUTATION_METHODS,
            "has_query": bool(endpoint.params_in("query")),
            "has_body": endpoint.has_body,
        }

    def type_imports(self, endpoints: list[EndpointInfo]) -> list[str]:
        names: dict[str, None] = {}
        for endpoint in endpoints:
            for name in (endpoint.query_type, endpoint.dto_type, endpoint.response_type):
                if name:
                    names[name] = None
        return list(names)

    def module_context(self, endpoints: list[EndpointInfo]) -> dict[str, Any]:
        registry = NameRegistry()
        callables = [
            self.callable_context(e, registry.claim(self.function_name(e))) for e in endpoints
        ]
        return {
            "options": self.options,
            "auth": self.options.auth,
            "error_classes": self.options.error_handling.generate_error_classes,
            "base_url": json.dumps(self.options.base_url),
            "types_import": self.types_import,
            "endpoints_import": self.endpoints_import,
            "type_imports": self.type_imports(endpoints),
            "callables": callables,
        }

    def _template(self):
        return get_environment().get_template(self.template)

    def render_callable(self, endpoint: EndpointInfo) -> str:
        """Render the code for a single endpoint, without module boilerplate."""
        module = self._template().make_module(self.module_context([]))
        return str(module.callable(self.callable_context(endpoint))).strip("\n") + "\n"

    def render_module(self, endpoints: list[EndpointInfo]) -> str:
        logger.debug("Rendering %s client for %d endpoints", self.client_type, len(endpoints))
        return self._template().render(**self.module_context(list(endpoints)))


class FetchClientEmitter(ClientEmitter):
    client_type = "fetch"
    template = "clients/fetch.ts.j2"


class AxiosClientEmitter(ClientEmitter):
    client_type = "axios"
    template = "clients/axios.ts.j2"


class ReactQueryEmitter(ClientEmitter):
    client_type = "react-query"
    template = "clients/react_query.ts.j2"
    filename = "hooks.ts"

    def module_context(self, endpoints):
        settings = self.options.react_query
        context = super().module_context(endpoints)
        context["package"] = "@tanstack/react-query" if settings.version == 5 else "react-query"
        context["mutations"] = settings.mutations
        context["has_mutations"] = settings.mutations and any(
            c["is_mutation"] for c in context["callables"]
        )
        return context


class SWREmitter(ClientEmitter):
    client_type = "swr"
    template = "clients/swr.ts.j2"
    filename = "hooks.ts"

    def module_context(self, endpoints):
        context = super().module_context(endpoints)
        context["mutations"] = self.options.swr.mutations
        context["has_mutations"] = self.options.swr.mutations and any(
            c["is_mutation"] for c in context["callables"]
        )
        return context


class RTKQueryEmitter(ClientEmitter):
    client_type = "rtk-query"
    template = "clients/rtk_query.ts.j2"
    filename = "api.ts"

    def callable_context(self, endpoint, fn=None):
        context = super().callable_context(endpoint, fn)
        suffix = "Query" if context["is_query"] else "Mutation"
        context["hook"] = f"use{capitalize(context['fn'])}{suffix}"
        parts = [f"url: {context['url_call']}", f'method: "{context["method_upper"]}"']
        if context["has_query"]:
            parts.append("params: query")
        if context["has_body"]:
            parts.append("body: data")
        context["query_object"] = "{ " + ", ".join(parts) + " }"
        context["arg_type"] = self.params_type(endpoint, "      ") or "void"
        return context

    def module_context(self, endpoints):
        context = super().module_context(endpoints)
        context["api_name"] = self.options.rtk_query.api_name
        return context


CLIENT_EMITTERS: dict[str, type[ClientEmitter]] = {
    "fetch": FetchClientEmitter,
    "axios": AxiosClientEmitter,
    "react-query": ReactQueryEmitter,
    "swr": SWREmitter,
    "rtk-query": RTKQueryEmitter,
}


def get_client_emitter(options: ClientGenerationOptions, **kwargs: Any) -> ClientEmitter:
    return CLIENT_EMITTERS[options.type](options, **kwargs)
