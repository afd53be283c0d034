"""Load and parse OpenAPI documents.

Fetches a spec from a URL or reads it from disk, parses JSON or YAML, and
extracts servers, schemas and operations in declaration order.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import httpx
import yaml

from .errors import SpecParseError, SpecUnreachableError, UnresolvedReferenceError
from .models import HTTP_METHODS, Operation, SpecDocument

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0


def is_url(source: str) -> bool:
    return urlparse(source).scheme in ("http", "https")


def _format_hint(source: str, content_type: str | None = None) -> str | None:
    """Guess 'json' or 'yaml' from a content type or file extension."""
    if content_type:
        if "json" in content_type:
            return "json"
        if "yaml" in content_type or "yml" in content_type:
            return "yaml"
    suffix = Path(urlparse(source).path if is_url(source) else source).suffix.lower()
    if suffix == ".json":
        return "json"
    if suffix in (".yaml", ".yml"):
        return "yaml"
    return None


async def fetch_source(
    source: str,
    client: httpx.AsyncClient | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> tuple[str, str | None]:
    """Return the raw text of a spec and its content type (if any).

    One attempt only; retries are left to the next sync cycle.
    """
    if is_url(source):
        try:
            if client is not None:
                response = await client.get(source)
            else:
                async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as own:
                    response = await own.get(source)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise SpecUnreachableError(source, str(e) or type(e).__name__) from e
        return response.text, response.headers.get("content-type")

    path = Path(source)
    try:
        text = await asyncio.to_thread(path.read_text, encoding="utf-8")
    except UnicodeDecodeError as e:
        raise SpecParseError(source, f"not UTF-8 text: {e}") from e
    except OSError as e:
        raise SpecUnreachableError(source, e.strerror or str(e)) from e
    return text, None


def parse_spec_text(text: str, source: str = "<string>", hint: str | None = None) -> dict[str, Any]:
    """Parse JSON or YAML text into a mapping."""
    stripped = text.lstrip()
    if hint == "json" or (hint is None and stripped.startswith("{")):
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            # JSON hint can be wrong (YAML served as application/json).
            data = _parse_yaml(text, source)
    else:
        data = _parse_yaml(text, source)

    if not isinstance(data, dict):
        raise SpecParseError(source, "document is not a mapping")
    return data


def _parse_yaml(text: str, source: str) -> Any:
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise SpecParseError(source, str(e)) from e


def get_paths(spec: dict[str, Any]) -> dict[str, Any]:
    """Extract paths from the spec."""
    paths = spec.get("paths") or {}
    return paths if isinstance(paths, dict) else {}


def get_schemas(spec: dict[str, Any]) -> dict[str, Any]:
    """Extract component schemas (or Swagger 2 definitions) from the spec."""
    components = spec.get("components") or {}
    schemas = components.get("schemas") if isinstance(components, dict) else None
    if schemas is None:
        schemas = spec.get("definitions")
    return schemas if isinstance(schemas, dict) else {}


def _unescape(token: str) -> str:
    return token.replace("~1", "/").replace("~0", "~")


def resolve_ref(spec: dict[str, Any], ref: str) -> Any:
    """Resolve a same-document ``$ref`` pointer in the spec."""
    if not isinstance(ref, str) or not ref.startswith("#"):
        raise UnresolvedReferenceError(str(ref))
    node: Any = spec
    pointer = ref[1:].lstrip("/")
    if not pointer:
        return node
    for part in pointer.split("/"):
        key = _unescape(part)
        if isinstance(node, dict) and key in node:
            node = node[key]
        elif isinstance(node, list) and key.isdigit() and int(key) < len(node):
            node = node[int(key)]
        else:
            raise UnresolvedReferenceError(ref)
    return node


def get_servers(spec: dict[str, Any]) -> list[str]:
    """Server URLs, from OpenAPI 3 ``servers`` or Swagger 2 host/basePath."""
    servers = spec.get("servers")
    if isinstance(servers, list):
        return [s["url"] for s in servers if isinstance(s, dict) and isinstance(s.get("url"), str)]
    host = spec.get("host")
    if isinstance(host, str):
        schemes = spec.get("schemes") or ["https"]
        return [f"{schemes[0]}://{host}{spec.get('basePath', '')}"]
    return []


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _merge_parameters(path_level: list[Any], op_level: list[Any]) -> list[dict[str, Any]]:
    """Operation parameters override path-level ones with the same name+in."""
    merged: dict[tuple[str, str], dict[str, Any]] = {}
    refs: list[dict[str, Any]] = []
    for param in [*path_level, *op_level]:
        if not isinstance(param, dict):
            continue
        if "$ref" in param:
            refs.append(param)
            continue
        merged[(str(param.get("name")), str(param.get("in")))] = param
    return [*merged.values(), *refs]


def get_operations(spec: dict[str, Any]) -> list[Operation]:
    """All operations, in path then method declaration order."""
    operations: list[Operation] = []
    for path, path_item in get_paths(spec).items():
        if not isinstance(path_item, dict):
            logger.warning("Skipping path %s: path item is not a mapping", path)
            continue
        shared_params = _as_list(path_item.get("parameters"))
        for method, operation in path_item.items():
            if not isinstance(method, str) or method.lower() not in HTTP_METHODS:
                continue
            if not isinstance(operation, dict):
                continue
            tags = operation.get("tags") or []
            responses = operation.get("responses") or {}
            operation_id = operation.get("operationId")
            operations.append(Operation(
                path=str(path),
                method=method.lower(),
                operation_id=str(operation_id) if operation_id else None,
                summary=str(operation.get("summary") or ""),
                description=str(operation.get("description") or ""),
                tags=[str(t) for t in tags] if isinstance(tags, list) else [],
                parameters=_merge_parameters(shared_params, _as_list(operation.get("parameters"))),
                request_body=operation.get("requestBody"),
                responses={str(code): r for code, r in responses.items()} if isinstance(responses, dict) else {},
                security=operation.get("security"),
                deprecated=bool(operation.get("deprecated", False)),
            ))
    return operations


def build_document(spec: dict[str, Any], source: str = "<string>") -> SpecDocument:
    """Normalize a parsed spec mapping into a ``SpecDocument``."""
    info = spec.get("info") or {}
    servers = get_servers(spec)
    return SpecDocument(
        source=source,
        raw=spec,
        title=str(info.get("title", "")) if isinstance(info, dict) else "",
        version=str(info.get("version", "")) if isinstance(info, dict) else "",
        servers=servers,
        base_paths=[urlparse(s).path for s in servers],
        schemas=get_schemas(spec),
        operations=get_operations(spec),
    )


async def load_spec(
    source: str,
    client: httpx.AsyncClient | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> SpecDocument:
    """Load the OpenAPI spec from a URL or from disk."""
    text, content_type = await fetch_source(source, client=client, timeout=timeout)
    spec = parse_spec_text(text, source, hint=_format_hint(source, content_type))
    document = build_document(spec, source)
    logger.debug(
        "Loaded %s: %d operations, %d schemas",
        source, len(document.operations), len(document.schemas),
    )
    return document
