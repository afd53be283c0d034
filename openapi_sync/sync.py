"""One API's pipeline: load, build, render, write, publish.

``sync_api`` is the whole pipeline for one configured API;
``generate_client`` re-renders only the client from the endpoints a
previous pass published.
"""

from __future__ import annotations

import logging
from pathlib import Path

import httpx

from .clients import CLIENT_EMITTERS, filter_endpoints
from .codegen import group_paths, import_path, render_api_files, write_files
from .config import ClientGenerationOptions, SyncConfig
from .context_builder import build_context
from .errors import ConfigError
from .loader import DEFAULT_TIMEOUT, load_spec
from .models import EndpointInfo, GeneratedFile, SpecDocument, SyncResult
from .registry import EndpointRegistry

logger = logging.getLogger(__name__)

DEFAULT_CLIENT_DIR = "client"


def api_directory(config: SyncConfig, api_name: str) -> Path:
    return Path(config.folder or ".") / api_name


def group_endpoints(endpoints: list[EndpointInfo] | tuple[EndpointInfo, ...]) -> dict[str | None, list[EndpointInfo]]:
    grouped: dict[str | None, list[EndpointInfo]] = {}
    for endpoint in endpoints:
        grouped.setdefault(endpoint.group, []).append(endpoint)
    return grouped


def render_client_files(
    groups: dict[str | None, list[EndpointInfo]],
    options: ClientGenerationOptions,
    api_dir: Path,
) -> list[GeneratedFile]:
    """One client module per folder group, next to that group's types."""
    emitter_class = CLIENT_EMITTERS[options.type]
    files = []
    for group, endpoints in groups.items():
        selected = filter_endpoints(endpoints, options)
        if not selected:
            continue
        paths = group_paths(api_dir, group)
        target = paths["client_root"] / (options.output_dir or DEFAULT_CLIENT_DIR) / emitter_class.filename
        emitter = emitter_class(
            options,
            types_import=import_path(target, paths["types"]),
            endpoints_import=import_path(target, paths["endpoints"]),
        )
        files.append(GeneratedFile(
            path=target,
            body=emitter.render_module(selected),
            kind=f"client:{options.type}",
            group=group,
        ))
    return files


async def apply_document(
    api_name: str,
    document: SpecDocument,
    config: SyncConfig,
    *,
    registry: EndpointRegistry,
) -> SyncResult:
    """Generate and write every artifact for an already loaded document."""
    context = build_context(document, config, api_name)
    api_dir = api_directory(config, api_name)

    files = render_api_files(context, config, api_dir)
    if config.clients_enabled:
        groups = {group: data["endpoints"] for group, data in context["groups"].items()}
        files.extend(render_client_files(groups, config.client_generation, api_dir))

    written = await write_files(files, config.custom_code)
    registry.publish(api_name, context["endpoints"])
    logger.info(
        "%s: %d endpoints, %d files under %s",
        api_name, context["endpoint_count"], len(written), api_dir,
    )
    return SyncResult(
        api_name=api_name,
        ok=True,
        files=written,
        endpoint_count=context["endpoint_count"],
    )


async def sync_api(
    api_name: str,
    source: str,
    config: SyncConfig,
    *,
    registry: EndpointRegistry,
    client: httpx.AsyncClient | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> SyncResult:
    """Run one API's full pipeline. Errors propagate to the caller."""
    document = await load_spec(source, client=client, timeout=timeout)
    return await apply_document(api_name, document, config, registry=registry)


async def generate_client(
    api_name: str,
    config: SyncConfig,
    *,
    registry: EndpointRegistry,
    client_type: str | None = None,
) -> list[Path]:
    """Render only the client for ``api_name`` from published endpoints."""
    if api_name not in registry:
        raise ConfigError(
            f"No endpoints published for API '{api_name}'; run a sync first",
            {"known": registry.api_names()},
        )
    options = config.client_generation or ClientGenerationOptions()
    update = {"enabled": True}
    if client_type is not None:
        if client_type not in CLIENT_EMITTERS:
            raise ConfigError(f"Unknown client type '{client_type}'", {"choices": list(CLIENT_EMITTERS)})
        update["type"] = client_type
    options = options.model_copy(update=update)

    files = render_client_files(
        group_endpoints(registry.get(api_name)), options, api_directory(config, api_name),
    )
    return await write_files(files, config.custom_code)
