"""Render templates and write generated output.

Takes the context from context_builder and produces one ``GeneratedFile``
per artifact; ``write_files`` merges in preserved custom code and writes
them to disk.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import os
from pathlib import Path
from typing import Any

import jinja2

from .config import CustomCodeOptions, SyncConfig
from .custom_code import merge_custom_code
from .errors import WriteError
from .models import GeneratedFile

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"


@functools.lru_cache(maxsize=None)
def get_environment() -> jinja2.Environment:
    return jinja2.Environment(
        loader=jinja2.FileSystemLoader(str(TEMPLATE_DIR)),
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )


def render_template(name: str, **context: Any) -> str:
    return get_environment().get_template(name).render(**context)


def import_path(from_file: Path, to_file: Path) -> str:
    """Relative TypeScript module specifier from one generated file to another."""
    target = to_file.parent if to_file.stem == "index" else to_file.with_suffix("")
    relative = Path(os.path.relpath(target, from_file.parent)).as_posix()
    return relative if relative.startswith(".") else f"./{relative}"


def _uses_shared(declarations: list[str]) -> bool:
    return any("Shared." in d for d in declarations)


def group_paths(api_dir: Path, group: str | None) -> dict[str, Path]:
    """Output paths for the per-endpoint artifacts of one folder group."""
    if group is None:
        return {
            "types": api_dir / "types" / "index.ts",
            "endpoints": api_dir / "endpoints.ts",
            "validation": api_dir / "validation" / "index.ts",
            "client_root": api_dir,
        }
    base = api_dir / group
    return {
        "types": base / "types.ts",
        "endpoints": base / "endpoints.ts",
        "validation": base / "validation.ts",
        "client_root": base,
    }


def render_api_files(context: dict[str, Any], config: SyncConfig, api_dir: Path) -> list[GeneratedFile]:
    """Render every type, endpoint and validation file for one API."""
    header = {"api_name": context["api_name"], "title": context["title"], "version": context["version"]}
    shared_types = api_dir / "types" / "shared.ts"
    shared_validation = api_dir / "validation" / "shared.ts"

    files = [GeneratedFile(
        path=shared_types,
        body=render_template("shared_types.ts.j2", declarations=context["shared_types"], **header),
        kind="shared-types",
    )]
    if config.validations_enabled:
        files.append(GeneratedFile(
            path=shared_validation,
            body=render_template(
                "validation.ts.j2",
                declarations=context["shared_validations"],
                validation_import=context["validation_import"],
                uses_shared=False,
                shared_import="",
                **header,
            ),
            kind="shared-validation",
        ))

    for group, data in context["groups"].items():
        paths = group_paths(api_dir, group)
        files.append(GeneratedFile(
            path=paths["types"],
            body=render_template(
                "types.ts.j2",
                declarations=data["types"],
                uses_shared=_uses_shared(data["types"]),
                shared_import=import_path(paths["types"], shared_types),
                **header,
            ),
            kind="types",
            group=group,
        ))
        files.append(GeneratedFile(
            path=paths["endpoints"],
            body=render_template("endpoints.ts.j2", endpoints=data["endpoints"], **header),
            kind="endpoints",
            group=group,
        ))
        if config.validations_enabled:
            files.append(GeneratedFile(
                path=paths["validation"],
                body=render_template(
                    "validation.ts.j2",
                    declarations=data["validations"],
                    validation_import=context["validation_import"],
                    uses_shared=_uses_shared(data["validations"]),
                    shared_import=import_path(paths["validation"], shared_validation),
                    **header,
                ),
                kind="validation",
                group=group,
            ))
    return files


def write_file(generated: GeneratedFile, options: CustomCodeOptions) -> bool:
    """Write one file, keeping its custom code region. Returns True if it changed."""
    path = generated.path
    try:
        existing = path.read_text(encoding="utf-8") if path.exists() else None
        body = generated.body
        if options.enabled and generated.preserve:
            body = merge_custom_code(
                body,
                existing,
                position=options.position,
                marker_text=options.marker_text,
                include_instructions=options.include_instructions,
            )
        if body == existing:
            return False
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(body, encoding="utf-8")
    except UnicodeDecodeError as e:
        raise WriteError(str(path), f"existing file is not UTF-8: {e}") from e
    except OSError as e:
        raise WriteError(str(path), e.strerror or str(e)) from e
    return True


async def write_files(files: list[GeneratedFile], options: CustomCodeOptions) -> list[Path]:
    """Write every file off the event loop; returns the paths in order."""
    changed = 0
    for generated in files:
        if await asyncio.to_thread(write_file, generated, options):
            changed += 1
    logger.debug("Wrote %d of %d generated files", changed, len(files))
    return [generated.path for generated in files]
