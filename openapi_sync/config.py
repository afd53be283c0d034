"""Configuration models for openapi-sync.

Configs are plain JSON/YAML documents (``openapi.sync.json``,
``openapi.sync.yaml``) using camelCase keys, or ``SyncConfig`` objects built
in Python with snake_case keywords. Callable hooks (name formatters, custom
folders) are only available to programmatic configs.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from .errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILENAMES = ("openapi.sync.json", "openapi.sync.yaml", "openapi.sync.yml")

ClientType = Literal["fetch", "axios", "react-query", "swr", "rtk-query"]
ValidationLibrary = Literal["zod", "yup", "joi"]


class _Options(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class NameOptions(_Options):
    """Naming options shared by endpoints and client functions."""

    prefix: str = ""
    suffix: str = ""
    use_operation_id: bool = False
    format: Callable[..., str | None] | None = None


class TypeNameOptions(NameOptions):
    prefix: str = "I"


class DocOptions(_Options):
    disable: bool = False
    show_curl: bool = False


class ReplaceWord(_Options):
    """Regex replacement applied to rendered endpoint URLs."""

    replace: str
    with_: str = Field(default="", alias="with")


class EndpointValueOptions(_Options):
    replace_words: list[ReplaceWord] = Field(default_factory=list)
    include_server: bool = False
    dedupe_variables: bool = False


class EndpointRule(_Options):
    """Match one endpoint by exact path or regex, optionally by method."""

    path: str | None = None
    regex: str | None = None
    method: str | None = None


class EndpointFilter(_Options):
    tags: list[str] = Field(default_factory=list)
    endpoints: list[EndpointRule] = Field(default_factory=list)


class TypesOptions(_Options):
    name: TypeNameOptions = Field(default_factory=TypeNameOptions)
    doc: DocOptions = Field(default_factory=DocOptions)


class EndpointsOptions(_Options):
    name: NameOptions = Field(default_factory=NameOptions)
    value: EndpointValueOptions = Field(default_factory=EndpointValueOptions)
    doc: DocOptions = Field(default_factory=DocOptions)
    exclude: EndpointFilter | None = None
    include: EndpointFilter | None = None


class FolderSplitOptions(_Options):
    by_tags: bool = False
    custom_folder: Callable[..., str | None] | None = None


class CustomCodeOptions(_Options):
    enabled: bool = True
    position: Literal["top", "bottom"] = "bottom"
    marker_text: str = "CUSTOM CODE"
    include_instructions: bool = True


class ValidationGenerateOptions(_Options):
    query: bool = True
    dto: bool = True


class ValidationNameOptions(_Options):
    prefix: str = ""
    suffix: str = "Schema"


class ValidationOptions(_Options):
    disable: bool = False
    library: ValidationLibrary = "zod"
    generate: ValidationGenerateOptions = Field(default_factory=ValidationGenerateOptions)
    name: ValidationNameOptions = Field(default_factory=ValidationNameOptions)


class ReactQueryOptions(_Options):
    version: Literal[4, 5] = 5
    mutations: bool = True


class SWROptions(_Options):
    mutations: bool = True


class RTKQueryOptions(_Options):
    api_name: str = "api"


class AuthOptions(_Options):
    type: Literal["bearer", "apiKey", "basic", "oauth2"] = "bearer"
    location: Literal["header", "query", "cookie"] = Field(default="header", alias="in")
    name: str | None = None


class ErrorHandlingOptions(_Options):
    generate_error_classes: bool = False


class ClientGenerationOptions(_Options):
    enabled: bool = False
    type: ClientType = "fetch"
    output_dir: str | None = None
    base_url: str = Field(default="", alias="baseURL")
    tags: list[str] = Field(default_factory=list)
    endpoints: list[str] = Field(default_factory=list)
    name: NameOptions = Field(default_factory=NameOptions)
    react_query: ReactQueryOptions = Field(default_factory=ReactQueryOptions)
    swr: SWROptions = Field(default_factory=SWROptions)
    rtk_query: RTKQueryOptions = Field(default_factory=RTKQueryOptions)
    auth: AuthOptions | None = None
    error_handling: ErrorHandlingOptions = Field(default_factory=ErrorHandlingOptions)


class SyncConfig(_Options):
    """Root configuration: API sources plus every generation option."""

    refetch_interval: int = 0
    folder: str = ""
    api: dict[str, str] = Field(default_factory=dict)
    server: int | str | None = None
    folder_split: FolderSplitOptions | None = None
    types: TypesOptions = Field(default_factory=TypesOptions)
    endpoints: EndpointsOptions = Field(default_factory=EndpointsOptions)
    client_generation: ClientGenerationOptions | None = None
    validations: ValidationOptions | None = None
    custom_code: CustomCodeOptions = Field(default_factory=CustomCodeOptions)

    @property
    def folder_split_enabled(self) -> bool:
        split = self.folder_split
        return bool(split and (split.by_tags or split.custom_folder))

    @property
    def validations_enabled(self) -> bool:
        return self.validations is not None and not self.validations.disable

    @property
    def clients_enabled(self) -> bool:
        return self.client_generation is not None and self.client_generation.enabled


def find_config(directory: Path | None = None) -> Path | None:
    """Return the first config file found in ``directory`` (default: cwd)."""
    base = directory or Path.cwd()
    for name in CONFIG_FILENAMES:
        candidate = base / name
        if candidate.is_file():
            return candidate
    return None


def parse_config(data: dict[str, Any]) -> SyncConfig:
    """Validate a plain mapping into a ``SyncConfig``."""
    try:
        return SyncConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def load_config(path: Path | None = None) -> SyncConfig:
    """Load and validate a config file.

    With no path, looks for ``openapi.sync.json``/``.yaml``/``.yml`` in the
    current directory.
    """
    config_file = path or find_config()
    if config_file is None:
        raise ConfigError(
            "No configuration file found",
            {"searched": list(CONFIG_FILENAMES)},
        )
    try:
        text = Path(config_file).read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Could not read {config_file}: {e}") from e

    try:
        if str(config_file).endswith(".json"):
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"Could not parse {config_file}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Configuration in {config_file} must be a mapping")

    logger.debug("Loaded configuration from %s", config_file)
    return parse_config(data)
