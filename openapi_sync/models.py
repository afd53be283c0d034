"""Data models shared across the sync pipeline.

The loader turns raw documents into ``SpecDocument``; the endpoint emitter
produces ``EndpointInfo`` records consumed by the client emitters and the
endpoint registry; codegen produces ``GeneratedFile`` objects.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")


class Operation(BaseModel):
    """One HTTP method bound to one path."""

    model_config = ConfigDict(frozen=True)

    path: str
    method: str  # lowercase
    operation_id: str | None = None
    summary: str = ""
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    parameters: list[dict[str, Any]] = Field(default_factory=list)
    request_body: Any = None
    responses: dict[str, Any] = Field(default_factory=dict)
    security: list[Any] | None = None
    deprecated: bool = False


class SpecDocument(BaseModel):
    """Normalized OpenAPI document, immutable once loaded."""

    model_config = ConfigDict(frozen=True)

    source: str
    raw: dict[str, Any]
    title: str = ""
    version: str = ""
    servers: list[str] = Field(default_factory=list)
    base_paths: list[str] = Field(default_factory=list)
    schemas: dict[str, Any] = Field(default_factory=dict)
    operations: list[Operation] = Field(default_factory=list)


class EndpointParameter(BaseModel):
    name: str
    location: str  # path / query / header / cookie
    required: bool = False
    type: str = "string"


class EndpointInfo(BaseModel):
    """The emitted identity of one operation."""

    name: str
    method: str
    path: str
    path_variables: list[str] = Field(default_factory=list)
    operation_id: str | None = None
    summary: str = ""
    tags: list[str] = Field(default_factory=list)
    parameters: list[EndpointParameter] = Field(default_factory=list)
    has_body: bool = False
    query_type: str | None = None
    dto_type: str | None = None
    response_type: str | None = None
    response_types: dict[str, str] = Field(default_factory=dict)
    doc: str = ""
    curl: str = ""
    url_expression: str = ""
    group: str | None = None

    @property
    def url_arguments(self) -> list[str]:
        """Distinct path variable names, in first-seen order."""
        return list(dict.fromkeys(self.path_variables))

    def params_in(self, location: str) -> list[EndpointParameter]:
        return [p for p in self.parameters if p.location == location]


class GeneratedFile(BaseModel):
    """One output unit; ``preserve`` enables the custom code slot."""

    path: Path
    body: str
    kind: str
    group: str | None = None
    preserve: bool = True


class SyncResult(BaseModel):
    """Outcome of one API's pipeline within a sync pass."""

    api_name: str
    ok: bool
    error: str | None = None
    error_type: str | None = None
    files: list[Path] = Field(default_factory=list)
    endpoint_count: int = 0
    unchanged: bool = False
