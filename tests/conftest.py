"""Shared fixtures: a small petstore document and helpers to write it out."""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any

import pytest

from openapi_sync.config import SyncConfig, parse_config
from openapi_sync.loader import build_document

_PET_REF = {"$ref": "#/components/schemas/Pet"}

PETSTORE: dict[str, Any] = {
    "openapi": "3.0.3",
    "info": {"title": "Petstore", "version": "1.0.0"},
    "servers": [{"url": "https://petstore.example.com/v1"}],
    "paths": {
        "/pets": {
            "get": {
                "operationId": "listPets",
                "summary": "List all pets",
                "tags": ["pets"],
                "parameters": [
                    {"name": "limit", "in": "query", "required": False,
                     "schema": {"type": "integer", "maximum": 100}},
                ],
                "responses": {
                    "200": {
                        "description": "A page of pets",
                        "content": {"application/json": {
                            "schema": {"type": "array", "items": _PET_REF},
                        }},
                    },
                },
            },
            "post": {
                "operationId": "createPet",
                "summary": "Create a pet",
                "tags": ["pets"],
                "requestBody": {
                    "required": True,
                    "content": {"application/json": {
                        "schema": {"$ref": "#/components/schemas/NewPet"},
                    }},
                },
                "responses": {
                    "201": {
                        "description": "Created",
                        "content": {"application/json": {"schema": _PET_REF}},
                    },
                },
            },
        },
        "/pets/{id}": {
            "parameters": [
                {"name": "id", "in": "path", "required": True, "schema": {"type": "integer"}},
            ],
            "get": {
                "operationId": "getPetById",
                "summary": "Info for a specific pet",
                "tags": ["pets"],
                "responses": {
                    "200": {
                        "description": "The pet",
                        "content": {"application/json": {"schema": _PET_REF}},
                    },
                    "404": {"description": "Not found"},
                },
            },
            "delete": {
                "operationId": "deletePet",
                "tags": ["admin"],
                "responses": {"204": {"description": "Deleted"}},
            },
        },
    },
    "components": {
        "schemas": {
            "Pet": {
                "type": "object",
                "description": "A pet in the store",
                "required": ["id", "name"],
                "properties": {
                    "id": {"type": "integer"},
                    "name": {"type": "string"},
                    "tag": {"type": "string"},
                    "owner": {"$ref": "#/components/schemas/Owner"},
                },
            },
            "NewPet": {
                "type": "object",
                "required": ["name"],
                "properties": {
                    "name": {"type": "string", "minLength": 1},
                    "tag": {"type": "string"},
                },
            },
            "Owner": {
                "type": "object",
                "required": ["name"],
                "properties": {
                    "name": {"type": "string"},
                    "pets": {"type": "array", "items": _PET_REF},
                },
            },
        },
    },
}

# Smallest document with one endpoint: GET /pets/{id} returning a Pet.
MINIMAL: dict[str, Any] = {
    "openapi": "3.0.3",
    "info": {"title": "Minimal", "version": "0.1.0"},
    "paths": {
        "/pets/{id}": {
            "get": {
                "operationId": "getPetById",
                "parameters": [
                    {"name": "id", "in": "path", "required": True, "schema": {"type": "integer"}},
                ],
                "responses": {
                    "200": {
                        "description": "The pet",
                        "content": {"application/json": {"schema": _PET_REF}},
                    },
                },
            },
        },
    },
    "components": {
        "schemas": {
            "Pet": {
                "type": "object",
                "required": ["id", "name"],
                "properties": {"id": {"type": "integer"}, "name": {"type": "string"}},
            },
        },
    },
}


@pytest.fixture
def petstore() -> dict[str, Any]:
    return copy.deepcopy(PETSTORE)


@pytest.fixture
def petstore_document(petstore):
    return build_document(petstore, "petstore.json")


@pytest.fixture
def write_spec(tmp_path: Path):
    """Write a spec dict as JSON under tmp_path and return its path."""
    def _write(spec: dict[str, Any], name: str = "openapi.json") -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(spec), encoding="utf-8")
        return path
    return _write


@pytest.fixture
def make_config(tmp_path: Path):
    """Build a SyncConfig writing into tmp_path/generated."""
    def _make(api: dict[str, str], **options: Any) -> SyncConfig:
        data = {"folder": str(tmp_path / "generated"), "api": api}
        data.update(options)
        return parse_config(data)
    return _make
