"""In-memory store of the endpoints emitted by the latest sync pass."""

from __future__ import annotations

from collections.abc import Iterable

from .models import EndpointInfo


class EndpointRegistry:
    """API name -> endpoints, replaced wholesale per API.

    Readers never see a half-published API: ``publish`` swaps in a new
    tuple in one assignment.
    """

    def __init__(self) -> None:
        self._endpoints: dict[str, tuple[EndpointInfo, ...]] = {}

    def clear(self) -> None:
        self._endpoints = {}

    def publish(self, api_name: str, endpoints: Iterable[EndpointInfo]) -> None:
        self._endpoints[api_name] = tuple(endpoints)

    def get(self, api_name: str) -> tuple[EndpointInfo, ...]:
        return self._endpoints.get(api_name, ())

    def snapshot(self) -> dict[str, tuple[EndpointInfo, ...]]:
        return dict(self._endpoints)

    def api_names(self) -> list[str]:
        return list(self._endpoints)

    def __contains__(self, api_name: str) -> bool:
        return api_name in self._endpoints

    def __len__(self) -> int:
        return len(self._endpoints)
