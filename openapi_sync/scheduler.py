"""Repeat sync passes over every configured API.

A pass runs the APIs one after another. A failing API is logged and
reported in its ``SyncResult``; the rest of the pass continues. With a
positive refetch interval a timer task starts a new pass on each tick,
unless the previous pass is still running, in which case the tick is
dropped.
"""

from __future__ import annotations

import asyncio
import contextlib
import hashlib
import json
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import httpx

from .config import SyncConfig, load_config
from .errors import SyncError
from .loader import load_spec
from .models import EndpointInfo, SpecDocument, SyncResult
from .registry import EndpointRegistry
from .sync import apply_document

logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass(frozen=True)
class _Snapshot:
    digest: str
    files: tuple[Path, ...]
    endpoints: tuple[EndpointInfo, ...]


class SyncScheduler:
    """Idle -> Running -> Idle per pass; ``stop()`` makes it Stopped for good."""

    def __init__(
        self,
        config: SyncConfig,
        *,
        registry: EndpointRegistry | None = None,
        client: httpx.AsyncClient | None = None,
        refetch_interval: int | None = None,
    ):
        self.config = config
        self.registry = registry if registry is not None else EndpointRegistry()
        self.client = client
        self.refetch_interval = config.refetch_interval if refetch_interval is None else refetch_interval
        self.state = SchedulerState.IDLE
        self.results: list[SyncResult] = []
        self.passes = 0
        self.skipped_ticks = 0
        self._snapshots: dict[str, _Snapshot] = {}
        self._timer: asyncio.Task | None = None
        self._current: asyncio.Task | None = None

    @property
    def polling(self) -> bool:
        return self._timer is not None

    async def run_once(self) -> list[SyncResult]:
        """Run one pass over every API. Returns [] unless the scheduler is idle."""
        if self.state is not SchedulerState.IDLE:
            logger.warning("Sync pass refused: scheduler is %s", self.state.value)
            return []
        self.state = SchedulerState.RUNNING
        try:
            self.registry.clear()
            results = []
            for api_name, source in self.config.api.items():
                results.append(await self._sync_one(api_name, source))
        finally:
            if self.state is SchedulerState.RUNNING:
                self.state = SchedulerState.IDLE
        self.passes += 1
        self.results = results
        failed = [r.api_name for r in results if not r.ok]
        if failed:
            logger.warning("Sync pass finished with failures: %s", ", ".join(failed))
        return results

    def _digest(self, document: SpecDocument) -> str:
        payload = json.dumps(document.raw, sort_keys=True, default=str)
        payload += repr(self.config.model_dump())
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    async def _sync_one(self, api_name: str, source: str) -> SyncResult:
        try:
            document = await load_spec(source, client=self.client)
            digest = self._digest(document)
            previous = self._snapshots.get(api_name)
            if (
                previous is not None
                and previous.digest == digest
                and all(path.exists() for path in previous.files)
            ):
                self.registry.publish(api_name, previous.endpoints)
                logger.info("%s: spec unchanged, nothing to write", api_name)
                return SyncResult(
                    api_name=api_name,
                    ok=True,
                    files=list(previous.files),
                    endpoint_count=len(previous.endpoints),
                    unchanged=True,
                )
            result = await apply_document(api_name, document, self.config, registry=self.registry)
            self._snapshots[api_name] = _Snapshot(
                digest, tuple(result.files), self.registry.get(api_name),
            )
            return result
        except SyncError as e:
            logger.error("Sync failed for %s: %s", api_name, e)
            return SyncResult(api_name=api_name, ok=False, error=str(e), error_type=type(e).__name__)
        except Exception as e:
            logger.exception("Unexpected error while syncing %s", api_name)
            return SyncResult(api_name=api_name, ok=False, error=str(e), error_type=type(e).__name__)

    def tick(self) -> asyncio.Task | None:
        """Start a pass in its own task, or skip if one is still running."""
        if self.state is SchedulerState.STOPPED:
            return None
        if self.state is SchedulerState.RUNNING:
            self.skipped_ticks += 1
            logger.debug("Previous sync pass still running; tick skipped")
            return None
        self._current = asyncio.create_task(self.run_once())
        return self._current

    async def _tick_loop(self) -> None:
        interval = self.refetch_interval / 1000
        while self.state is not SchedulerState.STOPPED:
            await asyncio.sleep(interval)
            self.tick()

    def start(self) -> None:
        """Arm the repeating timer when the refetch interval is positive."""
        if self.state is SchedulerState.STOPPED:
            raise SyncError("Scheduler has been stopped")
        if self.refetch_interval <= 0 or self._timer is not None:
            return
        logger.info("Polling every %d ms", self.refetch_interval)
        self._timer = asyncio.create_task(self._tick_loop())

    def stop(self) -> None:
        """Disarm the timer; a pass already in flight still completes."""
        self.state = SchedulerState.STOPPED
        if self._timer is not None:
            self._timer.cancel()

    async def wait(self) -> None:
        """Wait for the in-flight pass (if any) to finish."""
        if self._current is not None:
            await self._current

    async def join(self) -> None:
        """Wait until the timer is disarmed, then for the last pass."""
        if self._timer is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._timer
            self._timer = None
        await self.wait()


async def init(
    config: SyncConfig | None = None,
    *,
    refetch_interval: int | None = None,
    registry: EndpointRegistry | None = None,
    client: httpx.AsyncClient | None = None,
) -> SyncScheduler:
    """Run one sync pass and start polling when an interval is configured."""
    if config is None:
        config = await asyncio.to_thread(load_config)
    scheduler = SyncScheduler(
        config, registry=registry, client=client, refetch_interval=refetch_interval,
    )
    await scheduler.run_once()
    scheduler.start()
    return scheduler
