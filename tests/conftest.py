"""toggle_client テスト共通フィクスチャ"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

import httpx
import pytest
from k1s0_toggle_client import Event, EventBus, InMemoryStorageProvider

PROXY_URL = "http://proxy.example.com/proxy"


def toggle_dict(
    name: str,
    enabled: bool = True,
    variant: str = "disabled",
    impression_data: bool = False,
) -> dict[str, Any]:
    return {
        "name": name,
        "enabled": enabled,
        "variant": {"name": variant, "enabled": variant != "disabled"},
        "impressionData": impression_data,
    }


def toggles_response(toggles: list[dict[str, Any]], etag: str | None = None) -> httpx.Response:
    headers = {"ETag": etag} if etag is not None else {}
    return httpx.Response(200, json={"toggles": toggles}, headers=headers)


class FakeFetcher:
    """呼び出しを記録し、キューに積んだレスポンスを順に返すトランスポート。"""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, str]]] = []
        self.responses: list[httpx.Response | Exception] = []
        self.default: httpx.Response = httpx.Response(304)
        self.gate: asyncio.Event | None = None

    def queue(self, *responses: httpx.Response | Exception) -> None:
        self.responses.extend(responses)

    async def __call__(self, url: str, headers: Mapping[str, str]) -> httpx.Response:
        self.calls.append((url, dict(headers)))
        item = self.responses.pop(0) if self.responses else self.default
        if self.gate is not None:
            await self.gate.wait()
        if isinstance(item, Exception):
            raise item
        return item

    @property
    def last_params(self) -> httpx.QueryParams:
        return httpx.URL(self.calls[-1][0]).params

    @property
    def last_headers(self) -> dict[str, str]:
        return self.calls[-1][1]


class EventRecorder:
    """EventBus の全イベントを記録する。"""

    TOPICS = ("initialized", "ready", "update", "error", "impression")

    def __init__(self, bus: EventBus) -> None:
        self.events: list[Event] = []
        for topic in self.TOPICS:
            bus.subscribe(topic, self.events.append)

    def of(self, event_type: str) -> list[Event]:
        return [e for e in self.events if e.event_type == event_type]


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def storage() -> InMemoryStorageProvider:
    return InMemoryStorageProvider()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def recorder(bus: EventBus) -> EventRecorder:
    return EventRecorder(bus)
