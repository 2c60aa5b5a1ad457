"""トグルスナップショットの保持と条件付き同期"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from typing import Any

import httpx
import structlog

from .events import EventBus
from .exceptions import ToggleClientErrorCodes
from .models import ClientEvents, Context, HttpErrorEvent, Toggle
from .storage import TOGGLES_KEY, StorageProvider
from .transport import Fetcher


class ToggleRepository:
    """現在のトグルスナップショットと ETag を保持し、プロキシと同期する。

    スナップショットは tuple で、同期成功時に参照ごと差し替える。
    同期は asyncio.Lock で直列化するため、同時に走るのは 1 件だけ。
    """

    def __init__(
        self,
        url: str,
        client_key: str,
        storage: StorageProvider,
        bus: EventBus,
        context_provider: Callable[[], Context],
        fetch: Fetcher | None,
        header_name: str = "Authorization",
        custom_headers: Mapping[str, str | None] | None = None,
        logger: Any | None = None,
    ) -> None:
        self._url = httpx.URL(url)
        self._client_key = client_key
        self._storage = storage
        self._bus = bus
        self._context_provider = context_provider
        self._fetch = fetch
        self._header_name = header_name
        self._custom_headers = dict(custom_headers or {})
        self._logger = logger or structlog.get_logger(__name__)
        self._toggles: tuple[Toggle, ...] = ()
        self._etag = ""
        self._ready_emitted = False
        self._lock = asyncio.Lock()
        self._waiting = 0

    @property
    def toggles(self) -> tuple[Toggle, ...]:
        return self._toggles

    @property
    def etag(self) -> str:
        return self._etag

    @property
    def sync_pending(self) -> bool:
        """ロック待ちの同期があれば True。"""
        return self._waiting > 0

    @property
    def ready_emitted(self) -> bool:
        return self._ready_emitted

    def find(self, name: str) -> Toggle | None:
        for toggle in self._toggles:
            if toggle.name == name:
                return toggle
        return None

    def replace(self, toggles: list[Toggle] | tuple[Toggle, ...]) -> None:
        self._toggles = tuple(toggles)

    def mark_ready(self) -> None:
        """ready イベントを発行し、以後の発行を抑止する。"""
        self._ready_emitted = True
        self._bus.publish(ClientEvents.READY)

    async def load_cached(self) -> list[Toggle]:
        """ストレージに保存されたトグルを読み込む。未保存なら空リスト。"""
        raw = await self._storage.get(TOGGLES_KEY)
        return [Toggle.from_dict(item) for item in raw or []]

    async def save(self, toggles: list[Toggle] | tuple[Toggle, ...]) -> None:
        await self._storage.save(TOGGLES_KEY, [t.to_dict() for t in toggles])

    def build_url(self, context: Context) -> str:
        """コンテキストをクエリパラメータに載せた取得 URL を返す。"""
        return str(self._url.copy_merge_params(context.to_query_params()))

    def build_headers(self) -> dict[str, str]:
        headers = {
            self._header_name: self._client_key,
            "Accept": "application/json",
            "Content-Type": "application/json",
            "If-None-Match": self._etag,
        }
        for name, value in self._custom_headers.items():
            if value is not None:
                headers[name] = value
        return headers

    async def synchronize(self) -> None:
        """プロキシからトグルを取得してスナップショットを更新する。

        失敗は error イベントとして通知し、例外は送出しない。
        """
        if self._fetch is None:
            return
        self._waiting += 1
        try:
            await self._lock.acquire()
        finally:
            self._waiting -= 1
        try:
            await self._synchronize(self._fetch)
        finally:
            self._lock.release()

    async def _synchronize(self, fetch: Fetcher) -> None:
        try:
            url = self.build_url(self._context_provider())
            response = await fetch(url, self.build_headers())
            if response.status_code == 304:
                return
            if not response.is_success:
                self._logger.warning(
                    "fetching feature toggles did not have an ok response",
                    code=ToggleClientErrorCodes.HTTP_ERROR,
                    status_code=response.status_code,
                )
                self._bus.publish(
                    ClientEvents.ERROR, HttpErrorEvent(status_code=response.status_code)
                )
                return
            data = response.json()
            toggles = tuple(Toggle.from_dict(item) for item in data["toggles"])
            self._toggles = toggles
            self._etag = response.headers.get("ETag") or ""
            self._bus.publish(ClientEvents.UPDATE)
            if not self._ready_emitted:
                self.mark_ready()
            await self.save(toggles)
        except Exception as e:
            self._logger.error(
                "unable to fetch feature toggles",
                code=ToggleClientErrorCodes.NETWORK_ERROR,
                error=repr(e),
            )
            self._bus.publish(ClientEvents.ERROR, e)
