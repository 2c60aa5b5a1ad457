"""トグル取得用 HTTP トランスポート"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol

import httpx


class Fetcher(Protocol):
    """URL とヘッダーを受け取り GET 結果を返すトランスポート。"""

    async def __call__(self, url: str, headers: Mapping[str, str]) -> httpx.Response: ...


class HttpxFetcher:
    """httpx を使ったトランスポート。

    ``client`` を渡した場合はそれを使い回す（クローズは呼び出し側の責任）。
    渡さない場合はリクエストごとに AsyncClient を生成する。
    """

    def __init__(
        self,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._timeout_seconds = timeout_seconds
        self._client = client

    def _make_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout_seconds)

    async def __call__(self, url: str, headers: Mapping[str, str]) -> httpx.Response:
        request_headers = {"Cache-Control": "no-cache", **headers}
        if self._client is not None:
            return await self._client.get(url, headers=request_headers)
        async with self._make_client() as client:
            return await client.get(url, headers=request_headers)


def resolve_fetch() -> Fetcher:
    """既定のトランスポートを返す。"""
    return HttpxFetcher()
