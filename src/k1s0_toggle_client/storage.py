"""トグルキャッシュ用ストレージプロバイダ"""

from __future__ import annotations

import asyncio
import copy
import json
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import structlog

TOGGLES_KEY = "repo"
SESSION_ID_KEY = "sessionId"

logger = structlog.get_logger(__name__)


class StorageProvider(ABC):
    """キー・バリュー型ストレージの抽象基底クラス。値は JSON 互換であること。"""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """キーに対応する値を取得する。存在しなければ None。"""
        ...

    @abstractmethod
    async def save(self, key: str, value: Any) -> None:
        """キーと値を保存する。"""
        ...


class InMemoryStorageProvider(StorageProvider):
    """プロセス内だけで保持するストレージ。"""

    def __init__(self) -> None:
        self._store: dict[str, Any] = {}

    async def get(self, key: str) -> Any | None:
        return copy.deepcopy(self._store.get(key))

    async def save(self, key: str, value: Any) -> None:
        self._store[key] = copy.deepcopy(value)


_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class FileStorageProvider(StorageProvider):
    """キーごとに JSON ファイルを 1 つ持つストレージ。

    ファイル名は ``<prefix>:<key>`` を安全な文字に置き換えたもの。
    読めないファイルや壊れたファイルは値なしとして扱う。
    """

    def __init__(self, directory: Path, prefix: str = "k1s0:repository") -> None:
        self._directory = directory
        self._prefix = prefix

    def _path(self, key: str) -> Path:
        name = _UNSAFE_CHARS.sub("_", f"{self._prefix}:{key}")
        return self._directory / f"{name}.json"

    async def get(self, key: str) -> Any | None:
        return await asyncio.to_thread(self._sync_read, self._path(key))

    async def save(self, key: str, value: Any) -> None:
        await asyncio.to_thread(self._sync_write, self._path(key), json.dumps(value))

    def _sync_read(self, path: Path) -> Any | None:
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("toggle storage file unreadable", path=str(path), error=str(e))
            return None

    def _sync_write(self, path: Path, text: str) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(text, encoding="utf-8")
        tmp.replace(path)
