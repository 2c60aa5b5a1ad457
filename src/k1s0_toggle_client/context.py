"""評価コンテキストの保持と更新"""

from __future__ import annotations

import dataclasses
import secrets
from collections.abc import Mapping
from typing import Any

import structlog

from .models import Context, MutableContext
from .storage import SESSION_ID_KEY, StorageProvider

STATIC_FIELDS = frozenset({"app_name", "environment", "appName"})
DEFINED_FIELDS = frozenset({"user_id", "session_id", "remote_address"})


class ContextStore:
    """静的コンテキストと可変コンテキストを合成して保持する。

    更新は常に新しい Context を作って参照を差し替える。
    """

    def __init__(
        self,
        app_name: str,
        environment: str = "default",
        initial: MutableContext | None = None,
        logger: Any | None = None,
    ) -> None:
        self._logger = logger or structlog.get_logger(__name__)
        initial = initial or MutableContext()
        self._context = Context(
            app_name=app_name,
            environment=environment,
            user_id=initial.user_id,
            session_id=initial.session_id,
            remote_address=initial.remote_address,
            properties=dict(initial.properties),
        )

    @property
    def current(self) -> Context:
        """内部で共有している Context。呼び出し側で変更しないこと。"""
        return self._context

    def snapshot(self) -> Context:
        """防御的コピーを返す。"""
        return dataclasses.replace(self._context, properties=dict(self._context.properties))

    async def resolve_session_id(self, storage: StorageProvider) -> str:
        """セッション ID を確定してコンテキストに反映する。

        既存のコンテキスト、ストレージ、新規生成の順に探す。
        新規生成した値はストレージに保存する。
        """
        session_id = self._context.session_id
        if not session_id:
            stored = await storage.get(SESSION_ID_KEY)
            if stored:
                session_id = str(stored)
            else:
                session_id = str(secrets.randbelow(1_000_000_000))
                await storage.save(SESSION_ID_KEY, session_id)
        self._context = dataclasses.replace(self._context, session_id=session_id)
        return session_id

    def update(self, partial: MutableContext | Mapping[str, Any]) -> Context:
        """可変項目をマージする。

        指定された項目だけを上書きし、properties はキー単位でマージする。
        辞書で明示的に None を渡した項目は消去する。properties の値が None の
        キーは削除し、properties 自体が None なら全て削除する。
        """
        if isinstance(partial, MutableContext):
            # MutableContext の None は「指定なし」として扱う
            values: dict[str, Any] = {
                key: value
                for key, value in (
                    ("user_id", partial.user_id),
                    ("session_id", partial.session_id),
                    ("remote_address", partial.remote_address),
                )
                if value is not None
            }
            values["properties"] = partial.properties
        else:
            values = dict(partial)

        changes: dict[str, Any] = {}
        properties = dict(self._context.properties)
        for key, value in values.items():
            if key in STATIC_FIELDS:
                self._logger.warning(
                    "static context field cannot be updated",
                    field=key,
                )
            elif key in DEFINED_FIELDS:
                changes[key] = None if value is None else str(value)
            elif key == "properties":
                if value is None:
                    properties.clear()
                    continue
                for prop_key, prop_value in value.items():
                    if prop_value is None:
                        properties.pop(prop_key, None)
                    else:
                        properties[prop_key] = prop_value
            else:
                self._logger.warning("unknown context field ignored", field=key)
        self._context = dataclasses.replace(self._context, properties=properties, **changes)
        return self._context

    def set_field(self, name: str, value: str) -> Context:
        """単一項目を設定する。定義済み項目以外は properties に入る。"""
        if name in STATIC_FIELDS:
            self._logger.warning("static context field cannot be updated", field=name)
            return self._context
        if name in DEFINED_FIELDS:
            self._context = dataclasses.replace(self._context, **{name: value})
        else:
            properties = {**self._context.properties, name: value}
            self._context = dataclasses.replace(self._context, properties=properties)
        return self._context
