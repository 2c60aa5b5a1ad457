"""toggle_client データモデル"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class ClientEvents(StrEnum):
    """クライアントが発行するイベント種別。"""

    INITIALIZED = "initialized"
    READY = "ready"
    UPDATE = "update"
    ERROR = "error"
    IMPRESSION = "impression"


class EvaluationKind(StrEnum):
    """インプレッションイベントの評価種別。"""

    IS_ENABLED = "isEnabled"
    GET_VARIANT = "getVariant"


class ClientState(StrEnum):
    """クライアントのライフサイクル状態。"""

    CONSTRUCTED = "constructed"
    INITIALIZING = "initializing"
    READY = "ready"
    POLLING = "polling"
    STOPPED = "stopped"


@dataclass(frozen=True)
class VariantPayload:
    """バリアントのペイロード。"""

    type: str
    value: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VariantPayload:
        return cls(type=str(data["type"]), value=str(data["value"]))

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "value": self.value}


@dataclass(frozen=True)
class Variant:
    """トグルのバリアント。"""

    name: str
    enabled: bool
    payload: VariantPayload | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Variant:
        raw_payload = data.get("payload")
        return cls(
            name=str(data["name"]),
            enabled=bool(data.get("enabled", False)),
            payload=VariantPayload.from_dict(raw_payload) if raw_payload else None,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "enabled": self.enabled}
        if self.payload is not None:
            data["payload"] = self.payload.to_dict()
        return data


DISABLED_VARIANT = Variant(name="disabled", enabled=False)


@dataclass(frozen=True)
class Toggle:
    """フィーチャートグル。"""

    name: str
    enabled: bool
    variant: Variant = DISABLED_VARIANT
    impression_data: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Toggle:
        """プロキシレスポンス / キャッシュの辞書から Toggle を生成する。"""
        raw_variant = data.get("variant")
        return cls(
            name=str(data["name"]),
            enabled=bool(data.get("enabled", False)),
            variant=Variant.from_dict(raw_variant) if raw_variant else DISABLED_VARIANT,
            impression_data=bool(data.get("impressionData", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "enabled": self.enabled,
            "variant": self.variant.to_dict(),
            "impressionData": self.impression_data,
        }


@dataclass
class MutableContext:
    """update_context で変更可能なコンテキスト項目。"""

    user_id: str | None = None
    session_id: str | None = None
    remote_address: str | None = None
    properties: dict[str, str] = field(default_factory=dict)


# Python 属性名とクエリパラメータ名の対応
WIRE_NAMES: dict[str, str] = {
    "app_name": "appName",
    "environment": "environment",
    "user_id": "userId",
    "session_id": "sessionId",
    "remote_address": "remoteAddress",
}


@dataclass(frozen=True)
class Context:
    """評価コンテキスト。app_name / environment は生成後に変更されない。"""

    app_name: str
    environment: str = "default"
    user_id: str | None = None
    session_id: str | None = None
    remote_address: str | None = None
    properties: dict[str, str] = field(default_factory=dict)

    def to_query_params(self) -> list[tuple[str, str]]:
        """定義済みの項目をクエリパラメータに展開する。

        properties は ``properties[<key>]`` 形式に平坦化する。
        """
        params: list[tuple[str, str]] = []
        for attr, wire_name in WIRE_NAMES.items():
            value = getattr(self, attr)
            if value is not None:
                params.append((wire_name, str(value)))
        for key, value in self.properties.items():
            if value is not None:
                params.append((f"properties[{key}]", str(value)))
        return params

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            wire_name: getattr(self, attr)
            for attr, wire_name in WIRE_NAMES.items()
            if getattr(self, attr) is not None
        }
        if self.properties:
            data["properties"] = dict(self.properties)
        return data


@dataclass(frozen=True)
class HttpErrorEvent:
    """成功以外の HTTP ステータスを表す error イベントのペイロード。"""

    status_code: int
    kind: str = "HttpError"


@dataclass(frozen=True)
class ImpressionEvent:
    """impression イベントのペイロード。"""

    context: Context
    enabled: bool
    toggle_name: str
    evaluation_kind: EvaluationKind
    variant_name: str | None = None
