"""クライアント設定（pydantic BaseModel）と YAML 読み込み"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import httpx
import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import ConfigurationError, ToggleClientErrorCodes
from .models import MutableContext, Toggle


class ClientConfig(BaseModel):
    """トグルクライアント設定。"""

    url: str = Field(min_length=1)
    client_key: str = Field(min_length=1)
    app_name: str = Field(min_length=1)
    environment: str = "default"
    disable_refresh: bool = False
    refresh_interval: float = Field(default=30, ge=0)
    disable_metrics: bool = False
    metrics_interval: float = Field(default=30, ge=0)
    context: MutableContext | None = None
    bootstrap: list[Toggle] | None = None
    bootstrap_override: bool = True
    header_name: str = Field(default="Authorization", min_length=1)
    custom_headers: dict[str, str | None] = Field(default_factory=dict)

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        try:
            parsed = httpx.URL(value)
        except httpx.InvalidURL as e:
            raise ValueError(f"invalid url: {value}") from e
        if parsed.scheme not in ("http", "https") or not parsed.host:
            raise ValueError(f"url must be an absolute http(s) url: {value}")
        return value

    @field_validator("bootstrap", mode="before")
    @classmethod
    def _parse_bootstrap(cls, value: Any) -> Any:
        # プロキシと同じ JSON 形式（impressionData など）も受け付ける
        if value is None:
            return None
        return [Toggle.from_dict(t) if isinstance(t, Mapping) else t for t in value]

    @property
    def effective_refresh_interval(self) -> float:
        """disable_refresh を考慮したポーリング間隔（秒）。0 はポーリングなし。"""
        return 0 if self.disable_refresh else self.refresh_interval

    @property
    def bootstrap_toggles(self) -> list[Toggle] | None:
        """空のブートストラップは未指定として扱う。"""
        return list(self.bootstrap) if self.bootstrap else None


def validate_config(data: Mapping[str, Any]) -> ClientConfig:
    """辞書から ClientConfig を生成する。失敗時は ConfigurationError。"""
    try:
        return ClientConfig.model_validate(dict(data))
    except ValidationError as e:
        raise ConfigurationError(
            code=ToggleClientErrorCodes.CONFIG_ERROR,
            message=f"Toggle client config validation failed: {e}",
            cause=e,
        ) from e


def load_config(path: Path) -> ClientConfig:
    """YAML ファイルを読み込んで ClientConfig を返す。

    ファイルはトップレベルに ClientConfig の各項目を持つ。
    ``toggle_client`` セクションがあればその中身を使う。
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(
            code=ToggleClientErrorCodes.READ_FILE,
            message=f"Failed to read config file: {path}",
            cause=e,
        ) from e
    try:
        data: dict[str, Any] = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(
            code=ToggleClientErrorCodes.PARSE_YAML,
            message=f"Failed to parse YAML: {path}",
            cause=e,
        ) from e
    section = data.get("toggle_client", data) if isinstance(data, dict) else data
    if not isinstance(section, dict):
        raise ConfigurationError(
            code=ToggleClientErrorCodes.PARSE_YAML,
            message=f"Config must be a mapping: {path}",
        )
    return validate_config(section)
