"""クライアント設定のユニットテスト"""

from pathlib import Path

import pytest
from k1s0_toggle_client import (
    ClientConfig,
    ConfigurationError,
    MutableContext,
    Toggle,
    ToggleClient,
    ToggleClientErrorCodes,
    load_config,
    validate_config,
)

REQUIRED = {"url": "http://proxy.example.com/proxy", "client_key": "key", "app_name": "web"}


def test_defaults() -> None:
    """既定値。"""
    config = validate_config(REQUIRED)
    assert config.environment == "default"
    assert config.refresh_interval == 30
    assert config.metrics_interval == 30
    assert config.bootstrap_override is True
    assert config.header_name == "Authorization"
    assert config.custom_headers == {}
    assert config.effective_refresh_interval == 30


@pytest.mark.parametrize("missing", ["url", "client_key", "app_name"])
def test_missing_required_field(missing: str) -> None:
    """必須項目の欠落で ConfigurationError(CONFIG_ERROR) になること。"""
    data = {k: v for k, v in REQUIRED.items() if k != missing}
    with pytest.raises(ConfigurationError) as exc_info:
        validate_config(data)
    assert exc_info.value.code == ToggleClientErrorCodes.CONFIG_ERROR


def test_empty_client_key_rejected() -> None:
    """空文字の client_key は拒否されること。"""
    with pytest.raises(ConfigurationError):
        validate_config({**REQUIRED, "client_key": ""})


def test_relative_url_rejected() -> None:
    """絶対 URL 以外は拒否されること。"""
    with pytest.raises(ConfigurationError):
        validate_config({**REQUIRED, "url": "proxy"})


def test_negative_refresh_interval_rejected() -> None:
    """負のポーリング間隔は拒否されること。"""
    with pytest.raises(ConfigurationError):
        validate_config({**REQUIRED, "refresh_interval": -1})


def test_disable_refresh_zeroes_interval() -> None:
    """disable_refresh で実効間隔が 0 になること。"""
    config = validate_config({**REQUIRED, "disable_refresh": True, "refresh_interval": 10})
    assert config.effective_refresh_interval == 0


def test_bootstrap_accepts_wire_format() -> None:
    """bootstrap にプロキシ形式の辞書を渡せること。"""
    config = validate_config(
        {**REQUIRED, "bootstrap": [{"name": "a", "enabled": True, "impressionData": True}]}
    )
    assert config.bootstrap_toggles == [Toggle(name="a", enabled=True, impression_data=True)]


def test_empty_bootstrap_is_absent() -> None:
    """空の bootstrap は未指定として扱うこと。"""
    config = validate_config({**REQUIRED, "bootstrap": []})
    assert config.bootstrap_toggles is None


def test_initial_context() -> None:
    """初期コンテキストを辞書で指定できること。"""
    config = validate_config({**REQUIRED, "context": {"user_id": "u1", "properties": {"a": "b"}}})
    assert config.context == MutableContext(user_id="u1", properties={"a": "b"})


def test_client_construction_fails_fast() -> None:
    """クライアント生成時に設定エラーが送出されること。"""
    with pytest.raises(ConfigurationError):
        ToggleClient({"url": "http://proxy.example.com/proxy", "client_key": "key"})


def test_client_accepts_config_instance() -> None:
    """ClientConfig インスタンスをそのまま渡せること。"""
    config = ClientConfig(**REQUIRED)
    client = ToggleClient(config, fetch=None)
    assert client.config is config


def test_load_config(tmp_path: Path) -> None:
    """YAML から設定を読み込めること。"""
    config_file = tmp_path / "toggles.yaml"
    config_file.write_text(
        "toggle_client:\n"
        "  url: http://proxy.example.com/proxy\n"
        "  client_key: key\n"
        "  app_name: web\n"
        "  environment: production\n"
        "  custom_headers:\n"
        "    X-Tenant: t1\n"
    )
    config = load_config(config_file)
    assert config.environment == "production"
    assert config.custom_headers == {"X-Tenant": "t1"}


def test_load_config_without_section(tmp_path: Path) -> None:
    """トップレベルに項目を書いた YAML も読み込めること。"""
    config_file = tmp_path / "toggles.yaml"
    config_file.write_text("url: http://proxy.example.com/proxy\nclient_key: key\napp_name: web\n")
    assert load_config(config_file).app_name == "web"


def test_load_config_file_not_found(tmp_path: Path) -> None:
    """存在しないファイルで READ_FILE_ERROR になること。"""
    with pytest.raises(ConfigurationError) as exc_info:
        load_config(tmp_path / "missing.yaml")
    assert exc_info.value.code == ToggleClientErrorCodes.READ_FILE


def test_load_config_invalid_yaml(tmp_path: Path) -> None:
    """不正 YAML で PARSE_YAML_ERROR になること。"""
    bad_file = tmp_path / "bad.yaml"
    bad_file.write_text("url: {invalid: yaml: content:\n")
    with pytest.raises(ConfigurationError) as exc_info:
        load_config(bad_file)
    assert exc_info.value.code == ToggleClientErrorCodes.PARSE_YAML


def test_load_config_validation_error(tmp_path: Path) -> None:
    """バリデーション失敗で CONFIG_ERROR になること。"""
    bad_file = tmp_path / "bad_config.yaml"
    bad_file.write_text("url: http://proxy.example.com/proxy\n")
    with pytest.raises(ConfigurationError) as exc_info:
        load_config(bad_file)
    assert exc_info.value.code == ToggleClientErrorCodes.CONFIG_ERROR


def test_configuration_error_str() -> None:
    """ConfigurationError の __str__ が 'CODE: message' 形式であること。"""
    error = ConfigurationError(ToggleClientErrorCodes.CONFIG_ERROR, "url is required")
    assert str(error) == "CONFIG_ERROR: url is required"
