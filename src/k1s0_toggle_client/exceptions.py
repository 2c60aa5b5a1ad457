"""toggle_client ライブラリの例外型定義"""

from __future__ import annotations


class ToggleClientError(Exception):
    """toggle_client ライブラリのエラー基底クラス。"""

    def __init__(
        self,
        code: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.code}: {super().__str__()}"


class ConfigurationError(ToggleClientError):
    """必須設定の欠落や不正値。クライアント生成時に送出される。"""


class ToggleClientErrorCodes:
    """ToggleClientError のエラーコード定数。"""

    CONFIG_ERROR: str = "CONFIG_ERROR"
    READ_FILE: str = "READ_FILE_ERROR"
    PARSE_YAML: str = "PARSE_YAML_ERROR"
    HTTP_ERROR: str = "HTTP_ERROR"
    NETWORK_ERROR: str = "NETWORK_ERROR"
    TRANSPORT_UNAVAILABLE: str = "TRANSPORT_UNAVAILABLE"
    INITIALIZATION_ERROR: str = "INITIALIZATION_ERROR"
