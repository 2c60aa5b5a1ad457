"""ToggleClient: 初期化・ポーリング・評価 API"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

import structlog

from .config import ClientConfig, validate_config
from .context import ContextStore
from .events import EventBus, EventHandler
from .exceptions import ToggleClientErrorCodes
from .metrics import MetricsCollector, ToggleMetrics
from .models import (
    DISABLED_VARIANT,
    ClientEvents,
    ClientState,
    Context,
    EvaluationKind,
    ImpressionEvent,
    MutableContext,
    Toggle,
    Variant,
)
from .repository import ToggleRepository
from .storage import InMemoryStorageProvider, StorageProvider
from .transport import Fetcher, resolve_fetch

_UNSET: Any = object()


class ToggleClient:
    """フィーチャートグルクライアント。

    生成と同時に初期化（セッション ID 解決、キャッシュ読み込み、
    ブートストラップ適用）を開始する。イベントループが動いていない場合は
    最初の ready() / start() 呼び出しで開始する。

    Args:
        config: ClientConfig または同じ項目を持つ辞書
        storage: トグルキャッシュとセッション ID の保存先（既定はインメモリ）
        fetch: トランスポート。None を渡すと同期を行わない
        bus: イベントバス（既定はクライアント専用の EventBus）
        metrics: 評価回数のコレクタ（既定は ToggleMetrics）
        logger: 診断ログの出力先（既定は structlog ロガー）

    Raises:
        ConfigurationError: 必須設定が欠けている、または不正な場合
    """

    def __init__(
        self,
        config: ClientConfig | Mapping[str, Any],
        *,
        storage: StorageProvider | None = None,
        fetch: Fetcher | None = _UNSET,
        bus: EventBus | None = None,
        metrics: MetricsCollector | None = None,
        logger: Any | None = None,
    ) -> None:
        self._config = config if isinstance(config, ClientConfig) else validate_config(config)
        self._logger = logger or structlog.get_logger(__name__)
        self._bus = bus or EventBus(logger=self._logger)
        self._storage = storage or InMemoryStorageProvider()
        if fetch is _UNSET:
            fetch = resolve_fetch()
        if fetch is None:
            self._logger.error(
                "no transport available, feature toggles will not be synchronized",
                code=ToggleClientErrorCodes.TRANSPORT_UNAVAILABLE,
            )
        self._metrics = metrics or ToggleMetrics(
            metrics_interval=self._config.metrics_interval,
            disabled=self._config.disable_metrics,
        )
        self._context = ContextStore(
            app_name=self._config.app_name,
            environment=self._config.environment,
            initial=self._config.context,
            logger=self._logger,
        )
        self._repository = ToggleRepository(
            url=self._config.url,
            client_key=self._config.client_key,
            storage=self._storage,
            bus=self._bus,
            context_provider=lambda: self._context.current,
            fetch=fetch,
            header_name=self._config.header_name,
            custom_headers=self._config.custom_headers,
            logger=self._logger,
        )
        self._bootstrap = self._config.bootstrap_toggles
        if self._bootstrap:
            self._repository.replace(self._bootstrap)
        self._refresh_interval = self._config.effective_refresh_interval

        self._state = ClientState.CONSTRUCTED
        self._init_task: asyncio.Task[None] | None = None
        self._timer_task: asyncio.Task[None] | None = None
        self._sync_tasks: set[asyncio.Task[None]] = set()
        self._run_id = 0

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            pass
        else:
            self._ensure_initializing()

    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def config(self) -> ClientConfig:
        return self._config

    # --- イベント ---

    def on(self, event_type: str, handler: EventHandler) -> None:
        """イベントを購読する。"""
        self._bus.subscribe(event_type, handler)

    def off(self, event_type: str, handler: EventHandler | None = None) -> None:
        """購読を解除する。handler 省略時はそのイベントの全ハンドラを解除する。"""
        self._bus.unsubscribe(event_type, handler)

    # --- ライフサイクル ---

    def _ensure_initializing(self) -> asyncio.Task[None]:
        if self._init_task is None:
            # start() が先に POLLING にしている場合は上書きしない
            if self._state is ClientState.CONSTRUCTED:
                self._state = ClientState.INITIALIZING
            self._init_task = asyncio.create_task(self._initialize())
        return self._init_task

    async def ready(self) -> None:
        """初期化の完了を待つ。初期化が失敗しても例外は送出しない。"""
        await asyncio.shield(self._ensure_initializing())

    async def _initialize(self) -> None:
        try:
            await self._context.resolve_session_id(self._storage)
            cached = await self._repository.load_cached()
            self._repository.replace(cached)
            if self._bootstrap and (self._config.bootstrap_override or not cached):
                await self._repository.save(self._bootstrap)
                self._repository.replace(self._bootstrap)
                self._repository.mark_ready()
            self._bus.publish(ClientEvents.INITIALIZED)
        except Exception as e:
            self._logger.error(
                "toggle client initialization failed",
                code=ToggleClientErrorCodes.INITIALIZATION_ERROR,
                error=repr(e),
            )
            self._bus.publish(ClientEvents.ERROR, e)
        finally:
            if self._state is ClientState.INITIALIZING:
                self._state = ClientState.READY

    async def start(self) -> None:
        """初期化完了を待ってから同期を 1 回行い、定期同期を開始する。

        既に開始済みの場合は何もしない。再開するには先に stop() を呼ぶ。
        """
        if self._state is ClientState.POLLING:
            self._logger.warning(
                "toggle client has already started, call stop() before starting again"
            )
            return
        self._state = ClientState.POLLING
        self._run_id += 1
        run_id = self._run_id

        await self.ready()
        if run_id != self._run_id:
            return
        self._metrics.start()
        await self._repository.synchronize()
        if run_id != self._run_id:
            return
        if self._refresh_interval > 0:
            self._timer_task = asyncio.create_task(self._refresh_loop(self._refresh_interval))

    def stop(self) -> None:
        """定期同期とメトリクスを停止する。実行中の同期は中断しない。"""
        self._run_id += 1
        if self._timer_task is not None:
            self._timer_task.cancel()
            self._timer_task = None
        self._metrics.stop()
        if self._state is ClientState.POLLING:
            self._state = ClientState.STOPPED

    async def _refresh_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self._spawn_synchronize()

    def _spawn_synchronize(self) -> None:
        # ロック待ちの同期があれば、それが最新のコンテキストで取得する
        if self._repository.sync_pending:
            return
        task = asyncio.create_task(self._repository.synchronize())
        self._sync_tasks.add(task)
        task.add_done_callback(self._sync_tasks.discard)

    @property
    def _polling(self) -> bool:
        return self._timer_task is not None

    # --- コンテキスト ---

    async def update_context(self, context: MutableContext | Mapping[str, Any]) -> None:
        """可変コンテキストをマージする。ポーリング中は即座に同期し、完了を待つ。"""
        self._context.update(context)
        if self._polling:
            await self._repository.synchronize()

    def set_context_field(self, name: str, value: str) -> None:
        """コンテキストの 1 項目を設定する。ポーリング中は同期を予約する（待たない）。"""
        self._context.set_field(name, value)
        if self._polling:
            self._spawn_synchronize()

    def get_context(self) -> Context:
        return self._context.snapshot()

    # --- 評価 ---

    def get_all_toggles(self) -> list[Toggle]:
        return list(self._repository.toggles)

    def is_enabled(self, toggle_name: str) -> bool:
        """トグルが有効か判定する。存在しないトグルは False。"""
        toggle = self._repository.find(toggle_name)
        enabled = toggle.enabled if toggle is not None else False
        self._count(toggle_name, enabled)
        if toggle is not None and toggle.impression_data:
            self._bus.publish(
                ClientEvents.IMPRESSION,
                ImpressionEvent(
                    context=self._context.snapshot(),
                    enabled=enabled,
                    toggle_name=toggle_name,
                    evaluation_kind=EvaluationKind.IS_ENABLED,
                ),
            )
        return enabled

    def get_variant(self, toggle_name: str) -> Variant:
        """トグルのバリアントを返す。存在しないトグルは DISABLED_VARIANT。"""
        toggle = self._repository.find(toggle_name)
        if toggle is None:
            self._count(toggle_name, False)
            return DISABLED_VARIANT
        self._count(toggle_name, True)
        if toggle.impression_data:
            self._bus.publish(
                ClientEvents.IMPRESSION,
                ImpressionEvent(
                    context=self._context.snapshot(),
                    enabled=toggle.enabled,
                    toggle_name=toggle_name,
                    evaluation_kind=EvaluationKind.GET_VARIANT,
                    variant_name=toggle.variant.name,
                ),
            )
        return toggle.variant

    def _count(self, toggle_name: str, enabled: bool) -> None:
        try:
            self._metrics.count(toggle_name, enabled)
        except Exception as e:
            self._logger.error("metrics count failed", toggle=toggle_name, error=repr(e))

    async def wait_for_pending(self) -> None:
        """予約済みの同期がすべて終わるまで待つ。"""
        while self._sync_tasks:
            await asyncio.gather(*list(self._sync_tasks))
