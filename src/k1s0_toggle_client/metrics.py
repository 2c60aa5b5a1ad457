"""トグル評価回数の集計"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol

from opentelemetry import metrics

_meter = metrics.get_meter("k1s0_toggle_client", version="0.1.0")

toggle_evaluations_total = _meter.create_counter(
    name="toggle_evaluations_total",
    description="Total number of feature toggle evaluations",
    unit="1",
)


class MetricsCollector(Protocol):
    """評価回数を受け取るコレクタのプロトコル。"""

    def start(self) -> None: ...

    def stop(self) -> None: ...

    def count(self, toggle_name: str, enabled: bool) -> None: ...


@dataclass
class ToggleCount:
    """トグル 1 件分の評価回数。"""

    yes: int = 0
    no: int = 0


@dataclass
class MetricsBucket:
    """集計期間内の評価回数。"""

    start: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    stop: datetime | None = None
    toggles: dict[str, ToggleCount] = field(default_factory=dict)


class ToggleMetrics:
    """評価回数をバケットに集計し OpenTelemetry カウンターにも記録する。

    アップロードは行わない。disabled のときは何も記録しない。
    """

    def __init__(self, metrics_interval: float = 30, disabled: bool = False) -> None:
        self.metrics_interval = metrics_interval
        self.disabled = disabled
        self._started = False
        self._bucket = MetricsBucket()

    @property
    def started(self) -> bool:
        return self._started

    def start(self) -> None:
        if self.disabled:
            return
        self._started = True

    def stop(self) -> None:
        self._started = False
        self._bucket.stop = datetime.now(timezone.utc)

    def count(self, toggle_name: str, enabled: bool) -> None:
        if self.disabled:
            return
        entry = self._bucket.toggles.setdefault(toggle_name, ToggleCount())
        if enabled:
            entry.yes += 1
        else:
            entry.no += 1
        toggle_evaluations_total.add(1, {"toggle": toggle_name, "enabled": enabled})

    def get_bucket(self) -> MetricsBucket:
        """現在のバケットのコピーを返す。"""
        return MetricsBucket(
            start=self._bucket.start,
            stop=self._bucket.stop,
            toggles={
                name: ToggleCount(c.yes, c.no) for name, c in self._bucket.toggles.items()
            },
        )

    def reset(self) -> MetricsBucket:
        """現在のバケットを返し、新しいバケットで集計を再開する。"""
        bucket = self.get_bucket()
        self._bucket = MetricsBucket()
        return bucket
