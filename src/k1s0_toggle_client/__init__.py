"""k1s0 toggle client library."""

from .client import ToggleClient
from .config import ClientConfig, load_config, validate_config
from .context import ContextStore
from .events import Event, EventBus, EventHandler
from .exceptions import ConfigurationError, ToggleClientError, ToggleClientErrorCodes
from .metrics import MetricsBucket, MetricsCollector, ToggleCount, ToggleMetrics
from .models import (
    DISABLED_VARIANT,
    ClientEvents,
    ClientState,
    Context,
    EvaluationKind,
    HttpErrorEvent,
    ImpressionEvent,
    MutableContext,
    Toggle,
    Variant,
    VariantPayload,
)
from .repository import ToggleRepository
from .storage import (
    SESSION_ID_KEY,
    TOGGLES_KEY,
    FileStorageProvider,
    InMemoryStorageProvider,
    StorageProvider,
)
from .transport import Fetcher, HttpxFetcher, resolve_fetch

__all__ = [
    "ClientConfig",
    "ClientEvents",
    "ClientState",
    "ConfigurationError",
    "Context",
    "ContextStore",
    "DISABLED_VARIANT",
    "EvaluationKind",
    "Event",
    "EventBus",
    "EventHandler",
    "Fetcher",
    "FileStorageProvider",
    "HttpErrorEvent",
    "HttpxFetcher",
    "ImpressionEvent",
    "InMemoryStorageProvider",
    "MetricsBucket",
    "MetricsCollector",
    "MutableContext",
    "SESSION_ID_KEY",
    "StorageProvider",
    "TOGGLES_KEY",
    "Toggle",
    "ToggleClient",
    "ToggleClientError",
    "ToggleClientErrorCodes",
    "ToggleCount",
    "ToggleMetrics",
    "ToggleRepository",
    "Variant",
    "VariantPayload",
    "load_config",
    "resolve_fetch",
    "validate_config",
]
