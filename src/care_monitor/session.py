"""Session-scoped state for one dashboard connection."""

from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple
import logging

from .config import MonitorConfig
from .feed.adapter import LiveSubscriptionAdapter
from .feed.schemas import Alert, DeviceSnapshot, HeartbeatSample, KnockSample, MotionSample
from .feed.transport import Feed
from .health.history import HistoryBuffer
from .health.notifications import SENSORS, Notification, NotificationDispatcher, Notifier, ToastBoard
from .utils.time_utils import now_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DashboardState:
    snapshot: Optional[DeviceSnapshot]
    heartbeat_history: Tuple[HeartbeatSample, ...]
    motion_history: Tuple[MotionSample, ...]
    knock_history: Tuple[KnockSample, ...]
    heartbeat_chart: Tuple[HeartbeatSample, ...]
    motion_chart: Tuple[MotionSample, ...]
    loading: bool
    error: Optional[str]
    alerts_error: Optional[str]
    received_data: bool
    alerts: Tuple[Alert, ...]
    notifications: Tuple[Notification, ...]
    device_path: str


class MonitorSession:
    """Owns the feed adapter, per-sensor histories and notification dispatch.

    Created with empty histories and no snapshot; `start()` subscribes and
    `close()` unsubscribes. Histories live as long as the session.
    """

    def __init__(
        self,
        feed: Feed,
        cfg: MonitorConfig | None = None,
        notifiers: List[Notifier] | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.cfg = cfg or MonitorConfig()
        self.clock = clock
        self.adapter = LiveSubscriptionAdapter(
            feed, device_path=self.cfg.feed.device_path, alerts_path=self.cfg.feed.alerts_path
        )
        self.histories = {name: HistoryBuffer(self.cfg.history_capacity) for name in SENSORS}
        self.toasts = ToastBoard()
        self.dispatcher = NotificationDispatcher(
            [self.toasts, *(notifiers or [])],
            cfg=self.cfg.notifications,
            thresholds=self.cfg.thresholds,
        )
        self._fired_listeners: List[Callable[[Notification], None]] = []
        self.adapter.on_snapshot(self._on_snapshot)
        self._closed = False

    def on_notification(self, listener: Callable[[Notification], None]) -> None:
        self._fired_listeners.append(listener)

    def start(self) -> "MonitorSession":
        if self._closed:
            raise RuntimeError("session already closed")
        self.adapter.activate()
        return self

    def close(self) -> None:
        if self._closed:
            return
        self.adapter.deactivate()
        self._closed = True
        logger.debug("Session closed")

    def __enter__(self) -> "MonitorSession":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _on_snapshot(self, snapshot: Optional[DeviceSnapshot]) -> None:
        if snapshot is None:
            return
        ts = self.clock()
        fresh = []
        for name in SENSORS:
            sample = getattr(snapshot, name)
            if sample is None or self.histories[name].latest is sample:
                continue
            self.histories[name].append(sample)
            fresh.append((name, sample))
        # histories are complete before any dispatch runs
        for name, sample in fresh:
            fired = self.dispatcher.observe(name, sample, ts)
            if fired is None:
                continue
            for listener in list(self._fired_listeners):
                try:
                    listener(fired)
                except Exception:
                    logger.exception("Notification listener failed for %s", name)

    def state(self) -> DashboardState:
        a = self.adapter
        window = self.cfg.chart_window
        return DashboardState(
            snapshot=a.snapshot,
            heartbeat_history=tuple(self.histories["heartbeat"]),
            motion_history=tuple(self.histories["motion"]),
            knock_history=tuple(self.histories["knock"]),
            heartbeat_chart=tuple(self.histories["heartbeat"].slice_last(window)),
            motion_chart=tuple(self.histories["motion"].slice_last(window)),
            loading=a.loading,
            error=a.error,
            alerts_error=a.alerts_error,
            received_data=a.received_data,
            alerts=tuple(a.alerts),
            notifications=tuple(self.toasts.active(self.clock())),
            device_path=a.device_path,
        )
