import logging
from typing import Any, Callable, List, Optional

from ..config import ALERTS_PATH, DEVICE_PATH
from .schemas import Alert, DeviceSnapshot, decode_alerts, decode_snapshot, latest_entry
from .transport import Feed, Subscription

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[Optional[DeviceSnapshot]], None]
AlertsListener = Callable[[List[Alert]], None]


class LiveSubscriptionAdapter:
    """Bridges the device and alerts feeds into the latest snapshot and alert list.

    Holds exactly one subscription per path between `activate()` and
    `deactivate()`. Delivery errors are kept as strings next to the last good
    data rather than replacing it.
    """

    def __init__(self, feed: Feed, device_path: str = DEVICE_PATH, alerts_path: str = ALERTS_PATH):
        self.feed = feed
        self.device_path = device_path
        self.alerts_path = alerts_path
        self.snapshot: Optional[DeviceSnapshot] = None
        self.alerts: List[Alert] = []
        self.loading = True
        self.error: Optional[str] = None
        self.alerts_error: Optional[str] = None
        self.received_data = False
        self._device_sub: Optional[Subscription] = None
        self._alerts_sub: Optional[Subscription] = None
        self._snapshot_listeners: List[SnapshotListener] = []
        self._alerts_listeners: List[AlertsListener] = []

    @property
    def active(self) -> bool:
        return self._device_sub is not None or self._alerts_sub is not None

    def on_snapshot(self, listener: SnapshotListener) -> None:
        self._snapshot_listeners.append(listener)

    def on_alerts(self, listener: AlertsListener) -> None:
        self._alerts_listeners.append(listener)

    def activate(self) -> None:
        if self._device_sub is None:
            logger.info("Listening to device path %s", self.device_path)
            self._device_sub = self.feed.subscribe(self.device_path, self._handle_device, self._handle_device_error)
        if self._alerts_sub is None:
            self._alerts_sub = self.feed.subscribe(self.alerts_path, self._handle_alerts, self._handle_alerts_error)

    def deactivate(self) -> None:
        if self._device_sub is not None:
            self.feed.unsubscribe(self._device_sub)
            self._device_sub = None
        if self._alerts_sub is not None:
            self.feed.unsubscribe(self._alerts_sub)
            self._alerts_sub = None

    def _handle_device(self, payload: Any) -> None:
        entry = latest_entry(payload)
        if entry is None:
            logger.info("No data under %s", self.device_path)
            self.snapshot = None
        else:
            self.snapshot = decode_snapshot(entry)
            logger.debug("Latest device entry: %s", self.snapshot)
        self.received_data = self.received_data or self.snapshot is not None
        self.loading = False
        self.error = None
        for listener in list(self._snapshot_listeners):
            listener(self.snapshot)

    def _handle_device_error(self, message: str) -> None:
        logger.error("Error fetching device data: %s", message)
        self.error = message
        self.loading = False

    def _handle_alerts(self, payload: Any) -> None:
        self.alerts = decode_alerts(payload)
        self.alerts_error = None
        for listener in list(self._alerts_listeners):
            listener(self.alerts)

    def _handle_alerts_error(self, message: str) -> None:
        logger.error("Error fetching alerts: %s", message)
        self.alerts_error = message
