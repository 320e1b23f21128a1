from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional
import json
import logging

import requests

from ..config import NotificationConfig, ThresholdConfig
from ..feed.schemas import HeartbeatSample, KnockSample, MotionSample
from .thresholds import heart_rate_status, is_dramatic_movement, is_knock_alert

logger = logging.getLogger(__name__)

SENSORS = ("heartbeat", "motion", "knock")


@dataclass
class Notification:
    sensor: str  # heartbeat|motion|knock
    message: str
    severity: str  # low|medium|high
    created_ms: int
    duration_ms: int = 5000
    context: Dict[str, Any] = field(default_factory=dict)

    @property
    def expires_ms(self) -> int:
        return self.created_ms + self.duration_ms

    def is_expired(self, now_ms: int) -> bool:
        return now_ms >= self.expires_ms

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["expires_ms"] = self.expires_ms
        return payload


class Notifier:
    def send(self, notification: Notification) -> None:  # pragma: no cover - interface
        raise NotImplementedError


class ToastBoard(Notifier):
    """Transient on-screen notifications.

    Nothing is queued: every notification shows for its own duration and
    notifications from different sensors may be visible at the same time.
    """

    def __init__(self):
        self._items: List[Notification] = []

    def send(self, notification: Notification) -> None:
        self._items.append(notification)

    def active(self, now_ms: int) -> List[Notification]:
        self._items = [n for n in self._items if not n.is_expired(now_ms)]
        return list(self._items)


class LogNotifier(Notifier):
    def __init__(self, path: Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def send(self, notification: Notification) -> None:
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(json.dumps(notification.to_dict()) + "\n")


class WebhookNotifier(Notifier):
    def __init__(self, url: str, timeout: float = 2.0):
        self.url = url
        self.timeout = timeout

    def send(self, notification: Notification) -> None:
        try:
            resp = requests.post(self.url, json=notification.to_dict(), timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            # a failed webhook must not stop the other sinks
            logger.warning("Webhook %s rejected %s notification: %s", self.url, notification.sensor, e)


def build_notifiers(targets: List, log_default_path: Path | None = None) -> List[Notifier]:
    notifiers: List[Notifier] = []
    for t in targets:
        if not isinstance(t, (list, tuple)) or len(t) < 2:
            logger.warning("Ignoring malformed notification target %r", t)
            continue
        kind, value = t[0], t[1]
        if kind == "log":
            notifiers.append(LogNotifier(Path(value)))
        elif kind == "webhook":
            notifiers.append(WebhookNotifier(str(value)))
        else:
            logger.warning("Unknown notification target kind %r", kind)
    if not notifiers and log_default_path is not None:
        notifiers.append(LogNotifier(log_default_path))
    return notifiers


class NotificationDispatcher:
    """Decides, per incoming sample, whether to raise a one-shot notification.

    Each sensor is evaluated on its own. A sample object is only ever
    evaluated once: handing the same object in again is a no-op, which keeps
    re-renders and repeated snapshots from re-firing.
    """

    def __init__(
        self,
        notifiers: List[Notifier],
        cfg: NotificationConfig | None = None,
        thresholds: ThresholdConfig | None = None,
    ):
        self.notifiers = list(notifiers)
        self.cfg = cfg or NotificationConfig()
        self.thresholds = thresholds or ThresholdConfig()
        self._last_seen: Dict[str, Any] = {}
        self._last_fired_ms: Dict[str, int] = {}

    def observe(self, sensor: str, sample: Any, now_ms: int) -> Optional[Notification]:
        if sensor not in SENSORS:
            raise ValueError(f"unknown sensor {sensor!r}")
        if sample is None or self._last_seen.get(sensor) is sample:
            return None
        self._last_seen[sensor] = sample

        notification = self._evaluate(sensor, sample, now_ms)
        if notification is None:
            return None

        last = self._last_fired_ms.get(sensor)
        if self.cfg.debounce_ms > 0 and last is not None and now_ms - last < self.cfg.debounce_ms:
            logger.info("Suppressed %s notification within %dms debounce", sensor, self.cfg.debounce_ms)
            return None
        self._last_fired_ms[sensor] = now_ms

        logger.info("Notification [%s/%s]: %s", sensor, notification.severity, notification.message)
        for n in self.notifiers:
            try:
                n.send(notification)
            except Exception:
                # sinks are independent of each other
                logger.exception("Notifier %s failed for %s notification", type(n).__name__, sensor)
        return notification

    def _evaluate(self, sensor: str, sample: Any, now_ms: int) -> Optional[Notification]:
        if sensor == "heartbeat":
            return self._heartbeat(sample, now_ms)
        if sensor == "motion":
            return self._motion(sample, now_ms)
        return self._knock(sample, now_ms)

    def _make(self, sensor: str, message: str, severity: str, now_ms: int, **context) -> Notification:
        return Notification(
            sensor=sensor,
            message=message,
            severity=severity,
            created_ms=now_ms,
            duration_ms=self.cfg.duration_ms,
            context=context,
        )

    def _heartbeat(self, sample: HeartbeatSample, now_ms: int) -> Optional[Notification]:
        reading = heart_rate_status(sample.raw_value, self.thresholds)
        if not reading.alert:
            return None
        label = "Low Heart Rate" if reading.status == "low" else "High Heart Rate"
        return self._make(
            "heartbeat",
            f"{label}: {reading.bpm} BPM",
            "high",
            now_ms,
            bpm=reading.bpm,
            raw_value=sample.raw_value,
            sample_timestamp=sample.timestamp,
        )

    def _motion(self, sample: MotionSample, now_ms: int) -> Optional[Notification]:
        if not is_dramatic_movement(sample, self.thresholds):
            return None
        return self._make(
            "motion",
            "Dramatic Movement Detected!",
            "high",
            now_ms,
            gyro=[sample.gyro_x, sample.gyro_y, sample.gyro_z],
            sample_timestamp=sample.timestamp,
        )

    def _knock(self, sample: KnockSample, now_ms: int) -> Optional[Notification]:
        if not is_knock_alert(sample):
            return None
        return self._make(
            "knock",
            "Knock detected! Someone may be at the door.",
            "medium",
            now_ms,
            count=sample.count,
            sample_timestamp=sample.timestamp,
        )
