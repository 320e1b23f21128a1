import os
from dataclasses import dataclass, field
from pathlib import Path
import json
import logging

logger = logging.getLogger(__name__)

DEVICE_PATH = "elderlyDevice1/history"
ALERTS_PATH = "alerts"


@dataclass(frozen=True)
class Paths:
    project_root: Path = Path(__file__).resolve().parents[2]
    data_root: Path = project_root / "data"
    interim_dir: Path = data_root / "interim"

    def ensure(self) -> None:
        for p in [self.data_root, self.interim_dir]:
            p.mkdir(parents=True, exist_ok=True)


@dataclass(frozen=True)
class ThresholdConfig:
    baseline_raw: float = 2500.0  # KY-039 reading with nothing on the sensor
    touch_band: float = 100.0  # |raw - baseline| within this counts as no touch
    max_raw: float = 4000.0
    min_bpm: int = 0
    max_bpm: int = 100
    hr_low: int = 50
    hr_high: int = 120
    gyro_threshold: float = 1000.0  # same threshold the device firmware uses


@dataclass
class FeedConfig:
    database_url: str = ""
    device_path: str = DEVICE_PATH
    alerts_path: str = ALERTS_PATH
    auth_token: str | None = None
    poll_seconds: float = 1.0
    timeout: float = 5.0


@dataclass
class NotificationConfig:
    duration_ms: int = 5000
    debounce_ms: int = 0  # 0 fires on every qualifying sample
    targets: tuple = ()  # e.g., (("log", "data/interim/notifications.log"),)


@dataclass
class MonitorConfig:
    thresholds: ThresholdConfig = field(default_factory=ThresholdConfig)
    feed: FeedConfig = field(default_factory=FeedConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    history_capacity: int = 50
    chart_window: int = 20


def _apply_env(cfg: MonitorConfig) -> MonitorConfig:
    url = os.getenv("CM_DATABASE_URL", "").strip()
    if url:
        cfg.feed.database_url = url
    auth = os.getenv("CM_DATABASE_AUTH", "").strip()
    if auth:
        cfg.feed.auth_token = auth
    return cfg


def load_monitor_config(paths: Paths | None = None) -> MonitorConfig:
    if paths is None:
        paths = Paths()
    paths.ensure()
    cfg_path = paths.data_root / "monitor_config.json"
    if not cfg_path.exists():
        return _apply_env(MonitorConfig())
    try:
        with open(cfg_path, "r", encoding="utf-8") as f:
            payload = json.load(f)
    except Exception as e:
        logger.warning("Could not read %s, using defaults: %s", cfg_path, e)
        return _apply_env(MonitorConfig())

    th = payload.get("thresholds", {}) or {}
    fd = payload.get("feed", {}) or {}
    nt = payload.get("notifications", {}) or {}
    defaults = ThresholdConfig()

    cfg = MonitorConfig(
        thresholds=ThresholdConfig(
            baseline_raw=float(th.get("baseline_raw", defaults.baseline_raw)),
            touch_band=float(th.get("touch_band", defaults.touch_band)),
            max_raw=float(th.get("max_raw", defaults.max_raw)),
            min_bpm=int(th.get("min_bpm", defaults.min_bpm)),
            max_bpm=int(th.get("max_bpm", defaults.max_bpm)),
            hr_low=int(th.get("hr_low", defaults.hr_low)),
            hr_high=int(th.get("hr_high", defaults.hr_high)),
            gyro_threshold=float(th.get("gyro_threshold", defaults.gyro_threshold)),
        ),
        feed=FeedConfig(
            database_url=str(fd.get("database_url", "")),
            device_path=str(fd.get("device_path", DEVICE_PATH)),
            alerts_path=str(fd.get("alerts_path", ALERTS_PATH)),
            auth_token=fd.get("auth_token"),
            poll_seconds=float(fd.get("poll_seconds", 1.0)),
            timeout=float(fd.get("timeout", 5.0)),
        ),
        notifications=NotificationConfig(
            duration_ms=int(nt.get("duration_ms", 5000)),
            debounce_ms=int(nt.get("debounce_ms", 0)),
            targets=tuple(tuple(t) for t in nt.get("targets", ()) or ()),
        ),
        history_capacity=int(payload.get("history_capacity", 50)),
        chart_window=int(payload.get("chart_window", 20)),
    )
    return _apply_env(cfg)
