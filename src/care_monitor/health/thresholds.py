from dataclasses import dataclass
from typing import Iterable
import math

import numpy as np

from ..config import ThresholdConfig
from ..feed.schemas import KnockSample, MotionSample

DEFAULT_THRESHOLDS = ThresholdConfig()


@dataclass(frozen=True)
class HeartRateReading:
    raw_value: float
    bpm: int
    touched: bool
    status: str  # no_touch|low|high|normal
    alert: bool


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def convert_raw_to_bpm(raw_value: float, cfg: ThresholdConfig = DEFAULT_THRESHOLDS) -> int:
    """Map a KY-039 raw reading onto a 0-100 bpm scale.

    Readings within ``touch_band`` of the idle baseline mean nothing is on the
    sensor and map to 0. Everything else is a linear map from
    [baseline, max_raw] onto [min_bpm, max_bpm], rounded and clamped.
    """
    if abs(raw_value - cfg.baseline_raw) <= cfg.touch_band:
        return 0
    span = cfg.max_raw - cfg.baseline_raw
    bpm = cfg.min_bpm + (raw_value - cfg.baseline_raw) * (cfg.max_bpm - cfg.min_bpm) / span
    return max(cfg.min_bpm, min(cfg.max_bpm, _round_half_up(bpm)))


def bpm_series(raw_values: Iterable[float], cfg: ThresholdConfig = DEFAULT_THRESHOLDS) -> np.ndarray:
    """Vectorised ``convert_raw_to_bpm`` for chart series."""
    raw = np.fromiter(raw_values, dtype=np.float64)
    if raw.size == 0:
        return np.zeros(0, dtype=np.int64)
    span = cfg.max_raw - cfg.baseline_raw
    bpm = cfg.min_bpm + (raw - cfg.baseline_raw) * (cfg.max_bpm - cfg.min_bpm) / span
    bpm = np.clip(np.floor(bpm + 0.5), cfg.min_bpm, cfg.max_bpm).astype(np.int64)
    bpm[np.abs(raw - cfg.baseline_raw) <= cfg.touch_band] = 0
    return bpm


def is_heart_rate_alert(raw_value: float, cfg: ThresholdConfig = DEFAULT_THRESHOLDS) -> bool:
    return heart_rate_status(raw_value, cfg).alert


def heart_rate_status(raw_value: float, cfg: ThresholdConfig = DEFAULT_THRESHOLDS) -> HeartRateReading:
    bpm = convert_raw_to_bpm(raw_value, cfg)
    touched = bpm > 0
    if not touched:
        status = "no_touch"
    elif bpm < cfg.hr_low:
        status = "low"
    elif bpm > cfg.hr_high:
        status = "high"
    else:
        status = "normal"
    return HeartRateReading(
        raw_value=raw_value,
        bpm=bpm,
        touched=touched,
        status=status,
        alert=status in ("low", "high"),
    )


def is_dramatic_movement(sample: MotionSample, cfg: ThresholdConfig = DEFAULT_THRESHOLDS) -> bool:
    # acceleration is shown on the dashboard but never evaluated
    limit = cfg.gyro_threshold
    return abs(sample.gyro_x) > limit or abs(sample.gyro_y) > limit or abs(sample.gyro_z) > limit


def is_knock_alert(sample: KnockSample) -> bool:
    return bool(sample.detected)
