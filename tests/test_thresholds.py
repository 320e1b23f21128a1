import numpy as np

from care_monitor.config import ThresholdConfig
from care_monitor.feed.schemas import KnockSample, MotionSample
from care_monitor.health.thresholds import (
    bpm_series,
    convert_raw_to_bpm,
    heart_rate_status,
    is_dramatic_movement,
    is_heart_rate_alert,
    is_knock_alert,
)


def _motion(gx: float = 0.0, gy: float = 0.0, gz: float = 0.0) -> MotionSample:
    return MotionSample(accel_x=5000.0, accel_y=-9000.0, accel_z=16000.0, gyro_x=gx, gyro_y=gy, gyro_z=gz, timestamp=1)


def test_no_touch_band_maps_to_zero():
    for raw in range(2400, 2601):
        assert convert_raw_to_bpm(raw) == 0


def test_bpm_endpoints_and_range():
    assert convert_raw_to_bpm(2500) == 0
    assert convert_raw_to_bpm(4000) == 100
    assert convert_raw_to_bpm(9000) == 100
    assert convert_raw_to_bpm(1000) == 0


def test_bpm_monotonic_above_touch_band():
    values = [convert_raw_to_bpm(raw) for raw in range(2601, 4001)]
    assert all(0 <= v <= 100 for v in values)
    assert all(a <= b for a, b in zip(values, values[1:]))


def test_bpm_rounds_half_up():
    # 2650 -> 10.0, 2657.5 -> 10.5
    assert convert_raw_to_bpm(2650) == 10
    assert convert_raw_to_bpm(2657.5) == 11


def test_heart_rate_alert_cases():
    assert convert_raw_to_bpm(2900) == 27
    assert is_heart_rate_alert(2900)
    assert heart_rate_status(2900).status == "low"

    assert not is_heart_rate_alert(4000)
    assert heart_rate_status(4000).status == "normal"

    reading = heart_rate_status(2500)
    assert not reading.touched
    assert reading.status == "no_touch"
    assert not reading.alert


def test_high_heart_rate_with_wider_scale():
    cfg = ThresholdConfig(max_bpm=200)
    reading = heart_rate_status(4000, cfg)
    assert reading.bpm == 200
    assert reading.status == "high"
    assert reading.alert


def test_bpm_series_matches_scalar():
    raws = [2400, 2500, 2600, 2601, 2657.5, 2900, 3300, 4000, 4500, 1000]
    series = bpm_series(raws)
    assert series.dtype == np.int64
    assert series.tolist() == [convert_raw_to_bpm(r) for r in raws]
    assert bpm_series([]).size == 0


def test_dramatic_movement_is_strict():
    assert not is_dramatic_movement(_motion(1000, -1000, 1000))
    assert is_dramatic_movement(_motion(gx=1000.5))
    assert is_dramatic_movement(_motion(gy=-1500))
    assert is_dramatic_movement(_motion(gz=2000))
    assert not is_dramatic_movement(_motion())


def test_knock_alert_ignores_count():
    assert is_knock_alert(KnockSample(count=0, detected=True, timestamp=1))
    assert not is_knock_alert(KnockSample(count=42, detected=False, timestamp=1))
