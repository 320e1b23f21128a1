"""Read-only view models for the three dashboard panels.

Panels are plain dicts so they can be returned from the API or printed by
the CLI without further conversion.
"""

from typing import Any, Dict, Optional

import numpy as np

from ..config import MonitorConfig
from ..health.thresholds import bpm_series, heart_rate_status, is_dramatic_movement, is_knock_alert
from ..session import DashboardState
from ..utils.time_utils import format_clock

_HR_STATUS_TEXT = {
    "no_touch": "No Touch Detected",
    "low": "Low Heart Rate",
    "high": "High Heart Rate",
    "normal": "Normal",
}


def heartbeat_panel(state: DashboardState, cfg: MonitorConfig | None = None) -> Optional[Dict[str, Any]]:
    cfg = cfg or MonitorConfig()
    sample = state.snapshot.heartbeat if state.snapshot else None
    if sample is None:
        return None
    reading = heart_rate_status(sample.raw_value, cfg.thresholds)
    window = state.heartbeat_chart
    return {
        "raw_value": sample.raw_value,
        "bpm": reading.bpm if reading.touched else None,
        "touched": reading.touched,
        "status": reading.status,
        "status_text": _HR_STATUS_TEXT[reading.status],
        "alert": reading.alert,
        "last_updated": format_clock(sample.timestamp),
        "chart": [
            {"time": i, "bpm": int(v)}
            for i, v in enumerate(bpm_series((s.raw_value for s in window), cfg.thresholds))
        ],
    }


def motion_panel(
    state: DashboardState, cfg: MonitorConfig | None = None, expanded: bool = False
) -> Optional[Dict[str, Any]]:
    cfg = cfg or MonitorConfig()
    sample = state.snapshot.motion if state.snapshot else None
    if sample is None:
        return None
    dramatic = is_dramatic_movement(sample, cfg.thresholds)
    panel = {
        "accel": {"x": sample.accel_x, "y": sample.accel_y, "z": sample.accel_z},
        "gyro": {"x": sample.gyro_x, "y": sample.gyro_y, "z": sample.gyro_z},
        "dramatic": dramatic,
        "status_text": "DRAMATIC MOVEMENT" if dramatic else "Normal Movement",
        "last_updated": format_clock(sample.timestamp),
        "expanded": expanded,
    }
    if expanded:
        window = state.motion_chart
        if window:
            values = np.array(
                [[s.accel_x, s.accel_y, s.accel_z, s.gyro_x, s.gyro_y, s.gyro_z] for s in window],
                dtype=np.float64,
            )
        else:
            values = np.zeros((0, 6), dtype=np.float64)
        panel["accel_chart"] = [
            {"time": i, "x": float(r[0]), "y": float(r[1]), "z": float(r[2])} for i, r in enumerate(values)
        ]
        panel["gyro_chart"] = [
            {"time": i, "x": float(r[3]), "y": float(r[4]), "z": float(r[5])} for i, r in enumerate(values)
        ]
    return panel


def status_panel(state: DashboardState, cfg: MonitorConfig | None = None) -> Optional[Dict[str, Any]]:
    knock = state.snapshot.knock if state.snapshot else None
    if knock is None:
        return None
    detected = is_knock_alert(knock)
    return {
        "detected": detected,
        "status_text": "DETECTED" if detected else "No Knock",
        "count": knock.count,
        "last_updated": format_clock(knock.timestamp),
        "banner": "Knock detected! Someone may be at the door." if detected else None,
    }


def connection_status(state: DashboardState) -> str:
    if state.snapshot is not None:
        when = format_clock(state.snapshot.last_updated)
        return f"Connected | Data Path: {state.device_path} | Last Update: {when}"
    return f"No data received | Data Path: {state.device_path} | Check if the device is sending data"


def dashboard(state: DashboardState, cfg: MonitorConfig | None = None, expanded: bool = False) -> Dict[str, Any]:
    """Select the screen to show and build the panels for it.

    The full-screen error view only replaces the dashboard when no data has
    ever arrived; otherwise the last good data stays on screen.
    """
    cfg = cfg or MonitorConfig()
    if state.loading and state.snapshot is None:
        return {"screen": "loading"}
    if state.error and not state.received_data:
        return {"screen": "error", "error": state.error}

    hb = heartbeat_panel(state, cfg)
    mo = motion_panel(state, cfg, expanded=expanded)
    return {
        "screen": "live",
        "connection": connection_status(state),
        "last_updated": format_clock(state.snapshot.last_updated if state.snapshot else None),
        "error": state.error,
        "heartbeat": hb,
        "motion": mo,
        "status": status_panel(state, cfg),
        "placeholder": "No Sensor Data Available" if hb is None and mo is None else None,
        "notifications": [n.to_dict() for n in state.notifications],
        "alerts": [a.model_dump() for a in state.alerts],
    }
