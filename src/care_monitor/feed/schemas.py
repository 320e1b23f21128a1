"""Typed records decoded from the realtime database feeds.

Decoding fails closed: a sensor sub-record that does not validate is treated
as absent instead of being passed through with a guessed shape.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)


def _whole_ms(value: Any) -> Any:
    if isinstance(value, float) and math.isfinite(value):
        return int(value)
    return value


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    @field_validator("timestamp", mode="before", check_fields=False)
    @classmethod
    def _truncate_timestamp(cls, v):
        return _whole_ms(v)


class HeartbeatSample(_Record):
    raw_value: float = Field(alias="filtered", allow_inf_nan=False)
    timestamp: int


class MotionSample(_Record):
    accel_x: float = Field(alias="accelX", allow_inf_nan=False)
    accel_y: float = Field(alias="accelY", allow_inf_nan=False)
    accel_z: float = Field(alias="accelZ", allow_inf_nan=False)
    gyro_x: float = Field(alias="gyroX", allow_inf_nan=False)
    gyro_y: float = Field(alias="gyroY", allow_inf_nan=False)
    gyro_z: float = Field(alias="gyroZ", allow_inf_nan=False)
    timestamp: int


class KnockSample(_Record):
    count: int = Field(ge=0)
    detected: bool
    timestamp: int


class DeviceSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    heartbeat: Optional[HeartbeatSample] = None
    motion: Optional[MotionSample] = None
    knock: Optional[KnockSample] = None
    last_updated: Optional[int] = None

    @property
    def has_vitals(self) -> bool:
        return self.heartbeat is not None or self.motion is not None


class Alert(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    type: Literal["heartbeat", "motion", "knock"]
    message: str
    severity: Literal["low", "medium", "high"]
    timestamp: str
    acknowledged: bool = False


def _decode_part(model, payload: Any, name: str):
    if payload is None:
        return None
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        logger.warning("Dropping malformed %s record: %s", name, e.errors(include_url=False))
        return None


def decode_snapshot(entry: Any) -> DeviceSnapshot | None:
    """Decode one history entry into a DeviceSnapshot, or None if it is not a record."""
    if not isinstance(entry, Mapping):
        if entry is not None:
            logger.warning("Ignoring non-object device entry of type %s", type(entry).__name__)
        return None
    motion_payload = entry.get("gyro", entry.get("motion"))
    last_updated = _whole_ms(entry.get("lastUpdated"))
    if not isinstance(last_updated, int) or isinstance(last_updated, bool):
        last_updated = None
    return DeviceSnapshot(
        heartbeat=_decode_part(HeartbeatSample, entry.get("heartbeat"), "heartbeat"),
        motion=_decode_part(MotionSample, motion_payload, "motion"),
        knock=_decode_part(KnockSample, entry.get("knock"), "knock"),
        last_updated=last_updated,
    )


def latest_entry(payload: Any) -> Any:
    """Return the value under the last key of a keyed collection, or None when empty."""
    if not payload or not isinstance(payload, Mapping):
        return None
    last_key = list(payload)[-1]
    return payload[last_key]


def decode_alerts(payload: Any) -> List[Alert]:
    if not payload or not isinstance(payload, Mapping):
        return []
    alerts: List[Alert] = []
    for key, value in payload.items():
        if not isinstance(value, Mapping):
            logger.warning("Dropping alert %s: not an object", key)
            continue
        record: Dict[str, Any] = {**value, "id": str(key)}
        alert = _decode_part(Alert, record, "alert")
        if alert is not None:
            alerts.append(alert)
    return alerts
