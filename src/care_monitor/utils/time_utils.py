import datetime as _dt
import time


def now_ms() -> int:
    return int(time.time() * 1000)


def format_clock(timestamp_ms: int | None) -> str:
    """Return HH:MM:SS (UTC) for an epoch-millisecond timestamp, or "N/A"."""
    if timestamp_ms is None:
        return "N/A"
    return _dt.datetime.fromtimestamp(timestamp_ms / 1000.0, tz=_dt.timezone.utc).strftime("%H:%M:%S")
