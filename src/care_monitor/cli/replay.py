"""Replay a recording of device-feed payloads and report the notifications it fires.

The recording is NDJSON: one line per feed emission, each line being the
full keyed collection as the database would deliver it. Lines may also be
`{"error": "..."}` to replay a delivery failure.
"""

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List

from ..config import load_monitor_config, MonitorConfig
from ..feed.transport import InMemoryFeed
from ..session import MonitorSession


def read_recording(path: Path) -> List[Any]:
    if not path.exists():
        raise FileNotFoundError(f"Recording not found: {path}")
    frames = []
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line:
                frames.append(json.loads(line))
    return frames


def replay(frames: Iterable[Any], cfg: MonitorConfig, step_ms: int = 1000) -> Dict[str, Any]:
    feed = InMemoryFeed()
    clock = {"now": 0}
    session = MonitorSession(feed, cfg, clock=lambda: clock["now"])
    fired = []
    session.on_notification(lambda n: fired.append(n.to_dict()))
    frame_count = 0
    with session:
        for frame in frames:
            frame_count += 1
            clock["now"] += step_ms
            if isinstance(frame, dict) and set(frame) == {"error"}:
                feed.fail(cfg.feed.device_path, str(frame["error"]))
            else:
                feed.publish(cfg.feed.device_path, frame)
        state = session.state()
    return {
        "num_frames": frame_count,
        "history_lengths": {
            "heartbeat": len(state.heartbeat_history),
            "motion": len(state.motion_history),
            "knock": len(state.knock_history),
        },
        "error": state.error,
        "notifications": fired,
    }


def main():
    parser = argparse.ArgumentParser(description="Replay recorded device payloads through the alert rules.")
    parser.add_argument("recording", type=Path)
    parser.add_argument("--output", type=Path, default=Path("replay_notifications.json"))
    parser.add_argument("--step-ms", type=int, default=1000, help="Simulated time between frames")
    parser.add_argument("--log-level", default="WARNING")
    args = parser.parse_args()
    logging.basicConfig(level=args.log_level.upper())

    cfg = load_monitor_config()
    result = replay(read_recording(args.recording), cfg, step_ms=args.step_ms)

    args.output.parent.mkdir(parents=True, exist_ok=True)
    with open(args.output, "w", encoding="utf-8") as f:
        json.dump(result, f, indent=2)
    print(f"Replayed {result['num_frames']} frames, wrote {len(result['notifications'])} notifications to {args.output}")


if __name__ == "__main__":
    main()
