import json

from care_monitor.cli.replay import read_recording, replay
from care_monitor.cli.watch import summary_line
from care_monitor.config import MonitorConfig
from care_monitor.feed.transport import InMemoryFeed
from care_monitor.session import MonitorSession


def _frame(n: int, gz: float = 0.0) -> dict:
    return {
        f"k{i}": {
            "gyro": {"accelX": 0, "accelY": 0, "accelZ": 0, "gyroX": 0, "gyroY": 0, "gyroZ": gz, "timestamp": i},
            "lastUpdated": i,
        }
        for i in range(n)
    }


def test_replay_reports_notifications(tmp_path):
    rec = tmp_path / "rec.ndjson"
    lines = [_frame(1), _frame(2, gz=1800), {"error": "disconnected"}, _frame(3, gz=1800)]
    rec.write_text("\n".join(json.dumps(line) for line in lines) + "\n", encoding="utf-8")

    result = replay(read_recording(rec), MonitorConfig(), step_ms=500)
    assert result["num_frames"] == 4
    assert result["history_lengths"]["motion"] == 3
    assert result["error"] is None
    assert [n["created_ms"] for n in result["notifications"]] == [1000, 2000]


def test_summary_line_for_live_state():
    feed = InMemoryFeed()
    with MonitorSession(feed) as sess:
        feed.publish("elderlyDevice1/history", {"a": {"knock": {"count": 1, "detected": True, "timestamp": 0}}})
        line = summary_line(sess.state())
    assert "knock DETECTED x1" in line
    assert "No Sensor Data Available" in line
