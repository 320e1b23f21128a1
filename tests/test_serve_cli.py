import sys

import pytest

from care_monitor.cli import serve
from care_monitor.config import MonitorConfig


def test_serve_runs_app_with_cli_options(monkeypatch):
    calls = {}
    monkeypatch.setattr(serve, "load_monitor_config", MonitorConfig)
    monkeypatch.setattr(serve, "create_app", lambda cfg: ("app", cfg))
    monkeypatch.setattr(serve.uvicorn, "run", lambda app, **kwargs: calls.update(app=app, **kwargs))
    monkeypatch.setattr(
        sys, "argv", ["care-monitor-serve", "--port", "9001", "--database-url", "https://x.firebaseio.com"]
    )

    serve.main()

    tag, cfg = calls["app"]
    assert tag == "app"
    assert cfg.feed.database_url == "https://x.firebaseio.com"
    assert calls["host"] == "127.0.0.1"
    assert calls["port"] == 9001
    assert calls["log_level"] == "info"


def test_serve_requires_database_url(monkeypatch):
    monkeypatch.delenv("CM_DATABASE_URL", raising=False)
    monkeypatch.setattr(serve, "load_monitor_config", MonitorConfig)
    monkeypatch.setattr(serve.uvicorn, "run", lambda *a, **k: pytest.fail("should not serve"))
    monkeypatch.setattr(sys, "argv", ["care-monitor-serve"])
    with pytest.raises(SystemExit):
        serve.main()
