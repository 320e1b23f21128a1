import argparse
import logging
import time

from ..config import MonitorConfig, load_monitor_config
from ..feed.transport import FirebaseRestFeed
from ..health.notifications import build_notifiers
from ..session import DashboardState, MonitorSession
from ..views.panels import dashboard


def summary_line(state: DashboardState, cfg: MonitorConfig | None = None) -> str:
    view = dashboard(state, cfg)
    if view["screen"] != "live":
        return f"[{view['screen']}] {view.get('error', '')}".rstrip()
    parts = [f"updated {view['last_updated']}"]
    hb = view["heartbeat"]
    if hb:
        parts.append(f"HR {hb['bpm'] if hb['touched'] else '--'} ({hb['status_text']})")
    mo = view["motion"]
    if mo:
        parts.append(f"motion {mo['status_text']}")
    st = view["status"]
    if st:
        parts.append(f"knock {st['status_text']} x{st['count']}")
    if view["placeholder"]:
        parts.append(view["placeholder"])
    return " | ".join(parts)


def main():
    parser = argparse.ArgumentParser(description="Watch the elderly-care device feed from the terminal.")
    parser.add_argument("--database-url", default=None, help="Realtime database URL (overrides config/env)")
    parser.add_argument("--duration", type=float, default=None, help="Stop after this many seconds")
    parser.add_argument("--log-level", default="WARNING")
    args = parser.parse_args()
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    cfg = load_monitor_config()
    if args.database_url:
        cfg.feed.database_url = args.database_url
    if not cfg.feed.database_url:
        raise SystemExit("database URL required (--database-url or CM_DATABASE_URL)")

    feed = FirebaseRestFeed(
        cfg.feed.database_url,
        auth=cfg.feed.auth_token,
        pace_seconds=cfg.feed.poll_seconds,
        timeout=cfg.feed.timeout,
    )
    notifiers = build_notifiers(list(cfg.notifications.targets))
    session = MonitorSession(feed, cfg, notifiers=notifiers)
    session.on_notification(lambda n: print(f"!! {n.message}"))

    start = time.time()
    with session:
        try:
            while args.duration is None or time.time() - start < args.duration:
                if feed.step():
                    print(summary_line(session.state(), cfg))
                time.sleep(0.1)
        except KeyboardInterrupt:
            pass
        finally:
            feed.close()


if __name__ == "__main__":
    main()
