from contextlib import asynccontextmanager
from typing import List
import asyncio
import json
import logging

from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse

from ..config import MonitorConfig, Paths, load_monitor_config
from ..feed.transport import FirebaseRestFeed
from ..health.notifications import Notification, build_notifiers
from ..session import MonitorSession
from ..utils.auth import require_token, validate_token_or_key
from ..views.panels import dashboard, heartbeat_panel, motion_panel, status_panel

logger = logging.getLogger(__name__)


def _default_session(cfg: MonitorConfig) -> MonitorSession:
    paths = Paths()
    feed = FirebaseRestFeed(
        cfg.feed.database_url,
        auth=cfg.feed.auth_token,
        pace_seconds=cfg.feed.poll_seconds,
        timeout=cfg.feed.timeout,
    )
    notifiers = build_notifiers(list(cfg.notifications.targets), paths.interim_dir / "notifications.log")
    return MonitorSession(feed, cfg, notifiers=notifiers)


async def _poll_loop(feed: FirebaseRestFeed) -> None:
    while True:
        # network on a worker thread, callbacks back on the event loop
        deliveries = await asyncio.to_thread(feed.poll_once)
        feed.deliver(deliveries)
        await asyncio.sleep(feed.pace_seconds)


class NotificationHub:
    """Fans fired notifications out to SSE clients, one bounded queue each.

    A client that stops reading loses its oldest pending notifications
    rather than growing its queue.
    """

    def __init__(self, maxsize: int = 100):
        self.maxsize = maxsize
        self.queues: List[asyncio.Queue] = []

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.maxsize)
        self.queues.append(queue)
        return queue

    def publish(self, n: Notification) -> None:
        for q in list(self.queues):
            if q.full():
                q.get_nowait()
                logger.warning("SSE client is behind, dropped oldest notification")
            q.put_nowait(n)

    async def stream(self, queue: asyncio.Queue):
        try:
            while True:
                n: Notification = await queue.get()
                yield f"data: {json.dumps(n.to_dict())}\n\n"
        finally:
            if queue in self.queues:
                self.queues.remove(queue)


def create_app(
    session: MonitorSession | None = None,
    cfg: MonitorConfig | None = None,
    poller: bool = True,
    stream_queue_size: int = 100,
) -> FastAPI:
    """Build the dashboard API around one monitor session.

    Without an explicit session the live Firebase feed from config is used
    and polled in the background for the lifetime of the app.
    """
    cfg = cfg or (session.cfg if session is not None else load_monitor_config())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        sess = app.state.session if app.state.session is not None else _default_session(cfg)
        app.state.session = sess

        sess.on_notification(app.state.hub.publish)
        sess.start()
        task = None
        if poller and isinstance(sess.adapter.feed, FirebaseRestFeed):
            task = asyncio.create_task(_poll_loop(sess.adapter.feed))
        try:
            yield
        finally:
            if task is not None:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
            sess.close()

    app = FastAPI(title="Care Monitor API", lifespan=lifespan)
    app.state.session = session
    app.state.hub = NotificationHub(maxsize=stream_queue_size)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _state():
        return app.state.session.state()

    @app.get("/dashboard")
    async def get_dashboard(expanded: bool = False, _: None = Depends(require_token)):
        """Screen selection plus all panels for the current state."""
        return dashboard(_state(), cfg, expanded=expanded)

    @app.get("/panels/{name}")
    async def get_panel(name: str, expanded: bool = False, _: None = Depends(require_token)):
        state = _state()
        if name == "heartbeat":
            return heartbeat_panel(state, cfg)
        if name == "motion":
            return motion_panel(state, cfg, expanded=expanded)
        if name == "status":
            return status_panel(state, cfg)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"unknown panel {name}")

    @app.get("/alerts")
    async def list_alerts(severity: str | None = None, _: None = Depends(require_token)):
        """Alerts as stored in the database, optionally filtered by severity."""
        alerts = [a.model_dump() for a in _state().alerts]
        if severity:
            alerts = [a for a in alerts if a["severity"] == severity]
        return alerts

    @app.get("/notifications")
    async def list_notifications(_: None = Depends(require_token)):
        """Transient notifications that are still on screen."""
        return [n.to_dict() for n in _state().notifications]

    @app.get("/events/stream")
    async def stream_events(token: str | None = None, api_key: str | None = None):
        validate_token_or_key(token, api_key)
        hub: NotificationHub = app.state.hub
        return StreamingResponse(hub.stream(hub.subscribe()), media_type="text/event-stream")

    return app
