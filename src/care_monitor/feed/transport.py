"""Feed transports behind a small subscribe/unsubscribe interface.

`InMemoryFeed` is used by tests and the replay CLI. `FirebaseRestFeed` polls
the Firebase Realtime Database REST API and only emits when a path's value
changes, which matches the change-only callbacks of the realtime SDK.
"""

from __future__ import annotations

import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

logger = logging.getLogger(__name__)

DataCallback = Callable[[Any], None]
ErrorCallback = Callable[[str], None]

_MISSING = object()


class FeedError(Exception):
    """Raised by a transport when a path cannot be read."""


@dataclass
class Subscription:
    sub_id: int
    path: str
    on_data: DataCallback
    on_error: Optional[ErrorCallback] = None
    active: bool = True


class Feed:
    def subscribe(
        self, path: str, on_data: DataCallback, on_error: ErrorCallback | None = None
    ) -> Subscription:  # pragma: no cover - interface
        raise NotImplementedError

    def unsubscribe(self, subscription: Subscription) -> None:  # pragma: no cover - interface
        raise NotImplementedError


class _SubscriptionRegistry(Feed):
    def __init__(self):
        self._ids = itertools.count(1)
        self._subs: Dict[int, Subscription] = {}

    def _register(self, path: str, on_data: DataCallback, on_error: ErrorCallback | None) -> Subscription:
        sub = Subscription(sub_id=next(self._ids), path=path.strip("/"), on_data=on_data, on_error=on_error)
        self._subs[sub.sub_id] = sub
        logger.debug("Subscribed #%d to %s", sub.sub_id, sub.path)
        return sub

    def unsubscribe(self, subscription: Subscription) -> None:
        if self._subs.pop(subscription.sub_id, None) is not None:
            logger.debug("Unsubscribed #%d from %s", subscription.sub_id, subscription.path)
        subscription.active = False

    def subscriptions(self, path: str | None = None) -> List[Subscription]:
        subs = list(self._subs.values())
        if path is not None:
            subs = [s for s in subs if s.path == path.strip("/")]
        return subs

    @staticmethod
    def _emit_data(sub: Subscription, payload: Any) -> None:
        if sub.active:
            sub.on_data(payload)

    @staticmethod
    def _emit_error(sub: Subscription, message: str) -> None:
        if not sub.active:
            return
        if sub.on_error is None:
            logger.error("Feed error on %s: %s", sub.path, message)
            return
        sub.on_error(message)


class InMemoryFeed(_SubscriptionRegistry):
    """Synchronous in-process feed.

    Like the realtime store, a new subscriber immediately receives the current
    value of its path if one has been published.
    """

    def __init__(self):
        super().__init__()
        self._values: Dict[str, Any] = {}

    def subscribe(self, path: str, on_data: DataCallback, on_error: ErrorCallback | None = None) -> Subscription:
        sub = self._register(path, on_data, on_error)
        if sub.path in self._values:
            self._emit_data(sub, self._values[sub.path])
        return sub

    def publish(self, path: str, payload: Any) -> None:
        key = path.strip("/")
        self._values[key] = payload
        for sub in self.subscriptions(key):
            self._emit_data(sub, payload)

    def fail(self, path: str, message: str) -> None:
        for sub in self.subscriptions(path):
            self._emit_error(sub, message)


@dataclass
class BackoffPolicy:
    base: float = 0.5
    factor: float = 2.0
    max_backoff: float = 8.0
    max_retries: int = 3

    def delays(self):
        delay = self.base
        for _ in range(self.max_retries):
            yield delay
            delay = min(self.max_backoff, delay * self.factor)


@dataclass
class FeedMetrics:
    polls: int = 0
    deliveries: int = 0
    unchanged: int = 0
    failures: int = 0
    last_latency_ms: float = 0.0


Delivery = Tuple[Subscription, Any, Optional[str]]


@dataclass
class _PathState:
    last_payload: Any = field(default=_MISSING)


class FirebaseRestFeed(_SubscriptionRegistry):
    """Polls `GET {database_url}/{path}.json` for every live subscription.

    Use `step()` in a loop to pace polls. Network calls happen in
    `poll_once()`; callbacks run in `deliver()`, so a caller can fetch on a
    worker thread and still run callbacks on its own thread.
    """

    def __init__(
        self,
        database_url: str,
        auth: str | None = None,
        pace_seconds: float = 1.0,
        timeout: float = 5.0,
        backoff: BackoffPolicy | None = None,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        super().__init__()
        if not database_url:
            raise ValueError("database_url is required")
        self.database_url = database_url.rstrip("/")
        self.auth = auth
        self.pace_seconds = pace_seconds
        self.timeout = timeout
        self.backoff = backoff or BackoffPolicy()
        self.session = session or requests.Session()
        self.metrics = FeedMetrics()
        self._sleep = sleep
        self._state: Dict[int, _PathState] = {}
        self._last_step = 0.0

    def subscribe(self, path: str, on_data: DataCallback, on_error: ErrorCallback | None = None) -> Subscription:
        sub = self._register(path, on_data, on_error)
        self._state[sub.sub_id] = _PathState()
        return sub

    def unsubscribe(self, subscription: Subscription) -> None:
        super().unsubscribe(subscription)
        self._state.pop(subscription.sub_id, None)

    def url_for(self, path: str) -> str:
        return f"{self.database_url}/{path.strip('/')}.json"

    def fetch(self, path: str) -> Any:
        """GET one path, retrying transport errors and 5xx with backoff.

        Makes one request plus up to `backoff.max_retries` retries and does
        not sleep after the final attempt.
        """
        params = {"auth": self.auth} if self.auth else None
        delays = self.backoff.delays()
        while True:
            try:
                resp = self.session.get(self.url_for(path), params=params, timeout=self.timeout)
                if resp.status_code < 500:
                    break
                last_error: Exception = FeedError(f"HTTP {resp.status_code} from {path}")
            except requests.RequestException as e:
                last_error = e
            delay = next(delays, None)
            if delay is None:
                raise FeedError(str(last_error))
            logger.warning("Feed retry for %s in %.1fs after error: %s", path, delay, last_error)
            self._sleep(delay)

        if not resp.ok:
            detail = ""
            try:
                detail = resp.json().get("error", "")
            except (ValueError, AttributeError):
                pass
            raise FeedError(f"HTTP {resp.status_code} from {path}" + (f": {detail}" if detail else ""))
        try:
            return resp.json()
        except ValueError as e:
            raise FeedError(f"Invalid JSON from {path}: {e}") from e

    def poll_once(self) -> List[Delivery]:
        """Fetch every subscribed path once; return only changed values and errors."""
        deliveries: List[Delivery] = []
        fetched: Dict[str, Tuple[Any, Optional[str]]] = {}
        started = time.time()
        for sub in self.subscriptions():
            if sub.path not in fetched:
                self.metrics.polls += 1
                try:
                    fetched[sub.path] = (self.fetch(sub.path), None)
                except FeedError as e:
                    self.metrics.failures += 1
                    fetched[sub.path] = (None, str(e))
            payload, error = fetched[sub.path]
            if error is not None:
                deliveries.append((sub, None, error))
                continue
            state = self._state.setdefault(sub.sub_id, _PathState())
            if state.last_payload is not _MISSING and state.last_payload == payload:
                self.metrics.unchanged += 1
                continue
            state.last_payload = payload
            deliveries.append((sub, payload, None))
        self.metrics.last_latency_ms = (time.time() - started) * 1000.0
        return deliveries

    def deliver(self, deliveries: List[Delivery]) -> int:
        delivered = 0
        for sub, payload, error in deliveries:
            if error is not None:
                self._emit_error(sub, error)
            else:
                self._emit_data(sub, payload)
                delivered += 1
        self.metrics.deliveries += delivered
        return delivered

    def step(self, now_ts: Optional[float] = None) -> int:
        now = time.time() if now_ts is None else now_ts
        if now - self._last_step < self.pace_seconds:
            return 0
        self._last_step = now
        return self.deliver(self.poll_once())

    def close(self) -> None:
        for sub in self.subscriptions():
            self.unsubscribe(sub)
        self.session.close()
