import requests

from care_monitor.feed.transport import BackoffPolicy, FirebaseRestFeed, InMemoryFeed


class _FakeResponse:
    def __init__(self, status_code: int = 200, payload=None):
        self.status_code = status_code
        self._payload = payload

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class _FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []
        self.closed = False

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params))
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def close(self):
        self.closed = True


def _feed(responses, max_retries: int = 2, sleeps=None, **kwargs) -> FirebaseRestFeed:
    return FirebaseRestFeed(
        "https://example-rtdb.firebaseio.com/",
        session=_FakeSession(responses),
        backoff=BackoffPolicy(base=0.5, max_retries=max_retries),
        sleep=(sleeps.append if sleeps is not None else lambda _: None),
        **kwargs,
    )


def test_poll_emits_only_changes():
    payload = {"k1": {"lastUpdated": 1}}
    feed = _feed([_FakeResponse(200, payload), _FakeResponse(200, payload), _FakeResponse(200, {"k1": {}, "k2": {}})])
    got = []
    feed.subscribe("elderlyDevice1/history", got.append)

    assert feed.deliver(feed.poll_once()) == 1
    assert feed.deliver(feed.poll_once()) == 0
    assert feed.deliver(feed.poll_once()) == 1
    assert got == [payload, {"k1": {}, "k2": {}}]
    assert feed.metrics.unchanged == 1
    assert feed.session.calls[0][0] == "https://example-rtdb.firebaseio.com/elderlyDevice1/history.json"


def test_first_null_value_is_delivered():
    feed = _feed([_FakeResponse(200, None)])
    got = []
    feed.subscribe("alerts", got.append)
    feed.deliver(feed.poll_once())
    assert got == [None]


def test_auth_is_sent_as_query_param():
    feed = _feed([_FakeResponse(200, {})], auth="secret")
    feed.subscribe("alerts", lambda _: None)
    feed.poll_once()
    assert feed.session.calls[0][1] == {"auth": "secret"}


def test_retries_then_reports_error():
    sleeps = []
    feed = _feed([requests.ConnectionError("down"), _FakeResponse(503), _FakeResponse(502)], sleeps=sleeps)
    errors = []
    feed.subscribe("alerts", lambda _: None, errors.append)
    feed.deliver(feed.poll_once())
    assert len(errors) == 1
    assert "502" in errors[0]
    assert feed.metrics.failures == 1
    # one request plus two retries, no sleep after the last one
    assert len(feed.session.calls) == 3
    assert sleeps == [0.5, 1.0]


def test_zero_retries_still_makes_one_request():
    sleeps = []
    feed = _feed([_FakeResponse(503)], max_retries=0, sleeps=sleeps)
    errors = []
    feed.subscribe("alerts", lambda _: None, errors.append)
    feed.deliver(feed.poll_once())
    assert errors == ["HTTP 503 from alerts"]
    assert len(feed.session.calls) == 1
    assert sleeps == []


def test_zero_retries_success():
    feed = _feed([_FakeResponse(200, {"k": 1})], max_retries=0)
    got = []
    feed.subscribe("alerts", got.append)
    feed.deliver(feed.poll_once())
    assert got == [{"k": 1}]


def test_client_error_is_not_retried():
    feed = _feed([_FakeResponse(401, {"error": "Permission denied"})])
    errors = []
    feed.subscribe("alerts", lambda _: None, errors.append)
    feed.deliver(feed.poll_once())
    assert errors == ["HTTP 401 from alerts: Permission denied"]
    assert len(feed.session.calls) == 1


def test_recovers_after_transient_error():
    feed = _feed([_FakeResponse(500), _FakeResponse(200, {"k": 1})])
    got = []
    feed.subscribe("alerts", got.append)
    feed.deliver(feed.poll_once())
    assert got == [{"k": 1}]


def test_step_is_paced():
    feed = _feed([_FakeResponse(200, {"k": 1})], pace_seconds=5.0)
    feed.subscribe("alerts", lambda _: None)
    assert feed.step(now_ts=100.0) == 1
    assert feed.step(now_ts=102.0) == 0
    assert len(feed.session.calls) == 1


def test_unsubscribed_path_is_not_polled_and_close_releases_session():
    feed = _feed([])
    sub = feed.subscribe("alerts", lambda _: None)
    feed.unsubscribe(sub)
    feed.unsubscribe(sub)
    assert feed.poll_once() == []
    feed.close()
    assert feed.session.closed


def test_in_memory_feed_fail_without_handler_does_not_raise():
    feed = InMemoryFeed()
    feed.subscribe("alerts", lambda _: None)
    feed.fail("alerts", "boom")


def test_step_accepts_zero_timestamp():
    feed = _feed([_FakeResponse(200, {"k": 1})], pace_seconds=5.0)
    feed.subscribe("alerts", lambda _: None)
    assert feed.step(now_ts=10.0) == 1
    # an explicit 0.0 is a real clock reading, not "use the wall clock"
    assert feed.step(now_ts=0.0) == 0
    assert len(feed.session.calls) == 1
