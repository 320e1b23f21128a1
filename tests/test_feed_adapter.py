from care_monitor.feed.adapter import LiveSubscriptionAdapter
from care_monitor.feed.transport import InMemoryFeed

DEVICE = "elderlyDevice1/history"


def _hb(raw: float, ts: int) -> dict:
    return {"heartbeat": {"filtered": raw, "timestamp": ts}, "lastUpdated": ts}


def test_last_key_wins():
    feed = InMemoryFeed()
    adapter = LiveSubscriptionAdapter(feed)
    adapter.activate()
    feed.publish(DEVICE, {"k1": _hb(2500, 1), "k2": _hb(3000, 2)})
    assert adapter.snapshot.heartbeat.raw_value == 3000
    assert adapter.snapshot.heartbeat.timestamp == 2
    assert adapter.loading is False
    assert adapter.error is None


def test_empty_payload_is_no_data_not_error():
    feed = InMemoryFeed()
    adapter = LiveSubscriptionAdapter(feed)
    adapter.activate()
    assert adapter.loading is True
    feed.publish(DEVICE, {})
    assert adapter.snapshot is None
    assert adapter.loading is False
    assert adapter.error is None
    feed.publish(DEVICE, None)
    assert adapter.snapshot is None


def test_error_keeps_last_known_good():
    feed = InMemoryFeed()
    adapter = LiveSubscriptionAdapter(feed)
    adapter.activate()
    feed.publish(DEVICE, {"k1": _hb(3000, 1)})
    feed.fail(DEVICE, "permission_denied")
    assert adapter.error == "permission_denied"
    assert adapter.snapshot.heartbeat.raw_value == 3000
    assert adapter.received_data

    feed.publish(DEVICE, {"k1": _hb(3000, 1), "k2": _hb(3100, 2)})
    assert adapter.error is None
    assert adapter.snapshot.heartbeat.raw_value == 3100


def test_error_before_any_data_clears_loading():
    feed = InMemoryFeed()
    adapter = LiveSubscriptionAdapter(feed)
    adapter.activate()
    feed.fail(DEVICE, "network down")
    assert adapter.loading is False
    assert adapter.error == "network down"
    assert not adapter.received_data


def test_alerts_feed_decodes_and_errors_separately():
    feed = InMemoryFeed()
    adapter = LiveSubscriptionAdapter(feed)
    seen = []
    adapter.on_alerts(seen.append)
    adapter.activate()
    feed.publish(
        "alerts",
        {"a1": {"type": "knock", "message": "Knock", "severity": "medium", "timestamp": "t", "acknowledged": True}},
    )
    assert [a.id for a in adapter.alerts] == ["a1"]
    assert adapter.alerts[0].acknowledged is True
    feed.fail("alerts", "boom")
    assert adapter.alerts_error == "boom"
    assert adapter.error is None
    feed.publish("alerts", None)
    assert adapter.alerts == []
    assert len(seen) == 2


def test_single_subscription_per_path_and_idempotent_teardown():
    feed = InMemoryFeed()
    adapter = LiveSubscriptionAdapter(feed)
    adapter.activate()
    adapter.activate()
    assert len(feed.subscriptions(DEVICE)) == 1
    assert len(feed.subscriptions("alerts")) == 1

    adapter.deactivate()
    adapter.deactivate()
    assert feed.subscriptions() == []
    assert not adapter.active

    feed.publish(DEVICE, {"k1": _hb(3000, 1)})
    assert adapter.snapshot is None


def test_subscribe_receives_current_value():
    feed = InMemoryFeed()
    feed.publish(DEVICE, {"k1": _hb(2800, 5)})
    adapter = LiveSubscriptionAdapter(feed)
    snapshots = []
    adapter.on_snapshot(snapshots.append)
    adapter.activate()
    assert len(snapshots) == 1
    assert snapshots[0].heartbeat.timestamp == 5
