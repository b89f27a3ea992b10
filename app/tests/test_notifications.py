"""
Tests for table-changed notifications
"""
from app.services import notification_service
from app.services.notification_service import publish, subscribe, unsubscribe


def test_publish_reaches_subscribers():
    received = []
    subscribe(received.append)
    publish("sessions", 7, "created", actor_id=3)
    assert received == [{"entity_type": "sessions", "entity_id": 7, "action": "created", "actor_id": 3}]


def test_publish_without_subscribers_is_noop():
    assert notification_service._subscribers == []
    publish("markets", 1, "updated")


def test_failing_subscriber_does_not_stop_others(caplog):
    received = []

    def broken(message):
        raise RuntimeError("socket closed")

    subscribe(broken)
    subscribe(received.append)
    publish("media", 2, "created")

    assert len(received) == 1
    assert "Notification subscriber failed" in caplog.text


def test_unsubscribe():
    received = []
    subscribe(received.append)
    unsubscribe(received.append)
    publish("stall_confirmations", 1, "deleted")
    assert received == []
    # Unknown callbacks are ignored
    unsubscribe(received.append)
