import pytest

from modules.realtime.feed import DELETE, INSERT, UPDATE, ChangeEvent, ChangeFeed, change_feed
from modules.user.models import User


@pytest.fixture()
def captured():
    events = []
    sub = change_feed.subscribe("users", events.append)
    yield events
    change_feed.unsubscribe(sub)


def test_events_are_published_after_commit(db, captured):
    user = User(display_name="Ana", role="mesero")
    db.add(user)
    db.flush()
    assert captured == []

    db.commit()
    assert [e.event_type for e in captured] == [INSERT]
    assert captured[0].new["display_name"] == "Ana"


def test_update_carries_old_values(db, captured):
    user = User(display_name="Ana", role="mesero")
    db.add(user)
    db.commit()

    assert user.is_active is True
    user.is_active = False
    db.commit()

    update = captured[-1]
    assert update.event_type == UPDATE
    assert update.old["is_active"] is True
    assert update.new["is_active"] is False
    assert update.row["id"] == user.id


def test_rollback_discards_pending_events(db, captured):
    db.add(User(display_name="Ana", role="mesero"))
    db.flush()
    db.rollback()
    assert captured == []


def test_delete_event_has_old_row(db, captured):
    user = User(display_name="Ana", role="mesero")
    db.add(user)
    db.commit()
    user_id = user.id

    db.delete(user)
    db.commit()

    assert captured[-1].event_type == DELETE
    assert captured[-1].row["id"] == user_id


def test_failing_subscriber_does_not_block_others():
    feed = ChangeFeed()
    received = []

    def broken(change):
        raise RuntimeError("boom")

    feed.subscribe("orders", broken)
    feed.subscribe("orders", received.append)
    feed.publish([ChangeEvent("orders", INSERT, new={"id": 1})])

    assert len(received) == 1


def test_event_and_row_filters():
    feed = ChangeFeed()
    received = []
    sub = feed.subscribe("users", received.append, event=UPDATE, row_filter=lambda row: row["id"] == 7)

    feed.publish([
        ChangeEvent("users", INSERT, new={"id": 7}),
        ChangeEvent("users", UPDATE, new={"id": 8}),
        ChangeEvent("users", UPDATE, new={"id": 7, "is_active": False}),
        ChangeEvent("orders", UPDATE, new={"id": 7}),
    ])
    assert [e.new for e in received] == [{"id": 7, "is_active": False}]

    feed.unsubscribe(sub)
    assert feed.subscriber_count("users") == 0
