"""Notification bridge tests."""

import asyncio

import pytest

from debtflow.notifications import NotificationAction, NotificationBridge


def test_severity_helpers_record_notifications():
    bridge = NotificationBridge()

    ids = [
        bridge.success("Saved"),
        bridge.error("Upload Failed", "boom"),
        bridge.warning("Careful"),
        bridge.info("FYI", duration=0),
    ]

    assert len(set(ids)) == 4
    assert [n.type for n in bridge.notifications] == ["success", "error", "warning", "info"]
    assert bridge.notifications[1].message == "boom"
    assert bridge.notifications[0].duration == 5000
    assert bridge.notifications[3].duration == 0


def test_listeners_receive_notifications_until_unsubscribed():
    bridge = NotificationBridge()
    received = []
    unsubscribe = bridge.subscribe(received.append)

    bridge.info("first")
    unsubscribe()
    bridge.info("second")

    assert [n.title for n in received] == ["first"]


def test_action_callback_is_kept():
    clicked = []
    bridge = NotificationBridge()
    bridge.error("Upload Failed", action=NotificationAction(label="Retry", on_click=lambda: clicked.append(1)))

    action = bridge.notifications[0].action
    assert action.label == "Retry"
    action.on_click()
    assert clicked == [1]


def test_dismiss_and_clear():
    bridge = NotificationBridge()
    first = bridge.info("one")
    bridge.info("two")

    bridge.dismiss(first)
    assert [n.title for n in bridge.notifications] == ["two"]

    bridge.clear()
    assert bridge.notifications == []


@pytest.mark.asyncio
async def test_timed_notifications_expire_and_persistent_ones_stay():
    bridge = NotificationBridge(default_duration=20)

    bridge.success("short")
    bridge.warning("sticky", duration=0)
    assert len(bridge.notifications) == 2

    await asyncio.sleep(0.1)

    assert [n.title for n in bridge.notifications] == ["sticky"]
