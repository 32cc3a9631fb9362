"""Tests for the pod event dispatcher"""

import threading
import time

from pgcluster.dispatcher import PodEventDispatcher, _Handoff
from pgcluster.spec import ClusterName, PodEvent, PodEventType, PodName

CLUSTER = ClusterName(namespace="default", name="acid-test")
POD = PodName(namespace="default", name="acid-test-0")


def _event(pod_name=POD, event_type=PodEventType.UPDATE):
    return PodEvent(cluster_name=CLUSTER, pod_name=pod_name, event_type=event_type)


def _start(dispatcher):
    stop = threading.Event()
    thread = threading.Thread(target=dispatcher.run, args=(stop, 0.05), daemon=True)
    thread.start()
    return stop, thread


def test_dispatch_to_unregistered_pod_is_noop():
    dispatcher = PodEventDispatcher()
    other = dispatcher.subscribe(PodName(namespace="default", name="acid-test-1"))

    assert dispatcher.dispatch(_event()) is False, "Nobody waits on the pod"
    assert other.empty(), "Other subscribers should not receive the event"


def test_subscribe_twice_keeps_latest():
    print("🧪 Testing subscriptions...")

    dispatcher = PodEventDispatcher()
    first = dispatcher.subscribe(POD)
    second = dispatcher.subscribe(POD)

    assert dispatcher.dispatch(_event())
    assert first.empty(), "Replaced subscription should not receive events"
    assert second.get_nowait().pod_name == POD

    dispatcher.unsubscribe(POD)
    assert dispatcher.dispatch(_event()) is False, "Unsubscribed pod should not receive events"
    assert second.empty()

    print("✅ Subscription tests passed!")


def test_unsubscribe_unknown_pod():
    dispatcher = PodEventDispatcher()
    dispatcher.unsubscribe(POD)


def test_send_through_running_dispatcher():
    dispatcher = PodEventDispatcher("default/acid-test")
    channel = dispatcher.subscribe(POD)
    stop, thread = _start(dispatcher)

    try:
        event = _event(event_type=PodEventType.DELETE)
        assert dispatcher.send(event), "Running dispatcher should take the event"
        assert channel.get(timeout=1) is event

        assert dispatcher.send(_event(PodName(namespace="default", name="acid-test-9"))), \
            "Events for unknown pods are taken and dropped"
    finally:
        stop.set()
        thread.join(timeout=2)

    assert dispatcher.stopped
    assert channel.empty()


def test_send_after_stop_is_dropped():
    dispatcher = PodEventDispatcher()
    channel = dispatcher.subscribe(POD)
    stop, thread = _start(dispatcher)
    stop.set()
    thread.join(timeout=2)

    assert dispatcher.send(_event()) is False, "Stopped dispatcher should not take events"
    assert channel.empty()


def test_restart_drops_stale_events():
    print("🧪 Testing dispatcher restart...")

    dispatcher = PodEventDispatcher()
    channel = dispatcher.subscribe(POD)
    stop, thread = _start(dispatcher)
    stop.set()
    thread.join(timeout=2)

    stale = _event(event_type=PodEventType.DELETE)
    dispatcher._ingress.put(_Handoff(stale))

    stop, thread = _start(dispatcher)
    try:
        deadline = time.monotonic() + 2
        while dispatcher.stopped and time.monotonic() < deadline:
            time.sleep(0.01)
        assert not dispatcher.stopped, "Restarted dispatcher should accept events again"
        fresh = _event()
        assert dispatcher.send(fresh)
        assert channel.get(timeout=1) is fresh, "Stale event should not be delivered"
    finally:
        stop.set()
        thread.join(timeout=2)

    assert channel.empty()
    assert dispatcher._ingress.empty(), "Pending events should be dropped on stop"

    print("✅ Dispatcher restart tests passed!")
