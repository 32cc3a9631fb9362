"""
Pod event dispatcher

Pod events for a cluster arrive through a single ingress point and are
forwarded to whoever is currently waiting on that particular pod. Waiters
register a queue per pod name; events for pods nobody waits on are dropped.
"""

import queue
import logging
import threading
from typing import Dict, Optional

from pgcluster.spec import PodEvent, PodName

logger = logging.getLogger("postgres-operator.dispatcher")

# How often blocked loops look at the stop flag
POLL_INTERVAL = 0.5


class _Handoff:
    __slots__ = ("event", "taken")

    def __init__(self, event: PodEvent):
        self.event = event
        self.taken = threading.Event()


class PodEventDispatcher:
    """Forwards pod events from one ingress queue to per-pod subscriber queues"""

    def __init__(self, name: str = ""):
        self.name = name
        self._ingress: "queue.Queue[_Handoff]" = queue.Queue()
        self._subscribers: Dict[PodName, "queue.Queue[PodEvent]"] = {}
        self._lock = threading.Lock()
        self._stopped = threading.Event()

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def subscribe(self, pod_name: PodName) -> "queue.Queue[PodEvent]":
        """
        Register a fresh notification queue for a pod

        A previous registration for the same pod is silently replaced.
        """
        channel = queue.Queue()
        with self._lock:
            self._subscribers[pod_name] = channel
        return channel

    def unsubscribe(self, pod_name: PodName):
        with self._lock:
            if self._subscribers.pop(pod_name, None) is None:
                logger.debug(f"No subscriber for pod {pod_name}")

    def dispatch(self, event: PodEvent) -> bool:
        """
        Forward an event to the subscriber of its pod, if any

        Returns:
            True if the event was delivered
        """
        with self._lock:
            subscriber = self._subscribers.get(event.pod_name)
        if subscriber is None:
            return False
        subscriber.put(event)
        return True

    def send(self, event: PodEvent) -> bool:
        """
        Hand an event over to the dispatcher loop

        Blocks until the loop has taken the event. Once the dispatcher has
        stopped, events are dropped.

        Returns:
            True if the dispatcher took the event
        """
        if self.stopped:
            logger.debug(f"Dispatcher {self.name} is stopped, dropping event for pod {event.pod_name}")
            return False

        handoff = _Handoff(event)
        self._ingress.put(handoff)
        while not handoff.taken.wait(POLL_INTERVAL):
            if self.stopped:
                return False
        return True

    def _drain(self) -> int:
        dropped = 0
        while True:
            try:
                self._ingress.get_nowait()
            except queue.Empty:
                return dropped
            dropped += 1

    def run(self, stop_event: threading.Event, poll_interval: Optional[float] = None):
        """
        Dispatch events until stop_event is set

        Subscribers are not notified when the loop stops. Events still
        waiting in the ingress queue at that point are dropped, so a
        restarted loop only sees events sent after it started.
        """
        poll_interval = POLL_INTERVAL if poll_interval is None else poll_interval
        if self._stopped.is_set():
            self._drain()
            self._stopped.clear()
        logger.debug(f"Pod event dispatcher {self.name} started")
        while not stop_event.is_set():
            try:
                handoff = self._ingress.get(timeout=poll_interval)
            except queue.Empty:
                continue
            handoff.taken.set()
            self.dispatch(handoff.event)

        self._stopped.set()
        dropped = self._drain()
        logger.debug(f"Pod event dispatcher {self.name} stopped, {dropped} pending events dropped")
