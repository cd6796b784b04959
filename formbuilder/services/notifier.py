"""Live update notifier for analytics dashboards.

After a response is accepted and aggregated, subscribers watching that form
receive an "analytics changed" signal with no data; they re-fetch the
analytics themselves. Signals are best effort: there is no retry, ordering
or delivery guarantee.
"""

import asyncio
import threading
from typing import Optional

from formbuilder.logging_config import get_logger

logger = get_logger(__name__)

SIGNAL_TYPE = "analytics_changed"


def _offer(queue: asyncio.Queue, signal: dict) -> None:
    try:
        queue.put_nowait(signal)
    except asyncio.QueueFull:
        # A pending signal already tells the subscriber to re-fetch
        pass


class AnalyticsNotifier:
    """In-process publish/subscribe channel keyed by form id.

    Subscribers are asyncio queues owned by the event loop that created
    them. ``publish`` may be called from any thread (sync routes run in a
    worker pool), so signals are handed to the owning loop.
    """

    def __init__(self, queue_size: int = 16):
        """Initialize notifier.

        Args:
            queue_size: Pending signals kept per subscriber
        """
        self.queue_size = queue_size
        self._subscribers: dict[str, dict[asyncio.Queue, asyncio.AbstractEventLoop]] = {}
        self._guard = threading.Lock()

    def subscribe(self, form_id: str) -> asyncio.Queue:
        """Register a subscriber for a form.

        Must be called from a coroutine running on the subscriber's loop.

        Returns:
            Queue receiving one dict per signal
        """
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        with self._guard:
            self._subscribers.setdefault(form_id, {})[queue] = loop
            total = len(self._subscribers[form_id])
        logger.debug(f"Subscriber added for form {form_id} (total={total})", extra={"form_id": form_id})
        return queue

    def unsubscribe(self, form_id: str, queue: asyncio.Queue) -> None:
        """Remove a subscriber."""
        with self._guard:
            subscribers = self._subscribers.get(form_id)
            if subscribers is not None:
                subscribers.pop(queue, None)
                if not subscribers:
                    del self._subscribers[form_id]

    def subscriber_count(self, form_id: str) -> int:
        with self._guard:
            return len(self._subscribers.get(form_id, ()))

    def publish(self, form_id: str) -> int:
        """Signal every subscriber of a form that analytics changed.

        A subscriber whose queue is full already has a pending signal, so
        the new one is dropped for it. Subscribers whose loop has closed
        are removed.

        Returns:
            Number of subscribers the signal was handed to
        """
        with self._guard:
            subscribers = list(self._subscribers.get(form_id, {}).items())

        signal = {"type": SIGNAL_TYPE, "formId": form_id}
        delivered = 0
        for queue, loop in subscribers:
            try:
                loop.call_soon_threadsafe(_offer, queue, signal)
            except RuntimeError:
                # The subscriber's loop closed
                logger.debug(
                    f"Dropping subscriber with a closed loop for form {form_id}",
                    extra={"form_id": form_id},
                )
                self.unsubscribe(form_id, queue)
                continue
            delivered += 1

        if delivered:
            logger.debug(
                f"Signalled {delivered} subscriber(s) for form {form_id}",
                extra={"form_id": form_id},
            )
        return delivered


# Global singleton instance
_notifier_instance: Optional[AnalyticsNotifier] = None


def get_notifier() -> AnalyticsNotifier:
    """Get global AnalyticsNotifier instance.

    Returns:
        Global AnalyticsNotifier instance
    """
    global _notifier_instance
    if _notifier_instance is None:
        _notifier_instance = AnalyticsNotifier()
    return _notifier_instance
