"""In-process analytics state per form.

Writers for the same form are serialized by a per-form lock so that a
bucket increment and its rating-total update are applied as one step.
States are immutable and replaced wholesale, so readers take a snapshot
without locking and see at worst the state before one in-flight response.
"""

import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Iterable, Iterator, Mapping, Optional, Union

from formbuilder.schemas.form import Form
from formbuilder.services.analytics import AcceptedResponse, AnalyticsAggregator, AnalyticsState
from formbuilder.logging_config import get_logger

logger = get_logger(__name__)

Replay = Callable[[], Iterable[Union[AcceptedResponse, Mapping[str, Any]]]]


class AnalyticsStore:
    """Holds the latest AnalyticsState for each form."""

    def __init__(self):
        self._states: dict[str, AnalyticsState] = {}
        self._locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def _lock(self, form_id: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(form_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[form_id] = lock
            return lock

    @contextmanager
    def locked(self, form_id: str) -> Iterator[None]:
        """Hold the writer lock for a form.

        The submission path stores the response and applies it to the
        analytics while holding this lock.
        """
        lock = self._lock(form_id)
        with lock:
            yield

    def snapshot(self, form_id: str) -> Optional[AnalyticsState]:
        """Latest committed state, or None if the form was never loaded."""
        return self._states.get(form_id)

    def ensure_loaded(self, form: Form, replay: Replay) -> AnalyticsState:
        """Return the form's state, rebuilding it from storage if absent.

        Args:
            form: Published form
            replay: Callable returning every accepted response in order

        Returns:
            Current state
        """
        with self.locked(form.id):
            state = self._states.get(form.id)
            if state is None:
                state = AnalyticsAggregator.recompute_from_scratch(form, replay())
                self._states[form.id] = state
                logger.info(
                    f"Loaded analytics for form {form.id} ({state.count} responses)",
                    extra={"form_id": form.id},
                )
            return state

    def apply(
        self,
        form: Form,
        answers: Mapping[str, Any],
        received_at: Optional[datetime] = None,
    ) -> AnalyticsState:
        """Fold one accepted response into the form's state.

        Args:
            form: Published form
            answers: Accepted answer map
            received_at: When the response was accepted

        Returns:
            New state
        """
        with self.locked(form.id):
            state = AnalyticsAggregator.apply(
                form, self._states.get(form.id), answers, received_at
            )
            self._states[form.id] = state
            return state

    def discard(self, form_id: str) -> None:
        """Forget a form's state and its lock; the next use recreates both.

        Called once the form is deleted, when no writer can pass the
        storage lookup any more.
        """
        lock = self._lock(form_id)
        with lock:
            self._states.pop(form_id, None)
            with self._locks_guard:
                if self._locks.get(form_id) is lock:
                    del self._locks[form_id]

    def clear(self) -> None:
        """Forget every state and lock."""
        with self._locks_guard:
            self._states.clear()
            self._locks.clear()


# Global singleton instance
_store_instance: Optional[AnalyticsStore] = None


def get_analytics_store() -> AnalyticsStore:
    """Get global AnalyticsStore instance.

    Returns:
        Global AnalyticsStore instance
    """
    global _store_instance
    if _store_instance is None:
        _store_instance = AnalyticsStore()
    return _store_instance
