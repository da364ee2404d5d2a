# module with a centralized stop event object.

import threading

stop_event = threading.Event()


def stop_all():
    stop_event.set()


def is_cancelled(cancel: threading.Event | None = None) -> bool:
    """Returns True if the shared stop event or the given event is set."""
    return stop_event.is_set() or (cancel is not None and cancel.is_set())
