"""Post-commit, best-effort execution of side effects.

Work registered through `after_commit` runs only once the surrounding
transaction commits, and never raises into the caller: failures are logged
and dropped. With `NOTIFICATIONS_ASYNC` on, the work runs on a small thread
pool so it adds no latency to the HTTP response.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor

from django.conf import settings
from django.db import close_old_connections, transaction

logger = logging.getLogger("aquashop.notifications")

_executor = None
_executor_lock = threading.Lock()


def _get_executor() -> ThreadPoolExecutor:
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(
                max_workers=getattr(settings, "NOTIFICATIONS_MAX_WORKERS", 2),
                thread_name_prefix="notifications",
            )
    return _executor


def _run(func, args, event: str, context: dict, in_worker: bool) -> None:
    try:
        func(*args)
    except Exception:
        logger.exception(f"{event}.failed", extra={"event": f"{event}.failed", **context})
    finally:
        if in_worker:
            close_old_connections()


def after_commit(func, *args, event: str, **context) -> None:
    """Schedule `func(*args)` to run after the current transaction commits."""

    def _submit():
        if getattr(settings, "NOTIFICATIONS_ASYNC", True):
            _get_executor().submit(_run, func, args, event, context, True)
        else:
            _run(func, args, event, context, False)

    transaction.on_commit(_submit)
