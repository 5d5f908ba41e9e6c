"""
Outbox worker: delivers queued notifications outside the request path.

Run with ``python -m app.workers.notification_worker`` (loops forever) or
``python -m app.workers.notification_worker --once``.
"""

import logging
import sys
import time

from app.core.config import settings
from app.core.logging import configure_logging
from app.db.session import SessionLocal
from app.services.notification_service import NotificationDispatcher

logger = logging.getLogger(__name__)


def run_once(dispatcher: NotificationDispatcher = None) -> dict:
    dispatcher = dispatcher or NotificationDispatcher()
    db = SessionLocal()
    try:
        return dispatcher.dispatch_pending(db)
    finally:
        db.close()


def run_forever(poll_seconds: int = None) -> None:
    poll_seconds = poll_seconds or settings.OUTBOX_POLL_SECONDS
    dispatcher = NotificationDispatcher()
    logger.info(f"Notification worker started, polling every {poll_seconds}s")
    while True:
        summary = run_once(dispatcher)
        # drain a full batch straight away
        if summary["processed"] < settings.OUTBOX_BATCH_SIZE:
            time.sleep(poll_seconds)


if __name__ == "__main__":
    configure_logging()
    if "--once" in sys.argv:
        print(run_once())
    else:
        run_forever()
