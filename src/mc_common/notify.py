"""Member notifications: fire-and-forget, never part of a unit of work.

Delivery channels live outside this service; here a notification is a log
record on the ``mc.notify`` logger that a shipper can forward.
"""

import logging

notify_logger = logging.getLogger("mc.notify")


def notify(member_id: str, title: str, body: str) -> None:
    """Emit a notification. Call only after the unit of work committed."""
    notify_logger.info("member=%s title=%r body=%r", member_id, title, body)
