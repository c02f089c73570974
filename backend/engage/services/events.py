"""Outbound domain events for the notification service.

Services call ``emit()`` only after their transaction has committed, so a
subscriber never sees an event for work that was rolled back. Delivery
(push, email, in-app) is somebody else's job: the default subscriber just
logs the event.
"""
from __future__ import annotations

from typing import Any, Callable

import structlog

log = structlog.get_logger(__name__)

SUBMISSION_CREATED = "submission.created"
SUBMISSION_REVIEWED = "submission.reviewed"
CHALLENGE_COMPLETED = "challenge.completed"

Handler = Callable[[str, dict[str, Any]], None]

_subscribers: list[Handler] = []


def subscribe(handler: Handler) -> Handler:
    _subscribers.append(handler)
    return handler


def unsubscribe(handler: Handler) -> None:
    if handler in _subscribers:
        _subscribers.remove(handler)


def emit(topic: str, payload: dict[str, Any]) -> None:
    for handler in list(_subscribers):
        try:
            handler(topic, payload)
        except Exception:
            # The write already committed; a broken subscriber must not turn it into an error
            log.exception("event_handler_failed", topic=topic, handler=getattr(handler, "__name__", repr(handler)))


@subscribe
def log_event(topic: str, payload: dict[str, Any]) -> None:
    log.info("domain_event", topic=topic, payload={k: str(v) for k, v in payload.items()})
