"""
"Table changed" notifications for dashboards.

Fire-and-forget: publish() never raises and never waits on a subscriber. Correctness of
the core does not depend on anyone listening; dashboards re-read from the database.
"""
from typing import Callable, Dict, List, Optional

from app.core.logging import get_logger

logger = get_logger(__name__)

Subscriber = Callable[[Dict], None]

_subscribers: List[Subscriber] = []


def subscribe(callback: Subscriber) -> None:
    _subscribers.append(callback)


def unsubscribe(callback: Subscriber) -> None:
    if callback in _subscribers:
        _subscribers.remove(callback)


def publish(entity_type: str, entity_id: Optional[int], action: str, **meta) -> None:
    """Notify subscribers that a row of `entity_type` changed."""
    message = {"entity_type": entity_type, "entity_id": entity_id, "action": action, **meta}
    logger.debug("publish %s", message)
    for callback in list(_subscribers):
        try:
            callback(message)
        except Exception:
            logger.exception("Notification subscriber failed for %s/%s", entity_type, entity_id)
