"""Observer registry for client-wide events.

The request engine reports conditions that matter beyond a single call
(an expired token, the service going down, the active account changing)
by posting a :class:`Notification` on a :class:`NotificationCenter`.
The host application owns the center, hands it to the client at
construction, and subscribes whatever needs to react: a token refresh
flow, a connectivity banner, a logout handler.

Observers run synchronously on the posting thread, in subscription
order. Posting is fire-and-forget: an observer that raises is logged and
skipped so that the remaining observers still run.
"""

from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

Observer = Callable[[Any], None]


class Notification(str, enum.Enum):
    """Kinds of events the client posts."""

    SERVICE_UNAVAILABLE = "client_did_receive_service_unavailable_error"
    """The API answered 503. Payload: ``None``."""

    INVALID_TOKEN = "client_did_receive_invalid_token_error"
    """The API rejected the bearer token. Payload: the token, or ``None``."""

    AUTHENTICATED_ACCOUNT_DID_CHANGE = "authenticated_account_did_change"
    """The access token changed. Payload: ``{"token": ..., "previous_token": ...}``."""


@dataclass(eq=False)
class Subscription:
    """Handle returned by :meth:`NotificationCenter.subscribe`.

    Attributes:
        kind: The notification kind observed.
        observer: The callable invoked with each payload.
    """

    kind: Notification
    observer: Observer
    _center: Optional[NotificationCenter] = field(default=None, repr=False)

    def unsubscribe(self) -> None:
        """Stop receiving notifications. Calling it twice is harmless."""
        if self._center is not None:
            self._center.unsubscribe(self)
            self._center = None


class NotificationCenter:
    """Thread-safe registry of observers keyed by :class:`Notification`.

    Example::

        center = NotificationCenter()
        sub = center.subscribe(Notification.INVALID_TOKEN, refresh_token)
        client = VimeoClient(config, notifications=center)
        ...
        sub.unsubscribe()
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._observers: dict[Notification, list[Subscription]] = {}

    def subscribe(self, kind: Notification, observer: Observer) -> Subscription:
        """Register *observer* for *kind* and return its subscription."""
        subscription = Subscription(kind=kind, observer=observer, _center=self)
        with self._lock:
            self._observers.setdefault(kind, []).append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove *subscription*. Unknown subscriptions are ignored."""
        with self._lock:
            subscriptions = self._observers.get(subscription.kind, [])
            if subscription in subscriptions:
                subscriptions.remove(subscription)

    def post(self, kind: Notification, payload: Any = None) -> None:
        """Deliver *payload* to every observer of *kind*.

        The observer list is snapshotted before delivery, so observers may
        subscribe or unsubscribe from inside a callback.
        """
        with self._lock:
            subscriptions = list(self._observers.get(kind, []))
        logger.debug("Posting %s to %d observer(s)", kind.value, len(subscriptions))
        for subscription in subscriptions:
            try:
                subscription.observer(payload)
            except Exception:
                logger.exception("Observer for %s raised", kind.value)
