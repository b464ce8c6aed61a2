from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Debug:
    message: str
    payload: Any = None


@dataclass(frozen=True)
class Polling:
    pass


@dataclass(frozen=True)
class Timeout:
    elapsed_ms: int


@dataclass(frozen=True)
class RemoteInteraction:
    pass


@dataclass(frozen=True)
class Authenticated:
    steam_id: Optional[str]
    account_name: Optional[str]


@dataclass(frozen=True)
class Error:
    error: BaseException


Notification = Union[Debug, Polling, Timeout, RemoteInteraction, Authenticated, Error]
Listener = Callable[[Notification], None]


class Notifier:
    """Fans session notifications out to subscribed listeners."""

    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, notification: Notification) -> None:
        if isinstance(notification, Debug):
            logger.debug("%s %s", notification.message, "" if notification.payload is None else notification.payload)
        elif isinstance(notification, (Timeout, Error)):
            logger.warning("login session: %s", notification)
        else:
            logger.info("login session: %s", type(notification).__name__.lower())

        for listener in list(self._listeners):
            try:
                listener(notification)
            except Exception:
                logger.exception("listener failed on %s", type(notification).__name__)
