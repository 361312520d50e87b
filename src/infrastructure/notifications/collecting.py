"""Notifier that keeps notices for the caller to render."""

from dataclasses import dataclass

import structlog

logger = structlog.get_logger()


@dataclass(frozen=True)
class Notice:
    kind: str
    message: str


class CollectingNotifier:
    """INotifier that records notices in order.

    The HTTP surface returns them in the response body so the client can
    show its own alert.
    """

    def __init__(self) -> None:
        self.notices: list[Notice] = []

    def notify(self, kind: str, message: str) -> None:
        logger.debug("user_notice", kind=kind)
        self.notices.append(Notice(kind=kind, message=message))
