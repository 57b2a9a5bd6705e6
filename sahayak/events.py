"""Cross-component signals owned by the hosting application.

Features that live outside the assistant (the helpline directory, the home
page, grievance and camp forms) talk to it through this hub instead of
global browser-style events.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List

from sahayak.models import Notification

logger = logging.getLogger(__name__)

Handler = Callable[..., Any]


@dataclass
class GuidanceRequest:
    title: str
    procedure: str


class EventHub:
    """Observer registry. Handlers may be plain functions or coroutine functions."""

    OPEN_REQUESTED = "open-requested"
    GUIDANCE_REQUESTED = "guidance-requested"
    NOTIFICATION = "notification"

    def __init__(self):
        self._handlers: Dict[str, List[Handler]] = {
            self.OPEN_REQUESTED: [],
            self.GUIDANCE_REQUESTED: [],
            self.NOTIFICATION: [],
        }

    def _subscribe(self, topic: str, handler: Handler) -> Callable[[], None]:
        self._handlers[topic].append(handler)

        def unsubscribe():
            if handler in self._handlers[topic]:
                self._handlers[topic].remove(handler)

        return unsubscribe

    def subscribe_open_requested(self, handler: Callable[[], Any]) -> Callable[[], None]:
        return self._subscribe(self.OPEN_REQUESTED, handler)

    def subscribe_guidance_requested(self, handler: Callable[[GuidanceRequest], Any]) -> Callable[[], None]:
        return self._subscribe(self.GUIDANCE_REQUESTED, handler)

    def subscribe_notifications(self, handler: Callable[[Notification], Any]) -> Callable[[], None]:
        return self._subscribe(self.NOTIFICATION, handler)

    async def _publish(self, topic: str, *args) -> None:
        for handler in list(self._handlers[topic]):
            try:
                result = handler(*args)
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception:
                # One broken subscriber must not break the publisher or the others
                logger.exception(f"[EVENTS] handler for '{topic}' failed")

    async def request_open(self) -> None:
        await self._publish(self.OPEN_REQUESTED)

    async def request_guidance(self, title: str, procedure: str) -> None:
        await self._publish(self.GUIDANCE_REQUESTED, GuidanceRequest(title=title, procedure=procedure))

    async def push_notification(self, title: str, message: str, type: str = "INFO") -> Notification:
        notification = Notification(title=title, message=message, type=type)
        await self._publish(self.NOTIFICATION, notification)
        return notification
