"""Best-effort change notifications for clients watching a film.

Messages carry identifiers only. Subscribers re-fetch the authoritative
state from the store when they receive one; nothing is queued for clients
that are offline at publish time.
"""

import asyncio
import functools
import logging
from enum import Enum
from typing import Any, Protocol

import anyio.from_thread

from eiga.realtime.sse import film_topic

logger = logging.getLogger(__name__)

DEFAULT_JOIN_TIMEOUT = 4.0


class FilmEvent(str, Enum):
    DISCUSSION_NEW = "discussion:new"
    DISCUSSION_UPDATE = "discussion:update"
    REACTION_NEW = "reaction:new"
    REACTION_REMOVE = "reaction:remove"
    RATING_NEW = "rating:new"
    RATING_UPDATE = "rating:update"
    HIGHLIGHT_UPDATE = "highlight:update"


class Channel(Protocol):
    async def join(self) -> bool: ...

    async def send(self, event: str, payload: dict[str, Any]) -> str: ...

    async def leave(self) -> None: ...


class Transport(Protocol):
    def channel(self, topic: str) -> Channel: ...


class RealtimeFanout:
    def __init__(self, transport: Transport | None, join_timeout: float = DEFAULT_JOIN_TIMEOUT):
        self.transport = transport
        self.join_timeout = join_timeout

    @property
    def enabled(self) -> bool:
        return self.transport is not None

    async def publish(self, film_id: int, event: FilmEvent, payload: dict[str, Any]) -> bool:
        """Send one message to the film topic. Never raises; False means it was not delivered."""
        if self.transport is None:
            return False

        topic = film_topic(film_id)
        try:
            channel = self.transport.channel(topic)
        except Exception:
            logger.warning("realtime: could not open channel %s", topic, exc_info=True)
            return False

        try:
            joined = await asyncio.wait_for(channel.join(), timeout=self.join_timeout)
        except asyncio.TimeoutError:
            logger.warning("realtime: join %s timed out after %.1fs", topic, self.join_timeout)
            joined = False
        except Exception:
            logger.warning("realtime: join %s failed", topic, exc_info=True)
            joined = False

        if not joined:
            await self._leave_quietly(channel, topic)
            return False

        ok = False
        try:
            ok = await channel.send(event.value, payload) == "ok"
        except Exception:
            logger.warning("realtime: send %s to %s failed", event.value, topic, exc_info=True)
        finally:
            await self._leave_quietly(channel, topic)
        return ok

    async def _leave_quietly(self, channel: Channel, topic: str) -> None:
        try:
            await channel.leave()
        except Exception:
            logger.debug("realtime: leave %s failed", topic, exc_info=True)

    async def notify(self, film_id: int, event: FilmEvent, **ids: Any) -> bool:
        return await self.publish(film_id, event, {"film_id": film_id, **ids})

    async def notify_rating_new(self, film_id: int, user_id: int) -> bool:
        return await self.notify(film_id, FilmEvent.RATING_NEW, user_id=user_id)

    async def notify_rating_update(self, film_id: int, user_id: int) -> bool:
        return await self.notify(film_id, FilmEvent.RATING_UPDATE, user_id=user_id)


class Notifier(Protocol):
    def notify(self, film_id: int, event: FilmEvent, **ids: Any) -> bool: ...


class ThreadNotifier:
    """Publishes from synchronous request handlers running in a worker thread.

    Called after the mutation has committed; the result is informational
    only and errors are turned into False.
    """

    def __init__(self, fanout: RealtimeFanout):
        self.fanout = fanout

    def notify(self, film_id: int, event: FilmEvent, **ids: Any) -> bool:
        if not self.fanout.enabled:
            return False
        try:
            return anyio.from_thread.run(functools.partial(self.fanout.notify, film_id, event, **ids))
        except Exception:
            logger.warning("realtime: %s for film %s not published", event.value, film_id, exc_info=True)
            return False


class NullNotifier:
    def notify(self, film_id: int, event: FilmEvent, **ids: Any) -> bool:
        return False
