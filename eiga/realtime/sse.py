import asyncio
import json
import logging
from collections import defaultdict
from typing import Any, Dict, Set

from fastapi import APIRouter, Request
from sse_starlette.sse import EventSourceResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


def film_topic(film_id: int) -> str:
    return f"film:{film_id}"


class TopicHub:
    """In-process pub/sub: one set of subscriber queues per topic."""

    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._topics: Dict[str, Set[asyncio.Queue]] = defaultdict(set)

    def subscribe(self, topic: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._topics[topic].add(queue)
        return queue

    def unsubscribe(self, topic: str, queue: asyncio.Queue) -> None:
        subscribers = self._topics.get(topic)
        if not subscribers:
            return
        subscribers.discard(queue)
        if not subscribers:
            self._topics.pop(topic, None)

    def subscriber_count(self, topic: str) -> int:
        return len(self._topics.get(topic, ()))

    def deliver(self, topic: str, event: str, payload: Dict[str, Any]) -> int:
        dead = []
        delivered = 0
        for q in list(self._topics.get(topic, ())):
            try:
                q.put_nowait({"event": event, "data": payload})
                delivered += 1
            except asyncio.QueueFull:
                # a subscriber that stopped reading; it will re-fetch on reconnect
                dead.append(q)

        for q in dead:
            self.unsubscribe(topic, q)
        return delivered

    def channel(self, topic: str) -> "HubChannel":
        return HubChannel(self, topic)


class HubChannel:
    """Ephemeral publishing handle: join, send one message, leave."""

    def __init__(self, hub: TopicHub, topic: str):
        self.hub = hub
        self.topic = topic
        self.joined = False

    async def join(self) -> bool:
        self.joined = True
        return True

    async def send(self, event: str, payload: Dict[str, Any]) -> str:
        if not self.joined:
            return "error"
        self.hub.deliver(self.topic, event, payload)
        return "ok"

    async def leave(self) -> None:
        self.joined = False


@router.get("/api/films/{film_id}/events")
async def film_events(film_id: int, request: Request):
    hub: TopicHub = request.app.state.topic_hub
    topic = film_topic(film_id)
    queue = hub.subscribe(topic)
    logger.debug("subscriber joined %s (%d online)", topic, hub.subscriber_count(topic))

    async def generator():
        try:
            while True:
                msg = await queue.get()
                yield {
                    "event": msg["event"],
                    "data": json.dumps(msg["data"], ensure_ascii=False),
                }
        except asyncio.CancelledError:
            pass
        finally:
            hub.unsubscribe(topic, queue)

    return EventSourceResponse(generator())
