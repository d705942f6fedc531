import asyncio
import functools

import anyio.to_thread
import pytest

from eiga.realtime.fanout import FilmEvent, NullNotifier, RealtimeFanout, ThreadNotifier
from eiga.realtime.sse import TopicHub, film_topic

class FakeChannel:
    def __init__(self, join=True, join_delay=0.0, send_result="ok", send_error=None):
        self._join = join
        self._join_delay = join_delay
        self._send_result = send_result
        self._send_error = send_error
        self.sent = []
        self.left = False

    async def join(self):
        if self._join_delay:
            await asyncio.sleep(self._join_delay)
        return self._join

    async def send(self, event, payload):
        if self._send_error is not None:
            raise self._send_error
        self.sent.append((event, payload))
        return self._send_result

    async def leave(self):
        self.left = True


class FakeTransport:
    def __init__(self, channel):
        self._channel = channel
        self.topics = []

    def channel(self, topic):
        self.topics.append(topic)
        return self._channel


@pytest.mark.anyio
async def test_publish_sends_and_leaves():
    channel = FakeChannel()
    transport = FakeTransport(channel)
    fanout = RealtimeFanout(transport)

    assert await fanout.notify(3, FilmEvent.DISCUSSION_NEW, comment_id=11) is True
    assert transport.topics == ["film:3"]
    assert channel.sent == [("discussion:new", {"film_id": 3, "comment_id": 11})]
    assert channel.left is True


@pytest.mark.anyio
async def test_disabled_fanout():
    fanout = RealtimeFanout(None)
    assert fanout.enabled is False
    assert await fanout.publish(3, FilmEvent.REACTION_NEW, {}) is False


@pytest.mark.anyio
async def test_join_timeout_gives_up():
    channel = FakeChannel(join_delay=1.0)
    fanout = RealtimeFanout(FakeTransport(channel), join_timeout=0.05)

    assert await fanout.publish(3, FilmEvent.REACTION_NEW, {"film_id": 3}) is False
    assert channel.sent == []
    assert channel.left is True


@pytest.mark.anyio
async def test_join_refused():
    channel = FakeChannel(join=False)
    assert await RealtimeFanout(FakeTransport(channel)).publish(3, FilmEvent.REACTION_NEW, {}) is False
    assert channel.left is True


@pytest.mark.anyio
@pytest.mark.parametrize("channel", [FakeChannel(send_error=RuntimeError("boom")), FakeChannel(send_result="error")])
async def test_send_failure_is_reported_not_raised(channel):
    fanout = RealtimeFanout(FakeTransport(channel))
    assert await fanout.publish(3, FilmEvent.HIGHLIGHT_UPDATE, {}) is False
    assert channel.left is True


@pytest.mark.anyio
async def test_rating_helpers():
    channel = FakeChannel()
    fanout = RealtimeFanout(FakeTransport(channel))

    assert await fanout.notify_rating_new(5, user_id=2)
    assert await fanout.notify_rating_update(5, user_id=2)
    assert [e for e, _ in channel.sent] == ["rating:new", "rating:update"]


@pytest.mark.anyio
async def test_hub_delivers_to_subscribers():
    hub = TopicHub()
    queue = hub.subscribe(film_topic(9))
    other = hub.subscribe(film_topic(10))

    assert await RealtimeFanout(hub).notify(9, FilmEvent.REACTION_REMOVE, comment_id=1, user_id=2)

    assert queue.get_nowait() == {"event": "reaction:remove", "data": {"film_id": 9, "comment_id": 1, "user_id": 2}}
    assert other.empty()


@pytest.mark.anyio
async def test_hub_drops_stalled_subscriber():
    hub = TopicHub(queue_size=1)
    topic = film_topic(1)
    hub.subscribe(topic)

    assert hub.deliver(topic, "discussion:new", {}) == 1
    assert hub.deliver(topic, "discussion:new", {}) == 0
    assert hub.subscriber_count(topic) == 0


@pytest.mark.anyio
async def test_thread_notifier_from_worker_thread():
    hub = TopicHub()
    queue = hub.subscribe(film_topic(4))
    notifier = ThreadNotifier(RealtimeFanout(hub))

    ok = await anyio.to_thread.run_sync(functools.partial(notifier.notify, 4, FilmEvent.DISCUSSION_UPDATE, comment_id=8))

    assert ok is True
    assert queue.get_nowait()["event"] == "discussion:update"


def test_thread_notifier_never_raises():
    assert ThreadNotifier(RealtimeFanout(TopicHub())).notify(1, FilmEvent.DISCUSSION_NEW) is False
    assert ThreadNotifier(RealtimeFanout(None)).notify(1, FilmEvent.DISCUSSION_NEW) is False
    assert NullNotifier().notify(1, FilmEvent.DISCUSSION_NEW) is False
