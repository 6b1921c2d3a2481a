import asyncio
from concurrent.futures import ThreadPoolExecutor
from threading import Thread

import pytest

from conftest import build_event
from nat_agent.bus import NatsPublisher, NatSubscription
from nat_agent.handler import NatUpdateHandler
from nat_routing.event import DONE_SUBJECT, ERROR_SUBJECT, SUBJECT


class FakeMsg:
    def __init__(self, data: bytes):
        self.data = data


class FakeSubscription:
    def __init__(self, client):
        self._client = client

    async def unsubscribe(self):
        self._client.unsubscribed = True


class FakeNatsClient:
    def __init__(self):
        self.published = []
        self.subject = None
        self.queue = None
        self.cb = None
        self.unsubscribed = False

    async def publish(self, subject, data):
        self.published.append((subject, data))

    async def subscribe(self, subject, queue="", cb=None):
        self.subject = subject
        self.queue = queue
        self.cb = cb
        return FakeSubscription(self)

    async def deliver(self, data: bytes):
        await self.cb(FakeMsg(data))


@pytest.fixture
def background_loop():
    loop = asyncio.new_event_loop()
    thread = Thread(target=loop.run_forever, daemon=True)
    thread.start()
    yield loop
    loop.call_soon_threadsafe(loop.stop)
    thread.join(timeout=1.0)
    loop.close()


def test_publisher_forwards_to_client_loop(background_loop):
    client = FakeNatsClient()
    publisher = NatsPublisher(client, background_loop, timeout=1.0)

    publisher.publish(DONE_SUBJECT, b"{}")

    assert client.published == [(DONE_SUBJECT, b"{}")]


def test_publisher_refuses_loop_thread():
    async def scenario():
        publisher = NatsPublisher(FakeNatsClient(), asyncio.get_running_loop())
        with pytest.raises(RuntimeError):
            publisher.publish(DONE_SUBJECT, b"{}")

    asyncio.run(scenario())


def test_subscription_dispatches_to_handler(provider):
    client = FakeNatsClient()
    good = build_event().to_json()

    async def scenario():
        publisher = NatsPublisher(client, asyncio.get_running_loop(), timeout=5.0)
        handler = NatUpdateHandler(publisher, lambda event: provider)
        with ThreadPoolExecutor(max_workers=2) as executor:
            subscription = NatSubscription(client, handler, executor, queue="workers")
            await subscription.start()
            await client.deliver(good)
            await client.deliver(b"garbage")
            await subscription.stop()

    asyncio.run(scenario())

    assert client.subject == SUBJECT
    assert client.queue == "workers"
    assert client.unsubscribed
    assert (DONE_SUBJECT, good) in client.published
    assert (ERROR_SUBJECT, b"garbage") in client.published
    assert len(client.published) == 2


def test_handler_failure_does_not_escape(caplog):
    client = FakeNatsClient()

    class ExplodingHandler:
        def handle(self, data):
            raise RuntimeError("boom")

    async def scenario():
        with ThreadPoolExecutor(max_workers=1) as executor:
            subscription = NatSubscription(client, ExplodingHandler(), executor)
            await subscription.start()
            await client.deliver(b"{}")
            await subscription.stop()

    asyncio.run(scenario())

    assert "nat update handler failed" in caplog.text
