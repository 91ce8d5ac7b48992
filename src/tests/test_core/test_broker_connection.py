import asyncio
from types import SimpleNamespace
import aiomqtt
import pytest
import pytest_asyncio
from unittest.mock import AsyncMock
from telemetry_bridge.adapters.mqtt import BrokerConnectionManager, MQTTConfig
from telemetry_bridge.utils.exceptions import BrokerUnavailableError, CommunicationError

TOPICS = {"sensors/temperature", "sensors/compass", "sensors/gps"}


class FakeSession:
    """Stands in for one aiomqtt.Client connection"""

    def __init__(self, messages=(), drop=False, refuse=False, end=False):
        self.subscriptions = []
        self.published = []
        self._messages = list(messages)
        self._drop = drop
        self._refuse = refuse
        self._end = end

    async def __aenter__(self):
        if self._refuse:
            raise aiomqtt.MqttError("connection refused")
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def subscribe(self, topic, qos=0):
        self.subscriptions.append(topic)

    async def publish(self, topic, payload=None, qos=0, retain=False):
        self.published.append((topic, payload, retain))

    @property
    def messages(self):
        return self._stream()

    async def _stream(self):
        for message in self._messages:
            yield message
        if self._drop:
            raise aiomqtt.MqttError("connection lost")
        if self._end:
            return
        await asyncio.Event().wait()


def _message(topic, payload):
    return SimpleNamespace(topic=topic, payload=payload)


async def _eventually(condition, timeout=2.0):
    async def poll():
        while not condition():
            await asyncio.sleep(0.01)
    await asyncio.wait_for(poll(), timeout=timeout)


def _manager(sessions, handler=None, **overrides):
    settings = {"reconnect_interval": 0.01, "connect_timeout": 1.0, **overrides}
    config = MQTTConfig(host="localhost", **settings)
    manager = BrokerConnectionManager(config, TOPICS, handler or AsyncMock())
    iterator = iter(sessions)
    manager._create_client = lambda: next(iterator)
    return manager


@pytest_asyncio.fixture
async def managers():
    created = []
    yield created
    for manager in created:
        await manager.disconnect()


@pytest.mark.asyncio
async def test_subscribes_to_exactly_configured_topics(managers):
    session = FakeSession()
    manager = _manager([session])
    managers.append(manager)

    await manager.connect()
    assert await manager.wait_until_connected(timeout=1.0)

    assert session.subscriptions == sorted(TOPICS)
    assert manager.subscribed_topics == TOPICS


@pytest.mark.asyncio
async def test_reconnect_restores_subscriptions(managers):
    first = FakeSession(drop=True)
    second = FakeSession()
    manager = _manager([first, second])
    managers.append(manager)

    await manager.connect()
    await _eventually(lambda: manager.connection_count == 2 and manager.connected.is_set())

    assert set(first.subscriptions) == TOPICS
    assert set(second.subscriptions) == TOPICS
    assert manager.subscribed_topics == TOPICS


@pytest.mark.asyncio
async def test_retries_after_refused_connection(managers):
    sessions = [FakeSession(refuse=True), FakeSession(refuse=True), FakeSession()]
    manager = _manager(sessions)
    managers.append(manager)

    await manager.connect()
    await _eventually(manager.connected.is_set)

    assert manager.connection_count == 1
    assert set(sessions[2].subscriptions) == TOPICS


@pytest.mark.asyncio
async def test_messages_reach_handler(managers):
    handler = AsyncMock()
    session = FakeSession(messages=[
        _message("sensors/temperature", b'{"temperature": 21.5}'),
        _message("sensors/other", b"ignored"),
        _message("sensors/compass", bytearray(b'{"heading": 90}')),
    ])
    manager = _manager([session], handler)
    managers.append(manager)

    await manager.connect()
    await _eventually(lambda: handler.await_count == 2)

    handler.assert_any_await("sensors/temperature", b'{"temperature": 21.5}')
    handler.assert_any_await("sensors/compass", b'{"heading": 90}')


@pytest.mark.asyncio
async def test_handler_error_does_not_break_listening(managers):
    handler = AsyncMock(side_effect=[ValueError("boom"), None])
    session = FakeSession(messages=[
        _message("sensors/temperature", b"1"),
        _message("sensors/gps", b"2"),
    ])
    manager = _manager([session], handler)
    managers.append(manager)

    await manager.connect()
    await _eventually(lambda: handler.await_count == 2)
    assert manager.connected.is_set()


@pytest.mark.asyncio
async def test_status_topic_published_online(managers):
    session = FakeSession()
    manager = _manager([session], status_topic="bridge/status")
    managers.append(manager)

    await manager.connect()
    assert await manager.wait_until_connected(timeout=1.0)
    assert session.published == [("bridge/status", "online", True)]


@pytest.mark.asyncio
async def test_request_reconnect_succeeds_immediately(managers):
    sessions = [FakeSession(refuse=True), FakeSession()]
    manager = _manager(sessions, reconnect_interval=30.0)
    managers.append(manager)

    await manager.connect()
    await asyncio.sleep(0.05)
    assert not manager.connected.is_set()

    assert await manager.request_reconnect() is True
    assert manager.connected.is_set()


@pytest.mark.asyncio
async def test_request_reconnect_reports_failure(managers):
    sessions = [FakeSession(refuse=True) for _ in range(5)]
    manager = _manager(sessions, reconnect_interval=30.0)
    managers.append(manager)

    assert await manager.request_reconnect() is False
    assert not manager.connected.is_set()


@pytest.mark.asyncio
async def test_publish_requires_connection():
    manager = _manager([])
    with pytest.raises(BrokerUnavailableError):
        await manager.publish("actuators/fan", b"on")


@pytest.mark.asyncio
async def test_publish_uses_configured_qos(managers):
    session = FakeSession()
    manager = _manager([session])
    managers.append(manager)
    await manager.connect()
    assert await manager.wait_until_connected(timeout=1.0)

    await manager.publish("actuators/fan", b"on", retain=True)
    assert session.published[-1] == ("actuators/fan", b"on", True)

    session.publish = AsyncMock(side_effect=aiomqtt.MqttError("gone"))
    with pytest.raises(CommunicationError, match="actuators/fan"):
        await manager.publish("actuators/fan", b"off")


@pytest.mark.asyncio
async def test_disconnect_stops_supervisor():
    manager = _manager([FakeSession()])
    await manager.connect()
    assert await manager.wait_until_connected(timeout=1.0)

    await manager.disconnect()

    assert not manager.is_running
    assert not manager.connected.is_set()
    assert manager.client is None


@pytest.mark.asyncio
async def test_ended_stream_waits_before_reconnecting(managers):
    sessions = [FakeSession(end=True), FakeSession()]
    manager = _manager(sessions, reconnect_interval=0.3)
    managers.append(manager)

    await manager.connect()
    await _eventually(lambda: manager.connection_count == 1)
    await asyncio.sleep(0.1)
    assert manager.connection_count == 1

    await _eventually(lambda: manager.connection_count == 2 and manager.connected.is_set())
    assert set(sessions[1].subscriptions) == TOPICS
