import asyncio
import random
import ssl
import traceback
from typing import Any, Awaitable, Callable, FrozenSet, Iterable, List, Optional, Set
from pydantic import BaseModel, Field
import aiomqtt
from aiomqtt import Will
from ..adapters.base import CommunicationAdapter
from ..utils.logging import get_logger
from ..utils.exceptions import BrokerUnavailableError, CommunicationError

logger = get_logger(__name__)

'''
usage Examples

broker = BrokerConnectionManager(config, topics={"sensor/temperature"}, on_message=handler)
await broker.connect()
await broker.publish("actuator/fan", b"on")
await broker.disconnect()

'''

MessageHandler = Callable[[str, bytes], Awaitable[Any]]


class MQTTConfig(BaseModel):
    """MQTT configuration model"""
    host: str = Field(..., description="MQTT broker hostname")
    port: int = Field(1883, description="MQTT broker port")
    username: Optional[str] = Field(None, description="MQTT username")
    password: Optional[str] = Field(None, description="MQTT password")
    keepalive: int = Field(60, description="Connection keepalive in seconds")
    client_id: Optional[str] = Field(None, description="MQTT client ID")
    ssl: bool = Field(False, description="Enable SSL/TLS")
    reconnect_interval: float = Field(2.0, gt=0, description="Initial reconnection delay in seconds")
    max_reconnect_interval: float = Field(60.0, gt=0, description="Upper bound for the reconnection delay")
    connect_timeout: float = Field(10.0, gt=0, description="How long an on-demand reconnect may take")
    ca_cert: Optional[str] = Field(None, description="Custom CA certificate")
    client_cert: Optional[str] = Field(None, description="Client certificate")
    client_key: Optional[str] = Field(None, description="Required if client_cert is set")
    verify_hostname: bool = Field(True, description="Verify broker's hostname")
    tls_version: Optional[str] = Field(None, description="TLSv1_2, TLSv1_3, etc.")
    subscribe_qos: int = Field(0, ge=0, le=2, description="qos for subscribe topics")
    publish_qos: int = Field(0, ge=0, le=2, description="qos for publish message")
    clean_session: bool = Field(True, description="Drop broker-side subscriptions from earlier sessions")
    status_topic: Optional[str] = Field(None, description="Retained online/offline availability topic")


class BrokerConnectionManager(CommunicationAdapter):
    """Owns the MQTT connection for the lifetime of the process.

    A supervisor task keeps one aiomqtt client connected, reconnecting with
    exponential backoff. Every successful connect subscribes to exactly the
    configured topic set, so while ``connected`` is set the broker-side
    subscriptions equal ``topics``.
    """

    def __init__(self, config: MQTTConfig, topics: Iterable[str], on_message: MessageHandler):
        self.config = config
        self.config.keepalive = max(30, self.config.keepalive)
        self.topics: FrozenSet[str] = frozenset(topics)
        self._on_message = on_message

        self.client: Optional[aiomqtt.Client] = None
        self.connected = asyncio.Event()
        self.subscribed_topics: Set[str] = set()
        self.connection_count = 0
        self._identifier = self.config.client_id or f"telemetry_bridge_{random.randint(1000, 9999)}"
        self._stop_flag = asyncio.Event()
        self._wake = asyncio.Event()
        self._attempt_waiters: List[asyncio.Future] = []
        self._supervisor_task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._supervisor_task is not None and not self._supervisor_task.done()

    def _create_tls_context(self) -> Optional[ssl.SSLContext]:
        """Create SSL context for MQTT connection based on config"""
        if not self.config.ssl:
            return None

        context = ssl.create_default_context()

        if self.config.ca_cert:
            context.load_verify_locations(cafile=self.config.ca_cert)

        if self.config.client_cert:
            if not self.config.client_key:
                raise ValueError("Client key must be provided when using client certificate")
            context.load_cert_chain(
                certfile=self.config.client_cert,
                keyfile=self.config.client_key
            )

        if self.config.tls_version:
            context.minimum_version = getattr(ssl.TLSVersion, self.config.tls_version.upper(),
                                              ssl.TLSVersion.TLSv1_2)

        context.check_hostname = self.config.verify_hostname
        return context

    def _create_client(self) -> aiomqtt.Client:
        will = None
        if self.config.status_topic:
            # Set up Last Will and Testament (LWT)
            will = Will(topic=self.config.status_topic, payload="offline", qos=1, retain=True)

        return aiomqtt.Client(
            hostname=self.config.host,
            port=self.config.port,
            username=self.config.username,
            password=self.config.password,
            keepalive=self.config.keepalive,
            identifier=self._identifier,
            clean_session=self.config.clean_session,
            will=will,
            tls_context=self._create_tls_context(),
        )

    async def _subscribe_topics(self, client: aiomqtt.Client) -> None:
        """Subscribe to every configured topic; failures are logged, not fatal"""
        self.subscribed_topics.clear()
        for topic in sorted(self.topics):
            try:
                await client.subscribe(topic, qos=self.config.subscribe_qos)
                self.subscribed_topics.add(topic)
                logger.info(f"Subscribed to {topic}")
            except Exception as e:
                logger.error(f"Failed to subscribe to {topic}: {str(e)}")

    async def _on_connect(self, client: aiomqtt.Client) -> None:
        self.client = client
        self.connection_count += 1
        logger.info(
            f"Connected to MQTT broker {self.config.host}:{self.config.port} "
            f"as {self._identifier} (connection #{self.connection_count})"
        )
        await self._subscribe_topics(client)
        if self.config.status_topic:
            try:
                await client.publish(self.config.status_topic, payload="online", qos=1, retain=True)
            except Exception as e:
                logger.warning(f"Failed to publish online status: {str(e)}")
        self.connected.set()

    def _on_disconnect(self) -> None:
        if self.client is not None:
            logger.info("Disconnected from MQTT broker")
        self.client = None
        self.connected.clear()
        self.subscribed_topics.clear()

    def _resolve_attempts(self, connected: bool) -> None:
        """Report the outcome of a connection attempt to on-demand waiters"""
        waiters, self._attempt_waiters = self._attempt_waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(connected)
        self._wake.clear()

    async def _dispatch(self, message: aiomqtt.Message) -> None:
        topic = str(message.topic)
        if topic not in self.topics:
            logger.debug(f"Ignoring message on unsubscribed topic {topic}")
            return

        payload = message.payload
        if payload is None:
            payload = b""
        elif isinstance(payload, (bytes, bytearray)):
            payload = bytes(payload)
        else:
            payload = str(payload).encode()

        try:
            await self._on_message(topic, payload)
        except Exception:
            logger.error(f"Error in message handler for topic {topic}: {traceback.format_exc()}")

    async def _listen(self, client: aiomqtt.Client) -> None:
        async for message in client.messages:
            if self._stop_flag.is_set():
                break
            await self._dispatch(message)

    async def _wait_before_retry(self, delay: float) -> None:
        """Sleep for the backoff delay unless a reconnect is requested first"""
        try:
            await asyncio.wait_for(self._wake.wait(), timeout=delay)
            logger.info("Reconnect requested, retrying now")
        except asyncio.TimeoutError:
            pass

    async def _supervise(self) -> None:
        attempt = 0
        while not self._stop_flag.is_set():
            try:
                async with self._create_client() as client:
                    attempt = 0
                    await self._on_connect(client)
                    self._resolve_attempts(True)
                    try:
                        await self._listen(client)
                    finally:
                        self._on_disconnect()
                if self._stop_flag.is_set():
                    break
                logger.warning(f"MQTT message stream ended, reconnecting in {self.config.reconnect_interval} seconds")
                await self._wait_before_retry(self.config.reconnect_interval)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._on_disconnect()
                self._resolve_attempts(False)
                if self._stop_flag.is_set():
                    break
                attempt += 1
                # Exponential backoff for reconnection attempts
                wait_time = min(self.config.reconnect_interval * (2 ** (attempt - 1)),
                                self.config.max_reconnect_interval)
                logger.error(f"MQTT connection attempt {attempt} failed: {str(e)}")
                logger.info(f"MQTT Retry will happen after {wait_time} seconds")
                await self._wait_before_retry(wait_time)

    async def connect(self) -> None:
        """Start the connection supervisor"""
        if self.is_running:
            return
        self._stop_flag.clear()
        self._supervisor_task = asyncio.create_task(self._supervise())
        logger.info(f"MQTT supervisor started for {len(self.topics)} topics")

    async def wait_until_connected(self, timeout: Optional[float] = None) -> bool:
        try:
            await asyncio.wait_for(self.connected.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    async def request_reconnect(self) -> bool:
        """Trigger one immediate connection attempt and report its outcome"""
        if self.connected.is_set():
            return True
        if not self.is_running:
            await self.connect()

        waiter = asyncio.get_running_loop().create_future()
        self._attempt_waiters.append(waiter)
        self._wake.set()
        try:
            return await asyncio.wait_for(waiter, timeout=self.config.connect_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"On-demand reconnect did not complete within {self.config.connect_timeout}s")
            return False
        finally:
            if waiter in self._attempt_waiters:
                self._attempt_waiters.remove(waiter)

    async def disconnect(self) -> None:
        """Stop the supervisor and close the connection"""
        self._stop_flag.set()
        self._wake.set()
        task, self._supervisor_task = self._supervisor_task, None
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._on_disconnect()
        self._resolve_attempts(False)
        logger.info("MQTT connection manager stopped")

    async def publish(self, topic: str, payload: bytes, qos: Optional[int] = None,
                      retain: bool = False) -> None:
        client = self.client
        if client is None or not self.connected.is_set():
            raise BrokerUnavailableError("Not connected to MQTT broker")
        try:
            await client.publish(
                topic,
                payload=payload,
                qos=self.config.publish_qos if qos is None else qos,
                retain=retain
            )
            logger.debug(f"Published {len(payload)} bytes to {topic}")
        except Exception as e:
            raise CommunicationError(f"Failed to publish to {topic}: {str(e)}") from e
