import asyncio
from typing import Optional

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer  # type: ignore
from aiokafka.errors import KafkaConnectionError, KafkaError  # type: ignore
from aiokafka.structs import TopicPartition  # type: ignore

from ...core.exceptions import PublishFailure
from ...core.setting import get_settings
from ...utils.logging import setup_barista_logging as setup_logging
from . import MessageHandler, MessagePublisher

logger = setup_logging(
    "barista_service.events.kafka", log_level=get_settings().LOG_LEVEL
)


class KafkaMessagePublisher(MessagePublisher):
    """
    Barista Service Kafka publisher with connection retry logic.

    Payloads are sent as UTF-8 text; a send the broker does not acknowledge
    raises PublishFailure.
    """

    def __init__(
        self,
        bootstrap_servers: str,
        client_id: str,
        max_retries: int = 10,
        retry_delay: float = 2.0,
        send_timeout: float = 10.0,
    ):
        self.bootstrap_servers = bootstrap_servers
        self.client_id = client_id
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.send_timeout = send_timeout
        self.producer = None
        self.is_connected = False
        self._connection_lock = asyncio.Lock()

    async def start(self, timeout: float = 30.0) -> None:
        """Start Kafka producer with retry logic"""
        async with self._connection_lock:
            if self.producer and self.is_connected:
                return

            for attempt in range(self.max_retries):
                self.producer = AIOKafkaProducer(
                    bootstrap_servers=self.bootstrap_servers,
                    client_id=self.client_id,
                    value_serializer=lambda x: x.encode("utf-8"),  # type: ignore
                    key_serializer=lambda x: x.encode("utf-8") if x else None,  # type: ignore
                    acks="all",
                    retry_backoff_ms=1000,
                    request_timeout_ms=30000,
                )
                try:
                    logger.info(
                        "Attempting Kafka connection",
                        extra={
                            "attempt": attempt + 1,
                            "max_retries": self.max_retries,
                            "operation": "kafka_connect",
                        },
                    )
                    await asyncio.wait_for(self.producer.start(), timeout=timeout)  # type: ignore

                    self.is_connected = True
                    logger.info("Successfully connected to Kafka")
                    return

                except (KafkaConnectionError, asyncio.TimeoutError) as e:
                    delay = self.retry_delay * (2**attempt)
                    logger.warning(
                        f"Kafka connection attempt {attempt + 1} failed: {e}. "
                        f"Retrying in {delay} seconds..."
                    )
                    await self._discard_producer()
                    if attempt < self.max_retries - 1:
                        await asyncio.sleep(delay)

            raise KafkaConnectionError(
                f"Could not connect to Kafka at {self.bootstrap_servers}"
            )

    async def _discard_producer(self) -> None:
        if self.producer is None:
            return
        try:
            await self.producer.stop()  # type: ignore
        except KafkaError as e:
            logger.debug("Error discarding Kafka producer", extra={"error": str(e)})
        self.producer = None

    async def stop(self) -> None:
        """Stop Kafka producer"""
        async with self._connection_lock:
            if self.producer:
                try:
                    await self.producer.stop()  # type: ignore
                    logger.info("Kafka producer stopped")
                except KafkaError as e:
                    logger.warning(
                        "Error stopping Kafka producer",
                        extra={"error": str(e), "operation": "stop_producer"},
                    )
                finally:
                    self.producer = None
                    self.is_connected = False

    async def send(
        self, destination: str, payload: str, key: Optional[str] = None
    ) -> None:
        if not self.is_connected or not self.producer:
            raise PublishFailure(f"Kafka producer not connected; cannot send to {destination}")

        try:
            metadata = await asyncio.wait_for(
                self.producer.send_and_wait(  # type: ignore
                    topic=destination, value=payload, key=key
                ),
                timeout=self.send_timeout,
            )
        except (KafkaError, asyncio.TimeoutError) as e:
            logger.error(
                "Failed to publish message to Kafka",
                extra={
                    "topic": destination,
                    "key": key,
                    "error": str(e) or type(e).__name__,
                    "operation": "publish_failed",
                },
            )
            raise PublishFailure(f"Failed to publish to {destination}: {e!r}") from e

        logger.info(
            "Published message to Kafka topic",
            extra={
                "topic": destination,
                "key": key,
                "partition": metadata.partition,
                "offset": metadata.offset,
                "operation": "publish",
            },
        )

    async def health_check(self) -> bool:
        """Check if Kafka connection is healthy"""
        try:
            if not self.producer or not self.is_connected:
                return False

            metadata = await self.producer.client.fetch_all_metadata()  # type: ignore
            return len(metadata.brokers()) > 0  # type: ignore

        except (KafkaError, asyncio.TimeoutError) as e:
            logger.warning(
                "Kafka health check failed",
                extra={"error": str(e), "operation": "health_check"},
            )
            return False


class KafkaMessageSubscriber:
    """
    Consumer-group subscriber with manual offset commits.

    A message is committed only after its handler acknowledges it. A
    message the handler asks to redeliver is re-fetched by seeking back to
    its offset, so nothing behind it on the partition is skipped.
    """

    def __init__(
        self,
        bootstrap_servers: str,
        topic: str,
        group_id: str,
        client_id: str,
        handler: MessageHandler,
        redelivery_backoff: float = 1.0,
        max_retries: int = 5,
        retry_delay: float = 2.0,
    ):
        self.bootstrap_servers = bootstrap_servers
        self.topic = topic
        self.group_id = group_id
        self.client_id = client_id
        self.handler = handler
        self.redelivery_backoff = redelivery_backoff
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.consumer: Optional[AIOKafkaConsumer] = None
        self.running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def is_consuming(self) -> bool:
        return self.running and self._task is not None and not self._task.done()

    async def start(self, timeout: float = 30.0) -> None:
        """Join the consumer group and start the consume loop"""
        self.consumer = await self._connect(timeout)
        self.running = True
        self._task = asyncio.create_task(self._consume_messages())
        logger.info(
            "Subscribed to Kafka topic",
            extra={
                "topic": self.topic,
                "group_id": self.group_id,
                "operation": "subscribe",
            },
        )

    async def _connect(self, timeout: float = 30.0) -> AIOKafkaConsumer:
        for attempt in range(self.max_retries):
            consumer = AIOKafkaConsumer(
                self.topic,
                bootstrap_servers=self.bootstrap_servers,
                group_id=self.group_id,
                client_id=self.client_id,
                enable_auto_commit=False,
                auto_offset_reset="earliest",
            )
            try:
                logger.info(
                    "Attempting Kafka subscriber connection",
                    extra={
                        "attempt": attempt + 1,
                        "max_retries": self.max_retries,
                        "topic": self.topic,
                        "group_id": self.group_id,
                        "operation": "subscriber_connect",
                    },
                )
                await asyncio.wait_for(consumer.start(), timeout=timeout)  # type: ignore
            except (KafkaConnectionError, asyncio.TimeoutError) as e:
                delay = self.retry_delay * (2**attempt)
                logger.warning(
                    f"Kafka subscriber connection attempt {attempt + 1} failed: {e}. "
                    f"Retrying in {delay} seconds..."
                )
                await consumer.stop()  # type: ignore
                if attempt < self.max_retries - 1:
                    await asyncio.sleep(delay)
                continue

            return consumer

        raise KafkaConnectionError(
            f"Could not connect Kafka subscriber to {self.bootstrap_servers}"
        )

    async def stop(self) -> None:
        """Stop consuming; an in-flight message is rolled back and redelivered later"""
        self.running = False

        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if self.consumer is not None:
            try:
                await self.consumer.stop()  # type: ignore
                logger.info(
                    "Stopped Kafka consumer for topic",
                    extra={"topic": self.topic, "operation": "stop_consumer"},
                )
            except KafkaError as e:
                logger.warning(
                    "Error stopping Kafka consumer",
                    extra={
                        "topic": self.topic,
                        "error": str(e),
                        "operation": "stop_consumer_error",
                    },
                )
            finally:
                self.consumer = None

    async def _consume_messages(self) -> None:
        """Consume until stopped, reconnecting after broker errors"""
        while self.running and self.consumer is not None:
            try:
                await self._consume_from(self.consumer)
                return
            except KafkaError as e:
                logger.error(
                    "Kafka consumer error; reconnecting",
                    extra={
                        "topic": self.topic,
                        "error": str(e),
                        "retry_in_seconds": self.retry_delay,
                        "operation": "consumer_error",
                    },
                )

            if not await self._reconnect():
                self.running = False
                return

    async def _reconnect(self) -> bool:
        stale, self.consumer = self.consumer, None
        if stale is not None:
            try:
                await stale.stop()  # type: ignore
            except KafkaError as e:
                logger.warning(
                    "Error stopping failed Kafka consumer",
                    extra={"topic": self.topic, "error": str(e)},
                )

        await asyncio.sleep(self.retry_delay)
        try:
            self.consumer = await self._connect()
        except KafkaError as e:
            logger.error(
                "Kafka subscriber could not reconnect; consumption stopped",
                extra={"topic": self.topic, "error": str(e), "operation": "reconnect_failed"},
            )
            return False

        logger.info(
            "Kafka subscriber reconnected",
            extra={"topic": self.topic, "group_id": self.group_id, "operation": "reconnect"},
        )
        return True

    async def _consume_from(self, consumer: AIOKafkaConsumer) -> None:
        async for message in consumer:  # type: ignore
            if not self.running:
                break

            tp = TopicPartition(message.topic, message.partition)
            acknowledge = await self._handle(message)

            if acknowledge:
                await self._commit(consumer, tp, message.offset + 1)
            else:
                logger.warning(
                    "Redelivering Kafka message",
                    extra={
                        "topic": message.topic,
                        "partition": message.partition,
                        "offset": message.offset,
                        "backoff_seconds": self.redelivery_backoff,
                        "operation": "redeliver",
                    },
                )
                consumer.seek(tp, message.offset)
                await asyncio.sleep(self.redelivery_backoff)

    async def _handle(self, message) -> bool:
        try:
            return await self.handler.on_message(message.value)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # Acknowledge so a poison message cannot stall the partition
            logger.error(
                "Unhandled error while processing Kafka message",
                extra={
                    "topic": message.topic,
                    "partition": message.partition,
                    "offset": message.offset,
                    "error": str(e),
                    "operation": "handler_error",
                },
                exc_info=True,
            )
            return True

    async def _commit(
        self, consumer: AIOKafkaConsumer, tp: TopicPartition, offset: int
    ) -> None:
        try:
            await consumer.commit({tp: offset})  # type: ignore
        except KafkaError as e:
            # Lost the partition in a rebalance; the new owner sees the message
            # again and the state check rejects it.
            logger.warning(
                "Failed to commit Kafka offset",
                extra={
                    "topic": tp.topic,
                    "partition": tp.partition,
                    "offset": offset,
                    "error": str(e),
                    "operation": "commit_failed",
                },
            )
