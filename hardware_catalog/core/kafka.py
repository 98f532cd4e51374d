"""Catalog change events.

Events are published after the database change has been committed. With
KAFKA_ENABLED switched off every publish is a logged no-op.
"""
import asyncio
import json
from datetime import datetime, timezone

from aiokafka import AIOKafkaProducer
from loguru import logger

from hardware_catalog.core.config import settings
from hardware_catalog.core.metrics import CATALOG_EVENTS_TOTAL, KAFKA_CONNECTION_STATUS, KAFKA_OPS

SERVICE_NAME = settings.SERVICE_NAME

producer: AIOKafkaProducer | None = None


def _kafka_op(operation: str, status: str):
    KAFKA_OPS.labels(service=SERVICE_NAME, operation=operation, status=status).inc()


def _serialize_value(value: dict) -> bytes:
    return json.dumps(value, default=str).encode("utf-8")


def _serialize_key(key: str | None) -> bytes | None:
    return key.encode("utf-8") if key else None


def _event_key(event: dict) -> str | None:
    # события одной сущности попадают в одну партицию
    return event.get("product_id") or event.get("category_id")


async def init_kafka(retries: int = 10, delay: float = 5):
    global producer

    if not settings.KAFKA_ENABLED:
        logger.info("Kafka disabled, catalog events will not be published")
        _kafka_op("start", "disabled")
        return

    for attempt in range(1, retries + 1):
        candidate = AIOKafkaProducer(
            bootstrap_servers=settings.KAFKA_BROKER,
            value_serializer=_serialize_value,
            key_serializer=_serialize_key,
        )
        try:
            await candidate.start()
        except Exception as e:
            await candidate.stop()
            KAFKA_CONNECTION_STATUS.labels(service=SERVICE_NAME).set(0)
            _kafka_op("start", "retry_error")
            logger.warning(
                "Kafka broker {broker} not ready, attempt {attempt}/{retries}: {error}",
                broker=settings.KAFKA_BROKER,
                attempt=attempt,
                retries=retries,
                error=str(e),
            )
            await asyncio.sleep(delay)
            continue

        producer = candidate
        KAFKA_CONNECTION_STATUS.labels(service=SERVICE_NAME).set(1)
        _kafka_op("start", "success")
        logger.info(
            "Kafka producer connected to {broker} on attempt {attempt}",
            broker=settings.KAFKA_BROKER,
            attempt=attempt,
        )
        return

    _kafka_op("start", "failed")
    logger.error("Kafka producer gave up after {retries} attempts", retries=retries)
    raise RuntimeError("Kafka producer could not be started")


async def close_kafka():
    global producer
    if producer is None:
        _kafka_op("close", "noop")
        return

    await producer.stop()
    producer = None
    KAFKA_CONNECTION_STATUS.labels(service=SERVICE_NAME).set(0)
    _kafka_op("close", "success")
    logger.info("Kafka producer stopped")


async def send_kafka_event(event: dict, topic: str | None = None):
    """Publishes one catalog event wrapped with the service name and a UTC timestamp."""
    topic = topic or settings.KAFKA_CATALOG_TOPIC
    event_type = event.get("event", "UNKNOWN")

    if not settings.KAFKA_ENABLED:
        logger.debug("Kafka disabled, event {event} dropped", event=event_type)
        CATALOG_EVENTS_TOTAL.labels(service=SERVICE_NAME, event=event_type, status="disabled").inc()
        return

    if producer is None:
        CATALOG_EVENTS_TOTAL.labels(service=SERVICE_NAME, event=event_type, status="not_initialized").inc()
        logger.error("Kafka producer is not initialized, event {event} not sent", event=event_type)
        raise RuntimeError("Kafka producer is not initialized")

    message = {
        **event,
        "service": SERVICE_NAME,
        "occurred_at": datetime.now(timezone.utc).isoformat(),
    }
    await producer.send_and_wait(topic, message, key=_event_key(event))

    CATALOG_EVENTS_TOTAL.labels(service=SERVICE_NAME, event=event_type, status="sent").inc()
    logger.info("Catalog event {event} sent to topic={topic}", event=event_type, topic=topic)
