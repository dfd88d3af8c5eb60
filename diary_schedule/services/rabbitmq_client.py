from __future__ import annotations

import json
import logging
from typing import Any

import pika

from diary_schedule.core.config import settings

logger = logging.getLogger(__name__)

NOTIFICATIONS_QUEUE = "notifications"


def _publish(queue: str, message: dict[str, Any]) -> None:
    connection = pika.BlockingConnection(pika.URLParameters(settings.RABBITMQ_URL))
    try:
        channel = connection.channel()
        channel.queue_declare(queue=queue, durable=True)
        channel.basic_publish(
            exchange="",
            routing_key=queue,
            body=json.dumps(message, default=str),
            properties=pika.BasicProperties(delivery_mode=2),  # persistent
        )
    finally:
        connection.close()


def publish_notification_event(event_type: str, event_data: dict[str, Any]) -> bool:
    """
    Announce a schedule change on the notifications queue.

    Returns False instead of raising when the broker cannot be reached;
    the write that triggered the event has already been committed.
    """
    try:
        _publish(NOTIFICATIONS_QUEUE, {"event_type": event_type, "event_data": event_data})
    except pika.exceptions.AMQPError as e:
        logger.warning("Failed to publish %s event: %s", event_type, e)
        return False
    except OSError as e:
        logger.warning("RabbitMQ unreachable, %s event dropped: %s", event_type, e)
        return False
    return True
