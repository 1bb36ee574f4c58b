# This project was developed with assistance from AI tools.
"""Loan state-change event publisher."""

import abc
import json
import logging

logger = logging.getLogger(__name__)


class EventPublisher(abc.ABC):
    """Publishes keyed events to a topic (message bus, webhook fan-out, ...)."""

    @abc.abstractmethod
    async def publish(self, topic: str, payload: dict, key: str | None = None) -> None: ...


class LogEventPublisher(EventPublisher):
    """Default publisher: writes events to the log."""

    async def publish(self, topic: str, payload: dict, key: str | None = None) -> None:
        logger.info("Event %s key=%s %s", topic, key, json.dumps(payload, sort_keys=True, default=str))
