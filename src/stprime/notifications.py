"""
Lifecycle notification publishing.

Publishing is fire-and-forget: ``NotificationDispatcher.emit`` schedules the
publish and returns at once, so a slow or failing bus never delays or fails
a transfer. Notifications of the same transfer are delivered in emission
order; notifications of different transfers are not ordered.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from functools import partial
from typing import Any, Dict, List, Optional, Set, Tuple

import httpx
from pydantic import BaseModel, ConfigDict, Field

from .errors import DependencyError
from .models import LifecycleNotification
from .utils.logging import get_logger

__all__ = [
    "NotificationEndpointConfig",
    "NotificationEnvelope",
    "NotificationPublisher",
    "InMemoryNotificationPublisher",
    "HttpNotificationPublisher",
    "NotificationDispatcher",
]

_logger = get_logger(__name__)


class NotificationPublisher(ABC):
    """Transport for lifecycle notifications."""

    @abstractmethod
    async def publish(self, topic: str, message: Dict[str, Any]) -> None:
        """Deliver ``message`` on ``topic``."""


class InMemoryNotificationPublisher(NotificationPublisher):
    """Keeps published messages in memory, in delivery order."""

    def __init__(self) -> None:
        self.published: List[Tuple[str, Dict[str, Any]]] = []

    async def publish(self, topic: str, message: Dict[str, Any]) -> None:
        self.published.append((topic, message))

    def kinds(self, transfer_id: Optional[str] = None) -> List[str]:
        """Kinds of published messages, optionally for a single transfer."""
        return [
            message["message"]["kind"]
            for _, message in self.published
            if transfer_id is None or message["message"]["payload"]["uuid"] == transfer_id
        ]


# ============================================================================
# Webhook Publisher
# ============================================================================

class NotificationEndpointConfig(BaseModel):
    """
    Configuration for the webhook notification publisher.

    Example:
        ```python
        config = NotificationEndpointConfig(
            url="https://bus.example.com/notify",
            headers={"Authorization": f"Bearer {os.environ['BUS_TOKEN']}"},
        )
        ```
    """

    model_config = ConfigDict(frozen=True)

    url: str = Field(
        ...,
        pattern=r"^https?://",
        description="Endpoint receiving the POST",
    )
    timeout_ms: int = Field(
        default=10000,
        ge=100,
        description="Request timeout in milliseconds",
    )
    headers: Dict[str, str] = Field(
        default_factory=dict,
        description="Extra request headers. SECURITY: load tokens from the environment",
    )


class NotificationEnvelope(BaseModel):
    """Request body posted for every notification."""

    model_config = ConfigDict(frozen=True)

    topic: str = Field(..., min_length=1, description="Bus topic, e.g. transfer.st_prime")
    message: Dict[str, Any] = Field(..., description="Rendered LifecycleNotification message")


class HttpNotificationPublisher(NotificationPublisher):
    """
    Posts notifications as JSON to a webhook endpoint.

    Args:
        config: Endpoint configuration
        transport: Optional httpx transport (tests use ``httpx.MockTransport``)
    """

    def __init__(
        self,
        config: NotificationEndpointConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        self._transport = transport

    @property
    def config(self) -> NotificationEndpointConfig:
        return self._config

    async def publish(self, topic: str, message: Dict[str, Any]) -> None:
        body = NotificationEnvelope(topic=topic, message=message).model_dump_json().encode()
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self._config.timeout_ms / 1000),
            headers={**self._config.headers, "Content-Type": "application/json"},
            transport=self._transport,
        ) as client:
            response = await client.post(self._config.url, content=body)
            response.raise_for_status()


class NotificationDispatcher:
    """Schedules publishes without making the caller wait for them."""

    def __init__(self, publisher: NotificationPublisher) -> None:
        self._publisher = publisher
        self._tasks: Set[asyncio.Task[None]] = set()
        # Last scheduled publish per transfer, used to chain the next one
        self._tails: Dict[str, asyncio.Task[None]] = {}

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def emit(self, notification: LifecycleNotification) -> None:
        """Schedule ``notification`` for publishing and return immediately."""
        previous = self._tails.get(notification.transfer_id)
        task = asyncio.create_task(self._publish(notification, previous))
        self._tasks.add(task)
        self._tails[notification.transfer_id] = task
        task.add_done_callback(partial(self._on_done, notification.transfer_id))

    async def _publish(
        self,
        notification: LifecycleNotification,
        previous: Optional[asyncio.Task[None]],
    ) -> None:
        if previous is not None:
            await asyncio.wait([previous])
        try:
            await self._publisher.publish(notification.topic, notification.to_message())
        except Exception as e:
            # Delivery is best-effort; the transfer outcome is unaffected
            error = DependencyError("notification", f"Publish failed: {e}", details={"topic": notification.topic})
            _logger.warning(
                "Notification publish failed",
                extra={
                    "transfer_id": notification.transfer_id,
                    "kind": notification.kind,
                    "code": error.code,
                    "error": error.message,
                },
            )
            return
        _logger.debug(
            "Notification published",
            extra={"transfer_id": notification.transfer_id, "kind": notification.kind},
        )

    def _on_done(self, transfer_id: str, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if self._tails.get(transfer_id) is task:
            del self._tails[transfer_id]

    async def drain(self) -> None:
        """Wait until every scheduled publish has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
