"""Base abstraction for the control-plane transport."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel

from roomctl.models.enums import TransportStatus

logger = logging.getLogger("roomctl.transport")


class TransportHealth(BaseModel):
    """Health information for a transport."""

    status: TransportStatus = TransportStatus.STOPPED
    started_at: datetime | None = None
    last_message_at: datetime | None = None
    messages_received: int = 0
    messages_sent: int = 0
    send_failures: int = 0
    error: str | None = None


# Called once per inbound datagram with its address and positional arguments
EmitCallback = Callable[[str, list[Any]], None]


class ControlTransport(ABC):
    """Datagram-style channel to the conferencing control API.

    Inbound messages are path-addressed argument lists handed to the
    ``emit`` callback. Outbound messages are fire-and-forget: :meth:`send`
    never raises and never waits for an acknowledgement.

    Lifecycle:
        1. Create the transport with its addresses
        2. ``await start(emit)`` binds the listener and returns
        3. ``emit(address, args)`` is called for every datagram
        4. ``await stop()`` releases the socket
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Descriptive identifier used in logs, e.g. ``"osc:0.0.0.0:1234"``."""
        ...

    @abstractmethod
    async def start(self, emit: EmitCallback) -> None:
        """Begin listening and deliver inbound datagrams through *emit*."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Stop listening and release resources."""
        ...

    @abstractmethod
    def send(self, address: str, *args: Any) -> bool:
        """Send one message; returns ``False`` if sending failed."""
        ...

    @property
    def status(self) -> TransportStatus:
        return TransportStatus.STOPPED

    async def healthcheck(self) -> TransportHealth:
        return TransportHealth(status=self.status)


class BaseControlTransport(ControlTransport):
    """Convenience base class with status tracking and best-effort sending.

    Subclasses implement :meth:`_send`; failures raised there are logged
    and counted here, never propagated to the caller.
    """

    def __init__(self) -> None:
        self._status = TransportStatus.STOPPED
        self._started_at: datetime | None = None
        self._last_message_at: datetime | None = None
        self._messages_received = 0
        self._messages_sent = 0
        self._send_failures = 0
        self._error: str | None = None

    @property
    def status(self) -> TransportStatus:
        return self._status

    async def healthcheck(self) -> TransportHealth:
        return TransportHealth(
            status=self._status,
            started_at=self._started_at,
            last_message_at=self._last_message_at,
            messages_received=self._messages_received,
            messages_sent=self._messages_sent,
            send_failures=self._send_failures,
            error=self._error,
        )

    def send(self, address: str, *args: Any) -> bool:
        logger.debug("Sending %s %s", address, args)
        try:
            self._send(address, list(args))
        except Exception as exc:
            self._send_failures += 1
            self._error = str(exc)
            logger.exception("Failed to send %s", address)
            return False
        self._messages_sent += 1
        return True

    @abstractmethod
    def _send(self, address: str, args: list[Any]) -> None:
        """Put one message on the wire. May raise; :meth:`send` handles it."""
        ...

    def _set_status(self, status: TransportStatus, error: str | None = None) -> None:
        self._status = status
        self._error = error
        if status == TransportStatus.LISTENING:
            self._started_at = datetime.now(UTC)
            self._error = None

    def _record_message(self) -> None:
        self._messages_received += 1
        self._last_message_at = datetime.now(UTC)

    async def stop(self) -> None:
        self._status = TransportStatus.STOPPED

