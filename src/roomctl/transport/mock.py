"""Mock transport for tests and dry runs."""

from __future__ import annotations

from typing import Any

from roomctl.models.enums import TransportStatus
from roomctl.models.events import OutboundMessage
from roomctl.transport.base import BaseControlTransport, EmitCallback


class MockTransport(BaseControlTransport):
    """Records every outbound message and lets callers inject inbound ones."""

    def __init__(self, *, fail_sends: bool = False) -> None:
        super().__init__()
        self.sent: list[OutboundMessage] = []
        self.fail_sends = fail_sends
        self._emit: EmitCallback | None = None

    @property
    def name(self) -> str:
        return "mock"

    async def start(self, emit: EmitCallback) -> None:
        self._emit = emit
        self._set_status(TransportStatus.LISTENING)

    def inject(self, address: str, *args: Any) -> None:
        """Deliver an inbound datagram as if it came off the wire."""
        if self._emit is None:
            raise RuntimeError("Transport not started")
        self._record_message()
        self._emit(address, list(args))

    def _send(self, address: str, args: list[Any]) -> None:
        if self.fail_sends:
            raise OSError("simulated send failure")
        self.sent.append(OutboundMessage(address=address, args=args))

    def sent_to(self, address: str) -> list[OutboundMessage]:
        return [m for m in self.sent if m.address == address]

    def chats_to(self, session_id: int) -> list[str]:
        """Text of every direct chat sent to *session_id*."""
        return [
            str(m.args[1])
            for m in self.sent
            if m.address == "/zoom/zoomID/chat" and m.args and m.args[0] == session_id
        ]

    def clear(self) -> None:
        self.sent.clear()
