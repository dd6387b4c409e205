"""UDP/OSC transport to a ZoomOSC control endpoint."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from pythonosc.dispatcher import Dispatcher
from pythonosc.osc_server import AsyncIOOSCUDPServer
from pythonosc.udp_client import SimpleUDPClient

from roomctl.models.enums import TransportStatus
from roomctl.transport.base import BaseControlTransport, EmitCallback

logger = logging.getLogger("roomctl.transport.osc")


class TransportNotStartedError(RuntimeError):
    """A message was sent before :meth:`OSCTransport.start` completed."""


class OSCTransport(BaseControlTransport):
    """Listen for OSC datagrams on one port and send to another.

    Example:
        transport = OSCTransport(listen_port=1234, send_host="localhost", send_port=9090)
        await transport.start(lambda address, args: print(address, args))
        transport.send("/zoom/list")
    """

    def __init__(
        self,
        *,
        listen_host: str = "0.0.0.0",
        listen_port: int = 1234,
        send_host: str = "localhost",
        send_port: int = 9090,
    ) -> None:
        super().__init__()
        self._listen_host = listen_host
        self._listen_port = listen_port
        self._send_host = send_host
        self._send_port = send_port
        self._udp: asyncio.BaseTransport | None = None
        self._client: SimpleUDPClient | None = None

    @property
    def name(self) -> str:
        return (
            f"osc:{self._listen_host}:{self._listen_port}"
            f"->{self._send_host}:{self._send_port}"
        )

    async def start(self, emit: EmitCallback) -> None:
        self._set_status(TransportStatus.STARTING)

        def _handle(address: str, *args: Any) -> None:
            self._record_message()
            try:
                emit(address, list(args))
            except Exception:
                logger.exception("Inbound handler failed for %s", address)

        dispatcher = Dispatcher()
        dispatcher.set_default_handler(_handle)
        server = AsyncIOOSCUDPServer(
            (self._listen_host, self._listen_port),
            dispatcher,
            asyncio.get_running_loop(),
        )
        try:
            self._udp, _protocol = await server.create_serve_endpoint()
        except OSError as exc:
            self._set_status(TransportStatus.ERROR, str(exc))
            raise

        self._client = SimpleUDPClient(self._send_host, self._send_port)
        self._set_status(TransportStatus.LISTENING)
        logger.info("Listening on %s:%d", self._listen_host, self._listen_port)

    async def stop(self) -> None:
        await super().stop()
        if self._udp is not None:
            self._udp.close()
            self._udp = None
        self._client = None
        logger.info("OSC transport stopped")

    def _send(self, address: str, args: list[Any]) -> None:
        if self._client is None:
            raise TransportNotStartedError(f"{self.name} is not started")
        self._client.send_message(address, args)
