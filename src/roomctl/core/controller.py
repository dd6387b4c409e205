"""RoomController: owns the application state and wires the event loop."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any

from roomctl.config import RoomCtlConfig
from roomctl.core.control import ZoomControl
from roomctl.core.identity import IdentityDiscovery
from roomctl.core.normalizer import normalize
from roomctl.core.relay import ReplicationRelay
from roomctl.core.roster import RosterStore
from roomctl.core.router import CommandRouter, RouteResult
from roomctl.core.scheduler import Clock, MeetingScheduler
from roomctl.core.state import AppState, SessionIdentity
from roomctl.models.enums import EventKind, InstanceMode
from roomctl.models.events import (
    ChatEvent,
    ControlEvent,
    ListEvent,
    MediaEvent,
    NameChangedEvent,
    PongEvent,
    PresenceEvent,
    RoleChangedEvent,
    UnknownEvent,
    UserEvent,
)
from roomctl.transport.base import ControlTransport

logger = logging.getLogger("roomctl.controller")


class RoomController:
    """One roomctl instance.

    Inbound datagrams are queued by the transport callback and processed
    one at a time by a single consumer task, so every roster mutation and
    every command runs to completion before the next event is looked at.
    The scheduler ticks on its own task against the same state.

    Example::

        config = RoomCtlConfig.from_env()
        transport = OSCTransport(listen_port=config.listen_port)
        async with RoomController(config, transport) as controller:
            await controller.run()
    """

    def __init__(
        self,
        config: RoomCtlConfig,
        transport: ControlTransport,
        *,
        clock: Clock | None = None,
    ) -> None:
        self.config = config
        self.transport = transport
        self.roster = RosterStore()
        self.control = ZoomControl(transport)
        self.identity = SessionIdentity(name=config.my_name)
        self.relay = ReplicationRelay(config, self.roster, self.control, self.identity)
        self.scheduler = MeetingScheduler(
            config, self.roster, self.control, self.identity, relay=self.relay, clock=clock
        )
        self.discovery = IdentityDiscovery(config, self.control, self.identity)
        self.router = CommandRouter()
        self.state = AppState(
            config=config,
            roster=self.roster,
            control=self.control,
            identity=self.identity,
            scheduler=self.scheduler,
            relay=self.relay,
        )
        self.roster.on_snapshot(self.relay.forward)
        self._queue: asyncio.Queue[tuple[str, list[Any]]] = asyncio.Queue()
        self._consumer: asyncio.Task[None] | None = None
        self._ticker: asyncio.Task[None] | None = None

    # Lifecycle

    async def start(self) -> None:
        """Start listening, discover our identity, then start the scheduler."""
        await self.transport.start(self._emit)
        self._consumer = asyncio.create_task(self._consume(), name="roomctl:consume")
        self.control.subscribe(self.config.subscribe_mode)
        self.control.request_list()

        if await self.discovery.settle_mode() is InstanceMode.SECONDARY:
            # Rows seen before the mode was known are not ours to keep. The
            # primary's replay only starts once it hears our query.
            self.roster.clear()
            await self.discovery.ask_primary()
        self._ticker = asyncio.create_task(self.scheduler.run(), name="roomctl:scheduler")

    async def stop(self) -> None:
        for task in (self._ticker, self._consumer):
            if task is not None:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._ticker = None
        self._consumer = None
        await self.scheduler.stop()
        await self.transport.stop()

    async def run(self) -> None:
        """Start and keep running until cancelled."""
        await self.start()
        try:
            await asyncio.Event().wait()
        finally:
            await self.stop()

    async def __aenter__(self) -> RoomController:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.stop()

    async def drain(self) -> None:
        """Wait until every queued datagram has been processed."""
        await self._queue.join()

    # Event handling

    def _emit(self, address: str, args: list[Any]) -> None:
        self._queue.put_nowait((address, args))

    async def _consume(self) -> None:
        while True:
            address, args = await self._queue.get()
            try:
                self.process(address, args)
            except Exception:
                logger.exception("Failed to process %s", address)
            finally:
                self._queue.task_done()

    def process(self, address: str, args: list[Any]) -> ControlEvent:
        """Normalize one datagram and apply it."""
        event = normalize(address, args)
        match event:
            case PongEvent():
                self.discovery.on_pong(event)
            case ChatEvent():
                self.handle_chat(event)
            case UnknownEvent():
                logger.debug("Ignoring %s %s", event.address, event.args)
            case _:
                self.apply_roster_event(event)
        return event

    def handle_chat(self, event: ChatEvent) -> list[RouteResult]:
        if event.is_self:
            return []
        if event.session_id is None:
            logger.warning("Chat without a usable sender id: %s", event.params)
            return []
        return self.router.route(self.state, event.session_id, event.name, event.text)

    def apply_roster_event(self, event: UserEvent) -> None:
        """Apply a locally observed roster event.

        A secondary ignores these; its roster only changes through relayed
        snapshots from the primary.
        """
        if event.is_self:
            self.discovery.on_self_event(event)
        if self.identity.is_secondary:
            return
        session_id = event.session_id
        if session_id is None:
            logger.debug("Roster event without session id: %s", event.address)
            return

        match event:
            case ListEvent():
                self.roster.upsert_from_snapshot(event)
            case PresenceEvent(kind=EventKind.ONLINE):
                self.roster.mark_online(session_id, event.name)
            case PresenceEvent(kind=EventKind.OFFLINE):
                if self.roster.remove(session_id):
                    self.relay.forward_removal(session_id)
            case RoleChangedEvent():
                self.roster.record_event(event.kind, session_id, event.role)
            case MediaEvent():
                self.roster.record_event(event.kind, session_id)
            case NameChangedEvent():
                self.roster.rename(session_id, event.name)
                if session_id == self.identity.session_id:
                    self.identity.name = event.name
