"""Startup identity discovery.

The instance mode comes from configuration or from the capability reply
to a ping. A primary learns its own session id from its client's own
``/zoomosc/me/*`` events. A secondary asks the primary in chat and waits
for an ``iam`` relay envelope.
"""

from __future__ import annotations

import asyncio
import logging

from roomctl.config import RoomCtlConfig
from roomctl.core.control import ZoomControl
from roomctl.core.state import SessionIdentity
from roomctl.models.enums import InstanceMode
from roomctl.models.events import PongEvent, UserEvent

logger = logging.getLogger("roomctl.identity")

DEVICE_QUERY = "/whoami device"


class IdentityDiscovery:
    """Resolve :class:`SessionIdentity` for this instance."""

    def __init__(
        self, config: RoomCtlConfig, control: ZoomControl, identity: SessionIdentity
    ) -> None:
        self._config = config
        self._control = control
        self._identity = identity
        self._pong: asyncio.Event = asyncio.Event()
        self._last_pong: PongEvent | None = None
        if config.my_name and identity.name is None:
            identity.name = config.my_name

    @property
    def last_pong(self) -> PongEvent | None:
        return self._last_pong

    def on_pong(self, event: PongEvent) -> None:
        self._last_pong = event
        self._identity.is_pro = event.is_pro
        logger.info(
            "Pong: version %s, pro=%s, in call=%s, %s users",
            event.version,
            event.is_pro,
            event.in_call,
            event.user_count,
        )
        self._pong.set()

    def on_self_event(self, event: UserEvent) -> None:
        """Track our own client's id and name from ``/zoomosc/me/*`` events.

        A secondary only trusts the primary's answer for its id.
        """
        if event.session_id is None or self._identity.is_secondary:
            if event.name and event.session_id == self._identity.session_id:
                self._identity.name = event.name
            return
        self._identity.adopt(event.session_id, event.name or None)

    def resolve_mode(self) -> InstanceMode:
        """Settle the mode from configuration or the last pong."""
        mode = self._config.mode
        if mode is InstanceMode.AUTO:
            is_pro = bool(self._last_pong and self._last_pong.is_pro)
            mode = InstanceMode.PRIMARY if is_pro else InstanceMode.SECONDARY
        self._identity.mode = mode
        logger.info("Running as %s", mode)
        return mode

    async def discover(self) -> SessionIdentity:
        """Ping until answered, settle the mode, then learn our id if secondary."""
        if await self.settle_mode() is InstanceMode.SECONDARY:
            await self.ask_primary()
        return self._identity

    async def settle_mode(self) -> InstanceMode:
        """Ping, then resolve the mode.

        Retries forever at ``discovery_retry_seconds``. With an explicit mode
        the ping is sent once and not waited for.
        """
        retry = self._config.discovery_retry_seconds
        if self._config.mode is InstanceMode.AUTO:
            while not self._pong.is_set():
                self._control.ping()
                try:
                    await asyncio.wait_for(self._pong.wait(), retry)
                except TimeoutError:
                    logger.warning("No pong yet, retrying in %.0fs", retry)
        else:
            self._control.ping()
        return self.resolve_mode()

    async def ask_primary(self) -> None:
        """Query the primary in chat until an ``iam`` envelope names us."""
        retry = self._config.discovery_retry_seconds
        primary = self._config.primary_name
        if not primary:
            logger.warning("Secondary without primary_name: waiting for an iam envelope")
        # The query also registers us as a relay target, so it goes out at least once.
        while True:
            if primary:
                self._control.chat_by_name(primary, DEVICE_QUERY)
            if await self._identity.wait_known(retry):
                break
            logger.info("No identity from %r yet, asking again", primary)
        logger.info(
            "Secondary identity %r (%s)", self._identity.name, self._identity.session_id
        )
