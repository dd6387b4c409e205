"""Application state shared by the router, handlers and scheduler."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from roomctl.models.enums import InstanceMode

if TYPE_CHECKING:
    from roomctl.config import RoomCtlConfig
    from roomctl.core.control import ZoomControl
    from roomctl.core.envelope import RelayEnvelope
    from roomctl.core.relay import ReplicationRelay
    from roomctl.core.roster import RosterStore
    from roomctl.core.scheduler import MeetingScheduler

logger = logging.getLogger("roomctl.state")


@dataclass
class SessionIdentity:
    """This instance's own participant identity and role in the deployment.

    ``mode`` stays ``None`` until discovery settles it to primary or
    secondary; ``session_id`` stays ``None`` until the control plane or the
    primary tells us who we are.
    """

    name: str | None = None
    session_id: int | None = None
    mode: InstanceMode | None = None
    is_pro: bool | None = None
    _known: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    @property
    def known(self) -> bool:
        return self.session_id is not None

    @property
    def is_primary(self) -> bool:
        return self.mode is InstanceMode.PRIMARY

    @property
    def is_secondary(self) -> bool:
        return self.mode is InstanceMode.SECONDARY

    def adopt(self, session_id: int, name: str | None = None) -> None:
        if session_id != self.session_id or (name and name != self.name):
            logger.info("Identity: %r (%d)", name or self.name, session_id)
        self.session_id = session_id
        if name:
            self.name = name
        self._known.set()

    async def wait_known(self, timeout: float) -> bool:
        """Wait up to *timeout* seconds for the session id; returns whether it is known."""
        try:
            await asyncio.wait_for(self._known.wait(), timeout)
        except TimeoutError:
            return self.known
        return True


@dataclass
class AppState:
    """Everything a command handler may read or change.

    Handlers receive this explicitly; nothing is held at module scope.
    """

    config: RoomCtlConfig
    roster: RosterStore
    control: ZoomControl
    identity: SessionIdentity
    scheduler: MeetingScheduler
    relay: ReplicationRelay


@dataclass
class Command:
    """One tokenized chat command.

    ``args`` excludes the verb. For codeword-gated verbs the router removes
    the codeword before the handler sees ``args``.
    """

    verb: str
    args: list[str]
    sender_id: int
    sender_name: str = ""
    raw: str = ""
    envelope: RelayEnvelope | None = None

    def arg(self, index: int, default: str | None = None) -> str | None:
        return self.args[index] if index < len(self.args) else default
