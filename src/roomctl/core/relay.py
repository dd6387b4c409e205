"""Roster replication from the primary to secondary instances."""

from __future__ import annotations

import logging
from typing import Any

from roomctl.config import RoomCtlConfig
from roomctl.core import envelope
from roomctl.core.control import ZoomControl
from roomctl.core.envelope import EnvelopeKind, RelayEnvelope
from roomctl.core.normalizer import normalize
from roomctl.core.roster import RosterStore
from roomctl.core.state import SessionIdentity
from roomctl.models.events import ListEvent
from roomctl.models.participant import SKIP_PC, Participant

logger = logging.getLogger("roomctl.relay")

LIST_ADDRESS = "/zoomosc/user/list"


def participant_row(person: Participant, *, list_index: int = 0, total: int = 0) -> list[Any]:
    """Snapshot row arguments describing *person* as currently known."""
    return [
        0,
        person.name,
        -1,
        person.session_id,
        total,
        list_index,
        int(person.role),
        1,
        int(person.video_on),
        int(person.audio_on),
        int(person.hand_raised),
    ]


class ReplicationRelay:
    """Forward snapshot rows to registered secondaries and apply them there.

    The primary calls :meth:`forward` for each applied snapshot row; every
    session in the devices group receives the raw row in a ``snapshot``
    envelope. A secondary feeds received rows to :meth:`apply`, which goes
    through the same roster update the primary used.
    """

    def __init__(
        self,
        config: RoomCtlConfig,
        roster: RosterStore,
        control: ZoomControl,
        identity: SessionIdentity,
    ) -> None:
        self._config = config
        self._roster = roster
        self._control = control
        self._identity = identity

    def devices(self) -> list[int]:
        members = self._roster.list_group(self._config.devices_group) or []
        return [i for i in members if i != SKIP_PC and i != self._identity.session_id]

    def forward(self, row: ListEvent) -> int:
        """Relay one snapshot row; returns how many envelopes were sent."""
        if not self._identity.is_primary or not row.raw_args:
            return 0
        return self._send_rows([row.raw_args], self.devices())

    def forward_removal(self, session_id: int) -> int:
        """Tell every device that *session_id* is gone."""
        if not self._identity.is_primary:
            return 0
        row = [0, "", -1, session_id, 0, 0, 0, 0, 0, 0, 0]
        return self._send_rows([row], self.devices())

    def replay_to(self, device_id: int) -> int:
        """Send the whole current roster to one newly registered device."""
        people = self._roster.participants()
        rows = [
            participant_row(p, list_index=i, total=len(people)) for i, p in enumerate(people)
        ]
        return self._send_rows(rows, [device_id])

    def apply(self, env: RelayEnvelope) -> ListEvent | None:
        """Apply a relayed snapshot row to the local roster."""
        if env.kind is not EnvelopeKind.SNAPSHOT:
            raise ValueError(f"not a snapshot envelope: {env.kind}")
        if self._identity.is_primary:
            logger.warning("Primary ignoring relayed snapshot for %d", env.target)
            return None
        event = normalize(LIST_ADDRESS, env.args)
        if not isinstance(event, ListEvent):
            logger.warning("Relayed snapshot did not normalize: %s", env.args)
            return None
        self._roster.upsert_from_snapshot(event)
        return event

    def _send_rows(self, rows: list[list[Any]], targets: list[int]) -> int:
        sent = 0
        for target in targets:
            for row in rows:
                text = envelope.encode(envelope.snapshot(target, row))
                if self._control.chat(target, text):
                    sent += 1
        if sent:
            logger.debug("Relayed %d snapshot rows to %s", sent, targets)
        return sent
