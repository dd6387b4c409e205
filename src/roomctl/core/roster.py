"""In-memory roster: participants, the name index and named groups."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from roomctl.models.enums import EventKind, Privilege, UserRole
from roomctl.models.events import ListEvent
from roomctl.models.participant import SKIP_PC, Participant

logger = logging.getLogger("roomctl.roster")

SnapshotListener = Callable[[ListEvent], None]


@dataclass
class SweepResult:
    """Outcome of one staleness sweep."""

    removed: list[int] = field(default_factory=list)
    retained: list[int] = field(default_factory=list)


class RosterStore:
    """Owns every participant, the name -> ids index and the group map.

    **Concurrency note:** every method is synchronous and completes without
    yielding to the event loop, so the participant table and the name index
    are never observed half-updated. Callers on the loop need no locking.

    Invariants:
        - every id in the name index exists in the participant table;
        - a name whose id list becomes empty is deleted from the index.
    """

    def __init__(self) -> None:
        self._participants: dict[int, Participant] = {}
        self._names: dict[str, list[int]] = {}
        self._groups: dict[str, list[int]] = {}
        self._snapshot_listeners: list[SnapshotListener] = []

    # Participant operations

    def on_snapshot(self, listener: SnapshotListener) -> None:
        """Register a callback run after each snapshot row is applied."""
        self._snapshot_listeners.append(listener)

    def get(self, session_id: int) -> Participant | None:
        return self._participants.get(session_id)

    def participants(self) -> list[Participant]:
        return list(self._participants.values())

    def __len__(self) -> int:
        return len(self._participants)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._participants

    def upsert_from_snapshot(self, row: ListEvent) -> Participant | None:
        """Apply one authoritative snapshot row.

        An offline row removes the participant. Returns the stored
        participant, or ``None`` if it was removed or the row had no usable id.
        """
        session_id = row.session_id
        if session_id is None:
            logger.debug("Snapshot row without session id: %s", row.raw_args)
            return None

        if not row.online:
            self.remove(session_id)
            self._notify_snapshot(row)
            return None

        person = self._participants.get(session_id)
        if person is None:
            person = Participant(session_id=session_id, name=row.name)
            self._participants[session_id] = person
        elif person.name != row.name:
            self._remove_from_name(person.name, session_id)
            person.name = row.name

        person.role = row.role
        person.audio_on = row.audio_on
        person.video_on = row.video_on
        person.hand_raised = row.hand_raised
        person.online = True
        person.seen = True
        person.missed_cycles = 0
        self._add_to_name(row.name, session_id)
        self._notify_snapshot(row)
        return person

    def clear(self) -> None:
        """Forget every participant; groups are kept."""
        self._participants.clear()
        self._names.clear()

    def mark_online(self, session_id: int, name: str) -> Participant:
        """Create a participant on first sighting; existing entries are only refreshed."""
        person = self._participants.get(session_id)
        if person is None:
            person = Participant(session_id=session_id, name=name)
            self._participants[session_id] = person
            self._add_to_name(name, session_id)
            logger.info("Participant online: %s (%d)", name, session_id)
        person.seen = True
        return person

    def remove(self, session_id: int) -> bool:
        """Delete a participant and its name index entry together."""
        person = self._participants.pop(session_id, None)
        if person is None:
            return False
        self._remove_from_name(person.name, session_id)
        logger.info("Participant removed: %s (%d)", person.name, session_id)
        return True

    def record_event(self, kind: EventKind, session_id: int, value: Any = None) -> bool:
        """Apply a narrow mutation to a known participant.

        Unknown ids are ignored; a narrow event never creates a participant.
        Returns ``True`` if a participant was updated.
        """
        person = self._participants.get(session_id)
        if person is None:
            return False
        match kind:
            case EventKind.MUTE:
                person.audio_on = False
            case EventKind.UNMUTE:
                person.audio_on = True
            case EventKind.VIDEO_ON:
                person.video_on = True
            case EventKind.VIDEO_OFF:
                person.video_on = False
            case EventKind.ROLE_CHANGED:
                person.role = UserRole.coerce(value)
            case _:
                return False
        person.seen = True
        return True

    def rename(self, session_id: int, new_name: str) -> bool:
        person = self._participants.get(session_id)
        if person is None:
            return False
        if person.name == new_name:
            return True
        logger.info("Rename %d: %r -> %r", session_id, person.name, new_name)
        self._remove_from_name(person.name, session_id)
        self._add_to_name(new_name, session_id)
        person.name = new_name
        return True

    def lookup_by_name(self, name: str) -> list[Participant] | None:
        """Return everyone currently using *name*, or ``None`` if nobody is."""
        ids = self._names.get(name)
        if ids is None:
            return None
        return [self._participants[i] for i in ids]

    def names(self) -> dict[str, list[int]]:
        return {name: list(ids) for name, ids in self._names.items()}

    def privilege(self, session_id: int) -> Privilege:
        person = self._participants.get(session_id)
        if person is None:
            return Privilege.UNKNOWN
        return Privilege.PRIVILEGED if person.privileged else Privilege.UNPRIVILEGED

    def is_privileged(self, session_id: int) -> bool | None:
        """``None`` for an unknown id, otherwise whether it is host or co-host."""
        result = self.privilege(session_id)
        if result is Privilege.UNKNOWN:
            return None
        return result.allowed

    def privileged_ids(self) -> list[int]:
        return [p.session_id for p in self._participants.values() if p.privileged]

    # Group operations

    def define_group(self, name: str, session_ids: Iterable[int]) -> list[int]:
        """Create or wholesale replace a group."""
        self._groups[name] = list(session_ids)
        return list(self._groups[name])

    def append_to_group(self, name: str, session_ids: Iterable[int]) -> list[int]:
        """Append ids to a group, creating it if needed.

        Ids already present are skipped; skip placeholders are always
        appended since they only hold a position. Returns the ids added.
        """
        members = self._groups.setdefault(name, [])
        added: list[int] = []
        for session_id in session_ids:
            if session_id != SKIP_PC and session_id in members:
                continue
            members.append(session_id)
            added.append(session_id)
        return added

    def delete_group(self, name: str) -> bool:
        return self._groups.pop(name, None) is not None

    def clear_all_groups(self) -> int:
        count = len(self._groups)
        self._groups.clear()
        return count

    def list_group(self, name: str) -> list[int] | None:
        members = self._groups.get(name)
        return None if members is None else list(members)

    def list_all_groups(self) -> dict[str, list[int]]:
        return {name: list(members) for name, members in self._groups.items()}

    def is_grouped(self, session_id: int) -> bool:
        return any(session_id in members for members in self._groups.values())

    # Staleness

    def sweep_stale(self, threshold: int = 1) -> SweepResult:
        """Drop participants not seen for *threshold* consecutive cycles.

        A stale participant still referenced by any group is kept and
        reported instead. All freshness flags are cleared afterwards.
        """
        result = SweepResult()
        for person in list(self._participants.values()):
            if person.seen:
                person.missed_cycles = 0
                continue
            person.missed_cycles += 1
            if person.missed_cycles < threshold:
                continue
            if self.is_grouped(person.session_id):
                result.retained.append(person.session_id)
                logger.warning(
                    "Stale participant %s (%d) kept: referenced by a group",
                    person.name,
                    person.session_id,
                )
            else:
                self.remove(person.session_id)
                result.removed.append(person.session_id)
        for person in self._participants.values():
            person.seen = False
        return result

    def dump(self) -> dict[str, Any]:
        """JSON-friendly view of the whole store."""
        return {
            "participants": [p.model_dump(mode="json") for p in self._participants.values()],
            "names": self.names(),
            "groups": self.list_all_groups(),
        }

    def display_names(self, session_ids: Iterable[int]) -> list[str]:
        """Names for *session_ids* in order; placeholders and unknown ids are marked."""
        labels: list[str] = []
        for session_id in session_ids:
            if session_id == SKIP_PC:
                labels.append("-")
                continue
            person = self._participants.get(session_id)
            labels.append(person.name if person else f"?{session_id}")
        return labels

    # Internals

    def _add_to_name(self, name: str, session_id: int) -> None:
        ids = self._names.setdefault(name, [])
        if session_id not in ids:
            ids.append(session_id)

    def _remove_from_name(self, name: str, session_id: int) -> None:
        ids = self._names.get(name)
        if ids is None:
            return
        if session_id in ids:
            ids.remove(session_id)
        if not ids:
            del self._names[name]

    def _notify_snapshot(self, row: ListEvent) -> None:
        for listener in self._snapshot_listeners:
            try:
                listener(row)
            except Exception:
                logger.exception("Snapshot listener failed")
