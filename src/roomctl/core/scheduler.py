"""Meeting scheduler: schedule loading, overlap resolution and the tick loop."""

from __future__ import annotations

import asyncio
import contextlib
import datetime as dt
import logging
from collections.abc import Callable, Iterable
from itertools import combinations
from typing import TYPE_CHECKING

from pydantic import SecretStr, ValidationError

from roomctl.config import RoomCtlConfig
from roomctl.core.control import ZoomControl
from roomctl.core.roster import RosterStore
from roomctl.core.state import SessionIdentity
from roomctl.models.meeting import (
    MeetingDescriptor,
    ScheduledMeeting,
    ScheduleFile,
    ScheduleResolution,
)

if TYPE_CHECKING:
    from roomctl.core.relay import ReplicationRelay

logger = logging.getLogger("roomctl.scheduler")

Clock = Callable[[], dt.datetime]
MeetingKey = tuple[str, dt.datetime]


class ScheduleLoadError(Exception):
    """The schedule file could not be read or parsed."""


def parse_schedule(text: str) -> ScheduleFile:
    """Parse schedule file JSON.

    Raises:
        ScheduleLoadError: If the text is not a valid schedule.
    """
    try:
        return ScheduleFile.model_validate_json(text)
    except ValidationError as exc:
        raise ScheduleLoadError(str(exc)) from exc


def resolve(descriptors: Iterable[MeetingDescriptor], today: dt.date) -> ScheduleResolution:
    """Instantiate descriptors for *today* and resolve overlaps.

    A dated entry beats an undated one that overlaps it; the undated one is
    dropped. Overlapping entries of the same kind are all kept and each
    pair is recorded as a conflict. The result is sorted by start.
    """
    instances = [d.instantiate(today) for d in descriptors]
    dated = [m for m in instances if m.dated]
    result = ScheduleResolution()

    kept = list(dated)
    for meeting in (m for m in instances if not m.dated):
        winner = next((d for d in dated if meeting.overlaps(d)), None)
        if winner is not None:
            logger.warning(
                "Dropping daily meeting %r: overlaps dated meeting %r", meeting.name, winner.name
            )
            result.dropped.append(meeting)
        else:
            kept.append(meeting)

    kept.sort(key=lambda m: (m.starts_at, not m.dated))
    for a, b in combinations(kept, 2):
        if a.dated == b.dated and a.overlaps(b):
            logger.warning("Schedule conflict: %r overlaps %r", a.name, b.name)
            result.conflicts.append((a.name, b.name))
    result.meetings = kept
    return result


def _key(meeting: ScheduledMeeting) -> MeetingKey:
    return (meeting.name, meeting.starts_at)


def _hhmm(when: dt.datetime) -> str:
    return when.strftime("%H:%M")


class MeetingScheduler:
    """Starts, warns about, extends and ends meetings from a schedule file.

    At most one meeting is current. Starting a meeting latches so later
    ticks do not join again; the latch releases at the nominal end so a
    following meeting can start while the hard-cap window is still open.
    Passing the hard cap ends the meeting once and clears the pointer.
    """

    def __init__(
        self,
        config: RoomCtlConfig,
        roster: RosterStore,
        control: ZoomControl,
        identity: SessionIdentity,
        *,
        relay: ReplicationRelay | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._config = config
        self._roster = roster
        self._control = control
        self._identity = identity
        self._relay = relay
        self._clock: Clock = clock or dt.datetime.now
        self._schedule = ScheduleFile()
        self._meetings: list[ScheduledMeeting] = []
        self._loaded_mtime: float | None = None
        self._loaded_date: dt.date | None = None
        self._finished: set[MeetingKey] = set()
        self._start_latched = False
        self._joined = False
        self._last_warning: dt.datetime | None = None
        self._tick_task: asyncio.Task[None] | None = None
        self.current: ScheduledMeeting | None = None

    @property
    def meetings(self) -> list[ScheduledMeeting]:
        return list(self._meetings)

    @property
    def start_latched(self) -> bool:
        return self._start_latched

    def now(self) -> dt.datetime:
        return self._clock()

    # Loading

    def load(
        self, schedule: ScheduleFile, now: dt.datetime, *, keep_current: bool = False
    ) -> ScheduleResolution:
        """Replace the schedule, resolving entries for ``now``'s date.

        The current pointer and latch are cleared. If the new schedule has an
        entry with the previous current meeting's name whose window still
        covers ``now``, it is adopted again without another join.

        With *keep_current* the running meeting stays current as it is, so
        one that started yesterday is still ended at its own hard cap.
        """
        previous = self.current
        latched = self._start_latched
        resolution = resolve(schedule.meetings, now.date())
        self._schedule = schedule
        self._meetings = resolution.meetings
        self._loaded_date = now.date()
        self._finished = {k for k in self._finished if k[1].date() >= now.date()}
        self.current = None
        self._start_latched = False

        if previous is not None and keep_current:
            self.current = previous
            self._start_latched = latched
            logger.info("Kept current meeting %r across date change", previous.name)
        elif previous is not None:
            again = next(
                (
                    m
                    for m in self._meetings
                    if m.name == previous.name and m.starts_at <= now <= m.hard_ends_at
                ),
                None,
            )
            if again is not None:
                again.hard_ends_at = max(again.hard_ends_at, previous.hard_ends_at)
                self.current = again
                self._start_latched = now <= again.ends_at
                logger.info("Kept current meeting %r across reload", again.name)
            else:
                self._joined = False
        logger.info(
            "Loaded %d meetings (%d dropped, %d conflicts)",
            len(self._meetings),
            len(resolution.dropped),
            len(resolution.conflicts),
        )
        return resolution

    async def refresh(self, now: dt.datetime) -> bool:
        """Reload the schedule file if it changed or the date rolled over.

        Returns whether a load happened.

        Raises:
            ScheduleLoadError: If the file cannot be stat'ed, read or parsed.
        """
        path = self._config.schedule_path
        if path is None:
            return False
        try:
            mtime = (await asyncio.to_thread(path.stat)).st_mtime
        except OSError as exc:
            raise ScheduleLoadError(f"cannot stat {path}: {exc}") from exc
        if mtime == self._loaded_mtime and now.date() == self._loaded_date:
            return False

        if mtime != self._loaded_mtime:
            try:
                text = await asyncio.to_thread(path.read_text, encoding="utf-8")
            except OSError as exc:
                raise ScheduleLoadError(f"cannot read {path}: {exc}") from exc
            self.load(parse_schedule(text), now)
            logger.info("Schedule file %s changed", path)
        else:
            logger.info("Date changed, resolving daily meetings for %s", now.date())
            self.load(self._schedule, now, keep_current=True)
        self._loaded_mtime = mtime
        return True

    # Selection and stepping

    def select(self, now: dt.datetime) -> ScheduledMeeting | None:
        """The meeting whose nominal window contains ``now``.

        Earliest start wins; on equal starts a dated entry wins.
        """
        candidates = [m for m in self._meetings if m.contains(now)]
        return min(candidates, key=lambda m: (m.starts_at, not m.dated), default=None)

    def step(self, now: dt.datetime) -> None:
        """Advance the meeting state machine to ``now``."""
        current = self.current
        if current is not None:
            if now > current.hard_ends_at:
                logger.info("Meeting %r reached its hard cap at %s", current.name, _hhmm(now))
                self._finish(current)
            elif now > current.ends_at and self._start_latched:
                logger.debug("Meeting %r passed its nominal end, unlatching", current.name)
                self._start_latched = False

        candidate = self.select(now)
        if (
            candidate is not None
            and not self._start_latched
            and (self.current is None or _key(candidate) != _key(self.current))
            and _key(candidate) not in self._finished
        ):
            self._begin(candidate, manual=False)

        if self.current is not None and self._identity.is_primary:
            self._warn(now)
            self._promote_cohosts()

    async def tick(self) -> None:
        """One scheduler cycle: reload, step, sweep, then request a snapshot."""
        now = self._clock()
        try:
            await self.refresh(now)
        except ScheduleLoadError as exc:
            logger.error("Schedule tick aborted: %s", exc)
            return
        self.step(now)
        self._housekeeping()

    def _housekeeping(self) -> None:
        if self._identity.is_secondary:
            return
        swept = self._roster.sweep_stale(self._config.stale_after_cycles)
        if self._relay is not None:
            for session_id in swept.removed:
                self._relay.forward_removal(session_id)
        self._control.request_list()

    async def run(self) -> None:
        """Tick forever, never running two ticks at once."""
        interval = self._config.tick_interval
        while True:
            if self._tick_task is None or self._tick_task.done():
                self._tick_task = asyncio.create_task(self._safe_tick(), name="roomctl:tick")
            else:
                logger.warning("Previous scheduler tick still running, skipping")
            await asyncio.sleep(interval)

    async def stop(self) -> None:
        if self._tick_task is not None:
            self._tick_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._tick_task
            self._tick_task = None

    async def _safe_tick(self) -> None:
        try:
            await self.tick()
        except Exception:
            logger.exception("Scheduler tick failed")

    # Commands

    def start_now(self, name: str | None = None) -> ScheduledMeeting | None:
        """Join a meeting immediately.

        With *name*, the first scheduled entry of that name (case-insensitive)
        is used; otherwise the current meeting or the one selected for now.
        """
        now = self._clock()
        if name:
            wanted = name.casefold()
            meeting = next((m for m in self._meetings if m.name.casefold() == wanted), None)
        else:
            meeting = self.current or self.select(now)
        if meeting is None:
            return None
        self._finished.discard(_key(meeting))
        self._begin(meeting, manual=True)
        return meeting

    def end_now(self) -> ScheduledMeeting | None:
        """End whatever is running; the end request is sent even with no current meeting."""
        current = self.current
        if current is not None:
            self._finish(current, force=True)
        else:
            self._end_meeting()
        return current

    def extend(self, minutes: int) -> ScheduledMeeting | None:
        """Push the current meeting's hard cap out by *minutes*."""
        current = self.current
        if current is None:
            return None
        current.hard_ends_at += dt.timedelta(minutes=minutes)
        self._last_warning = None
        logger.info("Extended %r by %d minutes to %s", current.name, minutes, current.hard_ends_at)
        self._control.chat_many(
            self._roster.privileged_ids(),
            f"Meeting {current.name} extended by {minutes} minutes, "
            f"now ends at about {_hhmm(current.hard_ends_at)}",
        )
        return current

    def expected_codeword(self) -> SecretStr | None:
        """Codeword for meeting control.

        The current meeting's codeword wins, then the schedule file's, then
        the configured default.
        """
        if self.current is not None and self.current.descriptor.codeword is not None:
            return self.current.descriptor.codeword
        return self._schedule.codeword or self._config.default_codeword

    # Internals

    def _begin(self, meeting: ScheduledMeeting, *, manual: bool) -> None:
        self.current = meeting
        self._start_latched = True
        self._last_warning = None
        if meeting.descriptor.exclude and not manual:
            logger.info("Meeting %r is excluded from auto start, not joining", meeting.name)
            self._joined = False
            return
        self._join(meeting)

    def _join(self, meeting: ScheduledMeeting) -> None:
        if self._identity.is_pro is False:
            logger.warning("Client is not pro; joining %r anyway", meeting.name)
        descriptor = meeting.descriptor
        password = descriptor.password.get_secret_value() if descriptor.password else ""
        display_name = self._identity.name or self._config.my_name or "roomctl"
        self._control.join_meeting(descriptor.meeting_id, password, display_name)
        self._joined = True

    def _finish(self, meeting: ScheduledMeeting, *, force: bool = False) -> None:
        self._finished.add(_key(meeting))
        if self._joined or force:
            self._end_meeting()
        self.current = None
        self._start_latched = False
        self._joined = False
        self._last_warning = None

    def _end_meeting(self) -> None:
        if self._identity.is_pro is False:
            logger.warning("Client is not pro; ending anyway")
        self._control.end_meeting()

    def _warn(self, now: dt.datetime) -> None:
        current = self.current
        if current is None:
            return
        window = dt.timedelta(minutes=self._config.warning_window_minutes)
        if now < current.hard_ends_at - window:
            return
        interval = dt.timedelta(seconds=self._config.warning_interval_seconds)
        if self._last_warning is not None and now - self._last_warning < interval:
            return
        self._last_warning = now
        self._control.chat_many(
            self._roster.privileged_ids(),
            f"Meeting {current.name} ends at about {_hhmm(current.hard_ends_at)}. "
            "Send /extend <codeword> [minutes] to extend it.",
        )

    def _promote_cohosts(self) -> None:
        current = self.current
        if current is None:
            return
        for name in current.descriptor.cohosts:
            for person in self._roster.lookup_by_name(name) or []:
                if not person.privileged:
                    logger.info("Promoting %s (%d) to co-host", person.name, person.session_id)
                    self._control.make_cohost(person.session_id)
