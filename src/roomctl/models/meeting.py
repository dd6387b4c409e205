"""Schedule and meeting models."""

from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, Field, SecretStr, model_validator


class MeetingDescriptor(BaseModel):
    """One entry of the schedule file.

    Durations are in minutes. An entry without ``date`` repeats every day.
    """

    name: str
    meeting_id: str
    password: SecretStr | None = None
    date: dt.date | None = None
    start: dt.time
    duration: int = Field(gt=0)
    hard_cap: int | None = Field(default=None, gt=0)
    codeword: SecretStr | None = None
    exclude: bool = False
    cohosts: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _validate_hard_cap(self) -> MeetingDescriptor:
        if self.hard_cap is not None and self.hard_cap < self.duration:
            raise ValueError(
                f"hard_cap ({self.hard_cap}) must not be shorter than duration ({self.duration})"
            )
        return self

    @property
    def dated(self) -> bool:
        return self.date is not None

    def instantiate(self, today: dt.date) -> ScheduledMeeting:
        """Compute concrete instants, using *today* for undated entries."""
        day = self.date or today
        starts_at = dt.datetime.combine(day, self.start)
        ends_at = starts_at + dt.timedelta(minutes=self.duration)
        hard_ends_at = starts_at + dt.timedelta(minutes=self.hard_cap or self.duration)
        return ScheduledMeeting(
            descriptor=self,
            starts_at=starts_at,
            ends_at=ends_at,
            hard_ends_at=hard_ends_at,
        )


class ScheduledMeeting(BaseModel):
    """A descriptor resolved to concrete start, end and hard-cap instants."""

    descriptor: MeetingDescriptor
    starts_at: dt.datetime
    ends_at: dt.datetime
    hard_ends_at: dt.datetime

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def dated(self) -> bool:
        return self.descriptor.dated

    def overlaps(self, other: ScheduledMeeting) -> bool:
        """Nominal intervals overlap; touching endpoints do not count."""
        return self.starts_at < other.ends_at and other.starts_at < self.ends_at

    def contains(self, now: dt.datetime) -> bool:
        return self.starts_at <= now <= self.ends_at


class ScheduleFile(BaseModel):
    """Top-level schedule file contents."""

    codeword: SecretStr | None = None
    meetings: list[MeetingDescriptor] = Field(default_factory=list)


class ScheduleResolution(BaseModel):
    """Outcome of overlap resolution for one schedule load."""

    meetings: list[ScheduledMeeting] = Field(default_factory=list)
    dropped: list[ScheduledMeeting] = Field(default_factory=list)
    conflicts: list[tuple[str, str]] = Field(default_factory=list)
