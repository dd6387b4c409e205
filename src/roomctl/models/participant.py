"""Participant model."""

from __future__ import annotations

from pydantic import BaseModel

from roomctl.models.enums import UserRole

# Placeholder slot in a positional group list; never a real session id.
SKIP_PC = -1
SKIP_PC_TOKEN = "-"


class Participant(BaseModel):
    """One conference attendee or device, keyed by its session id."""

    session_id: int
    name: str
    role: UserRole = UserRole.NONE
    audio_on: bool = False
    video_on: bool = False
    online: bool = True
    hand_raised: bool = False
    # Staleness bookkeeping for the roster sweep
    seen: bool = False
    missed_cycles: int = 0

    @property
    def privileged(self) -> bool:
        return self.role.privileged
