"""Typed control-plane events.

Each inbound datagram is normalized into exactly one of these models. The
``kind`` field is the tag; only the fields relevant to that kind exist on
the model.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from roomctl.models.enums import EventKind, UserRole


class UserEvent(BaseModel):
    """Fields common to every per-participant event.

    Numeric fields are ``None`` when the wire value could not be coerced;
    consumers must check before use.
    """

    address: str
    is_self: bool = False
    target_index: int | None = None
    name: str = ""
    gallery_index: int | None = None
    session_id: int | None = None
    params: list[Any] = Field(default_factory=list)


class ChatEvent(UserEvent):
    kind: Literal[EventKind.CHAT] = EventKind.CHAT
    text: str = ""


class MediaEvent(UserEvent):
    """Audio or video state change for one participant."""

    kind: Literal[EventKind.MUTE, EventKind.UNMUTE, EventKind.VIDEO_ON, EventKind.VIDEO_OFF]


class RoleChangedEvent(UserEvent):
    kind: Literal[EventKind.ROLE_CHANGED] = EventKind.ROLE_CHANGED
    role: UserRole = UserRole.NONE


class NameChangedEvent(UserEvent):
    """``name`` carries the new display name."""

    kind: Literal[EventKind.NAME_CHANGED] = EventKind.NAME_CHANGED


class PresenceEvent(UserEvent):
    kind: Literal[EventKind.ONLINE, EventKind.OFFLINE]


class ListEvent(UserEvent):
    """One row of a roster snapshot."""

    kind: Literal[EventKind.LIST] = EventKind.LIST
    target_count: int | None = None
    list_index: int | None = None
    role: UserRole = UserRole.NONE
    online: bool = False
    video_on: bool = False
    audio_on: bool = False
    hand_raised: bool = False
    raw_args: list[Any] = Field(default_factory=list)


class PongEvent(BaseModel):
    """Capability and status reply to a ping."""

    kind: Literal[EventKind.PONG] = EventKind.PONG
    address: str
    ping_arg: Any = None
    version: str = ""
    subscribe_mode: int | None = None
    gallery_mode: int | None = None
    in_call: bool = False
    target_count: int | None = None
    user_count: int | None = None
    is_pro: bool = False


class UnknownEvent(BaseModel):
    kind: Literal[EventKind.UNKNOWN] = EventKind.UNKNOWN
    address: str
    args: list[Any] = Field(default_factory=list)


ControlEvent = (
    ChatEvent
    | MediaEvent
    | RoleChangedEvent
    | NameChangedEvent
    | PresenceEvent
    | ListEvent
    | PongEvent
    | UnknownEvent
)


class OutboundMessage(BaseModel):
    """A path-addressed message sent to the control plane."""

    address: str
    args: list[Any] = Field(default_factory=list)
