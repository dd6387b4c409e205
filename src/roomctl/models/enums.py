"""Enums shared across roomctl."""

from __future__ import annotations

from enum import IntEnum, StrEnum, unique


@unique
class UserRole(IntEnum):
    """Conference role as reported by the control plane."""

    NONE = 0
    HOST = 1
    COHOST = 2

    @classmethod
    def coerce(cls, value: object) -> UserRole:
        """Map a wire value onto a role, treating anything unknown as NONE."""
        try:
            return cls(int(value))  # type: ignore[call-overload]
        except (TypeError, ValueError):
            return cls.NONE

    @property
    def privileged(self) -> bool:
        return self in (UserRole.HOST, UserRole.COHOST)


@unique
class EventKind(StrEnum):
    CHAT = "chat"
    UNMUTE = "unMute"
    MUTE = "mute"
    VIDEO_ON = "videoOn"
    VIDEO_OFF = "videoOff"
    ROLE_CHANGED = "roleChanged"
    NAME_CHANGED = "userNameChanged"
    ONLINE = "online"
    OFFLINE = "offline"
    LIST = "list"
    PONG = "pong"
    UNKNOWN = "unknown"


@unique
class InstanceMode(StrEnum):
    """Whether this instance owns roster truth or mirrors it."""

    AUTO = "auto"
    PRIMARY = "primary"
    SECONDARY = "secondary"


@unique
class TransportStatus(StrEnum):
    """Connection status for a control-plane transport."""

    STOPPED = "stopped"
    STARTING = "starting"
    LISTENING = "listening"
    ERROR = "error"


@unique
class Privilege(StrEnum):
    """Three-state privilege lookup result.

    ``UNKNOWN`` means the id is not in the roster at all, which is distinct
    from a known participant without a host role.
    """

    PRIVILEGED = "privileged"
    UNPRIVILEGED = "unprivileged"
    UNKNOWN = "unknown"

    @property
    def allowed(self) -> bool:
        return self is Privilege.PRIVILEGED
