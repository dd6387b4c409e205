"""Message normalizer: raw control-plane datagrams to typed events."""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Callable, Sequence
from typing import Any

from roomctl.models.enums import EventKind, UserRole
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
)

logger = logging.getLogger("roomctl.normalizer")

PONG_ADDRESS = "/zoomosc/pong"
_USER_ADDRESS = re.compile(r"^/zoomosc/(user|me)/(\w+)$")
_TRUE_STRINGS = frozenset({"1", "true", "on", "yes"})


def to_int(value: Any) -> int | None:
    """Coerce a wire value to ``int``, returning ``None`` instead of raising."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, (str, bytes)):
        try:
            return int(float(value.strip()))
        except (ValueError, OverflowError):
            return None
    return None


def to_bool(value: Any) -> bool:
    """Coerce a wire value to ``bool``; anything unrecognised is ``False``."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return not (isinstance(value, float) and math.isnan(value)) and value != 0
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return False


def _arg(args: Sequence[Any], index: int) -> Any:
    return args[index] if index < len(args) else None


def _user_fields(address: str, is_self: bool, args: Sequence[Any]) -> dict[str, Any]:
    name = _arg(args, 1)
    return {
        "address": address,
        "is_self": is_self,
        "target_index": to_int(_arg(args, 0)),
        "name": "" if name is None else str(name),
        "gallery_index": to_int(_arg(args, 2)),
        "session_id": to_int(_arg(args, 3)),
        "params": list(args[4:]),
    }


def _parse_chat(fields: dict[str, Any], kind: EventKind) -> ChatEvent:
    text = _arg(fields["params"], 0)
    return ChatEvent(text="" if text is None else str(text), **fields)


def _parse_media(fields: dict[str, Any], kind: EventKind) -> MediaEvent:
    return MediaEvent(kind=kind, **fields)


def _parse_role(fields: dict[str, Any], kind: EventKind) -> RoleChangedEvent:
    return RoleChangedEvent(role=UserRole.coerce(_arg(fields["params"], 0)), **fields)


def _parse_name(fields: dict[str, Any], kind: EventKind) -> NameChangedEvent:
    return NameChangedEvent(**fields)


def _parse_presence(fields: dict[str, Any], kind: EventKind) -> PresenceEvent:
    return PresenceEvent(kind=kind, **fields)


def _parse_list(fields: dict[str, Any], kind: EventKind) -> ListEvent:
    params = fields["params"]
    return ListEvent(
        target_count=to_int(_arg(params, 0)),
        list_index=to_int(_arg(params, 1)),
        role=UserRole.coerce(_arg(params, 2)),
        online=to_bool(_arg(params, 3)),
        video_on=to_bool(_arg(params, 4)),
        audio_on=to_bool(_arg(params, 5)),
        hand_raised=to_bool(_arg(params, 6)),
        **fields,
    )


_PARSERS: dict[EventKind, Callable[[dict[str, Any], EventKind], ControlEvent]] = {
    EventKind.CHAT: _parse_chat,
    EventKind.MUTE: _parse_media,
    EventKind.UNMUTE: _parse_media,
    EventKind.VIDEO_ON: _parse_media,
    EventKind.VIDEO_OFF: _parse_media,
    EventKind.ROLE_CHANGED: _parse_role,
    EventKind.NAME_CHANGED: _parse_name,
    EventKind.ONLINE: _parse_presence,
    EventKind.OFFLINE: _parse_presence,
    EventKind.LIST: _parse_list,
}


def parse_pong(address: str, args: Sequence[Any]) -> PongEvent:
    version = _arg(args, 1)
    return PongEvent(
        address=address,
        ping_arg=_arg(args, 0),
        version="" if version is None else str(version),
        subscribe_mode=to_int(_arg(args, 2)),
        gallery_mode=to_int(_arg(args, 3)),
        in_call=to_bool(_arg(args, 4)),
        target_count=to_int(_arg(args, 5)),
        user_count=to_int(_arg(args, 6)),
        is_pro=to_bool(_arg(args, 7)),
    )


def normalize(address: str, args: Sequence[Any]) -> ControlEvent:
    """Turn one raw datagram into a typed event.

    Never raises: unrecognised addresses become :class:`UnknownEvent` and
    malformed numbers become ``None``/``False``.
    """
    if address == PONG_ADDRESS:
        return parse_pong(address, args)

    match = _USER_ADDRESS.match(address)
    if match is None:
        return UnknownEvent(address=address, args=list(args))

    scope, verb = match.groups()
    try:
        kind = EventKind(verb)
    except ValueError:
        return UnknownEvent(address=address, args=list(args))
    parser = _PARSERS.get(kind)
    if parser is None:
        return UnknownEvent(address=address, args=list(args))

    event = parser(_user_fields(address, scope == "me", args), kind)
    if isinstance(event, ListEvent):
        event.raw_args = list(args)
    return event
