"""Outbound control-plane vocabulary.

Every request roomctl makes of the conferencing client goes through
:class:`ZoomControl`, so the wire addresses live in one place.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from roomctl.models.participant import SKIP_PC
from roomctl.transport.base import ControlTransport

logger = logging.getLogger("roomctl.control")

SUBSCRIBE = "/zoom/subscribe"
LIST = "/zoom/list"
PING = "/zoom/ping"
CHAT_ID = "/zoom/zoomID/chat"
CHAT_NAME = "/zoom/userName/chat"
MUTE_ALL = "/zoom/all/mute"
UNMUTE_ALL = "/zoom/all/unMute"
MUTE_USERS = "/zoom/users/zoomID/mute"
UNMUTE_USERS = "/zoom/users/zoomID/unMute"
MUTE_ALL_EXCEPT = "/zoom/allExcept/zoomID/mute"
PIN_NAME = "/zoom/userName/pin2"
ADD_PIN_NAME = "/zoom/userName/addPin"
MAKE_COHOST = "/zoom/zoomID/makeCoHost"
JOIN_MEETING = "/zoom/joinMeeting"
END_MEETING = "/zoom/endMeeting"


def _real_ids(session_ids: Iterable[int]) -> list[int]:
    return [i for i in session_ids if i != SKIP_PC]


class ZoomControl:
    """Fire-and-forget requests to the control plane.

    Every method returns whether the transport accepted the message; a
    ``False`` is already logged by the transport and needs no handling.
    """

    def __init__(self, transport: ControlTransport) -> None:
        self._transport = transport

    @property
    def transport(self) -> ControlTransport:
        return self._transport

    def send(self, address: str, *args: Any) -> bool:
        return self._transport.send(address, *args)

    def subscribe(self, mode: int = 2) -> bool:
        return self.send(SUBSCRIBE, mode)

    def request_list(self) -> bool:
        return self.send(LIST)

    def ping(self, token: Any = 0) -> bool:
        return self.send(PING, token)

    def chat(self, session_id: int, text: str) -> bool:
        return self.send(CHAT_ID, session_id, text)

    def chat_many(self, session_ids: Iterable[int], text: str) -> int:
        """Send the same text to each id; returns how many sends succeeded."""
        return sum(1 for i in _real_ids(session_ids) if self.chat(i, text))

    def chat_by_name(self, name: str, text: str) -> bool:
        return self.send(CHAT_NAME, name, text)

    def mute_all(self) -> bool:
        return self.send(MUTE_ALL)

    def unmute_all(self) -> bool:
        return self.send(UNMUTE_ALL)

    def mute_users(self, session_ids: Iterable[int]) -> bool:
        return self.send(MUTE_USERS, *_real_ids(session_ids))

    def unmute_users(self, session_ids: Iterable[int]) -> bool:
        return self.send(UNMUTE_USERS, *_real_ids(session_ids))

    def mute_all_except(self, session_ids: Iterable[int]) -> bool:
        return self.send(MUTE_ALL_EXCEPT, *_real_ids(session_ids))

    def make_cohost(self, session_id: int) -> bool:
        return self.send(MAKE_COHOST, session_id)

    def join_meeting(self, meeting_id: str, password: str, display_name: str) -> bool:
        logger.info("Joining meeting %s as %r", meeting_id, display_name)
        return self.send(JOIN_MEETING, meeting_id, password, display_name)

    def end_meeting(self) -> bool:
        logger.info("Ending meeting")
        return self.send(END_MEETING)
