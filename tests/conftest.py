"""Shared test fixtures and helpers."""

from __future__ import annotations

import asyncio
import datetime as dt
from collections.abc import Callable, Coroutine
from typing import Any

import pytest

from roomctl.config import RoomCtlConfig
from roomctl.core.controller import RoomController
from roomctl.core.normalizer import normalize
from roomctl.core.roster import RosterStore
from roomctl.core.state import AppState
from roomctl.models.enums import InstanceMode, UserRole
from roomctl.models.events import ListEvent
from roomctl.transport.mock import MockTransport

SELF_ID = 1
SELF_NAME = "Control Room"
HOST_ID = 10
HOST_NAME = "Hana Host"


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: dt.datetime) -> None:
        self.now = now

    def __call__(self) -> dt.datetime:
        return self.now

    def set(self, hhmm: str) -> None:
        hour, minute = (int(part) for part in hhmm.split(":"))
        self.now = self.now.replace(hour=hour, minute=minute, second=0)

    def advance(self, minutes: float = 0, seconds: float = 0) -> None:
        self.now += dt.timedelta(minutes=minutes, seconds=seconds)


@pytest.fixture
def advance() -> Callable[[int], Coroutine[Any, Any, None]]:
    """Yield control to let pending tasks run without real delay."""

    async def _advance(n: int = 5) -> None:
        for _ in range(n):
            await asyncio.sleep(0)

    return _advance


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(dt.datetime(2026, 10, 18, 9, 0))


@pytest.fixture
def transport() -> MockTransport:
    return MockTransport()


@pytest.fixture
def config() -> RoomCtlConfig:
    return RoomCtlConfig(mode=InstanceMode.PRIMARY, default_codeword="letmein")


@pytest.fixture
async def controller(
    config: RoomCtlConfig, transport: MockTransport, clock: FrozenClock
) -> RoomController:
    """A primary controller that knows its own id, with one host present."""
    ctl = RoomController(config, transport, clock=clock)
    await transport.start(ctl._emit)
    ctl.identity.mode = InstanceMode.PRIMARY
    ctl.identity.adopt(SELF_ID, SELF_NAME)
    add_person(ctl.roster, SELF_ID, SELF_NAME, role=UserRole.HOST)
    add_person(ctl.roster, HOST_ID, HOST_NAME, role=UserRole.COHOST)
    transport.clear()
    return ctl


@pytest.fixture
def state(controller: RoomController) -> AppState:
    return controller.state


def make_user_args(session_id: int, name: str, *params: Any) -> list[Any]:
    """Positional arguments of a ``/zoomosc/user/*`` datagram."""
    return [0, name, -1, session_id, *params]


def make_list_row(
    session_id: int,
    name: str,
    *,
    role: int = 0,
    online: bool = True,
    video: bool = False,
    audio: bool = False,
    hand: bool = False,
    index: int = 0,
    total: int = 0,
) -> list[Any]:
    """Arguments of one ``/zoomosc/user/list`` snapshot row."""
    return make_user_args(
        session_id,
        name,
        total,
        index,
        role,
        int(online),
        int(video),
        int(audio),
        int(hand),
    )


def make_list_event(session_id: int, name: str, **kwargs: Any) -> ListEvent:
    event = normalize("/zoomosc/user/list", make_list_row(session_id, name, **kwargs))
    assert isinstance(event, ListEvent)
    return event


def add_person(
    roster: RosterStore,
    session_id: int,
    name: str,
    *,
    role: UserRole = UserRole.NONE,
    video: bool = False,
    audio: bool = False,
) -> None:
    roster.upsert_from_snapshot(
        make_list_event(session_id, name, role=int(role), video=video, audio=audio)
    )


def chat(controller: RoomController, session_id: int, name: str, text: str) -> None:
    """Deliver a chat message to the controller as if from *session_id*."""
    controller.process("/zoomosc/user/chat", make_user_args(session_id, name, text))


def host_says(controller: RoomController, text: str) -> None:
    chat(controller, HOST_ID, HOST_NAME, text)
