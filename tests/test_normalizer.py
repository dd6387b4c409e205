"""Tests for the message normalizer."""

from __future__ import annotations

import math

import pytest

from roomctl.core.normalizer import normalize, to_bool, to_int
from roomctl.models.enums import EventKind, UserRole
from roomctl.models.events import (
    ChatEvent,
    ListEvent,
    MediaEvent,
    NameChangedEvent,
    PongEvent,
    PresenceEvent,
    RoleChangedEvent,
    UnknownEvent,
)
from tests.conftest import make_list_row, make_user_args


class TestCoercion:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [(5, 5), ("17", 17), ("3.0", 3), (2.9, 2), (True, 1), ("abc", None), (None, None)],
    )
    def test_to_int(self, value: object, expected: int | None) -> None:
        assert to_int(value) == expected

    def test_to_int_non_finite(self) -> None:
        assert to_int(math.nan) is None
        assert to_int("inf") is None

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(1, True), (0, False), ("1", True), ("true", True), ("no", False), (None, False)],
    )
    def test_to_bool(self, value: object, expected: bool) -> None:
        assert to_bool(value) is expected

    def test_to_bool_nan_is_false(self) -> None:
        assert to_bool(math.nan) is False


class TestUserEvents:
    def test_chat(self) -> None:
        event = normalize("/zoomosc/user/chat", make_user_args(42, "Alice", "/ma"))
        assert isinstance(event, ChatEvent)
        assert event.session_id == 42
        assert event.name == "Alice"
        assert event.text == "/ma"
        assert event.is_self is False

    def test_self_scope(self) -> None:
        event = normalize("/zoomosc/me/online", make_user_args(7, "Me"))
        assert isinstance(event, PresenceEvent)
        assert event.is_self is True
        assert event.kind is EventKind.ONLINE

    @pytest.mark.parametrize("verb", ["mute", "unMute", "videoOn", "videoOff"])
    def test_media(self, verb: str) -> None:
        event = normalize(f"/zoomosc/user/{verb}", make_user_args(3, "Bob"))
        assert isinstance(event, MediaEvent)
        assert event.kind == verb

    def test_role_changed(self) -> None:
        event = normalize("/zoomosc/user/roleChanged", make_user_args(3, "Bob", 2))
        assert isinstance(event, RoleChangedEvent)
        assert event.role is UserRole.COHOST

    def test_name_changed(self) -> None:
        event = normalize("/zoomosc/user/userNameChanged", make_user_args(3, "Robert"))
        assert isinstance(event, NameChangedEvent)
        assert event.name == "Robert"

    def test_list_row(self) -> None:
        args = make_list_row(9, "Carol", role=1, video=True, audio=False, hand=True, total=4)
        event = normalize("/zoomosc/user/list", args)
        assert isinstance(event, ListEvent)
        assert event.target_count == 4
        assert event.role is UserRole.HOST
        assert event.online is True
        assert event.video_on is True
        assert event.audio_on is False
        assert event.hand_raised is True
        assert event.raw_args == args

    def test_malformed_numbers_fail_soft(self) -> None:
        event = normalize("/zoomosc/user/list", ["x", "Dan", "y", "not-a-number", "?"])
        assert isinstance(event, ListEvent)
        assert event.session_id is None
        assert event.target_index is None
        assert event.target_count is None
        assert event.online is False

    def test_missing_arguments(self) -> None:
        event = normalize("/zoomosc/user/chat", [])
        assert isinstance(event, ChatEvent)
        assert event.session_id is None
        assert event.text == ""


class TestOtherAddresses:
    def test_pong(self) -> None:
        event = normalize("/zoomosc/pong", [0, "4.1", 2, 1, 1, 5, 6, 1])
        assert isinstance(event, PongEvent)
        assert event.version == "4.1"
        assert event.in_call is True
        assert event.user_count == 6
        assert event.is_pro is True

    @pytest.mark.parametrize(
        "address", ["/zoomosc/user/raisedHand", "/zoomosc/gallery/order", "/other"]
    )
    def test_unknown(self, address: str) -> None:
        event = normalize(address, [1, 2])
        assert isinstance(event, UnknownEvent)
        assert event.args == [1, 2]
