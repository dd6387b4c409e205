"""Tests for the group, pin, mute and relay command handlers."""

from __future__ import annotations

import pytest

from roomctl.core import envelope
from roomctl.core.control import (
    ADD_PIN_NAME,
    MUTE_ALL,
    MUTE_ALL_EXCEPT,
    MUTE_USERS,
    PIN_NAME,
    UNMUTE_USERS,
)
from roomctl.core.controller import RoomController
from roomctl.core.envelope import EnvelopeKind
from roomctl.models.enums import InstanceMode
from roomctl.models.participant import SKIP_PC
from roomctl.transport.mock import MockTransport
from tests.conftest import HOST_ID, SELF_ID, add_person, chat, host_says

ALICE, BOB, CAROL = 31, 32, 33
DEVICE_A, DEVICE_B = 41, 42


@pytest.fixture
def people(controller: RoomController) -> RoomController:
    add_person(controller.roster, ALICE, "alice", video=True, audio=False)
    add_person(controller.roster, BOB, "bob", video=False, audio=False)
    add_person(controller.roster, CAROL, "carol", video=True, audio=True)
    return controller


def relayed(transport: MockTransport, device_id: int) -> list[envelope.RelayEnvelope]:
    texts = transport.chats_to(device_id)
    return [envelope.decode(text) for text in texts if envelope.is_envelope(text)]


class TestMuteCommands:
    def test_mx_without_group_mutes_everyone_once(
        self, people: RoomController, transport: MockTransport
    ) -> None:
        host_says(people, "/mx")
        assert len(transport.sent_to(MUTE_ALL)) == 1
        assert transport.sent_to(UNMUTE_USERS) == []
        assert len(transport.sent) == 1

    def test_mx_with_group(self, people: RoomController, transport: MockTransport) -> None:
        people.roster.define_group("leaders", [ALICE, SKIP_PC, BOB])
        host_says(people, "/mx")
        [unmute] = transport.sent_to(UNMUTE_USERS)
        [mute] = transport.sent_to(MUTE_ALL_EXCEPT)
        assert unmute.args == [ALICE, BOB]
        assert mute.args == [ALICE, BOB]
        assert transport.sent.index(unmute) < transport.sent.index(mute)

    def test_mx_named_group(self, people: RoomController, transport: MockTransport) -> None:
        people.roster.define_group("band", [CAROL])
        host_says(people, "/mx band")
        assert transport.sent_to(MUTE_ALL_EXCEPT)[0].args == [CAROL]

    def test_ux_unmutes_only_muted_with_video(
        self, people: RoomController, transport: MockTransport
    ) -> None:
        host_says(people, "/ux")
        [message] = transport.sent_to(UNMUTE_USERS)
        assert message.args == [ALICE]

    def test_ux_skips_group_members(
        self, people: RoomController, transport: MockTransport
    ) -> None:
        people.roster.define_group("leaders", [ALICE])
        host_says(people, "/ux")
        assert transport.sent_to(UNMUTE_USERS) == []
        assert transport.chats_to(HOST_ID) == ["Nobody to unmute"]

    def test_mute_group(self, people: RoomController, transport: MockTransport) -> None:
        people.roster.define_group("team", [ALICE, BOB])
        host_says(people, "/mute team")
        assert transport.sent_to(MUTE_USERS)[0].args == [ALICE, BOB]

    def test_unmute_missing_group(self, people: RoomController, transport: MockTransport) -> None:
        host_says(people, "/u ghosts")
        assert transport.sent_to(UNMUTE_USERS) == []
        assert transport.chats_to(HOST_ID) == ["Group not found: ghosts"]


class TestGroupCommands:
    def test_quoted_skip_keeps_position(self, people: RoomController) -> None:
        host_says(people, '/grp "team" "-" "alice"')
        assert people.roster.list_group("team") == [SKIP_PC, ALICE]

    def test_replace(self, people: RoomController) -> None:
        host_says(people, "/g team alice bob")
        host_says(people, "/g team carol")
        assert people.roster.list_group("team") == [CAROL]

    def test_append(self, people: RoomController) -> None:
        host_says(people, "/g team alice")
        host_says(people, "/g team + bob alice -")
        assert people.roster.list_group("team") == [ALICE, BOB, SKIP_PC]

    def test_append_creates_group(self, people: RoomController) -> None:
        host_says(people, "/group fresh + carol")
        assert people.roster.list_group("fresh") == [CAROL]

    def test_missing_names_reported_not_fatal(
        self, people: RoomController, transport: MockTransport
    ) -> None:
        host_says(people, "/g team alice zed bob")
        assert people.roster.list_group("team") == [ALICE, BOB]
        assert "Not found: zed" in transport.chats_to(HOST_ID)

    def test_shared_name_adds_every_session(self, people: RoomController) -> None:
        add_person(people.roster, 34, "alice")
        host_says(people, "/g team alice")
        assert people.roster.list_group("team") == [ALICE, 34]

    def test_list_one(self, people: RoomController, transport: MockTransport) -> None:
        people.roster.define_group("team", [ALICE, SKIP_PC])
        host_says(people, "/g team")
        assert transport.chats_to(HOST_ID) == ["team: alice, -"]

    def test_list_all(self, people: RoomController, transport: MockTransport) -> None:
        people.roster.define_group("a", [ALICE])
        people.roster.define_group("b", [])
        host_says(people, "/g")
        assert transport.chats_to(HOST_ID) == ["a: alice\nb: (empty)"]

    def test_list_none(self, people: RoomController, transport: MockTransport) -> None:
        host_says(people, "/g")
        assert transport.chats_to(HOST_ID) == ["No groups defined"]

    def test_delete_and_clear(self, people: RoomController, transport: MockTransport) -> None:
        people.roster.define_group("a", [ALICE])
        people.roster.define_group("b", [BOB])
        host_says(people, "/grpdel a")
        assert people.roster.list_group("a") is None
        host_says(people, "/gc")
        assert people.roster.list_all_groups() == {}
        assert transport.chats_to(HOST_ID)[-1] == "Deleted 1 groups"


class TestPinCommands:
    @pytest.fixture
    def support(self, people: RoomController) -> RoomController:
        add_person(people.roster, DEVICE_A, "Support A")
        add_person(people.roster, DEVICE_B, "Support B")
        return people

    def test_positional_pin(self, support: RoomController, transport: MockTransport) -> None:
        support.roster.define_group("ls-support", [SELF_ID, DEVICE_A, DEVICE_B])
        support.roster.define_group("speakers", [ALICE, BOB, CAROL])
        host_says(support, "/p speakers")

        [local] = transport.sent_to(PIN_NAME)
        assert local.args == ["alice"]
        [to_a] = relayed(transport, DEVICE_A)
        assert to_a.kind is EnvelopeKind.OSC
        assert to_a.target == DEVICE_A
        assert (to_a.address, to_a.args) == (PIN_NAME, ["bob"])
        [to_b] = relayed(transport, DEVICE_B)
        assert to_b.args == ["carol"]

    def test_skip_on_either_side(self, support: RoomController, transport: MockTransport) -> None:
        support.roster.define_group("ls-support", [DEVICE_A, SKIP_PC, DEVICE_B])
        support.roster.define_group("speakers", [SKIP_PC, ALICE, BOB])
        host_says(support, "/pin speakers")
        assert relayed(transport, DEVICE_A) == []
        [to_b] = relayed(transport, DEVICE_B)
        assert to_b.args == ["bob"]

    def test_missing_support_group(
        self, support: RoomController, transport: MockTransport
    ) -> None:
        support.roster.define_group("speakers", [ALICE])
        host_says(support, "/p speakers")
        assert transport.chats_to(HOST_ID) == ["Group not found: ls-support"]

    def test_more_targets_than_devices(
        self, support: RoomController, transport: MockTransport
    ) -> None:
        support.roster.define_group("ls-support", [DEVICE_A])
        support.roster.define_group("speakers", [ALICE, BOB])
        host_says(support, "/p speakers")
        assert len(relayed(transport, DEVICE_A)) == 1
        assert transport.chats_to(HOST_ID) == ["1 members of speakers have no support slot"]

    def test_multi_pin(self, support: RoomController, transport: MockTransport) -> None:
        support.roster.define_group("ls-support", [DEVICE_A, DEVICE_B])
        support.roster.define_group("speakers", [ALICE, SKIP_PC, CAROL])
        host_says(support, "/mp 2 speakers")
        pins = relayed(transport, DEVICE_B)
        assert [(e.address, e.args) for e in pins] == [
            (ADD_PIN_NAME, ["alice"]),
            (ADD_PIN_NAME, ["carol"]),
        ]
        assert relayed(transport, DEVICE_A) == []

    @pytest.mark.parametrize("slot", ["0", "3", "x"])
    def test_multi_pin_bad_slot(
        self, support: RoomController, transport: MockTransport, slot: str
    ) -> None:
        support.roster.define_group("ls-support", [DEVICE_A, DEVICE_B])
        support.roster.define_group("speakers", [ALICE])
        host_says(support, f"/mpin {slot} speakers")
        assert relayed(transport, DEVICE_A) == relayed(transport, DEVICE_B) == []
        assert len(transport.chats_to(HOST_ID)) == 1


class TestRelayCommands:
    def test_xremote_relays_to_every_matching_session(
        self, people: RoomController, transport: MockTransport
    ) -> None:
        add_person(people.roster, DEVICE_A, "Support")
        add_person(people.roster, DEVICE_B, "Support")
        host_says(people, "/xremote Support /zoom/galleryView 2 on")
        for device in (DEVICE_A, DEVICE_B):
            [env] = relayed(transport, device)
            assert env.target == device
            assert env.address == "/zoom/galleryView"
            assert env.args == [2, "on"]

    def test_xremote_unknown_name(self, people: RoomController, transport: MockTransport) -> None:
        host_says(people, "/xremote Nobody /zoom/list")
        assert transport.chats_to(HOST_ID) == ["Not found: Nobody"]

    def test_xlocal_for_someone_else_is_ignored(
        self, people: RoomController, transport: MockTransport
    ) -> None:
        host_says(people, envelope.encode(envelope.osc(999, "/zoom/list")))
        assert transport.sent == []

    def test_xlocal_before_identity_known_ignored(
        self, people: RoomController, transport: MockTransport
    ) -> None:
        people.identity.session_id = None
        host_says(people, envelope.encode(envelope.osc(SELF_ID, "/zoom/list")))
        assert transport.sent == []

    def test_iam_adopted_before_identity_known(self, people: RoomController) -> None:
        people.identity.mode = InstanceMode.SECONDARY
        people.identity.session_id = None
        chat(people, HOST_ID, "primary", envelope.encode(envelope.iam(77, "Support C")))
        assert people.identity.session_id == 77
        assert people.identity.name == "Support C"

    def test_primary_ignores_guest_control_request(
        self, people: RoomController, transport: MockTransport
    ) -> None:
        text = envelope.encode(envelope.osc(SELF_ID, "/zoom/zoomID/makeCoHost", ALICE))
        chat(people, ALICE, "alice", text)
        assert transport.sent == []
        host_says(people, text)
        assert len(transport.sent_to("/zoom/zoomID/makeCoHost")) == 1

    def test_primary_ignores_iam(self, people: RoomController) -> None:
        host_says(people, envelope.encode(envelope.iam(SELF_ID, "Impostor")))
        assert people.identity.session_id == SELF_ID
        assert people.identity.name != "Impostor"

    def test_secondary_rejects_envelope_from_non_primary(
        self, people: RoomController, transport: MockTransport
    ) -> None:
        people.identity.mode = InstanceMode.SECONDARY
        people.config.primary_name = "Control Room"
        chat(people, ALICE, "alice", envelope.encode(envelope.osc(SELF_ID, "/zoom/list")))
        assert transport.sent == []
        chat(people, 2, "Control Room", envelope.encode(envelope.osc(SELF_ID, "/zoom/list")))
        assert len(transport.sent_to("/zoom/list")) == 1


class TestIdentityCommands:
    def test_whoami_device_registers_and_answers(
        self, people: RoomController, transport: MockTransport
    ) -> None:
        chat(people, DEVICE_A, "Support A", "/whoami device")
        assert people.roster.list_group("devices") == [DEVICE_A]
        envelopes = relayed(transport, DEVICE_A)
        assert envelopes[0].kind is EnvelopeKind.IAM
        assert envelopes[0].args == [DEVICE_A, "Support A"]
        # The whole roster follows so the new device starts in sync
        snapshots = [e for e in envelopes if e.kind is EnvelopeKind.SNAPSHOT]
        assert len(snapshots) == len(people.roster)

    def test_whoami_device_twice_registers_once(
        self, people: RoomController, transport: MockTransport
    ) -> None:
        chat(people, DEVICE_A, "Support A", "/whoami device")
        chat(people, DEVICE_A, "Support A", "/whoami device")
        assert people.roster.list_group("devices") == [DEVICE_A]

    def test_state_reports_summary(self, people: RoomController, transport: MockTransport) -> None:
        host_says(people, "/state")
        assert transport.chats_to(HOST_ID) == [
            "5 participants, 0 groups, mode primary, meeting none"
        ]

    def test_list_requests_snapshot(
        self, people: RoomController, transport: MockTransport
    ) -> None:
        host_says(people, "/list")
        assert len(transport.sent_to("/zoom/list")) == 1
