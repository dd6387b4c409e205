"""Chat command handlers.

Every handler takes the application state and one tokenized command and
returns nothing. User-facing problems are answered in chat to the sender;
handlers do not raise for missing names, groups or ids.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable
from typing import Any

from roomctl.core import envelope
from roomctl.core.auth import check_privilege
from roomctl.core.control import ADD_PIN_NAME, PIN_NAME
from roomctl.core.envelope import EnvelopeKind
from roomctl.core.normalizer import to_int
from roomctl.core.state import AppState, Command
from roomctl.models.participant import SKIP_PC, SKIP_PC_TOKEN

logger = logging.getLogger("roomctl.handlers")

CommandHandler = Callable[[AppState, Command], None]

_INT_TOKEN = re.compile(r"^-?\d+$")
_APPEND_TOKEN = "+"


def reply(state: AppState, cmd: Command, text: str) -> None:
    state.control.chat(cmd.sender_id, text)


def resolve_names(state: AppState, names: list[str]) -> tuple[list[int], list[str]]:
    """Resolve display names to session ids, in order.

    The skip token becomes :data:`SKIP_PC`. A name shared by several
    sessions contributes all of them. Returns ``(ids, missing_names)``.
    """
    ids: list[int] = []
    missing: list[str] = []
    for name in names:
        if name == SKIP_PC_TOKEN:
            ids.append(SKIP_PC)
            continue
        people = state.roster.lookup_by_name(name)
        if people is None:
            missing.append(name)
            continue
        ids.extend(p.session_id for p in people)
    return ids, missing


def _format_group(state: AppState, name: str, members: list[int]) -> str:
    labels = state.roster.display_names(members)
    return f"{name}: {', '.join(labels) if labels else '(empty)'}"


def _real(ids: list[int]) -> list[int]:
    return [i for i in ids if i != SKIP_PC]


def dispatch_to_device(state: AppState, device_id: int, address: str, *args: Any) -> None:
    """Run a control request on the instance whose client is *device_id*.

    Our own device gets the request directly; any other device gets it as a
    relay envelope in chat and executes it locally.
    """
    if device_id == state.identity.session_id:
        state.control.send(address, *args)
        return
    text = envelope.encode(envelope.osc(device_id, address, *args))
    state.control.chat(device_id, text)


# Identity and diagnostics


def handle_whoami(state: AppState, cmd: Command) -> None:
    if (cmd.arg(0) or "").lower() == "device":
        _register_device(state, cmd)
        return
    person = state.roster.get(cmd.sender_id)
    role = person.role.name.lower() if person else "unknown"
    reply(state, cmd, f"You are {cmd.sender_name} (id {cmd.sender_id}, role {role})")


def _register_device(state: AppState, cmd: Command) -> None:
    devices = state.config.devices_group
    answer = envelope.iam(cmd.sender_id, cmd.sender_name)
    state.control.chat(cmd.sender_id, envelope.encode(answer))
    if state.roster.append_to_group(devices, [cmd.sender_id]):
        logger.info("Registered device %s (%d)", cmd.sender_name, cmd.sender_id)
        state.relay.replay_to(cmd.sender_id)


def handle_state(state: AppState, cmd: Command) -> None:
    current = state.scheduler.current
    dump = state.roster.dump()
    dump["identity"] = {
        "name": state.identity.name,
        "session_id": state.identity.session_id,
        "mode": state.identity.mode,
        "is_pro": state.identity.is_pro,
    }
    dump["meeting"] = current.name if current else None
    logger.info("State dump: %s", json.dumps(dump, default=str))
    mode = state.identity.mode or "undetermined"
    reply(
        state,
        cmd,
        f"{len(state.roster)} participants, {len(dump['groups'])} groups, "
        f"mode {mode}, meeting {current.name if current else 'none'}",
    )


def handle_list(state: AppState, cmd: Command) -> None:
    state.control.request_list()
    reply(state, cmd, "Roster refresh requested")


# Mute


def handle_mute_all(state: AppState, cmd: Command) -> None:
    state.control.mute_all()


def handle_unmute_all(state: AppState, cmd: Command) -> None:
    state.control.unmute_all()


def handle_mute_except(state: AppState, cmd: Command) -> None:
    """Unmute the group, then mute everyone else.

    A missing or empty group mutes everyone.
    """
    name = cmd.arg(0) or state.config.default_mute_group
    members = _real(state.roster.list_group(name) or [])
    if not members:
        logger.info("Group %r missing or empty, muting everyone", name)
        state.control.mute_all()
        return
    state.control.unmute_users(members)
    state.control.mute_all_except(members)


def handle_unmute_except(state: AppState, cmd: Command) -> None:
    """Unmute muted participants outside the group who have video on."""
    name = cmd.arg(0) or state.config.default_mute_group
    members = set(state.roster.list_group(name) or [])
    targets = [
        p.session_id
        for p in state.roster.participants()
        if p.session_id not in members and not p.audio_on and p.video_on
    ]
    if not targets:
        reply(state, cmd, "Nobody to unmute")
        return
    state.control.unmute_users(targets)


def _group_members_or_reply(state: AppState, cmd: Command) -> list[int] | None:
    name = cmd.arg(0)
    if name is None:
        reply(state, cmd, f"Usage: {cmd.verb} <group>")
        return None
    members = state.roster.list_group(name)
    if members is None:
        reply(state, cmd, f"Group not found: {name}")
        return None
    if not _real(members):
        reply(state, cmd, f"Group {name} is empty")
        return None
    return _real(members)


def handle_mute_group(state: AppState, cmd: Command) -> None:
    members = _group_members_or_reply(state, cmd)
    if members:
        state.control.mute_users(members)


def handle_unmute_group(state: AppState, cmd: Command) -> None:
    members = _group_members_or_reply(state, cmd)
    if members:
        state.control.unmute_users(members)


# Groups


def handle_group(state: AppState, cmd: Command) -> None:
    """List all groups, list one, replace one, or append with ``+``."""
    if not cmd.args:
        groups = state.roster.list_all_groups()
        if not groups:
            reply(state, cmd, "No groups defined")
            return
        lines = [_format_group(state, name, members) for name, members in groups.items()]
        reply(state, cmd, "\n".join(lines))
        return

    name, rest = cmd.args[0], cmd.args[1:]
    if not rest:
        members = state.roster.list_group(name)
        if members is None:
            reply(state, cmd, f"Group not found: {name}")
        else:
            reply(state, cmd, _format_group(state, name, members))
        return

    append = rest[0] == _APPEND_TOKEN
    if append:
        rest = rest[1:]
    ids, missing = resolve_names(state, rest)
    if append:
        state.roster.append_to_group(name, ids)
    else:
        state.roster.define_group(name, ids)
    if missing:
        reply(state, cmd, f"Not found: {', '.join(missing)}")
    members = state.roster.list_group(name) or []
    reply(state, cmd, _format_group(state, name, members))


def handle_group_delete(state: AppState, cmd: Command) -> None:
    name = cmd.arg(0)
    if name is None:
        reply(state, cmd, f"Usage: {cmd.verb} <group>")
    elif state.roster.delete_group(name):
        reply(state, cmd, f"Deleted group {name}")
    else:
        reply(state, cmd, f"Group not found: {name}")


def handle_group_clear(state: AppState, cmd: Command) -> None:
    count = state.roster.clear_all_groups()
    reply(state, cmd, f"Deleted {count} groups")


# Pins


def handle_pin(state: AppState, cmd: Command) -> None:
    """Pin each group member on the support device in the same position."""
    name = cmd.arg(0)
    if name is None:
        reply(state, cmd, f"Usage: {cmd.verb} <group>")
        return
    support = state.roster.list_group(state.config.support_group)
    targets = state.roster.list_group(name)
    if support is None:
        reply(state, cmd, f"Group not found: {state.config.support_group}")
        return
    if targets is None:
        reply(state, cmd, f"Group not found: {name}")
        return

    for device_id, target_id in zip(support, targets, strict=False):
        if device_id == SKIP_PC or target_id == SKIP_PC:
            continue
        person = state.roster.get(target_id)
        if person is None:
            reply(state, cmd, f"Participant {target_id} is no longer present")
            continue
        dispatch_to_device(state, device_id, PIN_NAME, person.name)
    if len(targets) > len(support):
        reply(state, cmd, f"{len(targets) - len(support)} members of {name} have no support slot")


def handle_multi_pin(state: AppState, cmd: Command) -> None:
    """Pin every member of a group on the support device at a 1-based slot."""
    slot, name = to_int(cmd.arg(0)), cmd.arg(1)
    if slot is None or name is None:
        reply(state, cmd, f"Usage: {cmd.verb} <slot> <group>")
        return
    support = state.roster.list_group(state.config.support_group) or []
    if not 1 <= slot <= len(support):
        reply(state, cmd, f"No support device at slot {slot}")
        return
    device_id = support[slot - 1]
    if device_id == SKIP_PC:
        reply(state, cmd, f"Support slot {slot} is skipped")
        return
    targets = state.roster.list_group(name)
    if targets is None:
        reply(state, cmd, f"Group not found: {name}")
        return
    for person in filter(None, (state.roster.get(i) for i in _real(targets))):
        dispatch_to_device(state, device_id, ADD_PIN_NAME, person.name)


# Cross-instance relay


def _coerce_arg(token: str) -> Any:
    return int(token) if _INT_TOKEN.match(token) else token


def handle_execute_remote(state: AppState, cmd: Command) -> None:
    """Relay a control request to every session using a given name."""
    if len(cmd.args) < 2 or not cmd.args[1].startswith("/"):
        reply(state, cmd, f"Usage: {cmd.verb} <name> </address> [args...]")
        return
    name, address = cmd.args[0], cmd.args[1]
    people = state.roster.lookup_by_name(name)
    if people is None:
        reply(state, cmd, f"Not found: {name}")
        return
    args = [_coerce_arg(a) for a in cmd.args[2:]]
    for person in people:
        text = envelope.encode(envelope.osc(person.session_id, address, *args))
        state.control.chat(person.session_id, text)


def handle_execute_local(state: AppState, cmd: Command) -> None:
    """Execute a relay envelope addressed to this instance."""
    env = cmd.envelope
    if env is None:
        return
    identity = state.identity
    primary_name = state.config.primary_name
    if identity.is_secondary and primary_name and cmd.sender_name != primary_name:
        logger.warning("Ignoring envelope from %r: not the primary", cmd.sender_name)
        return
    # The primary learns its identity from its own events and takes control
    # requests only from privileged senders.
    if identity.is_primary and (
        env.is_meta or not check_privilege(state.roster, cmd.sender_id).allowed
    ):
        logger.warning(
            "Ignoring %s envelope from %s (%d) on the primary",
            env.kind,
            cmd.sender_name,
            cmd.sender_id,
        )
        return

    if env.is_meta:
        if identity.known and env.target != identity.session_id:
            return
        if env.kind is EnvelopeKind.IAM:
            session_id = to_int(env.args[0]) if env.args else None
            name = str(env.args[1]) if len(env.args) > 1 else None
            if session_id is None:
                logger.warning("iam envelope without a session id: %s", env.args)
                return
            identity.adopt(session_id, name)
        return

    if not identity.known or env.target != identity.session_id:
        logger.debug("Envelope for %d is not ours (%s)", env.target, identity.session_id)
        return
    if env.kind is EnvelopeKind.OSC:
        if not env.address:
            logger.warning("osc envelope without an address")
            return
        state.control.send(env.address, *env.args)
    elif env.kind is EnvelopeKind.SNAPSHOT:
        state.relay.apply(env)


# Meeting control (codeword already verified and removed from args)


def handle_start(state: AppState, cmd: Command) -> None:
    name = cmd.arg(0)
    meeting = state.scheduler.start_now(name)
    if meeting is None:
        reply(state, cmd, f"No meeting named {name}" if name else "No current meeting to start")
        return
    reply(state, cmd, f"Starting {meeting.name}")


def handle_end(state: AppState, cmd: Command) -> None:
    meeting = state.scheduler.end_now()
    reply(state, cmd, f"Ending {meeting.name}" if meeting else "Ending meeting")


def handle_extend(state: AppState, cmd: Command) -> None:
    raw = cmd.arg(0)
    minutes = state.config.default_extend_minutes if raw is None else to_int(raw)
    if minutes is None or minutes <= 0:
        reply(state, cmd, f"Usage: {cmd.verb} <codeword> [minutes]")
        return
    if state.scheduler.extend(minutes) is None:
        reply(state, cmd, "No current meeting to extend")
