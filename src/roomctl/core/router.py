"""Authorization and command routing for chat commands."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum, unique

from roomctl.core import envelope, handlers
from roomctl.core.auth import CodewordResult, check_codeword, check_privilege
from roomctl.core.envelope import EnvelopeError
from roomctl.core.handlers import CommandHandler
from roomctl.core.state import AppState, Command
from roomctl.core.tokenizer import split_commands, wordify

logger = logging.getLogger("roomctl.router")

PRIVILEGE_ERROR = "Error: Only Hosts and Co-hosts can issue Chat Commands"
UNIMPLEMENTED_ERROR = "Error: Unimplemented Chat Command"
CODEWORD_MISSING_ERROR = "Error: No codeword is configured for this command"
CODEWORD_INVALID_ERROR = "Error: Invalid codeword"


@unique
class Gate(StrEnum):
    """What a command must pass before its handler runs."""

    PRIVILEGE = "privilege"
    CODEWORD = "codeword"
    OPEN = "open"


@unique
class RouteOutcome(StrEnum):
    IGNORED = "ignored"
    DROPPED_SECONDARY = "dropped_secondary"
    REJECTED_PRIVILEGE = "rejected_privilege"
    REJECTED_CODEWORD = "rejected_codeword"
    CODEWORD_NOT_CONFIGURED = "codeword_not_configured"
    ENVELOPE_INVALID = "envelope_invalid"
    UNIMPLEMENTED = "unimplemented"
    HANDLED = "handled"
    FAILED = "failed"


@dataclass
class CommandSpec:
    """A registered chat command.

    Attributes:
        verb: Canonical verb, including the leading slash.
        handler: Function run once the gates pass.
        gate: Authorization applied before the handler.
        secondary_ok: Whether a secondary instance executes it locally.
        aliases: Other verbs resolving to this one.
        usage: One-line help text.
    """

    verb: str
    handler: CommandHandler
    gate: Gate = Gate.PRIVILEGE
    secondary_ok: bool = False
    aliases: tuple[str, ...] = ()
    usage: str = ""


@dataclass
class RouteResult:
    """What happened to one command line."""

    outcome: RouteOutcome
    verb: str | None = None
    line: str = ""
    replies: list[str] = field(default_factory=list)


class CommandRouter:
    """Gate and dispatch chat commands.

    One line moves through: special-command lookup, the secondary gate,
    then either the privilege gate or the codeword gate, then the handler.
    Unknown verbs pass the privilege gate first so unprivileged senders
    learn nothing about which verbs exist.
    """

    def __init__(self) -> None:
        self._commands: dict[str, CommandSpec] = {}
        self._aliases: dict[str, str] = {}
        for spec in default_commands():
            self.register(spec)
        self.register(
            CommandSpec("/h", self._handle_help, aliases=("/help",), usage="/h  this help")
        )

    def register(self, spec: CommandSpec) -> None:
        verb = spec.verb.lower()
        self._commands[verb] = spec
        for alias in spec.aliases:
            self._aliases[alias.lower()] = verb

    def resolve(self, verb: str) -> CommandSpec | None:
        verb = verb.lower()
        return self._commands.get(self._aliases.get(verb, verb))

    @property
    def commands(self) -> list[CommandSpec]:
        return list(self._commands.values())

    def route(
        self, state: AppState, sender_id: int, sender_name: str, text: str
    ) -> list[RouteResult]:
        """Route every line of a chat payload in order."""
        return [
            self.route_line(state, sender_id, sender_name, line)
            for line in split_commands(text)
        ]

    def route_line(
        self, state: AppState, sender_id: int, sender_name: str, line: str
    ) -> RouteResult:
        if not line.startswith("/"):
            return RouteResult(RouteOutcome.IGNORED, line=line)

        if envelope.is_envelope(line):
            try:
                env = envelope.decode(line)
            except EnvelopeError as exc:
                logger.warning("Discarding malformed envelope from %s: %s", sender_name, exc)
                return RouteResult(RouteOutcome.ENVELOPE_INVALID, envelope.ENVELOPE_VERB, line)
            cmd = Command(
                verb=envelope.ENVELOPE_VERB,
                args=[],
                sender_id=sender_id,
                sender_name=sender_name,
                raw=line,
                envelope=env,
            )
        else:
            words = wordify(line)
            cmd = Command(
                verb=words[0].lower(),
                args=words[1:],
                sender_id=sender_id,
                sender_name=sender_name,
                raw=line,
            )

        spec = self.resolve(cmd.verb)
        if spec is not None:
            cmd.verb = spec.verb

        if not state.identity.is_primary and not (spec and spec.secondary_ok):
            logger.debug("Secondary instance dropping %s from %s", cmd.verb, sender_name)
            return RouteResult(RouteOutcome.DROPPED_SECONDARY, cmd.verb, line)

        gate = spec.gate if spec else Gate.PRIVILEGE
        if gate is Gate.PRIVILEGE and not check_privilege(state.roster, sender_id).allowed:
            logger.info("Rejected %s from unprivileged %s (%d)", cmd.verb, sender_name, sender_id)
            return self._reject(state, cmd, RouteOutcome.REJECTED_PRIVILEGE, PRIVILEGE_ERROR)

        if spec is None:
            return self._reject(state, cmd, RouteOutcome.UNIMPLEMENTED, UNIMPLEMENTED_ERROR)

        if gate is Gate.CODEWORD:
            supplied = cmd.args.pop(0) if cmd.args else None
            result = check_codeword(supplied, state.scheduler.expected_codeword())
            if result is CodewordResult.NOT_CONFIGURED:
                return self._reject(
                    state, cmd, RouteOutcome.CODEWORD_NOT_CONFIGURED, CODEWORD_MISSING_ERROR
                )
            if result is CodewordResult.REJECTED:
                logger.warning("Wrong codeword for %s from %s", cmd.verb, sender_name)
                return self._reject(
                    state, cmd, RouteOutcome.REJECTED_CODEWORD, CODEWORD_INVALID_ERROR
                )

        logger.info("%s (%d): %s", sender_name, sender_id, cmd.verb)
        try:
            spec.handler(state, cmd)
        except Exception:
            logger.exception("Command %s failed", cmd.verb)
            return self._reject(
                state, cmd, RouteOutcome.FAILED, f"Error: {cmd.verb} failed, see the log"
            )
        return RouteResult(RouteOutcome.HANDLED, cmd.verb, line)

    def help_text(self) -> str:
        return "\n".join(spec.usage for spec in self._commands.values() if spec.usage)

    def _handle_help(self, state: AppState, cmd: Command) -> None:
        handlers.reply(state, cmd, self.help_text())

    def _reject(
        self, state: AppState, cmd: Command, outcome: RouteOutcome, text: str
    ) -> RouteResult:
        handlers.reply(state, cmd, text)
        return RouteResult(outcome, cmd.verb, cmd.raw, [text])


def default_commands() -> list[CommandSpec]:
    """The built-in chat command table."""
    return [
        CommandSpec(
            "/whoami",
            handlers.handle_whoami,
            gate=Gate.OPEN,
            usage="/whoami [device]  show your name and id",
        ),
        CommandSpec(
            "/state",
            handlers.handle_state,
            secondary_ok=True,
            usage="/state  log the roster and report a summary",
        ),
        CommandSpec("/list", handlers.handle_list, usage="/list  refresh the roster"),
        CommandSpec("/ma", handlers.handle_mute_all, usage="/ma  mute all"),
        CommandSpec("/ua", handlers.handle_unmute_all, usage="/ua  unmute all"),
        CommandSpec(
            "/mx", handlers.handle_mute_except, usage="/mx [group]  mute all except group"
        ),
        CommandSpec(
            "/ux",
            handlers.handle_unmute_except,
            usage="/ux [group]  unmute muted people with video, except group",
        ),
        CommandSpec(
            "/m", handlers.handle_mute_group, aliases=("/mute",), usage="/m <group>  mute group"
        ),
        CommandSpec(
            "/u",
            handlers.handle_unmute_group,
            aliases=("/unmute",),
            usage="/u <group>  unmute group",
        ),
        CommandSpec(
            "/g",
            handlers.handle_group,
            aliases=("/grp", "/group"),
            usage="/g [group [+] [names...]]  list, set or append to groups",
        ),
        CommandSpec(
            "/gd",
            handlers.handle_group_delete,
            aliases=("/grpdel",),
            usage="/gd <group>  delete group",
        ),
        CommandSpec(
            "/gc",
            handlers.handle_group_clear,
            aliases=("/grpclear",),
            usage="/gc  delete all groups",
        ),
        CommandSpec(
            "/p",
            handlers.handle_pin,
            aliases=("/pin",),
            usage="/p <group>  pin group members on the support devices",
        ),
        CommandSpec(
            "/mp",
            handlers.handle_multi_pin,
            aliases=("/mpin", "/multipin"),
            usage="/mp <slot> <group>  pin a whole group on one support device",
        ),
        CommandSpec(
            "/xremote",
            handlers.handle_execute_remote,
            usage="/xremote <name> </address> [args]  run a request on another device",
        ),
        CommandSpec(
            envelope.ENVELOPE_VERB,
            handlers.handle_execute_local,
            gate=Gate.OPEN,
            secondary_ok=True,
        ),
        CommandSpec(
            "/start",
            handlers.handle_start,
            gate=Gate.CODEWORD,
            usage="/start <codeword> [meeting]  start a meeting now",
        ),
        CommandSpec(
            "/end",
            handlers.handle_end,
            gate=Gate.CODEWORD,
            usage="/end <codeword>  end the current meeting",
        ),
        CommandSpec(
            "/extend",
            handlers.handle_extend,
            gate=Gate.CODEWORD,
            usage="/extend <codeword> [minutes]  extend the current meeting",
        ),
    ]
