"""Relay envelopes carried inside chat text.

An envelope is an out-of-band instruction addressed to one instance and
delivered through the ordinary chat channel as ``/xlocal {json}``. This
module is the only place that knows the textual encoding.
"""

from __future__ import annotations

import json
import logging
from enum import StrEnum, unique
from typing import Any

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger("roomctl.envelope")

ENVELOPE_VERB = "/xlocal"


class EnvelopeError(ValueError):
    """Chat text looked like an envelope but could not be decoded."""


@unique
class EnvelopeKind(StrEnum):
    OSC = "osc"
    IAM = "iam"
    SNAPSHOT = "snapshot"


# Kinds that may be executed before this instance knows its own session id.
META_KINDS = frozenset({EnvelopeKind.IAM})


class RelayEnvelope(BaseModel):
    """An instruction for the instance whose session id is ``target``.

    Attributes:
        target: Session id of the instance that should act on it.
        kind: ``osc`` sends ``address``/``args`` to the local control plane,
            ``iam`` tells the target its own identity (``args`` is
            ``[session_id, name]``), ``snapshot`` carries raw roster row
            arguments to apply to the local roster.
        address: Control-plane address for ``osc`` envelopes.
        args: Positional payload.
    """

    target: int
    kind: EnvelopeKind
    address: str | None = None
    args: list[Any] = Field(default_factory=list)

    @property
    def is_meta(self) -> bool:
        return self.kind in META_KINDS


def is_envelope(line: str) -> bool:
    return line == ENVELOPE_VERB or line.startswith(ENVELOPE_VERB + " ")


def encode(envelope: RelayEnvelope) -> str:
    """Render *envelope* as a single line of chat text.

    Non-ASCII characters are escaped so chat-side quote rewriting cannot
    corrupt the payload.
    """
    body = json.dumps(envelope.model_dump(mode="json", exclude_none=True), ensure_ascii=True)
    return f"{ENVELOPE_VERB} {body}"


def decode(line: str) -> RelayEnvelope:
    """Parse one chat line produced by :func:`encode`.

    Raises:
        EnvelopeError: If the line is not a well-formed envelope.
    """
    if not is_envelope(line):
        raise EnvelopeError(f"not an envelope: {line[:40]!r}")
    body = line[len(ENVELOPE_VERB) :].strip()
    if not body:
        raise EnvelopeError("empty envelope")
    try:
        return RelayEnvelope.model_validate_json(body)
    except ValidationError as exc:
        raise EnvelopeError(str(exc)) from exc


def osc(target: int, address: str, *args: Any) -> RelayEnvelope:
    return RelayEnvelope(target=target, kind=EnvelopeKind.OSC, address=address, args=list(args))


def iam(target: int, name: str) -> RelayEnvelope:
    return RelayEnvelope(target=target, kind=EnvelopeKind.IAM, args=[target, name])


def snapshot(target: int, raw_args: list[Any]) -> RelayEnvelope:
    return RelayEnvelope(target=target, kind=EnvelopeKind.SNAPSHOT, args=list(raw_args))
