"""Authorization checks used by the command router."""

from __future__ import annotations

import hmac
import logging
from enum import StrEnum, unique

from pydantic import SecretStr

from roomctl.core.roster import RosterStore
from roomctl.models.enums import Privilege

logger = logging.getLogger("roomctl.auth")


@unique
class CodewordResult(StrEnum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    NOT_CONFIGURED = "not_configured"


def check_privilege(roster: RosterStore, session_id: int) -> Privilege:
    """Look up *session_id*; callers must treat ``UNKNOWN`` as not allowed."""
    result = roster.privilege(session_id)
    if result is Privilege.UNKNOWN:
        logger.debug("Privilege check for unknown session %d", session_id)
    return result


def check_codeword(supplied: str | None, expected: SecretStr | None) -> CodewordResult:
    """Compare a supplied codeword with the configured one in constant time.

    An empty configured codeword counts as not configured.
    """
    if expected is None or not expected.get_secret_value():
        return CodewordResult.NOT_CONFIGURED
    if not supplied:
        return CodewordResult.REJECTED
    if hmac.compare_digest(supplied.encode(), expected.get_secret_value().encode()):
        return CodewordResult.ACCEPTED
    return CodewordResult.REJECTED
