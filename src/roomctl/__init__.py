"""roomctl - chat command and meeting control for ZoomOSC."""

from roomctl._version import __version__
from roomctl.config import RoomCtlConfig
from roomctl.core.controller import RoomController
from roomctl.core.envelope import EnvelopeError, RelayEnvelope
from roomctl.core.roster import RosterStore
from roomctl.core.router import CommandRouter, CommandSpec, Gate, RouteOutcome
from roomctl.core.scheduler import MeetingScheduler, ScheduleLoadError
from roomctl.core.state import AppState, Command, SessionIdentity
from roomctl.models.enums import InstanceMode, Privilege, UserRole
from roomctl.models.meeting import MeetingDescriptor, ScheduledMeeting, ScheduleFile
from roomctl.models.participant import SKIP_PC, Participant
from roomctl.transport import ControlTransport, MockTransport

__all__ = [
    "__version__",
    # Core
    "RoomController",
    "RoomCtlConfig",
    "AppState",
    "Command",
    "SessionIdentity",
    "RosterStore",
    "CommandRouter",
    "CommandSpec",
    "Gate",
    "RouteOutcome",
    "MeetingScheduler",
    "ScheduleLoadError",
    "EnvelopeError",
    "RelayEnvelope",
    # Models
    "InstanceMode",
    "Privilege",
    "UserRole",
    "Participant",
    "SKIP_PC",
    "MeetingDescriptor",
    "ScheduledMeeting",
    "ScheduleFile",
    # Transports
    "ControlTransport",
    "MockTransport",
]
