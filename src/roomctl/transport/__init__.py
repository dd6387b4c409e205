"""Control-plane transports for roomctl."""

from typing import Any

from roomctl.transport.base import (
    BaseControlTransport,
    ControlTransport,
    EmitCallback,
    TransportHealth,
)
from roomctl.transport.mock import MockTransport

__all__ = [
    "BaseControlTransport",
    "ControlTransport",
    "EmitCallback",
    "MockTransport",
    "TransportHealth",
    # Lazy import, needs python-osc
    "OSCTransport",
]


def __getattr__(name: str) -> Any:
    """Lazy import for the OSC transport."""
    if name == "OSCTransport":
        from roomctl.transport.osc import OSCTransport

        return OSCTransport
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
