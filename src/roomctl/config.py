"""Process configuration."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, SecretStr

from roomctl.models.enums import InstanceMode

# Environment variable -> config field. The first three keep the names the
# ZoomOSC helper scripts have always used.
ENV_FIELDS: dict[str, str] = {
    "LISTEN_PORT": "listen_port",
    "ZOOMOSC_HOST": "zoomosc_host",
    "ZOOMOSC_PORT": "zoomosc_port",
    "ROOMCTL_LISTEN_HOST": "listen_host",
    "ROOMCTL_MODE": "mode",
    "ROOMCTL_NAME": "my_name",
    "ROOMCTL_PRIMARY_NAME": "primary_name",
    "ROOMCTL_SCHEDULE": "schedule_path",
    "ROOMCTL_CODEWORD": "default_codeword",
    "ROOMCTL_TICK_INTERVAL": "tick_interval",
}


class RoomCtlConfig(BaseModel):
    """Settings for one roomctl instance.

    Attributes:
        listen_host: Interface to receive control-plane datagrams on.
        listen_port: Port to receive control-plane datagrams on.
        zoomosc_host: Host of the control endpoint.
        zoomosc_port: Port of the control endpoint.
        mode: ``auto`` decides primary/secondary from the capability ping.
        my_name: Display name of this instance's own client, if known.
        primary_name: Display name of the primary's client; secondaries
            address their identity query to it.
        schedule_path: JSON schedule file; ``None`` disables auto start/stop.
        default_codeword: Fallback codeword when the schedule file has none.
        tick_interval: Seconds between scheduler ticks.
        warning_window_minutes: Start warning this long before the hard cap.
        warning_interval_seconds: Minimum gap between repeated warnings.
        default_extend_minutes: Extension applied by ``/extend`` without a value.
        stale_after_cycles: Missed snapshot cycles before a participant is swept.
        discovery_retry_seconds: Retry interval for identity discovery.
        support_group: Group of support devices used by the pin commands.
        default_mute_group: Group spared by ``/mx`` and ``/ux`` without an argument.
        devices_group: Group of registered secondary instances.
        subscribe_mode: Subscription level requested at startup.
    """

    listen_host: str = "0.0.0.0"
    listen_port: int = Field(default=1234, gt=0, lt=65536)
    zoomosc_host: str = "localhost"
    zoomosc_port: int = Field(default=9090, gt=0, lt=65536)
    mode: InstanceMode = InstanceMode.AUTO
    my_name: str | None = None
    primary_name: str | None = None
    schedule_path: Path | None = None
    default_codeword: SecretStr | None = None
    tick_interval: float = Field(default=10.0, gt=0.0)
    warning_window_minutes: int = Field(default=10, ge=0)
    warning_interval_seconds: float = Field(default=300.0, gt=0.0)
    default_extend_minutes: int = Field(default=15, gt=0)
    stale_after_cycles: int = Field(default=1, ge=1)
    discovery_retry_seconds: float = Field(default=5.0, gt=0.0)
    support_group: str = "ls-support"
    default_mute_group: str = "leaders"
    devices_group: str = "devices"
    subscribe_mode: int = 2

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, **overrides: Any
    ) -> RoomCtlConfig:
        """Build a config from environment variables, then apply *overrides*.

        ``None`` overrides are ignored so unset CLI flags fall through.
        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {
            field: env[var] for var, field in ENV_FIELDS.items() if env.get(var)
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
