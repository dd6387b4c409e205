"""Run one roomctl instance: ``python -m roomctl``."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
from pathlib import Path

from dotenv import load_dotenv

from roomctl.config import RoomCtlConfig
from roomctl.core.controller import RoomController
from roomctl.models.enums import InstanceMode
from roomctl.transport.osc import OSCTransport

logger = logging.getLogger("roomctl")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="roomctl", description="Chat command and meeting control for ZoomOSC"
    )
    parser.add_argument(
        "--mode", choices=[m.value for m in InstanceMode], help="instance mode (default auto)"
    )
    parser.add_argument(
        "--secondary",
        action="store_const",
        const=InstanceMode.SECONDARY.value,
        dest="mode",
        help="shorthand for --mode secondary",
    )
    parser.add_argument("--name", dest="my_name", help="display name of this instance's client")
    parser.add_argument("--primary-name", help="display name of the primary instance's client")
    parser.add_argument("--schedule", dest="schedule_path", type=Path, help="schedule JSON file")
    parser.add_argument("--listen-port", type=int, help="port to receive ZoomOSC messages on")
    parser.add_argument("--zoomosc-host", help="ZoomOSC host")
    parser.add_argument("--zoomosc-port", type=int, help="ZoomOSC port")
    parser.add_argument("--env-file", type=Path, help="load environment from this file")
    parser.add_argument("--debug", action="store_true", help="verbose logging")
    return parser


def config_from_args(args: argparse.Namespace) -> RoomCtlConfig:
    return RoomCtlConfig.from_env(
        mode=args.mode,
        my_name=args.my_name,
        primary_name=args.primary_name,
        schedule_path=args.schedule_path,
        listen_port=args.listen_port,
        zoomosc_host=args.zoomosc_host,
        zoomosc_port=args.zoomosc_port,
    )


async def serve(config: RoomCtlConfig) -> None:
    transport = OSCTransport(
        listen_host=config.listen_host,
        listen_port=config.listen_port,
        send_host=config.zoomosc_host,
        send_port=config.zoomosc_port,
    )
    async with RoomController(config, transport) as controller:
        await controller.run()


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    load_dotenv(args.env_file)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = config_from_args(args)
    logger.info(
        "Listening on %s:%d, ZoomOSC at %s:%d",
        config.listen_host,
        config.listen_port,
        config.zoomosc_host,
        config.zoomosc_port,
    )
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(serve(config))


if __name__ == "__main__":
    main()
