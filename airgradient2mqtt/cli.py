"""Command-line interface for airgradient2mqtt."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Mapping, Optional

from . import __version__, constants
from .app import AirGradientBridgeApp
from .config import ConfigurationError, load_config

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="airgradient2mqtt",
        description="Bridge AirGradient sensors to MQTT with Home Assistant discovery",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=constants.DEFAULT_CONFIG_PATH,
        help=f"Path to configuration file (default: {constants.DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("start", help="Start the bridge (default)")
    subparsers.add_parser(
        "show-config", help="Print the resolved configuration and exit"
    )

    return parser


def main(
    argv: Optional[list[str]] = None, environ: Optional[Mapping[str, str]] = None
) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    command = args.command or "start"

    try:
        config = load_config(args.config, os.environ if environ is None else environ)
    except ConfigurationError as exc:
        logging.basicConfig(level=logging.ERROR)
        LOGGER.error("Invalid configuration: %s", exc)
        return 1

    if command == "start":
        AirGradientBridgeApp.start(config)
        return 0

    if command == "show-config":
        print(f"Configuration loaded from {config.path!s}\n")
        for section in config.raw.sections():
            print(f"[{section}]")
            for key, value in config.raw[section].items():
                if key == "password" and value:
                    value = "********"
                print(f"{key} = {value}")
            print()
        return 0

    LOGGER.error("Unknown command: %s", command)
    return 1


if __name__ == "__main__":
    sys.exit(main())
