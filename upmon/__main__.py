"""CLI entry point for upmon.

Usage::

    upmon -p /org/freedesktop/UPower/devices/DisplayDevice Percentage,State
    upmon -p /org/freedesktop/UPower/devices/line_power_AC Online -t -o upmon.log
    upmon --config upmon.yaml
    upmon --list-properties
    upmon -p /org/freedesktop/UPower/devices/DisplayDevice State --rules
"""

from __future__ import annotations

import argparse
import logging
import sys
import textwrap
from typing import NoReturn

from dbus_fast.errors import AuthError, DBusError, InvalidObjectPathError

from upmon import __version__
from upmon.errors import UpmonError
from upmon.targets import DeviceTargetConfig


def _build_parser() -> argparse.ArgumentParser:
    epilog = textwrap.dedent("""\
        examples:
          upmon -p /org/freedesktop/UPower/devices/DisplayDevice Percentage,State
          upmon -p /org/freedesktop/UPower/devices/DisplayDevice TimeToEmpty \\
                -p /org/freedesktop/UPower/devices/line_power_AC Online -t
          upmon --config upmon.yaml --output-file /var/log/upmon.log
          upmon --list-properties
    """)

    parser = argparse.ArgumentParser(
        prog="upmon",
        description=(
            "Monitor UPower devices over D-Bus for changes to certain properties, and "
            "output a summary of those changes in an easily parsable format."
        ),
        epilog=epilog,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--path",
        "-p",
        nargs=2,
        action="append",
        default=[],
        metavar=("PATH", "PROPERTIES"),
        help=(
            "Device to monitor (repeatable). PATH is the object path of a device implementing "
            "org.freedesktop.UPower.Device; PROPERTIES is a comma-delimited list of properties."
        ),
    )
    parser.add_argument(
        "--list-properties",
        "-l",
        action="store_true",
        help="Print the properties upmon can monitor and exit.",
    )
    parser.add_argument(
        "--output-file",
        "-o",
        type=str,
        default=None,
        help="Append output to this file (default: standard output).",
    )
    parser.add_argument(
        "--separator",
        "-s",
        type=str,
        default=None,
        help="String separating each changed property from its new value (default: '=').",
    )
    parser.add_argument(
        "--delimiter",
        "-d",
        type=str,
        default=None,
        help="String delimiting each property-value pair (default: a single space).",
    )
    parser.add_argument(
        "--rules",
        "-r",
        action="store_true",
        help="Print the D-Bus match rules generated for the given devices and exit.",
    )
    parser.add_argument(
        "--timestamp",
        "-t",
        action="store_true",
        default=None,
        help="Include an ISO 8601 timestamp in the output.",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default=None,
        help="Path to YAML config file. Devices given with --path are added to its devices.",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level for diagnostics on stderr (default: WARNING).",
    )
    parser.add_argument("--version", "-V", action="version", version=f"%(prog)s {__version__}")
    return parser


# ======================================================================
# Main entry point
# ======================================================================


def main(argv: list[str] | None = None) -> None:
    args = _build_parser().parse_args(argv)

    if args.list_properties:
        _cmd_list_properties()
        return

    from upmon.config import MonitorYAMLConfig, load_yaml_config
    from upmon.filters import build

    try:
        cfg = load_yaml_config(args.config) if args.config else MonitorYAMLConfig()
        flat = [token for pair in args.path for token in pair]
        devices = [*cfg.devices, *DeviceTargetConfig.create_many(flat)]
    except (UpmonError, FileNotFoundError) as exc:
        _fail(f"Error when reading device configuration: {exc}")

    logging.basicConfig(
        level=getattr(logging, args.log_level or cfg.log_level),
        format="%(asctime)s %(name)-20s %(levelname)-7s %(message)s",
        datefmt="%H:%M:%S",
    )

    # Build every rule up front so a bad path stops us before any listening.
    try:
        rules = [build(device) for device in devices]
    except InvalidObjectPathError as exc:
        _fail(f"Could not create DBus rule for path: {exc}")

    if args.rules:
        for rule in rules:
            print(rule.to_wire_string())
        return

    if not devices:
        _fail("No devices to monitor; specify --path or a config file with devices.")

    _cmd_monitor(
        devices,
        output_file=args.output_file or cfg.output.file,
        separator=args.separator if args.separator is not None else cfg.output.separator,
        delimiter=args.delimiter if args.delimiter is not None else cfg.output.delimiter,
        timestamp=args.timestamp if args.timestamp is not None else cfg.output.timestamp,
    )


# ======================================================================
# Command implementations
# ======================================================================


def _fail(message: str) -> NoReturn:
    print(message, file=sys.stderr)
    sys.exit(1)


def _cmd_list_properties() -> None:
    from upmon.properties import names

    for name in names():
        print(name)


def _cmd_monitor(
    devices: list[DeviceTargetConfig],
    *,
    output_file: str | None,
    separator: str,
    delimiter: str,
    timestamp: bool,
) -> None:
    """Monitor ``devices`` until every listener has ended or we are stopped."""
    from upmon.monitor import Monitor
    from upmon.writers import create_writer

    writer = create_writer(output_file, separator=separator, delimiter=delimiter, timestamp=timestamp)
    try:
        failures = Monitor(devices, writer).run()
    except OSError as exc:
        _fail(f"Error starting monitor: {exc}")
    except (DBusError, AuthError) as exc:
        _fail(f"Error connecting to the system bus: {exc}")

    if failures:
        for err in failures:
            print(f"Error on {err.device_path}: {err.cause}", file=sys.stderr)
        sys.exit(1)


# ======================================================================
if __name__ == "__main__":
    main()
