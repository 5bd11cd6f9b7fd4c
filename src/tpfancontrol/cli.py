"""Command-line interface for ThinkPad fan control."""

import argparse

from dotenv import load_dotenv

from .config import CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH
from .control import run_mode, status_mode
from .data import DesiredFanMode, TempScale, VisibleTempSensors


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        help=f"Path to configuration YAML file (default: ${CONFIG_ENV_VAR} or {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--scale",
        choices=[scale.value for scale in TempScale],
        help="Temperature scale to display",
    )
    parser.add_argument(
        "--show",
        choices=[visible.value for visible in VisibleTempSensors],
        help="Show all named sensors or only those currently reporting",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Temperature-driven fan control for thinkpad_acpi",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Example usage:
  # Run smart fan control with the system config
  sudo tpfancontrol run

  # Pin the fan to firmware level 3 without reading commands from stdin
  sudo tpfancontrol run --mode manual --level 3 --no-input

  # Show current temperatures in Fahrenheit
  tpfancontrol status --scale fahrenheit --show all
        """,
    )

    subparsers = parser.add_subparsers(
        dest="command", help="Command to run", required=True
    )

    # Run subcommand
    run_parser = subparsers.add_parser(
        "run",
        help="Run the fan control loop",
    )
    _add_common_arguments(run_parser)
    run_parser.add_argument(
        "--mode",
        choices=[mode.value for mode in DesiredFanMode],
        help="Initial fan mode (default: from config, else smart)",
    )
    run_parser.add_argument(
        "--level",
        help="Initial manual fan level: 0-7 or full-speed",
    )
    run_parser.add_argument(
        "--no-input",
        action="store_true",
        help="Do not read commands from stdin",
    )

    # Status subcommand
    status_parser = subparsers.add_parser(
        "status",
        help="Print temperatures and fan state once",
    )
    _add_common_arguments(status_parser)

    return parser


def main() -> None:
    """Main entry point."""
    load_dotenv()
    args = build_parser().parse_args()

    if args.command == "run":
        run_mode(args)
    elif args.command == "status":
        status_mode(args)


if __name__ == "__main__":
    main()
