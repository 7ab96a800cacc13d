"""
Script: flux_ci_tools/cli.py
What: Single command-line entry point for all workflow helpers.
Doing: Maps command names to helper `main()` functions and turns known errors into exit code 1.
Why: Workflow YAML calls one stable interface: `python3 -m flux_ci_tools.cli <command>`.
Goal: Keep the workflow-facing command surface small and discoverable.
"""

from __future__ import annotations

import argparse
import importlib
import sys
from collections.abc import Callable, Mapping

from flux_ci_tools.common import CiToolError


# Command name -> (module holding `main()`, one-line help shown by `--help`).
COMMANDS: dict[str, tuple[str, str]] = {
    "check-trigger": (
        "flux_ci_tools.trigger_filter",
        "Write build=true|false for GITHUB_REF against TRIGGER_* filters.",
    ),
    "compute-image-tags": (
        "flux_ci_tools.compute_image_tags",
        "Write build_id, latest_id, build_date and image tag outputs.",
    ),
    "flux-image-policy": (
        "flux_ci_tools.flux_image_policy",
        "Print a Flux ImagePolicy that orders build IDs by timestamp.",
    ),
}


def command_map() -> dict[str, Callable[[], None]]:
    """
    Map CLI command names to Python entry functions.

    Each value is a `main()` function from one workflow helper module.
    """
    return {
        name: importlib.import_module(module_name).main
        for name, (module_name, _help) in COMMANDS.items()
    }


def build_parser(commands: Mapping[str, Callable[[], None]]) -> argparse.ArgumentParser:
    """Build argument parser with one sub-command per registered helper."""
    parser = argparse.ArgumentParser(
        prog="python3 -m flux_ci_tools.cli",
        description="Run one image-tagging workflow helper.",
    )
    subparsers = parser.add_subparsers(dest="command", metavar="command", required=True)
    for name in sorted(commands):
        _module_name, help_text = COMMANDS.get(name, ("", ""))
        subparsers.add_parser(name, help=help_text or None)
    return parser


def run_command(command: str, commands: Mapping[str, Callable[[], None]]) -> None:
    commands[command]()


def main(argv: list[str] | None = None) -> None:
    commands = command_map()
    args = build_parser(commands).parse_args(argv)

    try:
        run_command(args.command, commands)
    except CiToolError as exc:
        # One line on stderr is what shows up in the failed step summary.
        print(f"{args.command}: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
