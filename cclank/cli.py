"""Command line interface for cclank."""
from __future__ import annotations

from argparse import ArgumentParser, Namespace
from pathlib import Path
from typing import Iterable
import logging
import sys

from core.command_runner import CommandRunner, RecordingCommandRunner, SubprocessCommandRunner

from .build import BuildOrchestrator, clean_build_directory
from .environment import ProjectLayout
from .errors import CclankError
from .scaffold import create_project
from .toolchains import load_toolchain_settings


class _ConsoleFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if record.levelno >= logging.WARNING:
            return f"{record.levelname.capitalize()}: {message}"
        return message


def _configure_logging(verbose: bool) -> None:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_ConsoleFormatter())
    logger = logging.getLogger("cclank")
    logger.handlers[:] = [handler]
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False


def _parse_arguments(argv: Iterable[str]) -> Namespace:
    common = ArgumentParser(add_help=False)
    common.add_argument("-C", "--project-dir", type=Path, default=None, help="Project directory (default: current directory)")
    common.add_argument("--verbose", action="store_true", help="Enable verbose output")

    parser = ArgumentParser(prog="cclank", description="C++ build and project manager")
    subparsers = parser.add_subparsers(dest="command", required=True)

    new_parser = subparsers.add_parser("new", parents=[common], help="Create a new project with the default structure")
    new_parser.add_argument("name", help="Name of the project directory to create")

    build_parser = subparsers.add_parser("build", parents=[common], help="Build the project")
    build_parser.add_argument("--release", action="store_true", help="Use the release profile")
    build_parser.add_argument("--dry-run", action="store_true", help="Print commands without executing them")

    run_parser = subparsers.add_parser("run", parents=[common], help="Build if needed, then run the executable")
    run_parser.add_argument("--release", action="store_true", help="Use the release profile")

    subparsers.add_parser("clean", parents=[common], help="Remove the build directory")

    return parser.parse_args(list(argv))


def main(argv: Iterable[str] | None = None) -> int:
    args = _parse_arguments(sys.argv[1:] if argv is None else argv)
    _configure_logging(args.verbose)
    workspace = (args.project_dir or Path.cwd()).resolve()

    handlers = {
        "new": _handle_new,
        "build": _handle_build,
        "run": _handle_run,
        "clean": _handle_clean,
    }
    try:
        return handlers[args.command](args, workspace)
    except CclankError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


def _make_orchestrator(workspace: Path, runner: CommandRunner, *, dry_run: bool = False) -> BuildOrchestrator:
    return BuildOrchestrator(
        layout=ProjectLayout(workspace),
        command_runner=runner,
        toolchain=load_toolchain_settings(workspace),
        dry_run=dry_run,
    )


def _handle_new(args: Namespace, workspace: Path) -> int:
    result = create_project(workspace, args.name)
    for path in result.created:
        label = path.relative_to(workspace).as_posix()
        print(f"Created {label}/" if path.is_dir() else f"Created {label}")
    print(f"\nProject '{args.name}' created successfully!")
    print("Next steps:")
    print(f"  cd {args.name}")
    print("  cclank build")
    return 0


def _handle_build(args: Namespace, workspace: Path) -> int:
    runner: SubprocessCommandRunner | RecordingCommandRunner
    if args.dry_run:
        runner = RecordingCommandRunner()
    else:
        runner = SubprocessCommandRunner()

    orchestrator = _make_orchestrator(workspace, runner, dry_run=args.dry_run)
    result = orchestrator.build(release=args.release)

    if isinstance(runner, RecordingCommandRunner):
        for line in runner.iter_formatted(workspace=workspace):
            print(line)
        return 0

    print("Build successful!")
    print(f"Output: {orchestrator.layout.relative(result.artifact)}")
    return 0


def _handle_run(args: Namespace, workspace: Path) -> int:
    orchestrator = _make_orchestrator(workspace, SubprocessCommandRunner())
    return orchestrator.run(release=args.release)


def _handle_clean(args: Namespace, workspace: Path) -> int:
    if not clean_build_directory(ProjectLayout(workspace)):
        print("Nothing to clean (build directory doesn't exist)")
        return 0
    print("Clean successful!")
    return 0


if __name__ == "__main__":  # pragma: no cover - exercised via integration tests
    raise SystemExit(main())
