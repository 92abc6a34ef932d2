"""Utilities for executing toolchain commands with optional dry-run support."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Sequence
import shlex
import subprocess


COMMAND_NOT_EXECUTABLE = 126
COMMAND_NOT_FOUND = 127


@dataclass
class CommandResult:
    """Represents the outcome of an executed command."""

    command: Sequence[str]
    returncode: int
    stdout: str
    stderr: str
    streamed: bool = False
    launched: bool = True

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0


def format_command(command: Sequence[str]) -> str:
    return " ".join(shlex.quote(str(part)) for part in command)


class CommandRunner:
    """Abstract command runner interface."""

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        note: str | None = None,
        stream: bool = True,
    ) -> CommandResult:
        raise NotImplementedError

    def format_command(self, command: Sequence[str]) -> str:
        return format_command(command)


class SubprocessCommandRunner(CommandRunner):
    """Command runner that executes commands via :mod:`subprocess`.

    Commands are streamed by default so compiler diagnostics reach the
    terminal as they are produced. A command that cannot be started is
    reported as an unlaunched result (exit code 127 when missing, 126
    otherwise) rather than an exception.
    """

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        note: str | None = None,
        stream: bool = True,
    ) -> CommandResult:
        try:
            process = subprocess.run(
                list(command),
                cwd=str(cwd) if cwd else None,
                capture_output=not stream,
                text=True,
                check=False,
            )
        except FileNotFoundError:
            return self._not_launched(command, COMMAND_NOT_FOUND, "command not found")
        except OSError as exc:
            return self._not_launched(command, COMMAND_NOT_EXECUTABLE, exc.strerror or str(exc))

        return CommandResult(
            command=command,
            returncode=process.returncode,
            stdout=process.stdout or "",
            stderr=process.stderr or "",
            streamed=stream,
        )

    @staticmethod
    def _not_launched(command: Sequence[str], returncode: int, reason: str) -> CommandResult:
        return CommandResult(
            command=command,
            returncode=returncode,
            stdout="",
            stderr=f"{command[0]}: {reason}",
            launched=False,
        )


@dataclass(slots=True)
class RecordedCommand:
    command: List[str]
    cwd: str | None
    note: str | None


class RecordingCommandRunner(CommandRunner):
    """Command runner that records commands instead of executing them."""

    def __init__(self) -> None:
        self.commands: List[RecordedCommand] = []

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        note: str | None = None,
        stream: bool = True,
    ) -> CommandResult:
        self.commands.append(
            RecordedCommand(
                command=list(command),
                cwd=str(cwd) if cwd else None,
                note=note,
            )
        )
        return CommandResult(command=command, returncode=0, stdout="", stderr="")

    def iter_commands(self) -> Iterable[RecordedCommand]:
        return iter(self.commands)

    def iter_formatted(self, *, workspace: Path | None = None) -> Iterable[str]:
        default_cwd = str(workspace) if workspace else None
        for record in self.commands:
            parts: List[str] = ["[dry-run]"]
            if record.note:
                parts.append(record.note)
            cwd = record.cwd or default_cwd
            if cwd:
                parts.append(f"(cwd={cwd})")
            parts.append(self.format_command(record.command))
            yield " ".join(parts)


__all__ = [
    "COMMAND_NOT_EXECUTABLE",
    "COMMAND_NOT_FOUND",
    "CommandResult",
    "CommandRunner",
    "RecordedCommand",
    "RecordingCommandRunner",
    "SubprocessCommandRunner",
    "format_command",
]
