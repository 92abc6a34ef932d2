"""Error types raised by cclank operations."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence


class CclankError(Exception):
    """Base class for errors reported to the user as a one-line message."""


@dataclass(frozen=True, slots=True)
class FieldProblem:
    section: str
    key: str
    value: str
    reason: str

    def describe(self) -> str:
        return f"{self.section}.{self.key} = {self.value!r}: {self.reason}"


class ManifestMalformed(CclankError):
    """Raised when manifest values cannot be parsed or are out of range."""

    def __init__(self, problems: Sequence[FieldProblem], *, source: str | None = None):
        self.problems = tuple(problems)
        self.source = source
        location = f" in {source}" if source else ""
        details = "; ".join(problem.describe() for problem in self.problems)
        super().__init__(f"Malformed manifest{location}: {details}")


class ManifestRequired(CclankError):
    """Raised when neither a manifest nor a source directory is present."""


class NoSourceFiles(CclankError):
    """Raised when the source directory holds no compilable files."""


class ObjectNameConflict(CclankError):
    """Raised when two static-library sources would compile to the same object file."""

    def __init__(self, first: str, second: str, obj: str):
        self.sources = (first, second)
        self.object_file = obj
        super().__init__(
            f"Sources {first} and {second} would both compile to {obj}; rename one of them"
        )


class ToolchainInvocationFailed(CclankError):
    """Raised when a compile, link or archive command exits non-zero."""

    def __init__(self, stage: str, subject: str, returncode: int):
        self.stage = stage
        self.subject = subject
        self.returncode = returncode
        super().__init__(f"Build failed while {stage} {subject} (exit code {returncode})")


class FileSystemError(CclankError):
    """Raised when a directory or file cannot be created, read or removed."""


class PlatformMismatch(CclankError):
    """Raised when an operation needs the declared platform to match the host."""

    def __init__(self, declared: str, host: str):
        self.declared = declared
        self.host = host
        super().__init__(
            f"Cannot run a '{declared}' project on a '{host}' host; "
            f"set platform = \"{host}\" in cclank.toml to run on this system"
        )


class NotRunnable(CclankError):
    """Raised when ``run`` is used on a library project."""


class ArtifactMissing(CclankError):
    """Raised when ``run`` finds no executable even after building."""


class NotExecutable(CclankError):
    """Raised when ``run`` cannot start the built executable."""


class ProjectExists(CclankError):
    pass


class InvalidProjectName(CclankError):
    pass


class ToolchainConfigError(CclankError):
    pass


__all__ = [
    "ArtifactMissing",
    "CclankError",
    "FieldProblem",
    "FileSystemError",
    "InvalidProjectName",
    "ManifestMalformed",
    "ManifestRequired",
    "NoSourceFiles",
    "NotExecutable",
    "NotRunnable",
    "ObjectNameConflict",
    "PlatformMismatch",
    "ProjectExists",
    "ToolchainConfigError",
    "ToolchainInvocationFailed",
]
