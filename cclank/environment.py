"""Host detection and project-relative path layout."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path, PurePath
import platform

from .artifacts import output_file_name
from .commands import BUILD_DIR, profile_directory
from .manifest import MANIFEST_FILE_NAME, ManifestModel, Platform


SOURCE_DIR = "src"


def detect_host_platform(system: str | None = None) -> Platform | None:
    """Map :func:`platform.system` onto :class:`Platform`; ``None`` when unknown."""

    name = (system if system is not None else platform.system()).lower()
    if name == "windows" or name.startswith(("cygwin", "msys", "mingw")):
        return Platform.WIN
    if name == "linux":
        return Platform.LINUX
    if name == "darwin":
        return Platform.MAC
    return None


def describe_platform(value: Platform | None) -> str:
    return value.value if value is not None else "unknown"


@dataclass(frozen=True, slots=True)
class ProjectLayout:
    root: Path

    @property
    def manifest_path(self) -> Path:
        return self.root / MANIFEST_FILE_NAME

    @property
    def source_dir(self) -> Path:
        return self.root / SOURCE_DIR

    @property
    def build_dir(self) -> Path:
        return self.root / BUILD_DIR

    def resolve(self, relative: str | PurePath) -> Path:
        return self.root / relative

    def profile_dir(self, profile_name: str) -> Path:
        return self.root / profile_directory(profile_name)

    def artifact_path(self, model: ManifestModel, profile_name: str) -> Path:
        file_name = output_file_name(model.name, model.artifact_kind, model.platform)
        return self.profile_dir(profile_name) / file_name

    def relative(self, path: Path) -> str:
        try:
            return path.relative_to(self.root).as_posix()
        except ValueError:
            return str(path)


__all__ = ["ProjectLayout", "SOURCE_DIR", "describe_platform", "detect_host_platform"]
