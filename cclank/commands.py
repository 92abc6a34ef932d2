"""Synthesis of compiler, archiver and resource-compiler command lines.

Nothing here touches the filesystem. Paths are emitted POSIX-style and
relative to the project root, which is the working directory of every
toolchain invocation.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePath, PurePosixPath
from typing import List, Sequence, Tuple

from .artifacts import object_file_name, output_file_name
from .manifest import ArtifactKind, LtoMode, ManifestModel, Platform
from .profiles import ResolvedProfile
from .toolchains import ToolchainSettings


BUILD_DIR = "build"
RESOURCE_SCRIPT = "resource.rc"
RESOURCE_OBJECT = "resource.o"


@dataclass(frozen=True, slots=True)
class CommandLine:
    arguments: Tuple[str, ...]
    output: str

    def __str__(self) -> str:
        return " ".join(self.arguments)


def profile_directory(profile_name: str) -> PurePosixPath:
    return PurePosixPath(BUILD_DIR, profile_name)


def _as_posix(path: str | PurePath) -> str:
    return PurePath(path).as_posix()


def _output_path(
    model: ManifestModel,
    profile_name: str,
    kind: ArtifactKind,
    platform: Platform,
    sources: Sequence[str],
    single_object_mode: bool,
) -> str:
    directory = profile_directory(profile_name)
    if kind is not ArtifactKind.LIB:
        return (directory / output_file_name(model.name, kind, platform)).as_posix()
    if single_object_mode:
        return (directory / object_file_name(PurePosixPath(sources[0]).name)).as_posix()
    # Each source compiles to its own object; the caller names the file.
    return f"{directory.as_posix()}/"


def synthesize(
    model: ManifestModel,
    profile: ResolvedProfile,
    kind: ArtifactKind,
    platform: Platform,
    sources: Sequence[str | PurePath],
    single_object_mode: bool = False,
    *,
    toolchain: ToolchainSettings | None = None,
    resource_object: str | PurePath | None = None,
) -> CommandLine:
    """Return the compiler invocation producing ``kind`` for ``platform``.

    Arguments are always emitted in the same order: optimization, debug,
    LTO, mode flags, inputs, resource object, output, link flags.
    ``single_object_mode`` compiles exactly one source of a static library
    into ``build/<profile>/<stem>.o``.
    """

    toolchain = toolchain or ToolchainSettings()
    kind = ArtifactKind(kind)
    platform = Platform(platform)
    inputs = [_as_posix(source) for source in sources]
    if not inputs:
        raise ValueError("At least one source file is required")
    if single_object_mode and (kind is not ArtifactKind.LIB or len(inputs) != 1):
        raise ValueError("Single-object mode compiles exactly one static library source")

    settings = profile.profile
    arguments: List[str] = [toolchain.compiler, f"-O{settings.opt_level}"]
    if settings.debug:
        arguments.append("-g")
    if settings.lto is LtoMode.FAT:
        arguments.append("-flto")

    if kind is ArtifactKind.LIB:
        arguments.append("-c")
    elif kind is ArtifactKind.DYLIB:
        arguments.append("-shared")
        if platform is not Platform.WIN:
            arguments.append("-fPIC")

    arguments.extend(inputs)

    links_windows_executable = platform is Platform.WIN and kind is ArtifactKind.BIN
    if links_windows_executable and resource_object is not None:
        arguments.append(_as_posix(resource_object))

    output = _output_path(model, profile.name, kind, platform, inputs, single_object_mode)
    arguments.extend(["-o", output])

    if links_windows_executable:
        arguments.extend(toolchain.windows_link_flags)

    return CommandLine(arguments=tuple(arguments), output=output)


def synthesize_archive(
    toolchain: ToolchainSettings,
    library: str | PurePath,
    objects: Sequence[str | PurePath],
) -> CommandLine:
    output = _as_posix(library)
    arguments = [toolchain.archiver, *toolchain.archive_flags, output]
    arguments.extend(_as_posix(obj) for obj in objects)
    return CommandLine(arguments=tuple(arguments), output=output)


def synthesize_resource(
    toolchain: ToolchainSettings,
    script: str = RESOURCE_SCRIPT,
    obj: str = RESOURCE_OBJECT,
) -> CommandLine:
    arguments = (toolchain.resource_compiler, script, "-O", "coff", "-o", obj)
    return CommandLine(arguments=arguments, output=obj)


def render_resource_script(icon_path: str) -> str:
    return f'#include <windows.h>\nIDI_ICON1 ICON "{icon_path}"\n'


__all__ = [
    "BUILD_DIR",
    "CommandLine",
    "RESOURCE_OBJECT",
    "RESOURCE_SCRIPT",
    "profile_directory",
    "render_resource_script",
    "synthesize",
    "synthesize_archive",
    "synthesize_resource",
]
