"""Canonical output file names per artifact kind and platform."""
from __future__ import annotations

from typing import Dict, Tuple

from .manifest import ArtifactKind, Platform


_FILE_NAME_PATTERNS: Dict[Tuple[ArtifactKind, Platform], str] = {
    (ArtifactKind.BIN, Platform.WIN): "{name}.exe",
    (ArtifactKind.BIN, Platform.LINUX): "{name}",
    (ArtifactKind.BIN, Platform.MAC): "{name}",
    (ArtifactKind.LIB, Platform.WIN): "{name}.lib",
    (ArtifactKind.LIB, Platform.LINUX): "lib{name}.a",
    (ArtifactKind.LIB, Platform.MAC): "lib{name}.a",
    (ArtifactKind.DYLIB, Platform.WIN): "{name}.dll",
    (ArtifactKind.DYLIB, Platform.LINUX): "lib{name}.so",
    (ArtifactKind.DYLIB, Platform.MAC): "lib{name}.dylib",
}


def output_file_name(name: str, kind: ArtifactKind | str, platform: Platform | str) -> str:
    """Return the artifact file name, e.g. ``("app", "lib", "linux") -> "libapp.a"``."""

    key = (ArtifactKind(kind), Platform(platform))
    pattern = _FILE_NAME_PATTERNS.get(key)
    if pattern is None:
        raise ValueError(f"No file name rule for {key[0].value} artifacts on {key[1].value}")
    return pattern.format(name=name)


def object_file_name(source_name: str) -> str:
    stem, dot, _ = source_name.rpartition(".")
    return f"{stem if dot else source_name}.o"


__all__ = ["object_file_name", "output_file_name"]
