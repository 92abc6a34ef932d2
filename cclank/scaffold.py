"""Creation of new project trees."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List
import struct

from .environment import SOURCE_DIR, detect_host_platform
from .errors import FileSystemError, InvalidProjectName, ProjectExists
from .manifest import MANIFEST_FILE_NAME, Platform


ICON_FILE_NAME = "icon.ico"

_MANIFEST_TEMPLATE = """\
[package]
name = "{name}"
version = "0.1.0"
platform = "{platform}"
type = "bin"
icon = "{icon}"

[features]

[profile.dev]
opt-level = 0
debug = true
codegen-units = 4

[profile.release]
opt-level = 3
debug = false
lto = "fat"
codegen-units = 1
"""

_MAIN_TEMPLATE = """\
#include <iostream>

int main() {{
    std::cout << "Hello from {name}!" << std::endl;
    return 0;
}}
"""


@dataclass(slots=True)
class ScaffoldResult:
    root: Path
    created: List[Path] = field(default_factory=list)


def render_manifest(name: str, platform: Platform) -> str:
    return _MANIFEST_TEMPLATE.format(name=name, platform=platform.value, icon=ICON_FILE_NAME)


def render_main_source(name: str) -> str:
    return _MAIN_TEMPLATE.format(name=name)


def default_icon(size: int = 16) -> bytes:
    """Return a single-image 32-bit ICO: a filled square with a transparent border."""

    fill = bytes((0xB0, 0x6C, 0x2B, 0xFF))  # BGRA
    clear = bytes(4)
    pixels = bytearray()
    # DIB rows are stored bottom-up.
    for row in range(size):
        for column in range(size):
            inside = 0 < row < size - 1 and 0 < column < size - 1
            pixels += fill if inside else clear
    # AND mask rows are padded to 32 bits; all zero defers to the alpha channel.
    mask = bytes(((size + 31) // 32) * 4 * size)

    bitmap_header = struct.pack(
        "<IiiHHIIiiII",
        40,
        size,
        size * 2,
        1,
        32,
        0,
        len(pixels) + len(mask),
        0,
        0,
        0,
        0,
    )
    image = bitmap_header + bytes(pixels) + mask
    icon_dir = struct.pack("<HHH", 0, 1, 1)
    entry = struct.pack("<BBBBHHII", size % 256, size % 256, 0, 0, 1, 32, len(image), 6 + 16)
    return icon_dir + entry + image


def _validate_name(name: str) -> str:
    name = name.strip()
    if not name:
        raise InvalidProjectName("Project name required")
    if name in {".", ".."} or Path(name).name != name or "\\" in name:
        raise InvalidProjectName(f"Project name '{name}' must be a single directory name")
    return name


def create_project(parent: Path, name: str, *, platform: Platform | None = None) -> ScaffoldResult:
    """Create ``parent/name`` with a manifest, default icon and ``src/main.cpp``.

    The manifest declares ``platform`` or, by default, the host platform.
    """

    name = _validate_name(name)
    root = parent / name
    if root.exists():
        raise ProjectExists(f"Directory '{name}' already exists")

    declared = platform or detect_host_platform() or Platform.WIN
    result = ScaffoldResult(root=root)
    source_dir = root / SOURCE_DIR
    try:
        source_dir.mkdir(parents=True)
        result.created.extend([root, source_dir])

        files = [
            (root / ICON_FILE_NAME, default_icon()),
            (root / MANIFEST_FILE_NAME, render_manifest(name, declared)),
            (source_dir / "main.cpp", render_main_source(name)),
        ]
        for path, content in files:
            if isinstance(content, bytes):
                path.write_bytes(content)
            else:
                path.write_text(content, encoding="utf-8")
            result.created.append(path)
    except OSError as exc:
        raise FileSystemError(f"Could not create project '{name}': {exc.strerror or exc}") from exc

    return result


__all__ = [
    "ICON_FILE_NAME",
    "ScaffoldResult",
    "create_project",
    "default_icon",
    "render_main_source",
    "render_manifest",
]
