"""Manifest model and the line-oriented ``cclank.toml`` reader.

The manifest looks like TOML but is read with a deliberately small grammar:

* everything from the first ``#`` on a line is dropped, even inside quotes;
* ``[section]`` switches the current section;
* ``key = value`` assigns, with one pair of surrounding double quotes removed.

Only the ``package``, ``profile.dev`` and ``profile.release`` sections carry
meaning. Other sections are accepted and their keys ignored.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Tuple
import logging
import re

from .errors import FieldProblem, ManifestMalformed


logger = logging.getLogger(__name__)

MANIFEST_FILE_NAME = "cclank.toml"


class Platform(str, Enum):
    WIN = "win"
    LINUX = "linux"
    MAC = "mac"


class ArtifactKind(str, Enum):
    BIN = "bin"
    LIB = "lib"
    DYLIB = "dylib"


class LtoMode(str, Enum):
    OFF = "off"
    FAT = "fat"


class Section(str, Enum):
    PACKAGE = "package"
    PROFILE_DEV = "profile.dev"
    PROFILE_RELEASE = "profile.release"


class PackageKey(str, Enum):
    NAME = "name"
    VERSION = "version"
    PLATFORM = "platform"
    TYPE = "type"
    ICON = "icon"


class ProfileKey(str, Enum):
    OPT_LEVEL = "opt-level"
    DEBUG = "debug"
    CODEGEN_UNITS = "codegen-units"
    LTO = "lto"


_KIND_ALIASES: Dict[str, ArtifactKind] = {
    "dll": ArtifactKind.DYLIB,
    "so": ArtifactKind.DYLIB,
}


@dataclass(frozen=True, slots=True)
class Profile:
    opt_level: int
    debug: bool
    codegen_units: int
    lto: LtoMode


@dataclass(frozen=True, slots=True)
class ManifestModel:
    name: str
    version: str
    platform: Platform
    artifact_kind: ArtifactKind
    icon_path: str
    dev: Profile
    release: Profile


def default_manifest() -> ManifestModel:
    """Return the model used when no manifest can be read."""

    return ManifestModel(
        name="unnamed_project",
        version="0.1.0",
        platform=Platform.WIN,
        artifact_kind=ArtifactKind.BIN,
        icon_path="icon.ico",
        dev=Profile(opt_level=0, debug=True, codegen_units=4, lto=LtoMode.OFF),
        release=Profile(opt_level=3, debug=False, codegen_units=1, lto=LtoMode.FAT),
    )


_INTEGER_PATTERN = re.compile(r"^[+-]?[0-9]+$")


def _parse_int(value: str) -> int:
    if not _INTEGER_PATTERN.match(value):
        raise ValueError("expected an integer")
    return int(value)


def _parse_choice(enum_type: type[Enum], value: str, aliases: Dict[str, Any] | None = None) -> Any:
    if aliases and value in aliases:
        return aliases[value]
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_type)
        raise ValueError(f"expected one of {allowed}") from None


def _parse_name(value: str) -> str:
    if not value:
        raise ValueError("must not be empty")
    return value


def _parse_opt_level(value: str) -> int:
    level = _parse_int(value)
    if not 0 <= level <= 3:
        raise ValueError("must be between 0 and 3")
    return level


def _parse_codegen_units(value: str) -> int:
    units = _parse_int(value)
    if units < 1:
        raise ValueError("must be at least 1")
    return units


FieldParser = Callable[[str], Any]

_PACKAGE_FIELDS: Dict[PackageKey, Tuple[str, FieldParser]] = {
    PackageKey.NAME: ("name", _parse_name),
    PackageKey.VERSION: ("version", str),
    PackageKey.PLATFORM: ("platform", lambda value: _parse_choice(Platform, value)),
    PackageKey.TYPE: ("artifact_kind", lambda value: _parse_choice(ArtifactKind, value, _KIND_ALIASES)),
    PackageKey.ICON: ("icon_path", str),
}

_PROFILE_FIELDS: Dict[ProfileKey, Tuple[str, FieldParser]] = {
    ProfileKey.OPT_LEVEL: ("opt_level", _parse_opt_level),
    ProfileKey.DEBUG: ("debug", lambda value: value == "true"),
    ProfileKey.CODEGEN_UNITS: ("codegen_units", _parse_codegen_units),
    ProfileKey.LTO: ("lto", lambda value: _parse_choice(LtoMode, value)),
}


def strip_comment(line: str) -> str:
    head, _, _ = line.partition("#")
    return head


def unquote(value: str) -> str:
    text = value.strip()
    if len(text) >= 2 and text.startswith('"') and text.endswith('"'):
        return text[1:-1]
    return text


def _iter_statements(text: str) -> Iterator[str]:
    for raw in text.splitlines():
        line = strip_comment(raw).strip()
        if line:
            yield line


def _lookup_section(name: str) -> Section | None:
    try:
        return Section(name)
    except ValueError:
        return None


def _lookup_key(key_type: type[Enum], key: str) -> Any:
    try:
        return key_type(key)
    except ValueError:
        return None


def parse_manifest(text: str, *, source: str | None = None) -> ManifestModel:
    """Parse manifest ``text`` on top of :func:`default_manifest`.

    Every invalid field is collected before failing, so a single
    :class:`ManifestMalformed` lists all offending keys.
    """

    overrides: Dict[Section, Dict[str, Any]] = {section: {} for section in Section}
    problems: List[FieldProblem] = []
    section: Section | None = None

    for line in _iter_statements(text):
        if line.startswith("[") and line.endswith("]"):
            header = line[1:-1].strip()
            section = _lookup_section(header)
            if section is None:
                logger.debug("Ignoring section [%s]", header)
            continue

        key_text, separator, value_text = line.partition("=")
        if not separator or section is None:
            continue
        key_text = key_text.strip()
        value = unquote(value_text)

        fields = _PACKAGE_FIELDS if section is Section.PACKAGE else _PROFILE_FIELDS
        key = _lookup_key(PackageKey if section is Section.PACKAGE else ProfileKey, key_text)
        if key is None:
            logger.warning("Ignoring unknown key '%s' in [%s]", key_text, section.value)
            continue

        attribute, parser = fields[key]
        try:
            overrides[section][attribute] = parser(value)
        except ValueError as exc:
            problems.append(FieldProblem(section=section.value, key=key.value, value=value, reason=str(exc)))

    if problems:
        raise ManifestMalformed(problems, source=source)

    defaults = default_manifest()
    return replace(
        defaults,
        dev=replace(defaults.dev, **overrides[Section.PROFILE_DEV]),
        release=replace(defaults.release, **overrides[Section.PROFILE_RELEASE]),
        **overrides[Section.PACKAGE],
    )


def load_manifest(path: Path) -> ManifestModel:
    """Read the manifest at ``path``, falling back to defaults with a warning."""

    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.warning("Could not open %s, using defaults", path.name)
        return default_manifest()
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Could not read %s (%s), using defaults", path.name, exc)
        return default_manifest()
    return parse_manifest(text, source=path.name)


__all__ = [
    "ArtifactKind",
    "LtoMode",
    "MANIFEST_FILE_NAME",
    "ManifestModel",
    "PackageKey",
    "Platform",
    "Profile",
    "ProfileKey",
    "Section",
    "default_manifest",
    "load_manifest",
    "parse_manifest",
    "strip_comment",
    "unquote",
]
