"""Toolchain executable names and flag sets, with file and environment overrides."""
from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Tuple
import logging
import os

import yaml

from core.config_loader import find_config_file, load_config_file, normalize_string_list

from .errors import ToolchainConfigError


logger = logging.getLogger(__name__)

TOOLCHAIN_CONFIG_STEM = "cclank-toolchain"

_ENVIRONMENT_OVERRIDES: Dict[str, str] = {
    "CXX": "compiler",
    "AR": "archiver",
    "WINDRES": "resource_compiler",
}


@dataclass(frozen=True, slots=True)
class ToolchainSettings:
    compiler: str = "g++"
    archiver: str = "ar"
    archive_flags: Tuple[str, ...] = ("rcs",)
    resource_compiler: str = "windres"
    source_suffixes: Tuple[str, ...] = (".cpp",)
    # Appended when linking Windows executables.
    windows_link_flags: Tuple[str, ...] = ("-static", "-lshlwapi")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ToolchainSettings":
        unknown_sections = {str(key) for key in data.keys() if str(key) != "toolchain"}
        if unknown_sections:
            joined = ", ".join(sorted(unknown_sections))
            raise ToolchainConfigError(f"Toolchain configuration contains unknown sections: {joined}")

        section = data.get("toolchain", {})
        if not isinstance(section, Mapping):
            raise ToolchainConfigError("Toolchain configuration 'toolchain' must be a mapping")

        allowed_keys = {
            "compiler",
            "archiver",
            "archive_flags",
            "resource_compiler",
            "source_suffixes",
            "windows_link_flags",
        }
        unknown = {str(key) for key in section.keys() if str(key) not in allowed_keys}
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ToolchainConfigError(f"Toolchain configuration contains unknown keys: {joined}")

        values: Dict[str, Any] = {}
        for key in ("compiler", "archiver", "resource_compiler"):
            value = section.get(key)
            if value is None:
                continue
            if not isinstance(value, str) or not value.strip():
                raise ToolchainConfigError(f"toolchain.{key} must be a non-empty string")
            values[key] = value.strip()

        try:
            for key in ("archive_flags", "windows_link_flags"):
                if key in section:
                    values[key] = tuple(normalize_string_list(section[key], field_name=f"toolchain.{key}"))
            if "source_suffixes" in section:
                suffixes = normalize_string_list(section["source_suffixes"], field_name="toolchain.source_suffixes")
                values["source_suffixes"] = tuple(_normalize_suffix(suffix) for suffix in suffixes)
        except TypeError as exc:
            raise ToolchainConfigError(str(exc)) from exc

        if "source_suffixes" in values and not values["source_suffixes"]:
            raise ToolchainConfigError("toolchain.source_suffixes must name at least one suffix")

        return cls(**values)

    def with_environment(self, environ: Mapping[str, str]) -> "ToolchainSettings":
        values: Dict[str, str] = {}
        for variable, attribute in _ENVIRONMENT_OVERRIDES.items():
            value = environ.get(variable, "").strip()
            if value:
                logger.debug("Using %s=%s from the environment", variable, value)
                values[attribute] = value
        return replace(self, **values) if values else self


def _normalize_suffix(suffix: str) -> str:
    suffix = suffix.lower()
    return suffix if suffix.startswith(".") else f".{suffix}"


def load_toolchain_settings(project_root: Path, environ: Mapping[str, str] | None = None) -> ToolchainSettings:
    """Build the toolchain settings for the project at ``project_root``.

    An optional ``cclank-toolchain.{toml,json,yaml,yml}`` file is applied
    first, then ``CXX``, ``AR`` and ``WINDRES`` from ``environ``.
    """

    try:
        path = find_config_file(project_root, TOOLCHAIN_CONFIG_STEM)
    except ValueError as exc:
        raise ToolchainConfigError(str(exc)) from exc

    settings = ToolchainSettings()
    if path is not None:
        try:
            data = load_config_file(path)
        except (OSError, ValueError, TypeError, yaml.YAMLError) as exc:
            raise ToolchainConfigError(f"Could not load {path.name}: {exc}") from exc
        settings = ToolchainSettings.from_mapping(data)
        logger.debug("Loaded toolchain overrides from %s", path.name)

    return settings.with_environment(os.environ if environ is None else environ)


__all__ = ["TOOLCHAIN_CONFIG_STEM", "ToolchainSettings", "load_toolchain_settings"]
