"""Selection of the effective compiler profile for a build."""
from __future__ import annotations

from typing import NamedTuple

from .manifest import ManifestModel, Profile


DEBUG_PROFILE = "debug"
RELEASE_PROFILE = "release"


class ResolvedProfile(NamedTuple):
    profile: Profile
    name: str


def resolve_profile(model: ManifestModel, release: bool) -> ResolvedProfile:
    """Return the profile selected by ``release`` and its directory label.

    The dev profile is labelled ``"debug"``; the same label names the build
    output directory.
    """

    if release:
        return ResolvedProfile(model.release, RELEASE_PROFILE)
    return ResolvedProfile(model.dev, DEBUG_PROFILE)


__all__ = ["DEBUG_PROFILE", "RELEASE_PROFILE", "ResolvedProfile", "resolve_profile"]
