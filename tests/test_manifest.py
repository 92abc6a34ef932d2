from __future__ import annotations

from dataclasses import FrozenInstanceError
from pathlib import Path
import tempfile
import textwrap
import unittest

from cclank import manifest
from cclank.errors import ManifestMalformed
from cclank.manifest import (
    ArtifactKind,
    LtoMode,
    PackageKey,
    Platform,
    Profile,
    ProfileKey,
    default_manifest,
    load_manifest,
    parse_manifest,
)


SAMPLE_MANIFEST = textwrap.dedent(
    """
    [package]
    name = "myproj"
    version = "0.1.0"
    platform = "win"        # win|linux|mac
    type = "bin"             # bin|lib|dylib
    icon = "icon.ico"

    [profile.dev]
    opt-level = 0
    debug = true
    codegen-units = 4
    lto = "off"

    [profile.release]
    opt-level = 3
    debug = false
    lto = "fat"
    codegen-units = 1
    """
)


class DefaultManifestTests(unittest.TestCase):
    def test_default_profiles(self) -> None:
        model = default_manifest()
        self.assertEqual(model.dev, Profile(opt_level=0, debug=True, codegen_units=4, lto=LtoMode.OFF))
        self.assertEqual(model.release, Profile(opt_level=3, debug=False, codegen_units=1, lto=LtoMode.FAT))
        self.assertIs(model.platform, Platform.WIN)
        self.assertIs(model.artifact_kind, ArtifactKind.BIN)

    def test_model_is_immutable(self) -> None:
        model = default_manifest()
        with self.assertRaises(FrozenInstanceError):
            model.name = "other"  # type: ignore[misc]
        with self.assertRaises(FrozenInstanceError):
            model.dev.opt_level = 2  # type: ignore[misc]

    def test_key_tables_cover_every_key(self) -> None:
        self.assertEqual(set(manifest._PACKAGE_FIELDS), set(PackageKey))
        self.assertEqual(set(manifest._PROFILE_FIELDS), set(ProfileKey))


class ParseManifestTests(unittest.TestCase):
    def test_parses_sample_manifest(self) -> None:
        model = parse_manifest(SAMPLE_MANIFEST)
        self.assertEqual(model.name, "myproj")
        self.assertEqual(model.version, "0.1.0")
        self.assertIs(model.platform, Platform.WIN)
        self.assertIs(model.artifact_kind, ArtifactKind.BIN)
        self.assertEqual(model.icon_path, "icon.ico")
        self.assertEqual(model.dev, Profile(0, True, 4, LtoMode.OFF))
        self.assertEqual(model.release, Profile(3, False, 1, LtoMode.FAT))

    def test_absent_keys_keep_defaults(self) -> None:
        model = parse_manifest(
            textwrap.dedent(
                """
                [package]
                name = "tiny"
                platform = "linux"

                [profile.release]
                opt-level = 2
                """
            )
        )
        self.assertEqual(model.name, "tiny")
        self.assertIs(model.platform, Platform.LINUX)
        self.assertEqual(model.version, "0.1.0")
        self.assertEqual(model.release.opt_level, 2)
        self.assertIs(model.release.lto, LtoMode.FAT)
        self.assertEqual(model.dev, default_manifest().dev)

    def test_non_numeric_opt_level_is_malformed(self) -> None:
        with self.assertRaises(ManifestMalformed) as ctx:
            parse_manifest('[profile.dev]\nopt-level = "x"\n')
        problems = ctx.exception.problems
        self.assertEqual(len(problems), 1)
        self.assertEqual(problems[0].section, "profile.dev")
        self.assertEqual(problems[0].key, "opt-level")
        self.assertEqual(problems[0].value, "x")
        self.assertIn("opt-level", str(ctx.exception))

    def test_problems_are_aggregated(self) -> None:
        text = textwrap.dedent(
            """
            [package]
            platform = "windows"
            type = "exe"

            [profile.dev]
            opt-level = 7
            codegen-units = 0

            [profile.release]
            lto = "thin"
            codegen-units = many
            """
        )
        with self.assertRaises(ManifestMalformed) as ctx:
            parse_manifest(text, source="cclank.toml")
        keys = [(problem.section, problem.key) for problem in ctx.exception.problems]
        self.assertEqual(
            keys,
            [
                ("package", "platform"),
                ("package", "type"),
                ("profile.dev", "opt-level"),
                ("profile.dev", "codegen-units"),
                ("profile.release", "lto"),
                ("profile.release", "codegen-units"),
            ],
        )
        self.assertIn("in cclank.toml", str(ctx.exception))

    def test_empty_name_is_malformed(self) -> None:
        with self.assertRaises(ManifestMalformed):
            parse_manifest('[package]\nname = ""\n')

    def test_debug_is_true_only_for_exact_literal(self) -> None:
        for value, expected in [("true", True), ('"true"', True), ("True", False), ("yes", False), ("1", False)]:
            with self.subTest(value=value):
                model = parse_manifest(f"[profile.release]\ndebug = {value}\n")
                self.assertIs(model.release.debug, expected)

    def test_shared_library_aliases(self) -> None:
        for alias in ("dylib", "dll", "so"):
            with self.subTest(alias=alias):
                model = parse_manifest(f'[package]\ntype = "{alias}"\n')
                self.assertIs(model.artifact_kind, ArtifactKind.DYLIB)

    def test_hash_inside_quotes_starts_a_comment(self) -> None:
        model = parse_manifest('[package]\nname = "my#proj"\nicon = "art/#1.ico"\n')
        # The closing quote is cut off with the comment, so the opening quote stays.
        self.assertEqual(model.name, '"my')
        self.assertEqual(model.icon_path, '"art/')

    def test_unrecognized_sections_are_ignored(self) -> None:
        model = parse_manifest(
            textwrap.dedent(
                """
                name = "orphan"

                [features]
                name = "feature"
                opt-level = banana

                [package]
                name = "real"
                """
            )
        )
        self.assertEqual(model.name, "real")

    def test_unknown_key_in_known_section_is_ignored_with_warning(self) -> None:
        with self.assertLogs("cclank.manifest", level="WARNING") as logs:
            model = parse_manifest('[profile.dev]\nopt_level = 3\n')
        self.assertEqual(model.dev.opt_level, 0)
        self.assertEqual(len(logs.records), 1)
        self.assertIn("opt_level", logs.output[0])

    def test_lines_without_assignment_are_skipped(self) -> None:
        model = parse_manifest("# just a comment\n\n[package]\nstray words\nname = app\n")
        self.assertEqual(model.name, "app")

    def test_value_splits_at_first_equals(self) -> None:
        model = parse_manifest('[package]\nversion = "1.0=beta"\n')
        self.assertEqual(model.version, "1.0=beta")


class LoadManifestTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_missing_file_returns_defaults_with_one_warning(self) -> None:
        with self.assertLogs("cclank", level="WARNING") as logs:
            model = load_manifest(self.root / "cclank.toml")
        self.assertEqual(model, default_manifest())
        self.assertEqual(len(logs.records), 1)
        self.assertIn("using defaults", logs.output[0])

    def test_reads_file_from_disk(self) -> None:
        path = self.root / "cclank.toml"
        path.write_text(SAMPLE_MANIFEST, encoding="utf-8")
        self.assertEqual(load_manifest(path).name, "myproj")

    def test_malformed_file_raises(self) -> None:
        path = self.root / "cclank.toml"
        path.write_text('[profile.dev]\nopt-level = "x"\n', encoding="utf-8")
        with self.assertRaises(ManifestMalformed) as ctx:
            load_manifest(path)
        self.assertEqual(ctx.exception.source, "cclank.toml")

    def test_directory_in_place_of_file_falls_back_to_defaults(self) -> None:
        path = self.root / "cclank.toml"
        path.mkdir()
        with self.assertLogs("cclank.manifest", level="WARNING") as logs:
            model = load_manifest(path)
        self.assertEqual(model, default_manifest())
        self.assertEqual(len(logs.records), 1)


if __name__ == "__main__":
    unittest.main()
