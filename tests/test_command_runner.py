from __future__ import annotations

from pathlib import Path
import sys
import tempfile
import unittest

from core.command_runner import (
    COMMAND_NOT_EXECUTABLE,
    COMMAND_NOT_FOUND,
    RecordingCommandRunner,
    SubprocessCommandRunner,
    format_command,
)


class SubprocessCommandRunnerTests(unittest.TestCase):
    def test_captures_exit_code_and_output(self) -> None:
        runner = SubprocessCommandRunner()
        result = runner.run(
            [sys.executable, "-c", "import sys; print('hi'); sys.exit(3)"],
            stream=False,
        )
        self.assertEqual(result.returncode, 3)
        self.assertFalse(result.succeeded)
        self.assertEqual(result.stdout.strip(), "hi")

    def test_missing_executable_reports_command_not_found(self) -> None:
        runner = SubprocessCommandRunner()
        result = runner.run(["cclank-no-such-compiler", "--version"], stream=False)
        self.assertEqual(result.returncode, COMMAND_NOT_FOUND)
        self.assertIn("command not found", result.stderr)
        self.assertFalse(result.launched)

    @unittest.skipIf(sys.platform == "win32", "relies on POSIX execute permission bits")
    def test_non_executable_file_reports_failure(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            program = Path(temp_dir) / "app"
            program.write_text("#!/bin/sh\nexit 0\n", encoding="utf-8")
            program.chmod(0o644)

            result = SubprocessCommandRunner().run([str(program)], stream=True)

        self.assertEqual(result.returncode, COMMAND_NOT_EXECUTABLE)
        self.assertFalse(result.launched)
        self.assertFalse(result.succeeded)
        self.assertIn(str(program), result.stderr)


class RecordingCommandRunnerTests(unittest.TestCase):
    def test_records_and_formats_commands(self) -> None:
        runner = RecordingCommandRunner()
        result = runner.run(["g++", "-o", "build/debug/my app"], cwd=Path("/work"), note="Compile and link")
        runner.run(["ar", "rcs", "libx.a"])

        self.assertTrue(result.succeeded)
        self.assertEqual([record.command[0] for record in runner.iter_commands()], ["g++", "ar"])
        self.assertEqual(
            list(runner.iter_formatted(workspace=Path("/default"))),
            [
                "[dry-run] Compile and link (cwd=/work) g++ -o 'build/debug/my app'",
                "[dry-run] (cwd=/default) ar rcs libx.a",
            ],
        )

    def test_format_command_quotes_arguments(self) -> None:
        self.assertEqual(format_command(["echo", "a b", "c"]), "echo 'a b' c")


if __name__ == "__main__":
    unittest.main()
