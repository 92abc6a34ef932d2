"""Build orchestration: source discovery, toolchain sequencing, run and clean."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Callable, Dict, List, Sequence
import logging
import shutil

from core.command_runner import CommandResult, CommandRunner

from .commands import (
    RESOURCE_OBJECT,
    RESOURCE_SCRIPT,
    CommandLine,
    render_resource_script,
    synthesize,
    synthesize_archive,
    synthesize_resource,
)
from .environment import ProjectLayout, describe_platform, detect_host_platform
from .errors import (
    ArtifactMissing,
    FileSystemError,
    ManifestRequired,
    NoSourceFiles,
    NotExecutable,
    NotRunnable,
    ObjectNameConflict,
    PlatformMismatch,
    ToolchainInvocationFailed,
)
from .manifest import ArtifactKind, ManifestModel, Platform, load_manifest
from .profiles import ResolvedProfile, resolve_profile
from .toolchains import ToolchainSettings


logger = logging.getLogger(__name__)

_HOST_UNSET = object()


class BuildStage(str, Enum):
    IDLE = "idle"
    MANIFEST_LOADED = "manifest-loaded"
    SOURCES_DISCOVERED = "sources-discovered"
    RESOURCE_COMPILED = "resource-compiled"
    COMPILING = "compiling"
    ARCHIVING = "archiving"
    DONE = "done"
    FAILED = "failed"


@dataclass(slots=True)
class CompileTask:
    source: str
    command: CommandLine

    @property
    def file_name(self) -> str:
        return PurePosixPath(self.source).name


@dataclass(slots=True)
class CompileReport:
    completed: List[CompileTask] = field(default_factory=list)
    failure: CompileTask | None = None
    returncode: int = 0


class CompileExecutor:
    """Runs per-source compile tasks and reports the first failure."""

    def execute(
        self,
        tasks: Sequence[CompileTask],
        invoke: Callable[[CompileTask], CommandResult],
    ) -> CompileReport:
        raise NotImplementedError


class SequentialCompileExecutor(CompileExecutor):
    """Compiles tasks one at a time in order, stopping at the first failure."""

    def execute(
        self,
        tasks: Sequence[CompileTask],
        invoke: Callable[[CompileTask], CommandResult],
    ) -> CompileReport:
        report = CompileReport()
        for task in tasks:
            result = invoke(task)
            if not result.succeeded:
                report.failure = task
                report.returncode = result.returncode
                break
            report.completed.append(task)
        return report


@dataclass(slots=True)
class BuildResult:
    artifact: Path
    profile_name: str
    kind: ArtifactKind
    sources: List[str]
    objects: List[str] = field(default_factory=list)
    icon_embedded: bool = False


class BuildOrchestrator:
    def __init__(
        self,
        *,
        layout: ProjectLayout,
        command_runner: CommandRunner,
        toolchain: ToolchainSettings | None = None,
        host_platform: Platform | None | object = _HOST_UNSET,
        executor: CompileExecutor | None = None,
        dry_run: bool = False,
    ) -> None:
        self._layout = layout
        self._command_runner = command_runner
        self._toolchain = toolchain or ToolchainSettings()
        self._host_platform = detect_host_platform() if host_platform is _HOST_UNSET else host_platform
        self._executor = executor or SequentialCompileExecutor()
        self._dry_run = dry_run
        self.stage = BuildStage.IDLE

    @property
    def layout(self) -> ProjectLayout:
        return self._layout

    def load_manifest(self) -> ManifestModel:
        layout = self._layout
        if not layout.manifest_path.is_file() and not layout.source_dir.is_dir():
            raise ManifestRequired(
                f"{layout.manifest_path.name} not found in {layout.root}. Are you in a cclank project directory?"
            )
        return load_manifest(layout.manifest_path)

    def discover_sources(self) -> List[str]:
        """Return compilable files directly under ``src/``, sorted by name."""

        source_dir = self._layout.source_dir
        suffixes = self._toolchain.source_suffixes
        listing = ", ".join(suffixes)
        if not source_dir.is_dir():
            raise NoSourceFiles(f"No {listing} files found: {self._layout.relative(source_dir)}/ does not exist")
        try:
            entries = sorted(source_dir.iterdir(), key=lambda path: path.name)
        except OSError as exc:
            raise FileSystemError(f"Could not list {source_dir}: {exc.strerror or exc}") from exc

        sources = [
            self._layout.relative(path)
            for path in entries
            if path.suffix.lower() in suffixes and path.is_file()
        ]
        if not sources:
            raise NoSourceFiles(f"No {listing} files found in {self._layout.relative(source_dir)}/ directory")
        return sources

    def check_host_platform(self, model: ManifestModel) -> bool:
        """Report a declared/host platform mismatch; never fails the build."""

        if self._host_platform is model.platform:
            return True
        declared = model.platform.value
        host = describe_platform(self._host_platform)
        if model.artifact_kind is ArtifactKind.LIB:
            logger.info(
                "Building static library with platform set to %s on a %s host; "
                "static libraries may be platform-specific depending on code",
                declared,
                host,
            )
        else:
            label = "binary" if model.artifact_kind is ArtifactKind.BIN else "library"
            logger.warning(
                "Cross-compilation is not available: the resulting %s will only work on %s, not %s. "
                "To build for %s, use a %s system",
                label,
                host,
                declared,
                declared,
                declared,
            )
        return False

    def build(self, release: bool = False, *, manifest: ManifestModel | None = None) -> BuildResult:
        self.stage = BuildStage.IDLE
        created: List[Path] = []
        try:
            return self._build(release, manifest, created)
        except Exception:
            self.stage = BuildStage.FAILED
            raise
        finally:
            self._cleanup(created)

    def _build(self, release: bool, manifest: ManifestModel | None, created: List[Path]) -> BuildResult:
        model = manifest if manifest is not None else self.load_manifest()
        self.stage = BuildStage.MANIFEST_LOADED
        resolved = resolve_profile(model, release)
        kind = model.artifact_kind
        logger.info(
            "Building %s (%s profile, %s for %s)",
            model.name,
            resolved.name,
            kind.value,
            model.platform.value,
        )

        sources = self.discover_sources()
        self.stage = BuildStage.SOURCES_DISCOVERED
        logger.info("Found %d source file(s)", len(sources))

        self.check_host_platform(model)
        self._prepare_directory(self._layout.profile_dir(resolved.name))

        resource_object = self._compile_resource(model, created)
        artifact = self._layout.artifact_path(model, resolved.name)
        result = BuildResult(
            artifact=artifact,
            profile_name=resolved.name,
            kind=kind,
            sources=list(sources),
            icon_embedded=resource_object is not None,
        )

        self.stage = BuildStage.COMPILING
        if kind is ArtifactKind.LIB:
            result.objects = self._compile_objects(model, resolved, sources, artifact)
            self.stage = BuildStage.ARCHIVING
            archive = synthesize_archive(self._toolchain, self._layout.relative(artifact), result.objects)
            logger.info("Creating static library %s", artifact.name)
            outcome = self._invoke(archive, note="Archive objects")
            if not outcome.succeeded:
                raise ToolchainInvocationFailed(BuildStage.ARCHIVING.value, artifact.name, outcome.returncode)
        else:
            command = synthesize(
                model,
                resolved,
                kind,
                model.platform,
                sources,
                toolchain=self._toolchain,
                resource_object=resource_object,
            )
            outcome = self._invoke(command, note="Compile and link")
            if not outcome.succeeded:
                raise ToolchainInvocationFailed(BuildStage.COMPILING.value, artifact.name, outcome.returncode)

        self.stage = BuildStage.DONE
        return result

    def _compile_objects(
        self,
        model: ManifestModel,
        resolved: ResolvedProfile,
        sources: Sequence[str],
        archive: Path,
    ) -> List[str]:
        tasks = [
            CompileTask(
                source=source,
                command=synthesize(
                    model,
                    resolved,
                    ArtifactKind.LIB,
                    model.platform,
                    [source],
                    single_object_mode=True,
                    toolchain=self._toolchain,
                ),
            )
            for source in sources
        ]
        owners: Dict[str, str] = {}
        for task in tasks:
            previous = owners.setdefault(task.command.output, task.source)
            if previous != task.source:
                raise ObjectNameConflict(previous, task.source, task.command.output)
        self._remove_stale_artifact(archive)

        def invoke(task: CompileTask) -> CommandResult:
            logger.info("Compiling %s", task.file_name)
            return self._invoke(task.command, note=f"Compile {task.file_name}")

        report = self._executor.execute(tasks, invoke)
        if report.failure is not None:
            raise ToolchainInvocationFailed(BuildStage.COMPILING.value, report.failure.file_name, report.returncode)
        return [task.command.output for task in report.completed]

    def _compile_resource(self, model: ManifestModel, created: List[Path]) -> str | None:
        if model.platform is not Platform.WIN or model.artifact_kind is not ArtifactKind.BIN:
            return None
        if not self._layout.resolve(model.icon_path).is_file():
            return None

        logger.info("Compiling icon resource")
        script = self._layout.resolve(RESOURCE_SCRIPT)
        try:
            script.write_text(render_resource_script(model.icon_path), encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not write %s (%s); building without icon", RESOURCE_SCRIPT, exc)
            return None
        created.extend([script, self._layout.resolve(RESOURCE_OBJECT)])

        outcome = self._invoke(synthesize_resource(self._toolchain), note="Compile icon resource")
        if not outcome.succeeded:
            logger.warning(
                "Icon resource compilation failed (exit code %d); building without icon",
                outcome.returncode,
            )
            return None
        self.stage = BuildStage.RESOURCE_COMPILED
        return RESOURCE_OBJECT

    def _remove_stale_artifact(self, artifact: Path) -> None:
        """Remove an archive left by an earlier build so it holds only this build's objects."""

        if not artifact.exists():
            return
        if self._dry_run:
            logger.debug("Would remove previous %s", self._layout.relative(artifact))
            return
        try:
            artifact.unlink()
        except OSError as exc:
            raise FileSystemError(
                f"Could not remove previous {self._layout.relative(artifact)}: {exc.strerror or exc}"
            ) from exc

    def _prepare_directory(self, directory: Path) -> None:
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise FileSystemError(
                f"Could not create {self._layout.relative(directory)} directory: {exc.strerror or exc}"
            ) from exc

    def _invoke(self, command: CommandLine, *, note: str) -> CommandResult:
        logger.debug("Running: %s", command)
        return self._command_runner.run(command.arguments, cwd=self._layout.root, note=note)

    def _cleanup(self, created: Sequence[Path]) -> None:
        for path in created:
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("Could not remove %s: %s", self._layout.relative(path), exc)

    def run(self, release: bool = False) -> int:
        """Build if needed, then execute the project binary and return its exit status."""

        model = self.load_manifest()
        if model.artifact_kind is not ArtifactKind.BIN:
            raise NotRunnable(
                f"Cannot run non-binary project (type = {model.artifact_kind.value}); "
                "only projects with type = \"bin\" can be executed"
            )
        if self._host_platform is not model.platform:
            raise PlatformMismatch(model.platform.value, describe_platform(self._host_platform))

        resolved = resolve_profile(model, release)
        executable = self._layout.artifact_path(model, resolved.name)
        if not executable.is_file():
            logger.info("Executable not found, building first")
            self.build(release, manifest=model)
            if not executable.is_file():
                raise ArtifactMissing(f"Build finished but {self._layout.relative(executable)} was not found")

        logger.info("Running %s", self._layout.relative(executable))
        outcome = self._command_runner.run([str(executable)], cwd=self._layout.root, note="Run", stream=True)
        if not outcome.launched:
            raise NotExecutable(f"Could not execute {self._layout.relative(executable)}: {outcome.stderr}")
        return outcome.returncode


def clean_build_directory(layout: ProjectLayout) -> bool:
    """Remove the build tree; return ``False`` when there was nothing to remove."""

    build_dir = layout.build_dir
    if not build_dir.exists():
        return False
    try:
        shutil.rmtree(build_dir)
    except OSError as exc:
        raise FileSystemError(f"Could not remove {layout.relative(build_dir)}: {exc.strerror or exc}") from exc
    return True


__all__ = [
    "BuildOrchestrator",
    "BuildResult",
    "BuildStage",
    "CompileExecutor",
    "CompileReport",
    "CompileTask",
    "SequentialCompileExecutor",
    "clean_build_directory",
]
