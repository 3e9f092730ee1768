import logging
import os
import shutil
import subprocess  # nosec B404
import tarfile
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .config import AppConfig, BenchmarkConfig, settings
from .config.bench import DEFAULT_HOST
from .errors import (
    ArtifactCopyError,
    BuildError,
    BuildPipelineError,
    CheckoutError,
    CleanupError,
    ExtractionError,
    RestoreError,
)
from .workspace import RevisionSpec, Workspace, resolve_commits

logger = logging.getLogger(__name__)

BINARY_NAME = "bitcoind"


class BuildStage(str, Enum):
    CAPTURE = "capture"
    CHECKOUT = "checkout"
    BUILD = "build"
    EXTRACT = "extract"
    RELOCATE = "relocate"
    CLEANUP = "cleanup"
    RESTORE = "restore"


@dataclass(frozen=True)
class BuildArtifact:
    commit: str
    path: Path


@dataclass
class BuildReport:
    """Outcome of one pipeline run, inspectable after a failure."""

    revisions: list[RevisionSpec]
    artifacts: list[BuildArtifact] = field(default_factory=list)
    failed_revision: RevisionSpec | None = None
    failed_stage: BuildStage | None = None
    error: BuildPipelineError | None = None
    restore_error: RestoreError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.restore_error is None

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error
        if self.restore_error is not None:
            raise self.restore_error


def artifact_path(out_dir: Path, commit: str) -> Path:
    return out_dir / f"{BINARY_NAME}-{commit}"


class BuildPipeline:
    """Build one bitcoind binary per revision with the Guix build script.

    Revisions are processed strictly in the given order; the first failing
    stage stops the run. The source tree is always checked out back to its
    original branch or commit.
    """

    def __init__(
        self,
        src_dir: Path,
        out_dir: Path,
        revisions: Sequence[str],
        *,
        host: str = DEFAULT_HOST,
        build_script: str | None = None,
    ):
        self.src_dir = Path(src_dir)
        if not self.src_dir.exists():
            raise BuildError(f"Source directory does not exist: {self.src_dir}")

        self.out_dir = Path(out_dir)
        self.host = host
        self.build_script = build_script or settings.BUILD_SCRIPT
        self.workspace = Workspace(self.src_dir)
        self.revisions = resolve_commits(self.src_dir, revisions)

        self.out_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_config(cls, app_config: AppConfig, bench_config: BenchmarkConfig) -> "BuildPipeline":
        global_config = bench_config.global_config
        return cls(
            global_config.source,
            app_config.bin_dir,
            global_config.commits,
            host=global_config.host,
        )

    def archive_path(self, revision: RevisionSpec) -> Path:
        short = revision.short
        return (
            self.src_dir
            / f"guix-build-{short}"
            / "output"
            / self.host
            / f"bitcoin-{short}-{self.host}.tar.gz"
        )

    def extract_dir(self, revision: RevisionSpec) -> Path:
        return self.src_dir / f"bitcoin-{revision.short}"

    def artifact_path(self, revision: RevisionSpec) -> Path:
        return artifact_path(self.out_dir, revision.commit)

    def _stages(self) -> list[tuple[BuildStage, Callable[[RevisionSpec], None]]]:
        return [
            (BuildStage.CHECKOUT, self._checkout),
            (BuildStage.BUILD, self._run_build),
            (BuildStage.EXTRACT, self._extract),
            (BuildStage.RELOCATE, self._relocate),
            (BuildStage.CLEANUP, self._cleanup),
        ]

    def _checkout(self, revision: RevisionSpec) -> None:
        self.workspace.checkout(revision.commit)

    def build_command(self) -> list[str]:
        script = str(self.src_dir / self.build_script)
        if settings.is_ci():
            return ["taskset", "-c", settings.CI_CPUS, "chrt", "-f", "1", script]
        return [script]

    def _run_build(self, revision: RevisionSpec) -> None:
        cmd = self.build_command()
        env = dict(os.environ)
        env.setdefault("HOSTS", self.host)

        logger.info("Building %s: %s", revision.commit, " ".join(cmd))
        try:
            completed = subprocess.run(  # nosec B603
                cmd,
                cwd=self.src_dir,
                env=env,
                check=False,
            )
        except OSError as exc:
            raise BuildError(
                f"Failed to run build for commit {revision.commit}: {exc}", revision.commit
            ) from exc

        if completed.returncode != 0:
            raise BuildError(
                f"Build failed for commit {revision.commit} (code {completed.returncode})",
                revision.commit,
            )

    def _extract(self, revision: RevisionSpec) -> None:
        archive = self.archive_path(revision)
        if not archive.is_file():
            raise ExtractionError(revision.commit, archive, "archive not found")

        logger.debug("Extracting %s", archive)
        try:
            with tarfile.open(archive, "r:gz") as tar:
                tar.extractall(self.src_dir, filter="data")  # nosec B202
        except (tarfile.TarError, OSError) as exc:
            raise ExtractionError(revision.commit, archive, str(exc)) from exc

    def _relocate(self, revision: RevisionSpec) -> None:
        source = self.extract_dir(revision) / "bin" / BINARY_NAME
        dest = self.artifact_path(revision)
        try:
            shutil.copy2(source, dest)
        except OSError as exc:
            raise ArtifactCopyError(revision.commit, source, str(exc)) from exc
        logger.info("Copied %s to %s", source, dest)

    def _cleanup(self, revision: RevisionSpec) -> None:
        scratch = self.extract_dir(revision)
        try:
            shutil.rmtree(scratch)
        except OSError as exc:
            raise CleanupError(revision.commit, scratch, str(exc)) from exc

    def _build_revisions(self, report: BuildReport) -> None:
        for revision in self.revisions:
            for stage, step in self._stages():
                try:
                    step(revision)
                except BuildPipelineError as exc:
                    logger.error("Build of %s failed at %s: %s", revision.commit, stage.value, exc)
                    report.failed_revision = revision
                    report.failed_stage = stage
                    report.error = exc
                    return
            report.artifacts.append(BuildArtifact(revision.commit, self.artifact_path(revision)))

    def run(self) -> BuildReport:
        """Build every revision and return a report instead of raising stage errors."""
        report = BuildReport(revisions=list(self.revisions))
        try:
            with self.workspace.preserved_position():
                self._build_revisions(report)
        except RestoreError as exc:
            logger.error("%s", exc.message)
            report.restore_error = exc
            if report.failed_stage is None:
                report.failed_stage = BuildStage.RESTORE
        except CheckoutError as exc:
            # Capturing the original position failed before any stage ran
            report.failed_stage = BuildStage.CAPTURE
            report.error = exc
        return report

    def build(self) -> list[BuildArtifact]:
        report = self.run()
        report.raise_for_error()
        logger.info("Built %d binaries into %s", len(report.artifacts), self.out_dir)
        return report.artifacts
