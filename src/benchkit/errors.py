from pathlib import Path


class BenchkitError(Exception):
    """Base class for every error benchkit reports at the invocation boundary."""

    error_code: str = "BENCHKIT_ERROR"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConfigError(BenchkitError):
    """A config file is missing, unreadable or has the wrong shape."""

    error_code = "CONFIG_ERROR"

    def __init__(self, path: Path | str, reason: str) -> None:
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Invalid config {self.path}: {reason}")


class BuildPipelineError(BenchkitError):
    """Failure inside one stage of the build pipeline."""

    error_code = "BUILD_PIPELINE_ERROR"

    def __init__(self, message: str, commit: str | None = None) -> None:
        self.commit = commit
        super().__init__(message)


class RevisionResolutionError(BuildPipelineError):
    error_code = "REVISION_UNRESOLVED"

    def __init__(self, revision: str, detail: str = "") -> None:
        self.revision = revision
        suffix = f": {detail}" if detail else ""
        super().__init__(f"Failed to resolve commit hash '{revision}'{suffix}")


class CheckoutError(BuildPipelineError):
    error_code = "CHECKOUT_FAILED"

    def __init__(self, ref: str, detail: str = "") -> None:
        self.ref = ref
        suffix = f": {detail}" if detail else ""
        super().__init__(f"Git checkout failed for {ref}{suffix}", commit=ref)


class RestoreError(BuildPipelineError):
    error_code = "RESTORE_FAILED"

    def __init__(self, ref: str, detail: str = "") -> None:
        self.ref = ref
        suffix = f": {detail}" if detail else ""
        super().__init__(f"Failed to restore git state to {ref}{suffix}")


class BuildError(BuildPipelineError):
    error_code = "BUILD_FAILED"


class ExtractionError(BuildPipelineError):
    error_code = "EXTRACTION_FAILED"

    def __init__(self, commit: str, archive: Path, detail: str = "") -> None:
        self.archive = archive
        suffix = f": {detail}" if detail else ""
        super().__init__(
            f"Failed to extract archive {archive} for commit {commit}{suffix}", commit=commit
        )


class ArtifactCopyError(BuildPipelineError):
    error_code = "ARTIFACT_COPY_FAILED"

    def __init__(self, commit: str, source: Path, detail: str = "") -> None:
        self.source = source
        suffix = f": {detail}" if detail else ""
        super().__init__(f"Failed to copy binary {source} for commit {commit}{suffix}", commit)


class CleanupError(BuildPipelineError):
    error_code = "CLEANUP_FAILED"

    def __init__(self, commit: str, path: Path, detail: str = "") -> None:
        self.path = path
        suffix = f": {detail}" if detail else ""
        super().__init__(
            f"Failed to cleanup extracted files {path} for commit {commit}{suffix}", commit
        )


class CommandSynthesisError(BenchkitError):
    error_code = "COMMAND_SYNTHESIS_ERROR"


class MissingCommandError(CommandSynthesisError):
    error_code = "MISSING_COMMAND"

    def __init__(self, benchmark: str | None = None) -> None:
        self.benchmark = benchmark
        where = f" in benchmark '{benchmark}'" if benchmark else ""
        super().__init__(f"Missing required 'command' field{where}")


class MissingExportPathError(CommandSynthesisError):
    error_code = "MISSING_EXPORT_PATH"

    def __init__(self, benchmark: str | None = None) -> None:
        self.benchmark = benchmark
        where = f" in benchmark '{benchmark}'" if benchmark else ""
        super().__init__(f"Missing required 'export_json' field{where}")


class MalformedParameterListError(CommandSynthesisError):
    error_code = "MALFORMED_PARAMETER_LIST"

    def __init__(self, reason: str, entry: object = None) -> None:
        self.reason = reason
        self.entry = entry
        detail = f": {entry!r}" if entry is not None else ""
        super().__init__(f"Invalid parameter_lists entry ({reason}){detail}")


class DuplicateParameterError(CommandSynthesisError):
    error_code = "DUPLICATE_PARAMETER"

    def __init__(self, var: str) -> None:
        self.var = var
        super().__init__(f"Parameter variable '{var}' is declared by more than one parameter list")


class HyperfineError(BenchkitError):
    error_code = "HYPERFINE_FAILED"

    def __init__(self, benchmark: str, detail: str) -> None:
        self.benchmark = benchmark
        super().__init__(f"hyperfine failed for benchmark '{benchmark}': {detail}")


class BenchmarkNotFoundError(BenchkitError):
    error_code = "BENCHMARK_NOT_FOUND"

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Benchmark not found: {name}")


class BenchmarkBatchError(BenchkitError):
    error_code = "BENCHMARK_BATCH_FAILED"

    def __init__(self, failures: dict[str, BenchkitError]) -> None:
        self.failures = failures
        names = ", ".join(failures)
        super().__init__(f"{len(failures)} benchmark(s) failed: {names}")


class MissingResultFileError(BenchkitError):
    error_code = "MISSING_RESULT_FILE"

    def __init__(self, path: Path | str, benchmark: str | None = None) -> None:
        self.path = str(path)
        self.benchmark = benchmark
        where = f" for benchmark '{benchmark}'" if benchmark else ""
        super().__init__(f"Expected JSON results file not found at '{self.path}'{where}")


class ResultParseError(BenchkitError):
    error_code = "RESULT_PARSE_ERROR"

    def __init__(self, path: Path | str, detail: str) -> None:
        self.path = str(path)
        super().__init__(f"Failed to parse benchmark results {self.path}: {detail}")


class PersistenceError(BenchkitError):
    error_code = "PERSISTENCE_ERROR"


class MissingSnapshotError(BenchkitError):
    error_code = "MISSING_SNAPSHOT"

    def __init__(self, network: str, path: Path) -> None:
        self.network = network
        self.path = path
        super().__init__(
            f"Missing required snapshot file for network {network}: {path}\n"
            f"This can be downloaded with `benchkit snapshot download {network}`"
        )


class SnapshotDownloadError(BenchkitError):
    error_code = "SNAPSHOT_DOWNLOAD_FAILED"
