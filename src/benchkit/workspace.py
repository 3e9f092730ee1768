"""Git operations on the source tree binaries are built from.

The checkout is a single mutable resource: every build moves HEAD, so callers
wrap multi-revision work in `Workspace.preserved_position()` to guarantee the
original branch (or detached commit) is checked out again afterwards.
"""

import logging
import re
import subprocess  # nosec B404
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from .errors import CheckoutError, RestoreError, RevisionResolutionError

logger = logging.getLogger(__name__)

# SHA-1 and SHA-256 object ids
_FULL_HASH_RE = re.compile(r"^(?:[0-9a-f]{40}|[0-9a-f]{64})$")
SHORT_HASH_LEN = 12


@dataclass(frozen=True)
class RevisionSpec:
    requested: str
    commit: str

    @property
    def short(self) -> str:
        return self.commit[:SHORT_HASH_LEN]


@dataclass(frozen=True)
class WorkspacePosition:
    ref: str
    detached: bool


def _run_git(repo_path: Path, args: list[str]) -> subprocess.CompletedProcess[str]:
    return subprocess.run(  # nosec B603 B607
        ["git", *args],
        cwd=repo_path,
        check=False,
        capture_output=True,
        text=True,
    )


def _failure_detail(completed: subprocess.CompletedProcess[str]) -> str:
    stderr = (completed.stderr or completed.stdout or "").strip()
    return f"code {completed.returncode}: {stderr}" if stderr else f"code {completed.returncode}"


def resolve_commit(repo_path: Path, revision: str) -> RevisionSpec:
    """Expand a possibly abbreviated or symbolic revision to its full commit id.

    Resolving an id that is already canonical returns it unchanged.

    Raises:
        RevisionResolutionError: If git cannot resolve the revision to a
            single commit.
    """
    try:
        completed = _run_git(
            repo_path, ["rev-parse", "--verify", "--quiet", f"{revision}^{{commit}}"]
        )
    except OSError as exc:
        raise RevisionResolutionError(revision, str(exc)) from exc

    if completed.returncode != 0:
        raise RevisionResolutionError(revision, _failure_detail(completed))

    full_hash = completed.stdout.strip()
    if not _FULL_HASH_RE.match(full_hash):
        raise RevisionResolutionError(revision, f"unexpected git output {full_hash!r}")

    logger.debug("Resolved commit %s to full hash %s", revision, full_hash)
    return RevisionSpec(requested=revision, commit=full_hash)


def resolve_commits(repo_path: Path, revisions: Iterable[str]) -> list[RevisionSpec]:
    return [resolve_commit(repo_path, revision) for revision in revisions]


class Workspace:
    def __init__(self, repo_path: Path):
        self.repo_path = Path(repo_path)

    def current_position(self) -> WorkspacePosition:
        """Return the checked-out branch, or the HEAD commit when detached."""
        try:
            branch = _run_git(self.repo_path, ["symbolic-ref", "-q", "--short", "HEAD"])
            if branch.returncode == 0 and branch.stdout.strip():
                return WorkspacePosition(ref=branch.stdout.strip(), detached=False)

            head = _run_git(self.repo_path, ["rev-parse", "HEAD"])
        except OSError as exc:
            raise CheckoutError("HEAD", str(exc)) from exc

        if head.returncode != 0:
            raise CheckoutError("HEAD", f"failed to get git ref ({_failure_detail(head)})")
        return WorkspacePosition(ref=head.stdout.strip(), detached=True)

    def checkout(self, ref: str) -> None:
        logger.info("Checking out %s", ref)
        try:
            completed = _run_git(self.repo_path, ["checkout", "--quiet", ref])
        except OSError as exc:
            raise CheckoutError(ref, str(exc)) from exc
        if completed.returncode != 0:
            raise CheckoutError(ref, _failure_detail(completed))

    def restore(self, position: WorkspacePosition) -> None:
        logger.info("Restoring git state to %s", position.ref)
        try:
            self.checkout(position.ref)
        except CheckoutError as exc:
            raise RestoreError(position.ref, exc.message) from exc

    @contextmanager
    def preserved_position(self) -> Iterator[WorkspacePosition]:
        """Capture the current position and check it out again on exit.

        Restoration runs on success, on error and on KeyboardInterrupt. If it
        fails while another exception is propagating, the failure is logged
        and the original exception is re-raised.
        """
        position = self.current_position()
        try:
            yield position
        except BaseException:
            try:
                self.restore(position)
            except RestoreError as restore_exc:
                logger.error("%s", restore_exc.message)
            raise
        self.restore(position)
