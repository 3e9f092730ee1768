import subprocess
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest
import yaml

from benchkit.config import AppConfig, BenchmarkConfig, DatabaseConfig, load_bench_config


def git(repo: Path, *args: str) -> str:
    completed = subprocess.run(
        ["git", *args],
        cwd=repo,
        check=True,
        capture_output=True,
        text=True,
    )
    return completed.stdout.strip()


@dataclass
class GitRepo:
    path: Path
    commits: list[str]

    def head(self) -> str:
        return git(self.path, "rev-parse", "HEAD")

    def branch(self) -> str:
        return git(self.path, "rev-parse", "--abbrev-ref", "HEAD")

    def checkout(self, ref: str) -> None:
        git(self.path, "checkout", "--quiet", ref)


@pytest.fixture
def git_repo(tmp_path: Path) -> GitRepo:
    """A repository on branch `main` with two commits."""
    repo = tmp_path / "bitcoin"
    repo.mkdir()
    git(repo, "init", "--quiet")
    git(repo, "config", "user.email", "test@test.com")
    git(repo, "config", "user.name", "Test")
    git(repo, "config", "commit.gpgsign", "false")
    git(repo, "checkout", "--quiet", "-b", "main")

    commits = []
    for i in range(2):
        (repo / "version.txt").write_text(f"{i}\n")
        git(repo, "add", "version.txt")
        git(repo, "commit", "--quiet", "-m", f"commit {i}")
        commits.append(git(repo, "rev-parse", "HEAD"))
    return GitRepo(path=repo, commits=commits)


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    home = tmp_path / "home"
    bin_dir = home / "binaries"
    snapshot_dir = home / "snapshots"
    bin_dir.mkdir(parents=True)
    snapshot_dir.mkdir(parents=True)
    return AppConfig(
        home_dir=home,
        bin_dir=bin_dir,
        snapshot_dir=snapshot_dir,
        database=DatabaseConfig(password="secret"),
    )


@pytest.fixture
def write_yaml(tmp_path: Path) -> Callable[[str, dict[str, Any]], Path]:
    def _write(name: str, data: dict[str, Any]) -> Path:
        path = tmp_path / name
        path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def bench_data(git_repo: GitRepo, tmp_path: Path) -> dict[str, Any]:
    return {
        "global": {
            "source": str(git_repo.path),
            "commits": [c[:7] for c in git_repo.commits],
            "tmp_data_dir": str(tmp_path / "datadir"),
            "hyperfine": {"warmup": 1, "runs": 3, "export_json": str(tmp_path / "results.json")},
        },
        "benchmarks": [
            {
                "name": "ibd-signet",
                "network": "signet",
                "hyperfine": {
                    "command": "bitcoind -stopatheight=1000",
                    "parameter_lists": [{"var": "dbcache", "values": ["450", "4000"]}],
                },
            },
            {
                "name": "ibd-mainnet",
                "network": "mainnet",
                "env": {"BENCH_FLAG": "1"},
                "hyperfine": {"command": "bitcoind -stopatheight=10"},
            },
        ],
    }


@pytest.fixture
def bench_config(write_yaml, bench_data: dict[str, Any]) -> BenchmarkConfig:
    return load_bench_config(write_yaml("benchmark.yml", bench_data))
