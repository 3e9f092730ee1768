from pathlib import Path
from unittest.mock import patch

import httpx
import pytest

from benchkit.errors import MissingSnapshotError, SnapshotDownloadError
from benchkit.progress import format_bytes, format_progress_bar
from benchkit.snapshot import SNAPSHOTS, check_snapshot, download_snapshot, snapshot_for
from benchkit.types import Network


class TestSnapshotInfo:
    def test_known_snapshots(self) -> None:
        assert snapshot_for(Network.MAINNET).filename == "mainnet-840000.dat"
        assert snapshot_for(Network.SIGNET).filename == "signet-160000.dat"
        assert snapshot_for(Network.SIGNET).height == 160_000

    def test_url_joins_host(self) -> None:
        info = SNAPSHOTS[Network.SIGNET]

        assert info.url("https://example.test/") == "https://example.test/signet-160000.dat"
        assert info.url("https://example.test") == "https://example.test/signet-160000.dat"


class TestCheckSnapshot:
    def test_missing_snapshot_names_download_command(self, tmp_path: Path) -> None:
        with pytest.raises(MissingSnapshotError) as exc_info:
            check_snapshot(Network.SIGNET, tmp_path)

        assert "benchkit snapshot download signet" in exc_info.value.message
        assert exc_info.value.path == tmp_path / "signet-160000.dat"

    def test_present_snapshot(self, tmp_path: Path) -> None:
        (tmp_path / "mainnet-840000.dat").write_bytes(b"utxo")

        assert check_snapshot(Network.MAINNET, tmp_path) == tmp_path / "mainnet-840000.dat"


class TestDownloadSnapshot:
    def test_streams_body_to_file(self, tmp_path: Path) -> None:
        body = b"x" * 5000
        requested: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(str(request.url))
            return httpx.Response(200, content=body)

        progress: list[tuple[int, int]] = []
        client = httpx.Client(transport=httpx.MockTransport(handler))
        with patch("benchkit.snapshot.settings.SNAPSHOT_HOST", "https://snapshots.test/"):
            path = download_snapshot(
                Network.SIGNET,
                tmp_path / "snapshots",
                client=client,
                progress=lambda done, total: progress.append((done, total)),
            )

        assert requested == ["https://snapshots.test/signet-160000.dat"]
        assert path == tmp_path / "snapshots" / "signet-160000.dat"
        assert path.read_bytes() == body
        assert progress[-1] == (5000, 5000)
        assert not (tmp_path / "snapshots" / "signet-160000.dat.part").exists()

    def test_http_error_leaves_no_file(self, tmp_path: Path) -> None:
        client = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(404)))

        with pytest.raises(SnapshotDownloadError):
            download_snapshot(Network.MAINNET, tmp_path, client=client)

        assert list(tmp_path.iterdir()) == []


class TestProgress:
    def test_progress_bar(self) -> None:
        assert format_progress_bar(5, 10, width=10) == "[█████░░░░░]  50%"

    def test_progress_bar_unknown_total(self) -> None:
        assert format_progress_bar(5, 0, width=4) == "[    ]"

    def test_format_bytes(self) -> None:
        assert format_bytes(512) == "512 B"
        assert format_bytes(1536) == "1.5 KiB"
        assert format_bytes(3 * 1024**3) == "3.0 GiB"
