"""UTXO snapshots the benchmarks load into bitcoind."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import httpx

from .config import settings
from .errors import MissingSnapshotError, SnapshotDownloadError
from .types import Network

logger = logging.getLogger(__name__)

DOWNLOAD_TIMEOUT = httpx.Timeout(30.0, read=300.0)
CHUNK_SIZE = 1024 * 1024

ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class SnapshotInfo:
    network: Network
    filename: str
    height: int

    def url(self, host: str | None = None) -> str:
        host = host or settings.SNAPSHOT_HOST
        return f"{host.rstrip('/')}/{self.filename}"

    def path(self, snapshot_dir: Path) -> Path:
        return Path(snapshot_dir) / self.filename


SNAPSHOTS: dict[Network, SnapshotInfo] = {
    Network.MAINNET: SnapshotInfo(Network.MAINNET, "mainnet-840000.dat", 840_000),
    Network.SIGNET: SnapshotInfo(Network.SIGNET, "signet-160000.dat", 160_000),
}


def snapshot_for(network: Network) -> SnapshotInfo | None:
    return SNAPSHOTS.get(network)


def check_snapshot(network: Network, snapshot_dir: Path) -> Path | None:
    """Return the snapshot path for network, raising if it has not been downloaded.

    Networks without a known snapshot need nothing and return None.
    """
    info = snapshot_for(network)
    if info is None:
        return None
    path = info.path(snapshot_dir)
    if not path.exists():
        raise MissingSnapshotError(network.value, path)
    return path


def download_snapshot(
    network: Network,
    snapshot_dir: Path,
    *,
    client: httpx.Client | None = None,
    progress: ProgressCallback | None = None,
) -> Path:
    """Stream the snapshot for network into snapshot_dir.

    The body is written to a `.part` file that is renamed into place only
    after the whole response has been received.
    """
    info = snapshot_for(network)
    if info is None:
        raise SnapshotDownloadError(f"No snapshot available for network {network.value}")

    snapshot_dir = Path(snapshot_dir)
    snapshot_dir.mkdir(parents=True, exist_ok=True)
    dest = info.path(snapshot_dir)
    partial = dest.with_name(dest.name + ".part")
    url = info.url()
    logger.info("Downloading %s to %s", url, dest)

    owns_client = client is None
    if client is None:
        client = httpx.Client(timeout=DOWNLOAD_TIMEOUT, follow_redirects=True)
    try:
        with client.stream("GET", url) as response:
            response.raise_for_status()
            total = int(response.headers.get("Content-Length") or 0)
            downloaded = 0
            with partial.open("wb") as f:
                for chunk in response.iter_bytes(CHUNK_SIZE):
                    f.write(chunk)
                    downloaded += len(chunk)
                    if progress:
                        progress(downloaded, total)
        partial.replace(dest)
    except httpx.HTTPError as exc:
        partial.unlink(missing_ok=True)
        raise SnapshotDownloadError(f"Failed to download {url}: {exc}") from exc
    except OSError as exc:
        partial.unlink(missing_ok=True)
        raise SnapshotDownloadError(f"Failed to write {dest}: {exc}") from exc
    finally:
        if owns_client:
            client.close()

    logger.info("Successfully downloaded %s (%d bytes)", dest, downloaded)
    return dest
