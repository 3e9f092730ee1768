import logging
import shlex
import shutil
import stat
import tempfile
from collections.abc import Mapping
from pathlib import Path

from .options import OptionMap, OptionValue, StringOption
from .types import Network

logger = logging.getLogger(__name__)

# hyperfine lifecycle option -> script body
_SCRIPTS: dict[str, str] = {
    "setup": """#!/usr/bin/env bash
set -euo pipefail
datadir="${1:?datadir required}"
mkdir -p "$datadir"
find "$datadir" -mindepth 1 -delete
""",
    "prepare": """#!/usr/bin/env bash
set -euo pipefail
datadir="${1:?datadir required}"
mkdir -p "$datadir"
find "$datadir" -mindepth 1 -delete
if [ "$#" -ge 4 ]; then
    bitcoind="$2"
    chain="$3"
    snapshot="$4"
    cli="${BITCOIN_CLI:-bitcoin-cli}"
    args=(-chain="$chain" -datadir="$datadir" -pid="$datadir/bitcoind.pid" -printtoconsole=0)
    if [ -n "${5:-}" ]; then
        args+=(-connect="$5")
    fi
    # headers must reach the snapshot height before loadtxoutset accepts it
    "$bitcoind" "${args[@]}" -stopatheight=1
    "$bitcoind" "${args[@]}" -server=1 -daemonwait
    "$cli" -chain="$chain" -datadir="$datadir" -rpcwait -rpcclienttimeout=0 loadtxoutset "$snapshot"
    "$cli" -chain="$chain" -datadir="$datadir" stop
    while [ -f "$datadir/bitcoind.pid" ]; do
        sleep 1
    done
fi
sync
""",
    "conclude": """#!/usr/bin/env bash
set -euo pipefail
commit="${1:?commit required}"
datadir="${2:?datadir required}"
chain="${3:?chain required}"
out_dir="${4:?output directory required}"
dest="$out_dir/$commit"
mkdir -p "$dest"
for log in "$datadir/$chain/debug.log" "$datadir/debug.log"; do
    if [ -f "$log" ]; then
        cp "$log" "$dest/debug-$(date +%s%N).log"
        break
    fi
done
""",
    "cleanup": """#!/usr/bin/env bash
set -euo pipefail
datadir="${1:?datadir required}"
if [ -d "$datadir" ]; then
    find "$datadir" -mindepth 1 -delete
fi
""",
}


def _chain_dir(network: Network) -> str:
    # bitcoind keeps mainnet data in the datadir root
    return "." if network is Network.MAINNET else network.value


class HookManager:
    """Default setup/prepare/conclude/cleanup hooks for hyperfine runs.

    Every timed iteration starts from an empty data directory, loaded with
    the network's UTXO snapshot when one is given, and each iteration's
    debug.log is kept under `<out_dir>/<commit>/`.
    """

    def __init__(self, scripts_dir: Path | None = None):
        self._owns_dir = scripts_dir is None
        if scripts_dir is None:
            scripts_dir = Path(tempfile.mkdtemp(prefix="benchkit-hooks-"))
        self.scripts_dir = Path(scripts_dir)
        self.scripts_dir.mkdir(parents=True, exist_ok=True)
        self.script_paths = self._write_scripts()

    def _write_scripts(self) -> dict[str, Path]:
        paths: dict[str, Path] = {}
        for name, body in _SCRIPTS.items():
            path = self.scripts_dir / f"{name}.sh"
            path.write_text(body, encoding="utf-8")
            path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
            paths[name] = path
        return paths

    def close(self) -> None:
        """Remove the scripts directory if this manager created it."""
        if self._owns_dir:
            shutil.rmtree(self.scripts_dir, ignore_errors=True)

    def script_hooks(
        self,
        network: Network,
        tmp_data_dir: Path,
        out_dir: Path,
        *,
        bitcoind: str | None = None,
        snapshot: Path | None = None,
        connect: str | None = None,
    ) -> OptionMap:
        """Hook options for one benchmark.

        With both `bitcoind` (may contain `{commit}`) and `snapshot`, the
        prepare hook syncs headers and loads the snapshot before every run.
        """
        datadir = shlex.quote(str(tmp_data_dir))
        scripts = {name: shlex.quote(str(path)) for name, path in self.script_paths.items()}

        prepare = f"{scripts['prepare']} {datadir}"
        if bitcoind and snapshot is not None:
            prepare += (
                f" {shlex.quote(bitcoind)} {network.chain_name} {shlex.quote(str(snapshot))}"
            )
            if connect:
                prepare += f" {shlex.quote(connect)}"

        return {
            "setup": StringOption(f"{scripts['setup']} {datadir}"),
            "prepare": StringOption(prepare),
            "conclude": StringOption(
                f"{scripts['conclude']} {{commit}} {datadir} {_chain_dir(network)} "
                f"{shlex.quote(str(out_dir))}"
            ),
            "cleanup": StringOption(f"{scripts['cleanup']} {datadir}"),
        }

    def add_script_hooks(
        self,
        options: Mapping[str, OptionValue],
        network: Network,
        tmp_data_dir: Path,
        out_dir: Path,
        *,
        bitcoind: str | None = None,
        snapshot: Path | None = None,
        connect: str | None = None,
    ) -> OptionMap:
        """Return a copy of options with default hooks added where the key is unset."""
        merged: OptionMap = dict(options)
        hooks = self.script_hooks(
            network,
            tmp_data_dir,
            out_dir,
            bitcoind=bitcoind,
            snapshot=snapshot,
            connect=connect,
        )
        for key, value in hooks.items():
            if key in merged:
                logger.debug("Keeping user-defined %s hook", key)
                continue
            merged[key] = value
        return merged
