import sys

_UNITS = ("B", "KiB", "MiB", "GiB", "TiB")


def format_progress_bar(current: int, total: int, width: int = 30) -> str:
    """Format a simple ASCII progress bar."""
    if total <= 0:
        return "[" + " " * width + "]"
    current = min(current, total)
    filled = int(width * current / total)
    bar = "█" * filled + "░" * (width - filled)
    pct = current * 100 // total
    return f"[{bar}] {pct:3d}%"


def format_bytes(size: int) -> str:
    value = float(size)
    for unit in _UNITS[:-1]:
        if value < 1024:
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} {_UNITS[-1]}"


def print_download_progress(downloaded: int, total: int) -> None:
    # ANSI: \033[2K clears the entire line, \r returns cursor to start
    if total:
        bar = format_progress_bar(downloaded, total)
        line = f"{bar} {format_bytes(downloaded)}/{format_bytes(total)}"
    else:
        line = f"{format_bytes(downloaded)} downloaded"
    print(f"\033[2K\r{line}", end="", file=sys.stderr, flush=True)
