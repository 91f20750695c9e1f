import time
from typing import Optional

SIZE_UNITS = ["Bytes", "KB", "MB", "GB", "TB"]


def format_file_size(size: int) -> str:
    """Human readable size, e.g. 1536 -> '1.5 KB'."""
    if not size or size <= 0:
        return "0 Bytes"

    i = 0
    value = float(size)
    while value >= 1024 and i < len(SIZE_UNITS) - 1:
        value /= 1024
        i += 1
    # Drop trailing zeros: 2.0 -> 2, 1.50 -> 1.5
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {SIZE_UNITS[i]}"


def safe_file_name(file_name: str) -> str:
    """Strip directory parts so a name can't escape the user's folder."""
    name = file_name.replace("\\", "/").split("/")[-1].strip()
    if name in ("", ".", ".."):
        return "file"
    return name


def build_storage_path(user_id: str, file_name: str, timestamp_ms: Optional[int] = None) -> str:
    """Objects live at '<user_id>/<epoch-ms>_<file name>'."""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"{user_id}/{timestamp_ms}_{safe_file_name(file_name)}"
