import math

_UNITS = ["Bytes", "KB", "MB", "GB", "TB"]


def format_bytes(size: int, decimals: int = 2) -> str:
    """Human readable size for log lines, e.g. ``format_bytes(1536) == "1.5 KB"``."""
    if size <= 0:
        return "0 Bytes"
    decimals = max(decimals, 0)
    i = min(int(math.floor(math.log(size, 1024))), len(_UNITS) - 1)
    value = round(size / 1024 ** i, decimals)
    if value == int(value):
        value = int(value)
    return f"{value} {_UNITS[i]}"
