import re

_TIMESTAMP_RE = re.compile(r"^\s*(\d+):([0-5]\d)\s*$")


def format_timestamp(seconds: float) -> str:
    """
    Format elapsed seconds as zero-padded ``MM:SS``.

    Minutes are not rolled over into hours, so 3600 seconds render as ``60:00``.
    """
    if seconds < 0:
        raise ValueError(f"Negative timestamp: {seconds}")
    total = int(seconds)
    return f"{total // 60:02d}:{total % 60:02d}"


def parse_timestamp(value: str) -> int:
    """Parse ``MM:SS`` (any number of minutes) into elapsed seconds."""
    match = _TIMESTAMP_RE.match(value or "")
    if not match:
        raise ValueError(f"Invalid MM:SS timestamp: {value!r}")
    minutes, secs = match.groups()
    return int(minutes) * 60 + int(secs)
