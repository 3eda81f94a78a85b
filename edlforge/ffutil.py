"""Encoder subprocess helpers and log/probe text parsing."""

import logging
import re
import shutil
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)

_DURATION_RE = re.compile(r"Duration:\s*(\d+:\d+:\d+(?:[.,]\d+)?)")
_TIME_RE = re.compile(r"time=(\S+)")
_TIMESTAMP_RE = re.compile(r"^(\d+):(\d{1,2}):(\d{1,2}(?:[.,]\d+)?)$")


class EncoderNotFoundError(RuntimeError):
    pass


def check_encoder(encoder: str = "ffmpeg") -> str:
    """Resolve the encoder executable, raising EncoderNotFoundError if absent."""
    resolved = shutil.which(encoder)
    if resolved is None:
        raise EncoderNotFoundError(f"unable to find executable encoder at {encoder}")
    return resolved


def probe_text(input_path: Path, encoder: str = "ffmpeg") -> str:
    """Return the encoder's textual description of *input_path*.

    Running the encoder with only an input prints the stream listing to stderr
    and exits non-zero ("At least one output file must be specified"), so the
    return code is not checked.
    """
    cmd = [encoder, "-hide_banner", "-i", str(input_path)]
    result = subprocess.run(
        cmd, capture_output=True, text=True, errors="replace", stdin=subprocess.DEVNULL
    )
    logger.debug("probe of %s exited rc=%s", input_path, result.returncode)
    return result.stderr


def timestamp_to_seconds(timestamp: str) -> float:
    """Convert ``HH:MM:SS``, ``HH:MM:SS.ff`` or ``HH:MM:SS,mmm`` to seconds.

    Raises ValueError for anything else (e.g. ffmpeg's ``N/A``).
    """
    match = _TIMESTAMP_RE.match(timestamp.strip())
    if match is None:
        raise ValueError(f"not a timestamp: {timestamp!r}")
    hours, minutes, seconds = match.groups()
    return 3600 * int(hours) + 60 * int(minutes) + float(seconds.replace(",", "."))


def parse_duration(text: str) -> float | None:
    """Pull the source duration out of probe text, or None if it is unknown."""
    match = _DURATION_RE.search(text)
    if match is None:
        return None
    return timestamp_to_seconds(match.group(1))


def last_progress_time(log_tail: str) -> float | None:
    """Return the most recent ``time=`` marker in *log_tail*, in seconds.

    Markers that don't parse (``time=N/A``, a line cut in half by the tail
    boundary) are skipped in favour of the previous one.
    """
    for raw in reversed(_TIME_RE.findall(log_tail)):
        try:
            return timestamp_to_seconds(raw)
        except ValueError:
            continue
    return None


def read_log_tail(log_path: Path, max_bytes: int = 1000) -> str:
    """Read at most the last *max_bytes* of a (possibly still growing) log."""
    try:
        with open(log_path, "rb") as f:
            f.seek(0, 2)
            size = f.tell()
            f.seek(max(0, size - max_bytes))
            data = f.read(max_bytes)
    except FileNotFoundError:
        return ""
    return data.decode("utf-8", errors="replace")


def format_seconds(seconds: float) -> str:
    """Render seconds for an encoder flag without float noise (``100``, ``12.5``)."""
    text = f"{seconds:.3f}".rstrip("0").rstrip(".")
    return text or "0"
