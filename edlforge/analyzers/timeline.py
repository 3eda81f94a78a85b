"""Timeline planner — turns a cut list into the ranges that get encoded."""

import logging
import math
from pathlib import Path

from edlforge.models import KeepSegment, TimeRange

logger = logging.getLogger(__name__)


class PlanningError(ValueError):
    """Raised for a malformed cut list or an unusable source duration."""
    pass


def parse_cut_list(text: str) -> list[TimeRange]:
    """Parse ``start stop`` lines (seconds) into cut ranges.

    Blank lines and ``#`` comments are skipped. Cuts must already be sorted by
    start and must not overlap.
    """
    cuts: list[TimeRange] = []
    for lineno, line in enumerate(text.splitlines(), 1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        fields = line.split()
        if len(fields) != 2:
            raise PlanningError(
                f"cut list line {lineno}: expected 'start stop', got {line!r}"
            )
        try:
            start, stop = float(fields[0]), float(fields[1])
        except ValueError:
            raise PlanningError(
                f"cut list line {lineno}: non-numeric field in {line!r}"
            ) from None
        if not (math.isfinite(start) and math.isfinite(stop)):
            raise PlanningError(f"cut list line {lineno}: non-finite time in {line!r}")
        if start < 0 or stop < start:
            raise PlanningError(
                f"cut list line {lineno}: invalid range {start}-{stop}"
            )
        if cuts:
            prev = cuts[-1]
            if start < prev.start:
                raise PlanningError(
                    f"cut list line {lineno}: cuts must be sorted by start time"
                )
            if start < prev.end:
                raise PlanningError(
                    f"cut list line {lineno}: cut {start}-{stop} overlaps "
                    f"{prev.start}-{prev.end}"
                )
        cuts.append(TimeRange(start=start, end=stop))
    return cuts


def load_cut_list(path: str | Path) -> list[TimeRange]:
    """Load a cut list (EDL) file."""
    path = Path(path)
    try:
        text = path.read_text()
    except OSError as e:
        raise PlanningError(f"unable to read cut list {path}: {e}") from e
    return parse_cut_list(text)


def _check_duration(source_duration: float) -> None:
    if (
        not isinstance(source_duration, (int, float))
        or not math.isfinite(source_duration)
        or source_duration <= 0
    ):
        raise PlanningError(f"invalid source duration: {source_duration!r}")


def cut_duration(cut_list: list[TimeRange], source_duration: float) -> float:
    """Total time removed, with each cut clamped to the source."""
    total = 0.0
    for cut in cut_list:
        start = min(cut.start or 0.0, source_duration)
        end = source_duration if cut.end is None else min(cut.end, source_duration)
        total += max(0.0, end - start)
    return total


def segment_name(start: float | None, end: float, repeat: int = 0) -> str:
    """Name a keep segment by its rounded bounds.

    Sub-second keeps can round to the same bounds; *repeat* counts earlier
    segments with that name and is appended so each name stays unique.
    """
    name = f"{round(start or 0):06d}_{round(end):06d}"
    if repeat:
        name = f"{name}_{repeat}"
    return name


def plan(cut_list: list[TimeRange], source_duration: float) -> list[KeepSegment]:
    """Return the keep segments left over once *cut_list* is removed.

    Keep ranges that start at or past the end of the source are dropped, and an
    end that runs past the source is clamped to it, so a cut that starts inside
    the source but stops after it simply removes the tail.
    """
    _check_duration(source_duration)

    if not cut_list:
        ranges = [TimeRange(start=None, end=None)]
    else:
        ranges = []
        first = cut_list[0]
        if first.start is not None and first.start > 0:
            ranges.append(TimeRange(start=None, end=first.start))
        for prev, nxt in zip(cut_list, cut_list[1:]):
            ranges.append(TimeRange(start=prev.end, end=nxt.start))
        ranges.append(TimeRange(start=cut_list[-1].end, end=None))

    segments: list[KeepSegment] = []
    seen: dict[str, int] = {}
    for r in ranges:
        start, end = r.start, r.end
        if start is not None and start >= source_duration:
            logger.debug("dropping keep range starting past the source at %s", start)
            continue
        if end is not None and end > source_duration:
            end = source_duration

        if start is not None and end is not None:
            duration = end - start
        elif start is not None:
            duration = source_duration - start
        elif end is not None:
            duration = end
        else:
            duration = source_duration

        if duration <= 0:
            continue

        resolved_end = end if end is not None else source_duration
        base = segment_name(start, resolved_end)
        repeat = seen.get(base, 0)
        seen[base] = repeat + 1
        segments.append(
            KeepSegment(
                start=start,
                end=end,
                duration=duration,
                name=segment_name(start, resolved_end, repeat),
            )
        )

    logger.info(
        "planned %d keep segment(s) totalling %.3fs of %.3fs",
        len(segments),
        sum(s.duration for s in segments),
        source_duration,
    )
    return segments
