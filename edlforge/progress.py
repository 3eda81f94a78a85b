"""Progress aggregation — maps per-phase encoder time onto one 0-100 scale.

The calling supervisor kills a transcode whose progress line stays the same
for too long, so values are only printed when the displayed text changes and
every phase boundary is always shown.
"""

import logging
from typing import Callable

from edlforge.models import KeepSegment, ProgressPhase

logger = logging.getLogger(__name__)

MERGE_PHASE_ID = "merge"


def format_percent(percent: float) -> str:
    return f"{percent:.2f} %"


def allocate(
    segments: list[KeepSegment],
    total_duration: float,
    merge_start_percent: float,
) -> list[ProgressPhase]:
    """Split ``[0, merge_start_percent)`` across *segments* by duration.

    A final merge phase covers ``[merge_start_percent, 100]``.
    """
    phases: list[ProgressPhase] = []
    elapsed = 0.0
    for seg in segments:
        if total_duration > 0:
            lo = merge_start_percent * (elapsed / total_duration)
            hi = merge_start_percent * ((elapsed + seg.duration) / total_duration)
        else:
            lo = hi = 0.0
        phases.append(
            ProgressPhase(
                id=seg.name,
                min_percent=lo,
                max_percent=min(hi, merge_start_percent),
                expected_duration=seg.duration,
            )
        )
        elapsed += seg.duration

    phases.append(
        ProgressPhase(
            id=MERGE_PHASE_ID,
            min_percent=merge_start_percent,
            max_percent=100.0,
            expected_duration=total_duration,
        )
    )
    return phases


def track(phase: ProgressPhase, current_time: float) -> float:
    """Linear position of *current_time* inside *phase*, capped at its max."""
    if phase.expected_duration <= 0 or current_time > phase.expected_duration:
        return phase.max_percent
    if current_time <= 0:
        return phase.min_percent
    span = phase.max_percent - phase.min_percent
    return phase.min_percent + span * current_time / phase.expected_duration


class ProgressReporter:
    """De-duplicating sink for global progress values.

    ``on_progress`` receives the percentage as a float; two values are the same
    when their two-decimal display text is.
    """

    def __init__(self, on_progress: Callable[[float], None] | None = None):
        self._on_progress = on_progress
        self._phase: ProgressPhase | None = None
        self._last_shown: str | None = None
        self._last_value: float | None = None

    @property
    def last_value(self) -> float | None:
        return self._last_value

    def _emit(self, percent: float) -> None:
        self._last_shown = format_percent(percent)
        self._last_value = percent
        if self._on_progress:
            self._on_progress(percent)

    def begin_phase(self, phase: ProgressPhase) -> None:
        logger.debug(
            "phase %s: %.2f-%.2f%% over %.3fs",
            phase.id, phase.min_percent, phase.max_percent, phase.expected_duration,
        )
        self._phase = phase
        self._emit(phase.min_percent)

    def update(self, percent: float) -> None:
        if self._phase is None:
            raise RuntimeError("update() called outside a phase")
        if self._last_value is not None and percent < self._last_value:
            percent = self._last_value
        if format_percent(percent) != self._last_shown:
            self._emit(percent)

    def finish_phase(self) -> None:
        if self._phase is None:
            raise RuntimeError("finish_phase() called outside a phase")
        if format_percent(self._phase.max_percent) != self._last_shown:
            self._emit(self._phase.max_percent)
        self._phase = None
