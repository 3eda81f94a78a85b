"""Segment editor — builds one encode job per keep segment."""

from pathlib import Path

from edlforge.ffutil import format_seconds
from edlforge.models import EncodeJob, KeepSegment, MappingPolicy, ProgressPhase


def segment_args(
    input_path: Path,
    segment: KeepSegment,
    policy: MappingPolicy,
    pre_input_args: list[str],
    post_input_args: list[str],
) -> list[str]:
    """Encoder flags for one keep segment, output path excluded.

    ``-ss`` before ``-i`` seeks the input, which resets timestamps, so the
    trailing ``-to`` is the segment's duration rather than its end time.
    """
    args: list[str] = []
    if segment.start is not None:
        args += ["-ss", format_seconds(segment.start)]
    args += pre_input_args
    args += ["-i", str(input_path)]
    args += policy.map_args()
    args += post_input_args
    args += policy.codec_args()
    if segment.end is not None:
        args += ["-to", format_seconds(segment.duration)]
    return args


def build_segment_jobs(
    input_path: Path,
    segments: list[KeepSegment],
    phases: list[ProgressPhase],
    policy: MappingPolicy,
    work_dir: Path,
    suffix: str,
    pre_input_args: list[str] | None = None,
    post_input_args: list[str] | None = None,
) -> list[EncodeJob]:
    """Pair each keep segment with its progress phase and output/log paths."""
    if len(phases) < len(segments):
        raise ValueError("every segment needs a progress phase")

    jobs: list[EncodeJob] = []
    for segment, phase in zip(segments, phases):
        jobs.append(
            EncodeJob(
                phase=phase,
                args=segment_args(
                    input_path,
                    segment,
                    policy,
                    pre_input_args or [],
                    post_input_args or [],
                ),
                output=work_dir / "segments" / f"segment_{segment.name}{suffix}",
                log_path=work_dir / "logs" / f"ffmpeg_segment_{segment.name}.log",
            )
        )
    return jobs


def build_single_job(
    input_path: Path,
    output_path: Path,
    phase: ProgressPhase,
    policy: MappingPolicy,
    work_dir: Path,
    pre_input_args: list[str] | None = None,
    post_input_args: list[str] | None = None,
) -> EncodeJob:
    """One job encoding the whole source straight to *output_path*."""
    args = [
        *(pre_input_args or []),
        "-i", str(input_path),
        *policy.map_args(),
        *(post_input_args or []),
        *policy.codec_args(),
    ]
    return EncodeJob(
        phase=phase,
        args=args,
        output=output_path,
        log_path=work_dir / "logs" / "ffmpeg.log",
    )
