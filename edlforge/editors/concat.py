"""Concat editor — joins encoded segments with the concat demuxer."""

from pathlib import Path

from edlforge.models import EncodeJob, ProgressPhase


def concat_line(path: Path) -> str:
    escaped = str(path.resolve()).replace("'", "'\\''")
    return f"file '{escaped}'"


def write_concat_list(segment_paths: list[Path], list_path: Path) -> Path:
    """Write the concat demuxer list, one absolute path per line."""
    if not segment_paths:
        raise ValueError("write_concat_list called with empty segment list")
    list_path.parent.mkdir(parents=True, exist_ok=True)
    list_path.write_text(
        "".join(concat_line(p) + "\n" for p in segment_paths), encoding="utf-8"
    )
    return list_path


def build_merge_job(
    list_path: Path, output_path: Path, phase: ProgressPhase, work_dir: Path
) -> EncodeJob:
    """Stream-copy every listed segment into *output_path*."""
    return EncodeJob(
        phase=phase,
        args=["-f", "concat", "-safe", "0", "-i", str(list_path), "-map", "0", "-c", "copy"],
        output=output_path,
        log_path=work_dir / "logs" / "ffmpeg_concat.log",
    )
