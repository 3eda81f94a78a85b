"""Orchestrator — runs the cut/encode/concat pipeline defined by a Manifest."""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from edlforge import ffutil
from edlforge.analyzers import streams, timeline
from edlforge.editors.concat import build_merge_job, write_concat_list
from edlforge.editors.cut import build_segment_jobs, build_single_job
from edlforge.manifest import Manifest
from edlforge.models import ProgressPhase
from edlforge.progress import allocate
from edlforge.supervisor import PhaseSupervisor

logger = logging.getLogger(__name__)

CONCAT_LIST_NAME = "segment_list.txt"


@dataclass
class EngineResult:
    output_path: Path | None
    work_dir: Path | None = None
    segments_encoded: int = 0
    duration_original: float = 0.0
    duration_final: float = 0.0


def default_work_dir(manifest: Manifest) -> Path:
    return manifest.input.parent / f"{manifest.output.stem}_ffmpeg"


def prepare_work_dir(work_dir: Path, owned: bool = True) -> Path:
    """Empty *work_dir* and create ``logs/`` and ``segments/`` inside it.

    An *owned* directory (the derived ``<stem>_ffmpeg`` default) is removed
    and recreated. A directory the caller supplied may hold other files, such
    as the input itself, so only the entries this tool writes are cleared.
    """
    if owned:
        if work_dir.exists():
            shutil.rmtree(work_dir)
    else:
        for name in ("logs", "segments"):
            if (work_dir / name).is_dir():
                shutil.rmtree(work_dir / name)
        (work_dir / CONCAT_LIST_NAME).unlink(missing_ok=True)
    (work_dir / "logs").mkdir(parents=True)
    (work_dir / "segments").mkdir()
    return work_dir


def make_supervisor(
    manifest: Manifest, on_progress: Callable[[float], None] | None = None
) -> PhaseSupervisor:
    cfg = manifest.encoder
    return PhaseSupervisor(
        on_progress=on_progress,
        encoder=cfg.path,
        poll_interval=cfg.poll_interval,
        tail_bytes=cfg.log_tail_bytes,
    )


def process(
    manifest: Manifest,
    on_progress: Callable[[float], None] | None = None,
    supervisor: PhaseSupervisor | None = None,
) -> EngineResult:
    """Execute the full transcode pipeline.

    Args:
        manifest: Validated transcode manifest.
        on_progress: Optional callback(percent) used when no supervisor is given.
        supervisor: Supervisor to run jobs with; pass one in to be able to
            cancel the run from outside.

    Raises:
        PlanningError, NoVideoStreamError, OutputMissingError,
        TranscodeTerminated, EncoderNotFoundError.
    """
    supervisor = supervisor or make_supervisor(manifest, on_progress)
    cfg = manifest.encoder

    supervisor.encoder = ffutil.check_encoder(cfg.path)

    # Parse the cut list up front so a bad one fails before anything is touched.
    cuts = timeline.load_cut_list(manifest.cut_list) if manifest.cut_list else None

    text = ffutil.probe_text(manifest.input, encoder=supervisor.encoder)
    duration_original = ffutil.parse_duration(text)
    if duration_original is None:
        raise timeline.PlanningError(f"unable to read the duration of {manifest.input}")

    probe = streams.resolve(text)
    policy = streams.mapping(probe, cfg)

    if manifest.work_dir is not None:
        work_dir = prepare_work_dir(manifest.work_dir, owned=False)
    else:
        work_dir = prepare_work_dir(default_work_dir(manifest))
    logger.info("working directory %s", work_dir)

    if cuts is None:
        phase = ProgressPhase(
            id="encode",
            min_percent=0.0,
            max_percent=100.0,
            expected_duration=duration_original,
        )
        job = build_single_job(
            manifest.input,
            manifest.output,
            phase,
            policy,
            work_dir,
            manifest.pre_input_args,
            manifest.post_input_args,
        )
        supervisor.run(job)
        return EngineResult(
            output_path=manifest.output,
            work_dir=work_dir,
            segments_encoded=1,
            duration_original=duration_original,
            duration_final=duration_original,
        )

    segments = timeline.plan(cuts, duration_original)
    duration_final = duration_original - timeline.cut_duration(cuts, duration_original)

    if not segments:
        logger.warning("cut list removes all of %s; nothing to encode", manifest.input)
        supervisor.reporter.begin_phase(
            ProgressPhase(id="empty", min_percent=0.0, max_percent=100.0, expected_duration=0.0)
        )
        supervisor.reporter.finish_phase()
        return EngineResult(
            output_path=None,
            work_dir=work_dir,
            duration_original=duration_original,
        )

    phases = allocate(segments, duration_final, cfg.merge_start_percent)
    jobs = build_segment_jobs(
        manifest.input,
        segments,
        phases[:-1],
        policy,
        work_dir,
        manifest.output.suffix,
        manifest.pre_input_args,
        manifest.post_input_args,
    )
    list_path = write_concat_list([j.output for j in jobs], work_dir / CONCAT_LIST_NAME)
    jobs.append(build_merge_job(list_path, manifest.output, phases[-1], work_dir))

    supervisor.run_all(jobs)

    return EngineResult(
        output_path=manifest.output,
        work_dir=work_dir,
        segments_encoded=len(segments),
        duration_original=duration_original,
        duration_final=duration_final,
    )
