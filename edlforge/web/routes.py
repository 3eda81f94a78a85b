"""Web UI routes for EDLForge."""

import json
import queue
import threading
import uuid
from dataclasses import dataclass, field
from pathlib import Path

from flask import (
    Blueprint,
    Response,
    current_app,
    jsonify,
    render_template,
    request,
    send_file,
)

from edlforge.analyzers.streams import NO_VIDEO_STREAM_MESSAGE, NoVideoStreamError
from edlforge.engine import EngineResult, make_supervisor, process
from edlforge.manifest import EncoderConfig, Manifest
from edlforge.supervisor import OutputMissingError, PhaseSupervisor, TranscodeTerminated

bp = Blueprint("web", __name__, template_folder="templates")

# Seconds the progress stream waits for the next update before giving up.
STREAM_TIMEOUT = 120


@dataclass
class WebJob:
    """One uploaded recording and the state of its transcode."""

    job_dir: Path
    source: Path
    filename: str
    cut_list: Path | None = None
    status: str = "uploaded"
    error: str | None = None
    result: dict | None = None
    updates: queue.Queue | None = None
    supervisor: PhaseSupervisor | None = None

    @property
    def busy(self) -> bool:
        return self.status in ("processing", "cancelling")


_jobs: dict[str, WebJob] = {}


def _missing():
    return jsonify({"error": "Job not found"}), 404


def _conflict(message: str):
    return jsonify({"error": message}), 409


def _summary(result: EngineResult) -> dict:
    return {
        "output_path": str(result.output_path) if result.output_path else None,
        "duration_original": result.duration_original,
        "duration_final": result.duration_final,
        "segments_encoded": result.segments_encoded,
    }


def _failure_text(exc: Exception) -> str:
    if isinstance(exc, NoVideoStreamError):
        return NO_VIDEO_STREAM_MESSAGE
    if isinstance(exc, OutputMissingError):
        return f"{exc}\n{exc.log_text}"
    return str(exc)


def _build_manifest(job: WebJob, options: dict) -> Manifest:
    return Manifest(
        input=job.source,
        output=job.job_dir / f"output{job.source.suffix}",
        cut_list=job.cut_list,
        work_dir=job.job_dir / "work",
        pre_input_args=[str(a) for a in options.get("pre_input_args", [])],
        post_input_args=[str(a) for a in options.get("post_input_args", [])],
        encoder=EncoderConfig(
            path=current_app.config["ENCODER"],
            poll_interval=current_app.config["POLL_INTERVAL"],
        ),
    )


def _transcode(job: WebJob, manifest: Manifest) -> None:
    try:
        job.result = _summary(process(manifest, supervisor=job.supervisor))
        job.status = "done"
    except TranscodeTerminated:
        job.status = "terminated"
    except Exception as e:
        job.status = "error"
        job.error = _failure_text(e)
    finally:
        job.updates.put(None)


def _event(payload: dict) -> str:
    return f"data: {json.dumps(payload)}\n\n"


def _closing_event(job: WebJob) -> str:
    if job.status == "error":
        return _event({"error": job.error})
    if job.status == "terminated":
        return _event({"stage": "terminated"})
    return _event({"stage": "complete", "percent": 100.0, "result": job.result})


def _event_stream(job: WebJob):
    while True:
        try:
            update = job.updates.get(timeout=STREAM_TIMEOUT)
        except queue.Empty:
            yield _event({"error": "timeout"})
            return
        if update is None:
            yield _closing_event(job)
            return
        yield _event(update)


@bp.route("/")
def index():
    return render_template("index.html")


@bp.route("/api/upload", methods=["POST"])
def upload():
    video = request.files.get("file")
    if video is None:
        return jsonify({"error": "No file provided"}), 400
    if not video.filename:
        return jsonify({"error": "Empty filename"}), 400

    job_id = uuid.uuid4().hex[:12]
    job_dir = Path(current_app.config["WORK_DIR"]) / job_id
    job_dir.mkdir(parents=True, exist_ok=True)

    job = WebJob(
        job_dir=job_dir,
        source=job_dir / f"input{Path(video.filename).suffix or '.mp4'}",
        filename=video.filename,
    )
    video.save(job.source)

    edl = request.files.get("cut_list")
    if edl is not None and edl.filename:
        job.cut_list = job_dir / "cuts.edl"
        edl.save(job.cut_list)

    _jobs[job_id] = job
    return jsonify({
        "job_id": job_id,
        "filename": job.filename,
        "cut_list": job.cut_list is not None,
    })


@bp.route("/api/jobs/<job_id>/process", methods=["POST"])
def start_process(job_id: str):
    job = _jobs.get(job_id)
    if job is None:
        return _missing()
    if job.busy:
        return _conflict(f"Job is already {job.status}")

    manifest = _build_manifest(job, request.get_json(silent=True) or {})
    updates: queue.Queue = queue.Queue()
    job.updates = updates
    job.supervisor = make_supervisor(
        manifest, on_progress=lambda percent: updates.put({"percent": round(percent, 2)})
    )
    job.status = "processing"
    job.error = None

    threading.Thread(target=_transcode, args=(job, manifest), daemon=True).start()
    return jsonify({"status": "started"})


@bp.route("/api/jobs/<job_id>/cancel", methods=["POST"])
def cancel_process(job_id: str):
    job = _jobs.get(job_id)
    if job is None:
        return _missing()
    if job.status != "processing":
        return _conflict(f"Job is {job.status}")

    job.status = "cancelling"
    job.supervisor.cancel()
    return jsonify({"status": job.status})


@bp.route("/api/jobs/<job_id>/progress")
def progress_stream(job_id: str):
    job = _jobs.get(job_id)
    if job is None:
        return _missing()
    if job.updates is None:
        return _conflict("No processing in progress")
    return Response(_event_stream(job), mimetype="text/event-stream")


@bp.route("/api/jobs/<job_id>/result")
def download_result(job_id: str):
    job = _jobs.get(job_id)
    if job is None:
        return _missing()
    if job.status != "done":
        return _conflict("Job not complete")
    if job.result["output_path"] is None:
        return jsonify({"error": "Nothing was encoded"}), 404
    return send_file(Path(job.result["output_path"]), as_attachment=False)


@bp.route("/api/jobs/<job_id>/status")
def job_status(job_id: str):
    job = _jobs.get(job_id)
    if job is None:
        return _missing()

    body = {"status": job.status, "filename": job.filename}
    if job.status == "done":
        body["result"] = job.result
    elif job.status == "error":
        body["error"] = job.error
    return jsonify(body)
