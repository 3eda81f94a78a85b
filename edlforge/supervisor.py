"""Phase supervisor — runs encoder jobs one at a time and watches their logs."""

import logging
import shutil
import signal
import subprocess
import threading
import time
from pathlib import Path
from typing import Callable

from edlforge import ffutil
from edlforge.models import EncodeJob, JobState
from edlforge.progress import ProgressReporter, track

logger = logging.getLogger(__name__)


class OutputMissingError(RuntimeError):
    """The encoder exited without writing its output file."""

    def __init__(self, output: Path, log_path: Path, log_text: str):
        super().__init__(
            f"error: problem generating {output}, "
            f"dumping contents of encoder logfile ({log_path})"
        )
        self.output = output
        self.log_path = log_path
        self.log_text = log_text


class TranscodeTerminated(Exception):
    """The run was cancelled from outside; not a failure."""
    pass


def _remove_stale(path: Path) -> None:
    # The encoder would otherwise stop and ask before overwriting.
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()


class PhaseSupervisor:
    """Launches each job's encoder, polls its log for progress, and cancels.

    Only one child is live at a time. ``cancel()`` may be called from another
    thread or from a signal handler.
    """

    def __init__(
        self,
        on_progress: Callable[[float], None] | None = None,
        encoder: str = "ffmpeg",
        poll_interval: float = 3.0,
        tail_bytes: int = 1000,
    ):
        self.encoder = encoder
        self.poll_interval = poll_interval
        self.tail_bytes = tail_bytes
        self.reporter = ProgressReporter(on_progress)
        self._lock = threading.RLock()
        # Set from signal handlers, so no Event: its lock is not reentrant.
        self._cancelled = False
        self._current: subprocess.Popen | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Forward SIGTERM to the live encoder and stop before the next phase."""
        with self._lock:
            self._cancelled = True
            proc = self._current
            if proc is not None and proc.poll() is None:
                logger.info("sending SIGTERM to encoder pid %d", proc.pid)
                try:
                    proc.send_signal(signal.SIGTERM)
                except ProcessLookupError:
                    pass

    def run(self, job: EncodeJob) -> None:
        """Run *job* to completion.

        Raises:
            TranscodeTerminated: cancel() was called before or during the job.
            OutputMissingError: the encoder exited without producing output.
        """
        if self.cancelled:
            job.state = JobState.TERMINATED
            raise TranscodeTerminated(f"cancelled before {job.phase.id}")

        _remove_stale(job.output)
        job.log_path.parent.mkdir(parents=True, exist_ok=True)
        cmd = job.command(self.encoder)
        logger.info("phase %s: %s", job.phase.id, " ".join(cmd))

        with open(job.log_path, "wb") as log:
            with self._lock:
                proc = subprocess.Popen(
                    cmd, stdin=subprocess.DEVNULL, stdout=log, stderr=subprocess.STDOUT
                )
                self._current = proc
                job.state = JobState.RUNNING
                if self.cancelled:
                    proc.send_signal(signal.SIGTERM)
            try:
                self._monitor(job, proc)
            finally:
                with self._lock:
                    self._current = None

        if self.cancelled:
            job.state = JobState.TERMINATED
            logger.info("phase %s terminated (rc=%s)", job.phase.id, proc.returncode)
            raise TranscodeTerminated(f"cancelled during {job.phase.id}")

        self.reporter.finish_phase()

        if not job.output.exists():
            job.state = JobState.FAILED
            log_text = job.log_path.read_text(errors="replace")
            raise OutputMissingError(job.output, job.log_path, log_text)

        job.state = JobState.COMPLETED
        logger.info("phase %s completed (rc=%s)", job.phase.id, proc.returncode)

    def _monitor(self, job: EncodeJob, proc: subprocess.Popen) -> None:
        self.reporter.begin_phase(job.phase)
        while proc.poll() is None:
            if self.cancelled:
                # No kill escalation: a child that ignores SIGTERM blocks here.
                proc.wait()
                return
            tail = ffutil.read_log_tail(job.log_path, self.tail_bytes)
            seconds = ffutil.last_progress_time(tail)
            if seconds is not None:
                self.reporter.update(track(job.phase, seconds))
            time.sleep(self.poll_interval)

    def run_all(self, jobs: list[EncodeJob]) -> None:
        """Run *jobs* in order, stopping at the first failure or cancellation."""
        for job in jobs:
            self.run(job)
