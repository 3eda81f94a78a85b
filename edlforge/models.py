"""Shared data types used across EDLForge."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


@dataclass
class TimeRange:
    """A start/end time pair in seconds.

    ``None`` for ``start`` means the beginning of the source, ``None`` for
    ``end`` means the end of the source.
    """

    start: float | None
    end: float | None


@dataclass
class KeepSegment:
    """A range of the source that survives cutting and is encoded on its own."""

    start: float | None
    end: float | None
    duration: float
    name: str


@dataclass
class StreamProbe:
    """The tracks picked out of the encoder's textual probe of a source."""

    video_stream: str | None
    audio_stream: str | None
    audio_is_ac3_5_1: bool = False


@dataclass
class AudioOutput:
    stream: str
    codec: str


@dataclass
class MappingPolicy:
    """Which source tracks become output tracks, and with which codec."""

    video_stream: str
    audio_outputs: list[AudioOutput] = field(default_factory=list)

    def map_args(self) -> list[str]:
        args = ["-map", self.video_stream]
        for out in self.audio_outputs:
            args += ["-map", out.stream]
        return args

    def codec_args(self) -> list[str]:
        # Placed after any user flags so the per-track codecs win.
        args: list[str] = []
        for i, out in enumerate(self.audio_outputs):
            args += [f"-c:a:{i}", out.codec]
        return args


@dataclass
class ProgressPhase:
    """A slice of the global 0-100 percentage owned by one encoder run."""

    id: str
    min_percent: float
    max_percent: float
    expected_duration: float


class JobState(Enum):
    CREATED = "created"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    TERMINATED = "terminated"


@dataclass
class EncodeJob:
    """One external encoder invocation and the files it owns."""

    phase: ProgressPhase
    args: list[str]
    output: Path
    log_path: Path
    state: JobState = JobState.CREATED

    def command(self, encoder: str) -> list[str]:
        return [encoder, *self.args, str(self.output)]
