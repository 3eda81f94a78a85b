"""Stream policy — picks the tracks to map from the encoder's probe output."""

import logging
import re

from edlforge.manifest import EncoderConfig
from edlforge.models import AudioOutput, MappingPolicy, StreamProbe

logger = logging.getLogger(__name__)

# Callers match on this exact text to retry with a different container.
NO_VIDEO_STREAM_MESSAGE = "no video streams"

_VIDEO_RE = re.compile(r"^\s*Stream #(\d+:\d+).*Video:", re.MULTILINE)
_AUDIO_RE = re.compile(r"^\s*Stream #(\d+:\d+).*Audio:(.*)$", re.MULTILINE)
_AC3_RE = re.compile(r"^\s*ac3\b")
_SURROUND_RE = re.compile(r"\b5\.1\b")


class NoVideoStreamError(ValueError):
    """Raised when the probe lists no video track."""

    def __init__(self, probe_text: str = ""):
        super().__init__(NO_VIDEO_STREAM_MESSAGE)
        self.probe_text = probe_text


def resolve(probe_text: str) -> StreamProbe:
    """Find the first video and first audio track in *probe_text*.

    Further tracks of either kind are ignored.
    """
    video = _VIDEO_RE.search(probe_text)
    if video is None:
        raise NoVideoStreamError(probe_text)

    audio = _AUDIO_RE.search(probe_text)
    audio_stream = audio.group(1) if audio else None
    is_ac3_5_1 = bool(
        audio
        and _AC3_RE.search(audio.group(2))
        and _SURROUND_RE.search(audio.group(2))
    )

    probe = StreamProbe(
        video_stream=video.group(1),
        audio_stream=audio_stream,
        audio_is_ac3_5_1=is_ac3_5_1,
    )
    logger.info(
        "video %s, audio %s%s",
        probe.video_stream,
        probe.audio_stream or "none",
        " (ac3 5.1)" if is_ac3_5_1 else "",
    )
    return probe


def mapping(probe: StreamProbe, config: EncoderConfig | None = None) -> MappingPolicy:
    """Build the stream mapping for *probe*.

    AC-3 5.1 sources get two output audio tracks: a widely playable lossy
    track first and the surround track, kept as AC-3, second.
    """
    config = config or EncoderConfig()
    if probe.video_stream is None:
        raise NoVideoStreamError()

    outputs: list[AudioOutput] = []
    if probe.audio_stream is not None:
        outputs.append(AudioOutput(stream=probe.audio_stream, codec=config.audio_codec))
        if probe.audio_is_ac3_5_1:
            outputs.append(
                AudioOutput(stream=probe.audio_stream, codec=config.passthrough_codec)
            )
    return MappingPolicy(video_stream=probe.video_stream, audio_outputs=outputs)
