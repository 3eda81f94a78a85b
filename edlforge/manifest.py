"""JSON manifest schema — the contract between CLI/API and engine."""

import json
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class EncoderConfig:
    """How the encoder is invoked and how its progress is reported."""

    path: str = "ffmpeg"
    audio_codec: str = "aac"
    passthrough_codec: str = "ac3"
    # Segments fill 0..merge_start, the concat fills merge_start..100, so the
    # run never prints a terminal-looking value twice.
    merge_start_percent: float = 98.0
    poll_interval: float = 3.0
    log_tail_bytes: int = 1000


@dataclass
class Manifest:
    """Top-level transcode manifest."""

    input: Path
    output: Path
    version: str = "1"
    cut_list: Path | None = None
    work_dir: Path | None = None
    pre_input_args: list[str] = field(default_factory=list)
    post_input_args: list[str] = field(default_factory=list)
    encoder: EncoderConfig = field(default_factory=EncoderConfig)


def validate_encoder_config(cfg: EncoderConfig) -> None:
    if not 0 < cfg.merge_start_percent < 100:
        raise ValueError("merge_start_percent must be between 0 and 100 (exclusive)")
    if cfg.poll_interval <= 0:
        raise ValueError("poll_interval must be positive")
    if cfg.log_tail_bytes <= 0:
        raise ValueError("log_tail_bytes must be positive")


def load_manifest(path: str | Path) -> Manifest:
    """Load and validate a manifest from a JSON file."""
    path = Path(path)
    data = json.loads(path.read_text())

    if "input" not in data or "output" not in data:
        raise ValueError("Manifest must contain 'input' and 'output' fields")

    try:
        encoder = EncoderConfig(**data.get("encoder", {}))
    except TypeError as e:
        raise ValueError(f"invalid encoder settings: {e}") from e
    validate_encoder_config(encoder)

    return Manifest(
        version=data.get("version", "1"),
        input=Path(data["input"]),
        output=Path(data["output"]),
        cut_list=Path(data["cut_list"]) if data.get("cut_list") else None,
        work_dir=Path(data["work_dir"]) if data.get("work_dir") else None,
        pre_input_args=list(data.get("pre_input_args", [])),
        post_input_args=list(data.get("post_input_args", [])),
        encoder=encoder,
    )
