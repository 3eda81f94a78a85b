"""Shared test fixtures."""

import json
import stat
import sys
from pathlib import Path

import pytest

FIXTURES_DIR = Path(__file__).parent / "fixtures"

# A stand-in for the encoder binary: records its argv, prints ffmpeg-style
# progress, then behaves according to MODE. The last argv entry is the output.
FAKE_ENCODER = """#!{python}
import json, pathlib, signal, sys, time

MODE = {mode!r}
DELAY = {delay!r}

def on_term(signum, frame):
    print("got SIGTERM", flush=True)
    sys.exit(143)

signal.signal(signal.SIGTERM, on_term)

with open({record!r}, "a") as f:
    f.write(json.dumps(sys.argv[1:]) + "\\n")

print("started", flush=True)
for t in ("00:00:00.50", "00:00:01.00"):
    sys.stderr.write("frame=   30 fps=0.0 q=-1.0 size=N/A time=" + t + " bitrate=N/A speed=2x\\r")
    sys.stderr.flush()
    time.sleep(DELAY)

out = pathlib.Path(sys.argv[-1])
if MODE == "ok":
    out.write_bytes(b"encoded")
elif MODE == "no_output":
    sys.stderr.write("\\nConversion failed!\\n")
elif MODE == "hang":
    while True:
        time.sleep(0.05)
"""


@pytest.fixture
def sample_manifest_path() -> Path:
    return FIXTURES_DIR / "sample_manifest.json"


@pytest.fixture
def sample_cut_list_path() -> Path:
    return FIXTURES_DIR / "sample.edl"


@pytest.fixture
def probe_ac3_5_1() -> str:
    return (FIXTURES_DIR / "probe_ac3_5_1.txt").read_text()


@pytest.fixture
def probe_stereo() -> str:
    return (FIXTURES_DIR / "probe_stereo.txt").read_text()


@pytest.fixture
def probe_no_video() -> str:
    return (FIXTURES_DIR / "probe_no_video.txt").read_text()


class FakeEncoder:
    def __init__(self, path: Path, record: Path):
        self.path = path
        self.record = record

    @property
    def calls(self) -> list[list[str]]:
        if not self.record.exists():
            return []
        return [json.loads(line) for line in self.record.read_text().splitlines()]


@pytest.fixture
def fake_encoder(tmp_path):
    """Factory: fake_encoder(mode="ok", delay=0.0) -> FakeEncoder."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()

    def make(mode: str = "ok", delay: float = 0.0) -> FakeEncoder:
        path = bin_dir / f"ffmpeg_{mode}"
        record = bin_dir / f"ffmpeg_{mode}.calls"
        path.write_text(
            FAKE_ENCODER.format(
                python=sys.executable, mode=mode, delay=delay, record=str(record)
            )
        )
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return FakeEncoder(path, record)

    return make
