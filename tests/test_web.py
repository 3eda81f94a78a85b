"""Unit tests for the EDLForge web UI."""

import io
import time
from pathlib import Path
from unittest.mock import patch

import pytest

from edlforge.analyzers.streams import NoVideoStreamError
from edlforge.engine import EngineResult
from edlforge.supervisor import OutputMissingError, TranscodeTerminated
from edlforge.web import create_app


@pytest.fixture
def app(tmp_path):
    app = create_app(work_dir=tmp_path)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def _upload(client, filename="test.ts", content=b"fake video data", cut_list=None):
    data = {"file": (io.BytesIO(content), filename)}
    if cut_list is not None:
        data["cut_list"] = (io.BytesIO(cut_list), "cuts.edl")
    return client.post("/api/upload", data=data, content_type="multipart/form-data")


def _wait_status(client, job_id, wanted, timeout=5.0):
    deadline = time.monotonic() + timeout
    while True:
        status = client.get(f"/api/jobs/{job_id}/status").get_json()
        if status["status"] == wanted or time.monotonic() > deadline:
            return status
        time.sleep(0.01)


class TestIndex:
    def test_serves_html(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert b"EDLForge" in resp.data


class TestUpload:
    def test_upload_success(self, client):
        resp = _upload(client)
        assert resp.status_code == 200
        data = resp.get_json()
        assert "job_id" in data
        assert data["filename"] == "test.ts"
        assert data["cut_list"] is False

    def test_upload_no_file(self, client):
        resp = client.post("/api/upload")
        assert resp.status_code == 400

    def test_upload_creates_files(self, client, tmp_path):
        resp = _upload(client, content=b"CONTENT", cut_list=b"100 160\n")
        data = resp.get_json()
        assert data["cut_list"] is True
        job_dir = tmp_path / data["job_id"]
        assert (job_dir / "input.ts").read_bytes() == b"CONTENT"
        assert (job_dir / "cuts.edl").read_text() == "100 160\n"


class TestProcess:
    def test_process_unknown_job(self, client):
        resp = client.post("/api/jobs/nonexistent/process", json={})
        assert resp.status_code == 404

    @patch("edlforge.web.routes.process")
    def test_process_runs_to_done(self, mock_process, client, tmp_path):
        def fake_process(manifest, supervisor):
            supervisor.reporter._on_progress(50.0)
            return EngineResult(
                output_path=manifest.output, segments_encoded=2,
                duration_original=600.0, duration_final=540.0,
            )

        mock_process.side_effect = fake_process
        job_id = _upload(client, cut_list=b"100 160\n").get_json()["job_id"]

        resp = client.post(
            f"/api/jobs/{job_id}/process",
            json={"post_input_args": ["-c:v", "libx264"]},
        )
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "started"

        status = _wait_status(client, job_id, "done")
        assert status["status"] == "done"
        assert status["result"]["segments_encoded"] == 2

        manifest = mock_process.call_args[0][0]
        assert manifest.cut_list == tmp_path / job_id / "cuts.edl"
        assert manifest.post_input_args == ["-c:v", "libx264"]

        stream = client.get(f"/api/jobs/{job_id}/progress")
        body = stream.get_data(as_text=True)
        assert '"percent": 50.0' in body
        assert '"stage": "complete"' in body

    @patch("edlforge.web.routes.process")
    def test_no_video_stream_reports_marker(self, mock_process, client):
        mock_process.side_effect = NoVideoStreamError("probe")
        job_id = _upload(client).get_json()["job_id"]
        client.post(f"/api/jobs/{job_id}/process", json={})

        status = _wait_status(client, job_id, "error")
        assert status["error"] == "no video streams"

    @patch("edlforge.web.routes.process")
    def test_missing_output_reports_whole_log(self, mock_process, client):
        log_text = "frame=1\n" * 400 + "Conversion failed!\n"
        mock_process.side_effect = OutputMissingError(
            Path("segment_000000_000100.mp4"), Path("ffmpeg_segment_000000_000100.log"), log_text
        )
        job_id = _upload(client).get_json()["job_id"]
        client.post(f"/api/jobs/{job_id}/process", json={})

        status = _wait_status(client, job_id, "error")
        assert "problem generating segment_000000_000100.mp4" in status["error"]
        assert status["error"].endswith(log_text)
        assert status["error"].count("frame=1") == 400


class TestCancel:
    def test_cancel_unknown_job(self, client):
        assert client.post("/api/jobs/nonexistent/cancel").status_code == 404

    def test_cancel_idle_job(self, client):
        job_id = _upload(client).get_json()["job_id"]
        assert client.post(f"/api/jobs/{job_id}/cancel").status_code == 409

    @patch("edlforge.web.routes.process")
    def test_cancel_running_job(self, mock_process, client):
        def fake_process(manifest, supervisor):
            deadline = time.monotonic() + 5
            while not supervisor.cancelled and time.monotonic() < deadline:
                time.sleep(0.01)
            raise TranscodeTerminated()

        mock_process.side_effect = fake_process
        job_id = _upload(client).get_json()["job_id"]
        client.post(f"/api/jobs/{job_id}/process", json={})

        resp = client.post(f"/api/jobs/{job_id}/cancel")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "cancelling"

        status = _wait_status(client, job_id, "terminated")
        assert status["status"] == "terminated"


class TestStatus:
    def test_status_after_upload(self, client):
        job_id = _upload(client).get_json()["job_id"]
        resp = client.get(f"/api/jobs/{job_id}/status")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "uploaded"

    def test_status_unknown_job(self, client):
        resp = client.get("/api/jobs/nonexistent/status")
        assert resp.status_code == 404


class TestDownload:
    def test_download_not_complete(self, client):
        job_id = _upload(client).get_json()["job_id"]
        resp = client.get(f"/api/jobs/{job_id}/result")
        assert resp.status_code == 409

    def test_download_unknown_job(self, client):
        resp = client.get("/api/jobs/nonexistent/result")
        assert resp.status_code == 404
