"""
Shared fixtures for the ParkLookup media service tests.

Environment overrides are applied before any parkmedia import so the global
settings, database manager and storage adapter pick them up.
"""

import os

os.environ.update({
    "ENVIRONMENT": "testing",
    "DEBUG": "true",
    "DATABASE_URL": "sqlite://",
    "LOG_FORMAT": "console",
    "S3_ENDPOINT": "http://storage.test:9000",
})

import io
import json
from pathlib import Path

import pytest
from PIL import Image

from parkmedia.adapters.storage_s3 import StorageError
from parkmedia.core.config import DatabaseConfig
from parkmedia.media.ffmpeg_wrapper import FFmpegWrapper
from parkmedia.media.process_invoker import ProcessOutput
from parkmedia.models.db import DatabaseManager


def make_image(fmt: str = "JPEG", size: tuple[int, int] = (640, 480), mode: str = "RGB",
               color=(30, 120, 200), **save_kwargs) -> bytes:
    """Render a solid-color image in memory."""
    if mode in ("RGBA", "LA") and isinstance(color, tuple) and len(color) == 3:
        color = color + (128,) if mode == "RGBA" else (color[0], 128)
    img = Image.new(mode, size, color)
    buffer = io.BytesIO()
    img.save(buffer, format=fmt, **save_kwargs)
    return buffer.getvalue()


def probe_report(width: int = 1280, height: int = 720, duration: str | None = "12.6") -> dict:
    """Build an ffprobe JSON report with one audio and one video stream."""
    report = {
        "streams": [
            {"index": 0, "codec_type": "audio", "codec_name": "aac"},
            {"index": 1, "codec_type": "video", "codec_name": "h264", "width": width, "height": height},
        ],
        "format": {"format_name": "mov,mp4,m4a,3gp,3g2,mj2"},
    }
    if duration is not None:
        report["format"]["duration"] = duration
    return report


class FakeInvoker:
    """Stands in for ProcessInvoker; writes canned output files instead of running ffmpeg."""

    ffmpeg_binary = "ffmpeg"
    ffprobe_binary = "ffprobe"

    def __init__(
        self,
        available: bool = True,
        probe_reports: list[dict] | None = None,
        encoder_returncode: int = 0,
        encoder_stderr: bytes = b"",
        video_bytes: bytes | None = b"\x00\x00\x00\x18ftypmp42 encoded video",
        thumbnail_bytes: bytes | None = None,
        probe_returncode: int = 0,
        probe_stdout: bytes | None = None,
    ):
        self.available = available
        self.probe_reports = list(probe_reports or [probe_report(), probe_report()])
        self.encoder_returncode = encoder_returncode
        self.encoder_stderr = encoder_stderr
        self.video_bytes = video_bytes
        self.thumbnail_bytes = make_image("JPEG", (400, 400)) if thumbnail_bytes is None else thumbnail_bytes
        self.probe_returncode = probe_returncode
        self.probe_stdout = probe_stdout
        self.encoder_calls: list[list[str]] = []
        self.probe_calls: list[list[str]] = []
        self.inputs_seen: list[Path] = []

    async def run_encoder(self, args, timeout=None):
        self.encoder_calls.append(list(args))
        if args == ["-version"]:
            if not self.available:
                raise FileNotFoundError("ffmpeg")
            return ProcessOutput(returncode=0, stdout=b"ffmpeg version 6.1", stderr=b"")

        input_path = Path(args[args.index("-i") + 1])
        self.inputs_seen.append(input_path)
        assert input_path.exists()

        if self.encoder_returncode == 0:
            output = self.thumbnail_bytes if "-frames:v" in args else self.video_bytes
            if output is not None:
                Path(args[-1]).write_bytes(output)
        return ProcessOutput(returncode=self.encoder_returncode, stdout=b"", stderr=self.encoder_stderr)

    async def run_probe(self, args, timeout=None):
        self.probe_calls.append(list(args))
        if self.probe_stdout is not None:
            stdout = self.probe_stdout
        else:
            report = self.probe_reports.pop(0) if len(self.probe_reports) > 1 else self.probe_reports[0]
            stdout = json.dumps(report).encode()
        return ProcessOutput(returncode=self.probe_returncode, stdout=stdout, stderr=b"probe diagnostics")


class FakeStorage:
    """In-memory replacement for S3Storage."""

    def __init__(self, fail_buckets: tuple[str, ...] = ()):
        self.fail_buckets = fail_buckets
        self.objects: dict[tuple[str, str], tuple[bytes, str]] = {}
        self.deleted: list[tuple[str, str]] = []

    async def upload_bytes(self, bucket, key, data, content_type):
        if bucket in self.fail_buckets:
            raise StorageError(f"Failed to upload {bucket}/{key}: connection refused")
        self.objects[(bucket, key)] = (data, content_type)
        return key

    async def delete_object(self, bucket, key):
        self.deleted.append((bucket, key))
        self.objects.pop((bucket, key), None)
        return True

    def public_url(self, bucket, key):
        if not key:
            return None
        return f"http://storage.test/{bucket}/{key}"


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_image("JPEG", (640, 480))


@pytest.fixture
def fake_invoker() -> FakeInvoker:
    return FakeInvoker()


@pytest.fixture
def ffmpeg(fake_invoker, tmp_path) -> FFmpegWrapper:
    return FFmpegWrapper(invoker=fake_invoker, temp_dir=tmp_path)


@pytest.fixture
def scratch_dir(ffmpeg) -> Path:
    """Directory in which the wrapper creates its temp files."""
    return ffmpeg.temp_dir


@pytest.fixture
def fake_storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def db() -> DatabaseManager:
    """Fresh in-memory database with tables created."""
    manager = DatabaseManager(DatabaseConfig())
    manager.create_tables()
    yield manager
    manager.dispose()
