"""
Unit tests for subprocess execution of ffmpeg and ffprobe.

asyncio.create_subprocess_exec is patched; no binaries are executed.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from parkmedia.media.errors import FFmpegTimeoutError
from parkmedia.media.process_invoker import ProcessInvoker, ProcessOutput


def _mock_process(returncode=0, stdout=b"", stderr=b""):
    process = MagicMock()
    process.returncode = returncode
    process.communicate = AsyncMock(return_value=(stdout, stderr))
    process.kill = MagicMock()
    process.wait = AsyncMock(return_value=-9)
    return process


class TestProcessOutput:
    """Test the captured output container."""

    def test_ok_and_text(self):
        output = ProcessOutput(returncode=0, stdout=b'{"a": 1}', stderr=b"warn \xff")

        assert output.ok is True
        assert output.stdout_text == '{"a": 1}'
        assert output.stderr_text.startswith("warn ")

    def test_non_zero_is_not_ok(self):
        assert ProcessOutput(returncode=1, stdout=b"", stderr=b"").ok is False


class TestProcessInvoker:
    """Test invocation, argument passing and timeouts."""

    @pytest.mark.asyncio
    async def test_run_encoder_passes_argument_list(self):
        invoker = ProcessInvoker(ffmpeg_binary="/usr/bin/ffmpeg", ffprobe_binary="/usr/bin/ffprobe")
        process = _mock_process(stdout=b"ffmpeg version 6.1")

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)) as mock_exec:
            output = await invoker.run_encoder(["-version"])

        assert output.ok
        args = mock_exec.call_args.args
        assert args == ("/usr/bin/ffmpeg", "-version")
        assert mock_exec.call_args.kwargs["stdout"] == asyncio.subprocess.PIPE

    @pytest.mark.asyncio
    async def test_run_probe_uses_probe_binary(self):
        invoker = ProcessInvoker(ffmpeg_binary="ffmpeg", ffprobe_binary="ffprobe")
        process = _mock_process(stdout=b"{}")

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)) as mock_exec:
            output = await invoker.run_probe(["-v", "quiet", "in; rm -rf /.mp4"])

        assert output.stdout == b"{}"
        # Filenames are single argv entries, never shell-interpreted
        assert mock_exec.call_args.args == ("ffprobe", "-v", "quiet", "in; rm -rf /.mp4")

    @pytest.mark.asyncio
    async def test_non_zero_exit_is_returned_not_raised(self):
        invoker = ProcessInvoker()
        process = _mock_process(returncode=1, stderr=b"Invalid data found when processing input")

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            output = await invoker.run_encoder(["-i", "broken.mov", "out.mp4"])

        assert output.returncode == 1
        assert "Invalid data" in output.stderr_text

    @pytest.mark.asyncio
    async def test_timeout_kills_child(self):
        invoker = ProcessInvoker(encoder_timeout=0.05)
        process = _mock_process(returncode=None)

        async def hang():
            await asyncio.sleep(10)

        process.communicate = AsyncMock(side_effect=hang)

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            with pytest.raises(FFmpegTimeoutError) as exc_info:
                await invoker.run_encoder(["-i", "in.mov", "out.mp4"])

        process.kill.assert_called_once()
        process.wait.assert_awaited_once()
        assert "timed out" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_cancellation_kills_child(self):
        invoker = ProcessInvoker(encoder_timeout=600)
        process = _mock_process(returncode=None)
        started = asyncio.Event()

        async def hang():
            started.set()
            await asyncio.sleep(10)

        process.communicate = AsyncMock(side_effect=hang)

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            task = asyncio.create_task(invoker.run_encoder(["-i", "in.mov", "out.mp4"]))
            await started.wait()
            task.cancel()

            with pytest.raises(asyncio.CancelledError):
                await task

        process.kill.assert_called_once()
        process.wait.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_explicit_timeout_overrides_default(self):
        invoker = ProcessInvoker(encoder_timeout=600)
        process = _mock_process()

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)), \
             patch("asyncio.wait_for", wraps=asyncio.wait_for) as mock_wait_for:
            await invoker.run_encoder(["-version"], timeout=5)

        assert mock_wait_for.call_args.kwargs["timeout"] == 5

    @pytest.mark.asyncio
    async def test_missing_binary_raises_os_error(self):
        invoker = ProcessInvoker(ffmpeg_binary="/nonexistent/ffmpeg")

        with patch("asyncio.create_subprocess_exec", AsyncMock(side_effect=FileNotFoundError("ffmpeg"))):
            with pytest.raises(OSError):
                await invoker.run_encoder(["-version"])
