"""
Subprocess execution for the external encoder and prober.

Arguments are always passed as a list to ``asyncio.create_subprocess_exec``;
nothing is ever interpolated into a shell command line. Every invocation is
bounded by a wall-clock timeout after which the child is killed.
"""

import asyncio
from dataclasses import dataclass

from ..core.config import settings
from ..core.logging import get_logger
from ..observability.metrics import metrics
from .errors import FFmpegTimeoutError

logger = get_logger("media.process_invoker")


@dataclass
class ProcessOutput:
    """Exit status and captured streams of a finished subprocess."""
    returncode: int
    stdout: bytes
    stderr: bytes

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace")

    @property
    def stdout_text(self) -> str:
        return self.stdout.decode("utf-8", errors="replace")


class ProcessInvoker:
    """Runs the ffmpeg and ffprobe binaries configured in MediaConfig."""

    def __init__(
        self,
        ffmpeg_binary: str | None = None,
        ffprobe_binary: str | None = None,
        encoder_timeout: float | None = None,
        probe_timeout: float | None = None,
    ):
        self.ffmpeg_binary = ffmpeg_binary or settings.media.ffmpeg_binary
        self.ffprobe_binary = ffprobe_binary or settings.media.ffprobe_binary
        self.encoder_timeout = encoder_timeout or settings.media.transcode_timeout
        self.probe_timeout = probe_timeout or settings.media.probe_timeout

    async def run_encoder(self, args: list[str], timeout: float | None = None) -> ProcessOutput:
        """Run ffmpeg with the given argument list."""
        return await self._run(self.ffmpeg_binary, args, timeout or self.encoder_timeout)

    async def run_probe(self, args: list[str], timeout: float | None = None) -> ProcessOutput:
        """Run ffprobe with the given argument list."""
        return await self._run(self.ffprobe_binary, args, timeout or self.probe_timeout)

    async def _run(self, binary: str, args: list[str], timeout: float) -> ProcessOutput:
        command = [binary, *args]
        logger.debug("Executing subprocess", command=command, timeout=timeout)

        # OSError (binary missing, not executable) propagates to the caller
        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            await self._kill(process)
            metrics.track_subprocess(binary, "timeout")
            logger.error("Subprocess timed out", binary=binary, timeout=timeout)
            raise FFmpegTimeoutError(f"{binary} timed out after {timeout}s")
        except asyncio.CancelledError:
            await self._kill(process)
            metrics.track_subprocess(binary, "cancelled")
            logger.warning("Subprocess cancelled", binary=binary)
            raise

        output = ProcessOutput(returncode=process.returncode, stdout=stdout, stderr=stderr)
        metrics.track_subprocess(binary, "success" if output.ok else "failure")

        if not output.ok:
            logger.warning(
                "Subprocess exited with non-zero status",
                binary=binary,
                returncode=output.returncode,
                stderr=output.stderr_text[-2000:],
            )

        return output

    @staticmethod
    async def _kill(process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            process.kill()
        await process.wait()


# Global invoker instance
process_invoker = ProcessInvoker()
