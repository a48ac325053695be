"""
Bounded external-process runner.

Runs a streaming producer (tcpdump, ``kubectl logs -f``) for a fixed window of
wall-clock time and makes sure it is signalled to exit when the window ends.
Two output dispositions are supported:

* drain-to-file: the child's stdout is written straight into a file sink.
* scan-and-extract: stdout is read line by line, an extraction function is
  applied to each line and the matches are collected into a set.

A window ends on whichever of {duration elapsed, early-stop fired, output
closed} is observed first. The process gets one termination request per run;
asking to terminate a process that already exited is a no-op.
"""

from __future__ import annotations

import math
import queue
import subprocess
import sys
import tempfile
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Callable, Iterable, List, Literal, Optional, Set, TextIO

from loguru import logger
from pydantic import BaseModel

from netdebug.utils.network import extract_ipv4

RunStatus = Literal["success", "start_failure", "stream_failure"]
RunMode = Literal["drain-to-file", "scan-and-extract"]

STOP_TIMEOUT = "timeout"
STOP_EARLY = "early-stop"
STOP_EOF = "eof"
STOP_EXITED = "exited"
STOP_STREAM_ERROR = "stream-error"


@dataclass(frozen=True)
class SampleWindow:
    """A fixed span of time starting at ``start``; unbounded when ``duration`` is None."""

    start: float
    duration: Optional[float] = None

    def __post_init__(self):
        if self.duration is not None and self.duration <= 0:
            raise ValueError(f"Window duration must be positive, got {self.duration}")

    @property
    def end(self) -> Optional[float]:
        if self.duration is None:
            return None
        return self.start + self.duration

    def ratio(self, now: float) -> float:
        """Elapsed fraction of the window, clamped to [0, 1]."""
        if self.duration is None:
            return 0.0
        return min(max((now - self.start) / self.duration, 0.0), 1.0)

    def elapsed(self, now: float) -> bool:
        return self.end is not None and now >= self.end


class ProgressBar:
    """
    Fixed-width text progress bar drawn on a single, overwritten line.

    Renders ``\\r<prefix> [=====     ] 12.5% `` and emits one line break the
    first time the ratio reaches 1.
    """

    def __init__(self, prefix: str = "", width: int = 40, stream: Optional[TextIO] = None):
        self.prefix = prefix
        self.width = width
        self.stream = stream
        self.ratio = 0.0
        self.finished = False

    def cells(self, ratio: float) -> tuple[int, int]:
        """Return (completed, remaining) cell counts for a ratio."""
        ratio = min(max(ratio, 0.0), 1.0)
        completed = math.floor(self.width * ratio)
        return completed, self.width - completed

    def render(self, ratio: float) -> str:
        ratio = min(max(ratio, 0.0), 1.0)
        completed, remaining = self.cells(ratio)
        return f"\r{self.prefix} [{'=' * completed}{' ' * remaining}] {ratio * 100:.1f}% "

    def update(self, ratio: float) -> None:
        """Redraw the bar; the displayed ratio never goes backwards."""
        if self.finished:
            return
        self.ratio = max(self.ratio, min(max(ratio, 0.0), 1.0))
        stream = self.stream or sys.stdout
        stream.write(self.render(self.ratio))
        if self.ratio >= 1.0:
            stream.write("\n")
            self.finished = True
        stream.flush()

    def finish(self) -> None:
        self.update(1.0)

    def close(self) -> None:
        """End the bar's line without forcing it to 100%."""
        if self.finished:
            return
        stream = self.stream or sys.stdout
        stream.write("\n")
        stream.flush()
        self.finished = True


class CancellationToken:
    """First-wins stop request shared by the early-stop timer and the consuming loop."""

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self.reason: Optional[str] = None

    def request_stop(self, reason: str) -> bool:
        """Record ``reason`` if nobody stopped first. Returns True if this call won."""
        with self._lock:
            if self._event.is_set():
                return False
            self.reason = reason
            self._event.set()
            return True

    @property
    def stopped(self) -> bool:
        return self._event.is_set()


class RunOutcome(BaseModel):
    """Typed result of one bounded run."""

    command: str
    mode: RunMode
    status: RunStatus
    stop_reason: Optional[str] = None
    duration: float = 0.0
    addresses: Set[str] = set()
    artifact: Optional[Path] = None
    return_code: Optional[int] = None
    stderr: str = ""
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == "success"


class _StreamError:
    def __init__(self, message: str):
        self.message = message


_EOF = object()


def _pump_lines(stream: Optional[IO[str]], lines: queue.Queue) -> None:
    """Forward raw lines from a child's stdout; the consumer owns all parsing."""
    try:
        if stream is None:
            raise OSError("process stdout is not available")
        for line in stream:
            lines.put(line)
    except (OSError, ValueError) as e:
        lines.put(_StreamError(str(e)))
        return
    lines.put(_EOF)


class _SupervisedProcess:
    """A started child process plus the bookkeeping that limits it to one termination request."""

    def __init__(self, process: subprocess.Popen, command: str, stderr_buffer: IO[bytes],
                 app_logger, kill_grace: float):
        self.process = process
        self.command = command
        self.stderr_buffer = stderr_buffer
        self.logger = app_logger
        self.kill_grace = kill_grace
        self.terminated = False
        self.return_code: Optional[int] = None

    def poll(self) -> Optional[int]:
        return self.process.poll()

    def terminate(self) -> Optional[int]:
        """
        End the child: SIGTERM, then SIGKILL if it is still alive after ``kill_grace``.

        Only the first call acts. It returns once the child has been reaped.
        """
        if self.terminated:
            return self.return_code
        self.terminated = True

        if self.process.poll() is not None:
            self.return_code = self.process.returncode
            self.logger.debug(f"Process already exited ({self.return_code}): {self.command}")
            return self.return_code

        try:
            self.process.terminate()
        except ProcessLookupError:
            self.logger.debug(f"Process exited before it could be signalled: {self.command}")

        try:
            self.return_code = self.process.wait(timeout=self.kill_grace)
        except subprocess.TimeoutExpired:
            self.logger.warning(
                f"Process still running {self.kill_grace}s after SIGTERM, killing: {self.command}"
            )
            try:
                self.process.kill()
            except ProcessLookupError:
                pass  # exited between wait() and kill()
            self.return_code = self.process.wait()

        self.logger.debug(f"Process terminated ({self.return_code}): {self.command}")
        return self.return_code

    def read_stderr(self) -> str:
        try:
            self.stderr_buffer.seek(0)
            return self.stderr_buffer.read().decode("utf-8", errors="replace").strip()
        finally:
            self.stderr_buffer.close()


class BoundedProcessRunner:
    """
    Run an external producer for a bounded window of time.

    ``clock`` and ``sleep`` default to ``time.monotonic`` and ``time.sleep``;
    tests inject fakes to drive the window deterministically.
    """

    def __init__(
        self,
        app_logger=logger,
        tick: float = 1.0,
        kill_grace: float = 5.0,
        stop_when_exited: bool = False,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.logger = app_logger
        self.tick = tick
        self.kill_grace = kill_grace
        self.stop_when_exited = stop_when_exited
        self.clock = clock
        self.sleep = sleep

    def drain_to_file(
        self,
        command: List[str],
        destination: Path,
        duration: float,
        progress: Optional[ProgressBar] = None,
        early_stop: Optional[float] = None,
    ) -> RunOutcome:
        """
        Copy the child's stdout verbatim into ``destination`` for ``duration`` seconds.

        The display loop runs for the whole window even if the child exits early,
        unless ``stop_when_exited`` is set.
        """
        cmd_str = " ".join(command)
        destination = Path(destination)
        window = SampleWindow(start=self.clock(), duration=duration)

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            existed = destination.exists()
            sink = open(destination, "wb")
        except OSError as e:
            self.logger.error(f"Cannot open capture sink {destination}: {e}")
            return RunOutcome(
                command=cmd_str,
                mode="drain-to-file",
                status="stream_failure",
                error=str(e),
            )

        try:
            supervised = self._start(command, stdout=sink)
        except (OSError, subprocess.SubprocessError, ValueError) as e:
            sink.close()
            if not existed:
                destination.unlink(missing_ok=True)
            return self._start_failure(cmd_str, "drain-to-file", e)

        token = CancellationToken()
        timer = self._arm_timer(token, early_stop)
        self.logger.info(f"Draining '{cmd_str}' into {destination} for {duration:g}s")

        try:
            while True:
                now = self.clock()
                if window.elapsed(now):
                    token.request_stop(STOP_TIMEOUT)
                    break
                if progress is not None:
                    progress.update(window.ratio(now))
                if supervised.poll() is not None:
                    token.request_stop(STOP_EXITED)
                if token.stopped:
                    supervised.terminate()
                    if self.stop_when_exited:
                        break
                self.sleep(self.tick)
        finally:
            if timer is not None:
                timer.cancel()
            supervised.terminate()
            sink.close()

        ended = self.clock()
        if progress is not None:
            if window.elapsed(ended):
                progress.finish()
            else:
                progress.close()

        self.logger.info(f"Drain finished ({token.reason}): {cmd_str}")
        return RunOutcome(
            command=cmd_str,
            mode="drain-to-file",
            status="success",
            stop_reason=token.reason,
            duration=ended - window.start,
            artifact=destination,
            return_code=supervised.return_code,
            stderr=supervised.read_stderr(),
        )

    def scan_and_extract(
        self,
        command: List[str],
        extract: Callable[[str], Iterable[str]] = extract_ipv4,
        early_stop: Optional[float] = 10.0,
        duration: Optional[float] = None,
        progress: Optional[ProgressBar] = None,
    ) -> RunOutcome:
        """
        Read the child's stdout line by line and collect every extracted match.

        Stops at the first of: ``early_stop`` seconds, ``duration`` seconds, or
        end of output. Whatever was collected by then is returned.
        """
        cmd_str = " ".join(command)
        window = SampleWindow(start=self.clock(), duration=duration)

        try:
            supervised = self._start(
                command,
                stdout=subprocess.PIPE,
                text=True,
                errors="replace",
                bufsize=1,
            )
        except (OSError, subprocess.SubprocessError, ValueError) as e:
            return self._start_failure(cmd_str, "scan-and-extract", e)

        lines: queue.Queue = queue.Queue()
        reader = threading.Thread(
            target=_pump_lines,
            args=(supervised.process.stdout, lines),
            daemon=True,
        )
        reader.start()

        token = CancellationToken()
        timer = self._arm_timer(token, early_stop)
        addresses: Set[str] = set()
        status: RunStatus = "success"
        error: Optional[str] = None
        self.logger.info(f"Sampling output of '{cmd_str}'")

        try:
            while not token.stopped:
                now = self.clock()
                if window.elapsed(now):
                    token.request_stop(STOP_TIMEOUT)
                    break
                if progress is not None:
                    progress.update(window.ratio(now))
                try:
                    item = lines.get(timeout=self.tick)
                except queue.Empty:
                    continue
                if item is _EOF:
                    token.request_stop(STOP_EOF)
                elif isinstance(item, _StreamError):
                    if token.request_stop(STOP_STREAM_ERROR):
                        status = "stream_failure"
                        error = item.message
                        self.logger.warning(f"Output stream failed: {item.message}")
                else:
                    addresses.update(extract(item))
        finally:
            if timer is not None:
                timer.cancel()
            supervised.terminate()

        # the child is reaped by now; the reader only has buffered output left
        reader.join(timeout=self.kill_grace)
        if not reader.is_alive() and supervised.process.stdout is not None:
            supervised.process.stdout.close()
        ended = self.clock()
        if progress is not None:
            if window.elapsed(ended):
                progress.finish()
            else:
                progress.close()

        self.logger.info(
            f"Sampling finished ({token.reason}), {len(addresses)} distinct match(es): {cmd_str}"
        )
        return RunOutcome(
            command=cmd_str,
            mode="scan-and-extract",
            status=status,
            stop_reason=token.reason,
            duration=ended - window.start,
            addresses=addresses,
            return_code=supervised.return_code,
            stderr=supervised.read_stderr(),
            error=error,
        )

    def _start(self, command: List[str], stdout, **popen_kwargs) -> _SupervisedProcess:
        cmd_str = " ".join(command)
        stderr_buffer = tempfile.TemporaryFile()
        try:
            process = subprocess.Popen(command, stdout=stdout, stderr=stderr_buffer, **popen_kwargs)
        except (OSError, subprocess.SubprocessError, ValueError):
            stderr_buffer.close()
            raise
        self.logger.debug(f"Started pid {process.pid}: {cmd_str}")
        return _SupervisedProcess(process, cmd_str, stderr_buffer, self.logger, self.kill_grace)

    def _start_failure(self, cmd_str: str, mode: RunMode, exc: Exception) -> RunOutcome:
        self.logger.error(f"Failed to start '{cmd_str}': {exc}")
        return RunOutcome(
            command=cmd_str,
            mode=mode,
            status="start_failure",
            error=str(exc),
        )

    def _arm_timer(self, token: CancellationToken, delay: Optional[float]) -> Optional[threading.Timer]:
        if delay is None:
            return None
        timer = threading.Timer(delay, token.request_stop, args=(STOP_EARLY,))
        timer.daemon = True
        timer.start()
        return timer
