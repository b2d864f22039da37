"""Isolated execution of the PDF extraction routine.

The extraction routine is untrusted in two ways: it may never return on
degenerate input, and it may abort abnormally. The sandbox bounds both:

    ProcessSandbox (default):
        Runs the routine in a child process and waits on a one-way pipe.
        On timeout the child is terminated (then killed). A child that dies
        without reporting, including native faults, yields CRASHED.

    ThreadSandbox (fallback):
        Runs the routine in a daemon thread and waits on a single-slot queue.
        Only same-language faults are contained and a hung thread is
        abandoned rather than killed; the process exits at the end of the run.

Both return exactly one ExtractionOutcome per call. The routine's writes to
stdout/stderr are sent to the null device while it runs and restored on
every exit path (see suppress_output()).
"""

import asyncio
import logging
import multiprocessing
import os
import queue
import sys
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator

from models.outcomes import ExtractionOutcome
from tools.extract import ExtractionFailure, extract_pdf_text

logger = logging.getLogger(__name__)

Extractor = Callable[[str], str]

# Seconds to wait for a terminated child before escalating to kill
_TERMINATE_GRACE = 2.0

_STD_FDS = (1, 2)


def _flush_std_streams() -> None:
    for stream in (sys.stdout, sys.stderr):
        try:
            stream.flush()
        except (AttributeError, OSError, ValueError):
            pass


class _OutputSuppressor:
    """Reference-counted redirection of stdout/stderr to the null device.

    Both the file descriptors (so native code is silenced too) and the
    Python-level sys.stdout/sys.stderr objects are redirected. Nested or
    concurrent holders share one redirection; the last release restores.
    Descriptors that are not open are left alone, which makes the whole
    thing a no-op where there is nothing to redirect.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._depth = 0
        self._saved_fds: list[tuple[int, int]] = []
        self._saved_streams: tuple | None = None
        self._null = None

    def acquire(self) -> None:
        with self._lock:
            self._depth += 1
            if self._depth == 1:
                self._redirect()

    def release(self) -> None:
        with self._lock:
            self._depth -= 1
            if self._depth == 0:
                self._restore()

    def _redirect(self) -> None:
        _flush_std_streams()
        self._null = open(os.devnull, "w")
        self._saved_streams = (sys.stdout, sys.stderr)
        for fd in _STD_FDS:
            try:
                os.fstat(fd)
                saved = os.dup(fd)
            except OSError:
                continue
            os.dup2(self._null.fileno(), fd)
            self._saved_fds.append((fd, saved))
        sys.stdout = sys.stderr = self._null

    def _restore(self) -> None:
        try:
            _flush_std_streams()
            for fd, saved in reversed(self._saved_fds):
                os.dup2(saved, fd)
                os.close(saved)
        finally:
            self._saved_fds = []
            if self._saved_streams is not None:
                sys.stdout, sys.stderr = self._saved_streams
                self._saved_streams = None
            if self._null is not None:
                self._null.close()
                self._null = None


_suppressor = _OutputSuppressor()


@contextmanager
def suppress_output() -> Iterator[None]:
    """Silence stdout/stderr for the enclosed block.

    Restoration happens on normal exit and when the block raises.

    Example:
        >>> with suppress_output():
        ...     noisy_native_call()
    """
    _suppressor.acquire()
    try:
        yield
    finally:
        _suppressor.release()


def _invoke(extractor: Extractor, path: str) -> tuple[str, str]:
    """Run the extractor and encode its result as (kind, payload)."""
    try:
        return "text", extractor(path)
    except ExtractionFailure as e:
        return "error", str(e)
    except BaseException as e:
        # Includes SystemExit raised inside the extractor
        return "crash", f"{type(e).__name__}: {e}"


def _to_outcome(kind: str, payload: str) -> ExtractionOutcome:
    if kind == "error":
        return ExtractionOutcome.error(payload)
    if kind == "crash":
        return ExtractionOutcome.crashed(payload)
    text = payload or ""
    if not text.strip():
        return ExtractionOutcome.empty()
    return ExtractionOutcome.text(text)


def _child_main(extractor: Extractor, path: str, sender) -> None:
    """Entry point of the extraction child process."""
    with suppress_output():
        result = _invoke(extractor, path)
    try:
        sender.send(result)
    finally:
        sender.close()


class Sandbox:
    """Base class: runs one extraction under a hard deadline."""

    def __init__(self, extractor: Extractor = extract_pdf_text, timeout: float = 120.0):
        self.extractor = extractor
        self.timeout = timeout

    def run(self, path: str | Path) -> ExtractionOutcome:
        raise NotImplementedError

    async def run_async(self, path: str | Path) -> ExtractionOutcome:
        """Run the blocking extraction off the event loop."""
        return await asyncio.to_thread(self.run, path)


def default_start_method() -> str | None:
    """Return "forkserver" where the platform offers it, else None (platform default)."""
    if "forkserver" in multiprocessing.get_all_start_methods():
        return "forkserver"
    return None


class ProcessSandbox(Sandbox):
    """Extraction in a separate OS process with a hard kill on timeout."""

    def __init__(
        self,
        extractor: Extractor = extract_pdf_text,
        timeout: float = 120.0,
        start_method: str | None = None,
    ):
        super().__init__(extractor, timeout)
        self._ctx = multiprocessing.get_context(start_method or default_start_method())

    def run(self, path: str | Path) -> ExtractionOutcome:
        receiver, sender = self._ctx.Pipe(duplex=False)
        process = self._ctx.Process(
            target=_child_main,
            args=(self.extractor, str(path), sender),
            name=f"extract-{Path(path).stem[:40]}",
            daemon=True,
        )
        process.start()
        # Only the child holds the write end now, so its death reads as EOF
        sender.close()

        timed_out = False
        try:
            if not receiver.poll(self.timeout):
                timed_out = True
                logger.debug("Extraction deadline hit | pid=%s path=%s", process.pid, path)
                return ExtractionOutcome.timeout(self.timeout)
            try:
                kind, payload = receiver.recv()
            except EOFError:
                process.join(_TERMINATE_GRACE)
                return ExtractionOutcome.crashed(f"process exited with code {process.exitcode}")
        finally:
            receiver.close()
            self._stop(process, grace=0 if timed_out else _TERMINATE_GRACE)

        return _to_outcome(kind, payload)

    @staticmethod
    def _stop(process, grace: float) -> None:
        """Reap the child, escalating terminate -> kill if it lingers."""
        process.join(grace)
        if process.is_alive():
            process.terminate()
            process.join(_TERMINATE_GRACE)
            if process.is_alive():
                logger.warning("Extraction process did not terminate, killing | pid=%s", process.pid)
                process.kill()
                process.join()
        process.close()


class ThreadSandbox(Sandbox):
    """Extraction in a daemon thread; a hung call is abandoned.

    Output suppression is held by the caller for the whole wait so it is
    restored even when the deadline passes while the thread is still running.
    Because descriptors are process-wide, console output from other tasks is
    silenced for that window too.
    """

    def run(self, path: str | Path) -> ExtractionOutcome:
        handoff: queue.Queue = queue.Queue(maxsize=1)

        def target() -> None:
            handoff.put(_invoke(self.extractor, str(path)))

        thread = threading.Thread(target=target, name=f"extract-{Path(path).stem[:40]}", daemon=True)
        with suppress_output():
            thread.start()
            try:
                kind, payload = handoff.get(timeout=self.timeout)
            except queue.Empty:
                logger.debug("Extraction deadline hit, abandoning thread | path=%s", path)
                return ExtractionOutcome.timeout(self.timeout)

        return _to_outcome(kind, payload)


def create_sandbox(config, extractor: Extractor = extract_pdf_text) -> Sandbox:
    """Build the sandbox selected by configuration.

    Args:
        config: Application configuration (sandbox_mode, extraction_timeout,
            sandbox_start_method)
        extractor: Extraction routine to isolate

    Returns:
        ProcessSandbox or ThreadSandbox
    """
    if config.sandbox_mode == "thread":
        return ThreadSandbox(extractor, timeout=config.extraction_timeout)
    return ProcessSandbox(
        extractor,
        timeout=config.extraction_timeout,
        start_method=config.sandbox_start_method or None,
    )
