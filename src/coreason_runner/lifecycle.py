# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_runner

import asyncio
import codecs
import os
import signal
import time
from pathlib import Path
from typing import Awaitable, Callable, Coroutine, Literal, Mapping, Sequence, cast

from coreason_runner.models import FailureKind, RunOutcome
from coreason_runner.readiness import ReadinessPredicate
from coreason_runner.utils.logger import logger

StreamName = Literal["stdout", "stderr"]
OutputCallback = Callable[[StreamName, str], Awaitable[None]]

CHUNK_SIZE = 64 * 1024
CANCELLED_MESSAGE = "Run cancelled by user"

_POSIX = os.name == "posix"


def append_message(text: str, message: str) -> str:
    """Append an engine message to captured output on its own line."""
    if text and not text.endswith("\n"):
        text += "\n"
    return text + message


class ProcessController:
    """Owns the OS process of one run stage.

    The process is spawned in its own session so that termination reaches
    every child it forks. Whichever of exit, deadline, spawn error, cancel or
    readiness happens first settles the outcome; the others become no-ops.
    All state lives on the event loop thread, so the claim, the accumulators
    and the outcome are never observed half-updated.
    """

    def __init__(
        self,
        run_id: str,
        on_output: OutputCallback | None = None,
        kill_grace_period: float = 5.0,
        drain_timeout: float = 1.0,
    ):
        """Initializes the ProcessController.

        Args:
            run_id: The run this process belongs to. Used for logging.
            on_output: Awaited with every decoded chunk, in stream order. Reading
                the pipes waits on it, so it must hand chunks off rather than block.
            kill_grace_period: Seconds between SIGTERM and SIGKILL.
            drain_timeout: Seconds to wait for the pipes to empty after exit.
        """
        self.run_id = run_id
        self.on_output = on_output
        self.kill_grace_period = kill_grace_period
        self.drain_timeout = drain_timeout
        self.process: asyncio.subprocess.Process | None = None

        self._stdout: list[str] = []
        self._stderr: list[str] = []
        self._settled_by: str | None = None
        self._result: RunOutcome | None = None
        self._resolved = asyncio.Event()
        self._executed = False
        self._started_at: float | None = None
        self._preview_address: str | None = None
        self._readiness: ReadinessPredicate | None = None
        self._deadline: asyncio.TimerHandle | None = None
        self._readers: list[asyncio.Task[None]] = []
        self._exit_task: asyncio.Task[None] | None = None
        self._termination: asyncio.Task[None] | None = None
        self._background: set[asyncio.Task[None]] = set()

    @property
    def resolved(self) -> bool:
        return self._result is not None

    @property
    def is_alive(self) -> bool:
        return self.process is not None and self.process.returncode is None

    async def execute(
        self,
        command: Sequence[str],
        *,
        cwd: Path,
        timeout_ms: int,
        env: Mapping[str, str] | None = None,
        readiness: ReadinessPredicate | None = None,
        preview_address: str | None = None,
        timeout_message: str | None = None,
    ) -> RunOutcome:
        """Spawn `command` and wait for the run's outcome.

        Without a readiness predicate the outcome comes from process exit.
        With one, the first matching chunk of output settles the run as a
        success while the process keeps running.

        Args:
            command: Executable and arguments.
            cwd: Working directory of the process.
            timeout_ms: Deadline, counted from spawn.
            env: Overrides layered onto the host environment.
            readiness: Predicate marking a long-lived server as ready.
            preview_address: Reported on the outcome when ready.
            timeout_message: Appended to stderr when the deadline expires.

        Returns:
            RunOutcome: The single terminal outcome of this process.

        Raises:
            RuntimeError: If the controller already executed a command.
        """
        if self._executed:
            raise RuntimeError("ProcessController can only execute once")
        self._executed = True
        self._readiness = readiness
        self._preview_address = preview_address
        self._started_at = time.monotonic()

        if self._settled_by is not None:
            # Cancelled before anything was spawned
            return await self._wait()

        merged_env = {**os.environ, **(env or {})}
        try:
            self.process = await asyncio.create_subprocess_exec(
                *command,
                cwd=str(cwd),
                env=merged_env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=_POSIX,
            )
        except OSError as e:
            logger.error(f"Failed to spawn {command[0]}: {e}")
            if self._claim("spawn-error"):
                self._resolve(
                    self._build(
                        succeeded=False,
                        failure=FailureKind.SPAWN_FAILED,
                        message=f"Failed to start {command[0]}: {e}",
                    )
                )
            return await self._wait()

        logger.info("Process spawned", run_id=self.run_id, pid=self.process.pid, command=command[0])

        self._readers = [
            asyncio.create_task(self._pump(self.process.stdout, "stdout")),
            asyncio.create_task(self._pump(self.process.stderr, "stderr")),
        ]
        self._exit_task = asyncio.create_task(self._watch_exit(self.process))

        if self._settled_by is not None:
            # Cancelled while the process was being spawned
            await self.terminate()
            return await self._wait()

        message = timeout_message or f"Execution timed out after {timeout_ms / 1000:g} seconds"
        self._deadline = asyncio.get_running_loop().call_later(timeout_ms / 1000, self._on_deadline, message)

        try:
            return await self._wait()
        except asyncio.CancelledError:
            if self._claim("cancelled"):
                self._background_task(self._settle_cancelled())
            raise

    async def cancel(self) -> None:
        """Cancel the run and reclaim its process.

        Settles the outcome as user-cancelled unless it is already settled,
        e.g. a dev server that became ready. Safe to call repeatedly.
        """
        if not self._claim("cancelled"):
            await self.terminate()
            return

        logger.info("Cancelling process", run_id=self.run_id)
        await self._settle_cancelled()

    async def terminate(self) -> None:
        """Terminate the process group: SIGTERM, then SIGKILL after the grace period.

        This is the only way a process is ever stopped. Concurrent callers
        share one termination.
        """
        if self._termination is None or (self._termination.done() and self.is_alive):
            self._termination = asyncio.create_task(self._terminate())
        await asyncio.shield(self._termination)

    async def _settle_cancelled(self) -> None:
        self._cancel_deadline()
        await self.terminate()
        await self._drain()
        self._resolve(self._build(succeeded=False, failure=FailureKind.CANCELLED, message=CANCELLED_MESSAGE))

    async def wait_closed(self) -> None:
        """Wait until the spawned process, if any, has exited."""
        if self._exit_task is not None:
            await asyncio.shield(self._exit_task)

    async def _terminate(self) -> None:
        process = self.process
        if process is None:
            return
        if process.returncode is not None:
            # Leader is gone. An open pipe means children may still be left in its group
            if any(not task.done() for task in self._readers):
                logger.info("Terminating leftover process group members", run_id=self.run_id, pid=process.pid)
                self._signal(process, force=False)
                _, pending = await asyncio.wait(self._readers, timeout=self.kill_grace_period)
                if pending:
                    self._signal(process, force=True)
            return

        logger.info("Terminating process group", run_id=self.run_id, pid=process.pid)
        self._signal(process, force=False)
        try:
            await asyncio.wait_for(process.wait(), timeout=self.kill_grace_period)
        except asyncio.TimeoutError:
            logger.warning("Process ignored SIGTERM, killing", run_id=self.run_id, pid=process.pid)
            self._signal(process, force=True)
            await process.wait()

    @staticmethod
    def _signal(process: asyncio.subprocess.Process, force: bool) -> None:
        try:
            if _POSIX:
                os.killpg(process.pid, signal.SIGKILL if force else signal.SIGTERM)
            elif force:
                process.kill()
            else:
                process.terminate()
        except (ProcessLookupError, PermissionError):
            pass

    async def _pump(self, stream: asyncio.StreamReader | None, name: StreamName) -> None:
        if stream is None:
            return
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        buffer = self._stdout if name == "stdout" else self._stderr
        while True:
            data = await stream.read(CHUNK_SIZE)
            final = not data
            text = decoder.decode(data, final=final)
            # Output after the outcome is drained but no longer recorded
            if text and not self.resolved:
                buffer.append(text)
                await self._forward(name, text)
                if self._readiness is not None and self._readiness(text):
                    self._on_ready()
            if final:
                return

    async def _forward(self, name: StreamName, text: str) -> None:
        if self.on_output is None:
            return
        try:
            await self.on_output(name, text)
        except Exception as e:
            logger.error(f"Output callback failed for run {self.run_id}: {e}")

    async def _watch_exit(self, process: asyncio.subprocess.Process) -> None:
        returncode = await process.wait()
        if not self._claim("exit"):
            logger.debug("Process exited after outcome was settled", run_id=self.run_id, exit_code=returncode)
            return

        self._cancel_deadline()
        await self._drain()
        logger.info("Process exited", run_id=self.run_id, exit_code=returncode)
        succeeded = returncode == 0
        self._resolve(
            self._build(
                succeeded=succeeded,
                exit_code=returncode if returncode >= 0 else None,
                failure=None if succeeded else FailureKind.NON_ZERO_EXIT,
            )
        )

    def _on_ready(self) -> None:
        if not self._claim("ready"):
            return
        self._cancel_deadline()
        logger.info("Server is ready", run_id=self.run_id, preview_address=self._preview_address)
        self._resolve(self._build(succeeded=True, preview_address=self._preview_address))

    def _on_deadline(self, message: str) -> None:
        self._deadline = None
        if not self._claim("timeout"):
            return
        logger.warning(f"Run {self.run_id} exceeded its deadline. Terminating.")
        self._background_task(self._expire(message))

    async def _expire(self, message: str) -> None:
        await self.terminate()
        await self._drain()
        self._resolve(self._build(succeeded=False, failure=FailureKind.TIMEOUT, message=message))

    async def _drain(self) -> None:
        pending = [task for task in self._readers if not task.done()]
        if pending:
            await asyncio.wait(pending, timeout=self.drain_timeout)

    def _cancel_deadline(self) -> None:
        if self._deadline is not None:
            self._deadline.cancel()
            self._deadline = None

    def _claim(self, reason: str) -> bool:
        if self._settled_by is not None:
            return False
        self._settled_by = reason
        return True

    def _resolve(self, outcome: RunOutcome) -> None:
        if self._result is None:
            self._result = outcome
            self._resolved.set()

    async def _wait(self) -> RunOutcome:
        await self._resolved.wait()
        return cast(RunOutcome, self._result)

    def _elapsed_ms(self) -> int:
        if self._started_at is None:
            return 0
        return int((time.monotonic() - self._started_at) * 1000)

    def _build(
        self,
        succeeded: bool,
        exit_code: int | None = None,
        failure: FailureKind | None = None,
        message: str | None = None,
        preview_address: str | None = None,
    ) -> RunOutcome:
        stderr = "".join(self._stderr)
        if message:
            stderr = append_message(stderr, message)
        return RunOutcome(
            succeeded=succeeded,
            stdout="".join(self._stdout),
            stderr=stderr,
            exit_code=exit_code,
            wall_clock_ms=self._elapsed_ms(),
            preview_address=preview_address,
            failure=failure,
        )

    def _background_task(self, coro: Coroutine[None, None, None]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
