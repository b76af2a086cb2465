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
import shutil
import tempfile
import time
from pathlib import Path
from typing import AsyncIterator, cast
from uuid import uuid4

import anyio
import anyio.to_thread
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

from coreason_runner.classifier import classify, resolve_entry_file
from coreason_runner.config import RunnerConfig
from coreason_runner.factory import StrategyFactory
from coreason_runner.filesystem import ProjectFileSystem
from coreason_runner.lifecycle import CANCELLED_MESSAGE, ProcessController, StreamName, append_message
from coreason_runner.models import (
    DevServerFlavor,
    FailureKind,
    FileNode,
    OutcomeEvent,
    ProjectKind,
    RunEvent,
    RunOptions,
    RunOutcome,
    RunSpec,
    StderrChunk,
    StdoutChunk,
)
from coreason_runner.utils.logger import logger


class RunCancelledError(Exception):
    """Raised inside a run's pipeline once the run has been cancelled."""


class ActiveRun:
    """Per-run state owned by the dispatcher. Implements RunContext for strategies."""

    def __init__(self, run_id: str, config: RunnerConfig, send: MemoryObjectSendStream[RunEvent]):
        self.run_id = run_id
        self.config = config
        self.controller: ProcessController | None = None
        self.cancelled = False
        self.temp_dir: Path | None = None
        self.task: asyncio.Task[None] | None = None
        self.result: RunOutcome | None = None
        self.done = asyncio.Event()
        self.stopped = asyncio.Event()
        self.preparing = False
        self.prelude_stdout = ""
        self.prelude_stderr = ""
        self._spec: RunSpec | None = None
        self._send = send
        self._outbox: asyncio.Queue[RunEvent] = asyncio.Queue()
        self.relay = asyncio.create_task(self._relay())

    @property
    def spec(self) -> RunSpec:
        if self._spec is None:
            raise RuntimeError(f"Run {self.run_id} has no spec yet")
        return self._spec

    @spec.setter
    def spec(self, value: RunSpec) -> None:
        self._spec = value

    @property
    def has_spec(self) -> bool:
        return self._spec is not None

    async def emit_stdout(self, text: str) -> None:
        await self._on_output("stdout", text)

    def new_controller(self) -> ProcessController:
        self.check_cancelled()
        self.controller = ProcessController(
            self.run_id,
            on_output=self._on_output,
            kill_grace_period=self.config.kill_grace_period,
            drain_timeout=self.config.drain_timeout,
        )
        return self.controller

    def check_cancelled(self) -> None:
        if self.cancelled:
            raise RunCancelledError(self.run_id)

    async def cancel(self) -> None:
        self.cancelled = True
        self.stopped.set()
        if self.controller is not None:
            await self.controller.cancel()

    def cancelled_outcome(self) -> RunOutcome:
        return RunOutcome(
            succeeded=False,
            stdout=self.prelude_stdout,
            stderr=append_message(self.prelude_stderr, CANCELLED_MESSAGE),
            failure=FailureKind.CANCELLED,
        )

    def resolve(self, outcome: RunOutcome) -> bool:
        if self.result is not None:
            return False
        self.result = outcome
        self.done.set()
        return True

    def finish(self, outcome: RunOutcome) -> None:
        """Settle the run and queue its single terminal event."""
        if self.resolve(outcome):
            self._outbox.put_nowait(OutcomeEvent(run_id=self.run_id, outcome=outcome))

    async def _on_output(self, stream: StreamName, text: str) -> None:
        if stream == "stdout":
            if self.preparing:
                self.prelude_stdout += text
            self._outbox.put_nowait(StdoutChunk(run_id=self.run_id, data=text))
        else:
            if self.preparing:
                self.prelude_stderr += text
            self._outbox.put_nowait(StderrChunk(run_id=self.run_id, data=text))

    async def _relay(self) -> None:
        """Move queued events onto the channel in order, ending with the outcome.

        Output is queued without waiting on the consumer, so a slow or absent
        reader never stalls the process pipes or the run itself.
        """
        async with self._send:
            while True:
                event = await self._outbox.get()
                try:
                    await self._send.send(event)
                except (anyio.BrokenResourceError, anyio.ClosedResourceError):
                    # Nobody is listening any more; the outcome is still available via wait()
                    pass
                if isinstance(event, OutcomeEvent):
                    return


class RunHandle:
    """Caller's view of one run: its id, live events and terminal outcome."""

    def __init__(self, run: ActiveRun, events: MemoryObjectReceiveStream[RunEvent]):
        self._run = run
        self.events = events

    @property
    def run_id(self) -> str:
        return self._run.run_id

    async def wait(self) -> RunOutcome:
        """Wait for the terminal outcome, whether or not events are consumed."""
        await self._run.done.wait()
        return cast(RunOutcome, self._run.result)

    async def aclose(self) -> None:
        """Stop listening to events. The run itself carries on."""
        await self.events.aclose()

    def __aiter__(self) -> AsyncIterator[RunEvent]:
        return self.events.__aiter__()


class RunDispatcher:
    """Entry point of the engine.

    Resolves a project tree to a strategy, runs it through a process
    controller and relays its output as an event stream. Every run ends in
    exactly one RunOutcome; nothing raises past the dispatcher.
    """

    def __init__(self, config: RunnerConfig | None = None):
        """Initializes the RunDispatcher.

        Args:
            config: Optional configuration object. If not provided, defaults are used.
        """
        self.config = config or RunnerConfig()
        self.runs: dict[str, ActiveRun] = {}
        self._relays: set[asyncio.Task[None]] = set()

    async def __aenter__(self) -> "RunDispatcher":
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        await self.shutdown()

    async def start_run(self, tree: FileNode, options: RunOptions | None = None) -> RunHandle:
        """Accept a run and start executing it in the background.

        Args:
            tree: The project to run.
            options: Timeout, environment overrides and optional overrides of
                the classification.

        Returns:
            RunHandle: Gives access to the run id, the event stream and the outcome.
        """
        options = options or RunOptions()
        run_id = str(uuid4())
        send: MemoryObjectSendStream[RunEvent]
        receive: MemoryObjectReceiveStream[RunEvent]
        send, receive = anyio.create_memory_object_stream(max_buffer_size=self.config.event_buffer_size)

        run = ActiveRun(run_id, self.config, send)
        self.runs[run_id] = run
        self._relays.add(run.relay)
        run.relay.add_done_callback(self._relays.discard)
        run.task = asyncio.create_task(self._drive(run, tree, options))
        logger.info("Run accepted", run_id=run_id)
        return RunHandle(run, receive)

    async def run(self, tree: FileNode, options: RunOptions | None = None) -> AsyncIterator[RunEvent]:
        """Start a run and yield its events, ending with the outcome event."""
        handle = await self.start_run(tree, options)
        async with handle.events:
            async for event in handle.events:
                yield event

    async def cancel(self, run_id: str) -> bool:
        """Cancel a run and reclaim its process.

        Returns:
            bool: False if the run is unknown or already gone, True otherwise.
        """
        run = self.runs.get(run_id)
        if run is None:
            logger.warning(f"Cancel requested for unknown run {run_id}")
            return False

        logger.info("Cancelling run", run_id=run_id)
        await run.cancel()
        await run.done.wait()
        return True

    async def shutdown(self) -> None:
        """
        Cancel every run and reclaim all processes.
        """
        runs = list(self.runs.values())
        logger.info(f"Shutting down RunDispatcher. Cancelling {len(runs)} runs.")

        for run in runs:
            try:
                await run.cancel()
            except Exception as e:
                logger.error(f"Error cancelling run {run.run_id} during shutdown: {e}")

        tasks = [run.task for run in runs if run.task is not None and not run.task.done()]
        if tasks:
            await asyncio.wait(tasks, timeout=self.config.kill_grace_period + self.config.drain_timeout)

        # Listeners get a moment to take the last events; unread channels are closed
        relays = list(self._relays)
        if relays:
            _, pending = await asyncio.wait(relays, timeout=self.config.drain_timeout)
            for relay in pending:
                relay.cancel()

    async def _drive(self, run: ActiveRun, tree: FileNode, options: RunOptions) -> None:
        started = time.monotonic()
        try:
            try:
                outcome = await self._execute(run, tree, options)
            except RunCancelledError:
                outcome = run.cancelled_outcome()
            except asyncio.CancelledError:
                run.finish(run.cancelled_outcome())
                raise
            except Exception as e:
                logger.exception(f"Run {run.run_id} failed inside the engine")
                outcome = RunOutcome(succeeded=False, stderr=f"Internal error: {e}", failure=FailureKind.INTERNAL_ERROR)

            outcome = outcome.model_copy(update={"wall_clock_ms": int((time.monotonic() - started) * 1000)})
            logger.info(
                "Run finished",
                run_id=run.run_id,
                succeeded=outcome.succeeded,
                exit_code=outcome.exit_code,
                failure=outcome.failure.value if outcome.failure else None,
            )
            run.finish(outcome)

            # A ready dev server or a served static site stays owned by this run until it goes away
            if run.controller is not None and run.controller.is_alive:
                await run.controller.wait_closed()
            elif outcome.succeeded and outcome.static_root is not None:
                await run.stopped.wait()
            elif run.controller is not None:
                # Reap children the program left behind in its process group
                await run.controller.terminate()
        finally:
            await self._release(run)

    async def _execute(self, run: ActiveRun, tree: FileNode, options: RunOptions) -> RunOutcome:
        working_directory = await self._materialize(run, tree, options)
        run.check_cancelled()

        classification = classify(tree)
        kind = options.kind or classification.kind
        if kind == classification.kind:
            flavor = classification.flavor
            entry_file = options.entry_file or classification.entry_file
        else:
            flavor = DevServerFlavor.VITE if kind == ProjectKind.BUNDLER_DEV_SERVER else None
            entry_file = options.entry_file or resolve_entry_file(tree, kind)

        run.spec = RunSpec(
            run_id=run.run_id,
            kind=kind,
            flavor=flavor,
            entry_file=entry_file,
            working_directory=working_directory,
            timeout_ms=options.timeout_ms or self.config.default_timeout_ms(kind),
            env=options.env,
        )
        logger.info("Run classified", run_id=run.run_id, kind=kind.value, entry_file=entry_file)

        strategy = StrategyFactory.get_strategy(kind)

        run.preparing = True
        try:
            prepared = await strategy.prepare(run)
        finally:
            run.preparing = False
        run.check_cancelled()
        if not prepared.succeeded:
            return RunOutcome(
                succeeded=False,
                stdout=run.prelude_stdout,
                stderr=prepared.stderr,
                failure=FailureKind.DEPENDENCY_INSTALL_FAILED,
            )

        outcome = await strategy.start(run)
        return outcome.model_copy(
            update={
                "stdout": run.prelude_stdout + outcome.stdout,
                "stderr": run.prelude_stderr + outcome.stderr,
            }
        )

    async def _materialize(self, run: ActiveRun, tree: FileNode, options: RunOptions) -> Path:
        if options.working_directory is not None:
            return options.working_directory.resolve()

        run.temp_dir = Path(tempfile.mkdtemp(prefix=f"coreason-runner-{run.run_id[:8]}-"))
        await ProjectFileSystem(run.temp_dir).write_tree(tree)
        return run.temp_dir

    async def _release(self, run: ActiveRun) -> None:
        self.runs.pop(run.run_id, None)
        if run.temp_dir is not None and not self.config.keep_workdirs:
            await anyio.to_thread.run_sync(shutil.rmtree, run.temp_dir, True)
            run.temp_dir = None
