# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_runner

from abc import ABC, abstractmethod
from typing import Protocol

from coreason_runner.config import RunnerConfig
from coreason_runner.lifecycle import ProcessController
from coreason_runner.models import PrepareResult, RunOutcome, RunSpec


class RunContext(Protocol):
    """What a strategy may touch while preparing and starting a run."""

    spec: RunSpec
    config: RunnerConfig

    async def emit_stdout(self, text: str) -> None:
        """Send an engine message to the run's live output."""
        ...

    def new_controller(self) -> ProcessController:
        """Return a fresh controller that becomes the run's only live process handle."""
        ...

    def check_cancelled(self) -> None:
        """Raise if the run has been cancelled."""
        ...


class ExecutionStrategy(ABC):
    """
    Abstract base class for the ways a project kind is prepared and launched.
    Follows the Strategy Pattern.
    """

    @abstractmethod
    async def prepare(self, context: RunContext) -> PrepareResult:
        """Install the project's declared dependencies.

        Args:
            context: The run being prepared.

        Returns:
            PrepareResult: Whether the run may proceed to start, with the
            installer's captured output.
        """
        pass  # pragma: no cover

    @abstractmethod
    async def start(self, context: RunContext) -> RunOutcome:
        """Launch the project.

        Script strategies return when the program exits. Server strategies
        return as soon as the dev server reports readiness, leaving it running.

        Args:
            context: The run being started.

        Returns:
            RunOutcome: The terminal outcome of the run.
        """
        pass  # pragma: no cover
