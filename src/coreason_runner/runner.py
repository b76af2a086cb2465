# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_runner

from pathlib import Path

import anyio

from coreason_runner.classifier import classify
from coreason_runner.config import RunnerConfig
from coreason_runner.dispatcher import RunDispatcher
from coreason_runner.filesystem import ProjectFileSystem
from coreason_runner.models import Classification, FileNode, RunOptions, RunOutcome


class Runner:
    """Sync Facade for RunDispatcher (The Facade).

    Each call spins up its own event loop via anyio.run. A dispatcher lives
    only as long as one call, so a dev server that became ready, or a static site
    materialized from a tree, is torn down before the call returns. Use
    RunDispatcher directly to keep them alive.
    """

    def __init__(self, config: RunnerConfig | None = None):
        """Initializes the Runner facade.

        Args:
            config: Configuration for the engine.
        """
        self.config = config or RunnerConfig()

    def classify(self, tree: FileNode) -> Classification:
        """Classifies a project tree without running it."""
        return classify(tree)

    def run(self, tree: FileNode, options: RunOptions | None = None) -> RunOutcome:
        """Runs a project synchronously.

        Args:
            tree: The project to run.
            options: Timeout, environment and classification overrides.

        Returns:
            RunOutcome: The terminal outcome of the run.
        """
        return anyio.run(self._run, tree, options)

    def run_directory(self, path: Path, options: RunOptions | None = None) -> RunOutcome:
        """Runs a project that already lives on disk, in place.

        Args:
            path: The project's root directory.
            options: Timeout, environment and classification overrides.

        Returns:
            RunOutcome: The terminal outcome of the run.
        """
        return anyio.run(self._run_directory, path, options)

    async def _run(self, tree: FileNode, options: RunOptions | None) -> RunOutcome:
        async with RunDispatcher(self.config) as dispatcher:
            handle = await dispatcher.start_run(tree, options)
            await handle.aclose()
            return await handle.wait()

    async def _run_directory(self, path: Path, options: RunOptions | None) -> RunOutcome:
        tree = await ProjectFileSystem(path).load_tree()
        options = (options or RunOptions()).model_copy(update={"working_directory": path})
        return await self._run(tree, options)
