# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_runner

import hashlib

from coreason_runner.models import PrepareResult, RunOutcome
from coreason_runner.strategies.common import ALREADY_INSTALLED_MESSAGE, run_installer
from coreason_runner.strategy import ExecutionStrategy, RunContext

REQUIREMENTS_FILE = "requirements.txt"
REQUIREMENTS_MARKER = ".coreason-runner/requirements.sha256"


class NodeScriptStrategy(ExecutionStrategy):
    """Runs a single Node.js script to completion."""

    async def prepare(self, context: RunContext) -> PrepareResult:
        cwd = context.spec.working_directory
        if not (cwd / "package.json").is_file() or (cwd / "node_modules").is_dir():
            return PrepareResult(succeeded=True, skipped=True)

        return await run_installer(context, [context.config.npm_executable, "install", "--legacy-peer-deps"])

    async def start(self, context: RunContext) -> RunOutcome:
        spec = context.spec
        return await context.new_controller().execute(
            [context.config.node_executable, spec.entry_file or "main.js"],
            cwd=spec.working_directory,
            timeout_ms=spec.timeout_ms,
            env=spec.env,
        )


class PythonScriptStrategy(ExecutionStrategy):
    """Runs a Python entry file to completion, installing requirements.txt first.

    A marker holding the sha256 of the installed requirements file lets later
    runs of the same working directory skip the install until the file changes.
    """

    async def prepare(self, context: RunContext) -> PrepareResult:
        cwd = context.spec.working_directory
        requirements = cwd / REQUIREMENTS_FILE
        if not requirements.is_file():
            return PrepareResult(succeeded=True, skipped=True)

        digest = hashlib.sha256(requirements.read_bytes()).hexdigest()
        marker = cwd / REQUIREMENTS_MARKER
        if marker.is_file() and marker.read_text(encoding="utf-8").strip() == digest:
            await context.emit_stdout(ALREADY_INSTALLED_MESSAGE)
            return PrepareResult(succeeded=True, skipped=True, stdout=ALREADY_INSTALLED_MESSAGE)

        result = await run_installer(
            context,
            [context.config.python_executable, "-m", "pip", "install", "-r", REQUIREMENTS_FILE, "--quiet"],
        )
        if result.succeeded:
            marker.parent.mkdir(parents=True, exist_ok=True)
            marker.write_text(digest, encoding="utf-8")
        return result

    async def start(self, context: RunContext) -> RunOutcome:
        spec = context.spec
        return await context.new_controller().execute(
            [context.config.python_executable, spec.entry_file or "main.py"],
            cwd=spec.working_directory,
            timeout_ms=spec.timeout_ms,
            env={"PYTHONUNBUFFERED": "1", **spec.env},
        )
