# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_runner

from typing import Sequence

from coreason_runner.models import PrepareResult
from coreason_runner.strategy import RunContext
from coreason_runner.utils.logger import logger

ALREADY_INSTALLED_MESSAGE = "Dependencies already installed\n"


async def run_installer(context: RunContext, command: Sequence[str]) -> PrepareResult:
    """Run a dependency installer as a timed subprocess of the run.

    The installer's output streams live like any other process output. A
    non-zero exit, a timeout or a cancel turns into a failed PrepareResult
    carrying the installer's stderr.
    """
    spec = context.spec
    logger.info("Installing dependencies", run_id=spec.run_id, installer=command[0])
    await context.emit_stdout("Installing dependencies...\n")

    timeout_ms = context.config.install_timeout_ms
    outcome = await context.new_controller().execute(
        command,
        cwd=spec.working_directory,
        timeout_ms=timeout_ms,
        timeout_message=f"Dependency installation timed out after {timeout_ms / 1000:g} seconds",
    )

    if outcome.succeeded:
        await context.emit_stdout("Dependencies installed successfully.\n\n")
        return PrepareResult(succeeded=True, stdout=outcome.stdout, stderr=outcome.stderr)

    logger.error(f"Dependency installation failed for run {spec.run_id} (exit code {outcome.exit_code})")
    stderr = outcome.stderr or f"Dependency installation failed with exit code {outcome.exit_code}"
    return PrepareResult(succeeded=False, stdout=outcome.stdout, stderr=stderr)
