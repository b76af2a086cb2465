# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_runner

from coreason_runner.models import FailureKind, PrepareResult, RunOutcome
from coreason_runner.strategy import ExecutionStrategy, RunContext


class StaticSiteStrategy(ExecutionStrategy):
    """
    Static sites spawn nothing; the entry file is handed to an external file server.
    """

    async def prepare(self, context: RunContext) -> PrepareResult:
        return PrepareResult(succeeded=True, skipped=True)

    async def start(self, context: RunContext) -> RunOutcome:
        context.check_cancelled()
        spec = context.spec
        entry = spec.entry_file or "index.html"
        if not (spec.working_directory / entry).is_file():
            return RunOutcome(
                succeeded=False,
                stderr="No index.html found in project",
                failure=FailureKind.SPAWN_FAILED,
            )

        message = f"Static site ready: {entry}\n"
        await context.emit_stdout(message)
        return RunOutcome(succeeded=True, stdout=message, static_root=str(spec.working_directory / entry))
