# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_runner

from coreason_runner.models import DevServerFlavor, PrepareResult, RunOutcome
from coreason_runner.ports import find_free_port
from coreason_runner.readiness import BUNDLER_READINESS, FRAMEWORK_READINESS, ReadinessPredicate
from coreason_runner.strategies.common import ALREADY_INSTALLED_MESSAGE, run_installer
from coreason_runner.strategy import ExecutionStrategy, RunContext
from coreason_runner.utils.logger import logger

STARTUP_TIMEOUT_MESSAGE = "Dev server startup timed out"


class DevServerStrategy(ExecutionStrategy):
    """Starts a bundler dev server (Vite or Create React App) and waits for readiness."""

    default_readiness: ReadinessPredicate = BUNDLER_READINESS

    def __init__(self, readiness: ReadinessPredicate | None = None):
        """Initializes the DevServerStrategy.

        Args:
            readiness: Predicate deciding from live output that the server is
                up. Defaults to the strategy's known banner fragments.
        """
        self.readiness = readiness or self.default_readiness

    async def prepare(self, context: RunContext) -> PrepareResult:
        cwd = context.spec.working_directory
        if not (cwd / "package.json").is_file():
            return PrepareResult(succeeded=False, stderr="No package.json found")
        if (cwd / "node_modules").is_dir():
            await context.emit_stdout(ALREADY_INSTALLED_MESSAGE)
            return PrepareResult(succeeded=True, skipped=True, stdout=ALREADY_INSTALLED_MESSAGE)

        return await run_installer(context, [context.config.npm_executable, "install"])

    def command(self, context: RunContext, port: int) -> list[str]:
        npm = context.config.npm_executable
        if context.spec.flavor == DevServerFlavor.CLASSIC:
            return [npm, "start"]
        return [npm, "run", "dev", "--", "--port", str(port)]

    async def start(self, context: RunContext) -> RunOutcome:
        spec = context.spec
        config = context.config
        port = find_free_port(config.base_port, config.port_scan_limit)
        preview_address = f"http://{config.preview_host}:{port}"
        logger.info("Starting dev server", run_id=spec.run_id, port=port, kind=spec.kind.value)

        # PORT goes last: the preview address is derived from it
        env = {"BROWSER": "none", **spec.env, "PORT": str(port)}
        return await context.new_controller().execute(
            self.command(context, port),
            cwd=spec.working_directory,
            timeout_ms=spec.timeout_ms,
            env=env,
            readiness=self.readiness,
            preview_address=preview_address,
            timeout_message=STARTUP_TIMEOUT_MESSAGE,
        )


class FrameworkServerStrategy(DevServerStrategy):
    """Starts a Next.js dev server."""

    default_readiness = FRAMEWORK_READINESS

    def command(self, context: RunContext, port: int) -> list[str]:
        return [context.config.npm_executable, "run", "dev", "--", "--port", str(port)]
