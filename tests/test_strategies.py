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
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from coreason_runner.config import RunnerConfig
from coreason_runner.dispatcher import RunCancelledError
from coreason_runner.models import DevServerFlavor, FailureKind, PrepareResult, ProjectKind, RunOutcome, RunSpec
from coreason_runner.readiness import BUNDLER_READINESS, FRAMEWORK_READINESS
from coreason_runner.strategies import (
    DevServerStrategy,
    FrameworkServerStrategy,
    NodeScriptStrategy,
    PythonScriptStrategy,
    StaticSiteStrategy,
)
from coreason_runner.strategies.common import ALREADY_INSTALLED_MESSAGE, run_installer
from coreason_runner.strategies.server import STARTUP_TIMEOUT_MESSAGE
from coreason_runner.strategy import ExecutionStrategy


class FakeContext:
    def __init__(self, spec: RunSpec, config: RunnerConfig, outcome: RunOutcome | None = None) -> None:
        self.spec = spec
        self.config = config
        self.emitted: list[str] = []
        self.cancelled = False
        self.controller = MagicMock()
        self.controller.execute = AsyncMock(return_value=outcome or RunOutcome(succeeded=True, exit_code=0))

    async def emit_stdout(self, text: str) -> None:
        self.emitted.append(text)

    def new_controller(self) -> Any:
        return self.controller

    def check_cancelled(self) -> None:
        if self.cancelled:
            raise RunCancelledError(self.spec.run_id)


@pytest.fixture
def make_context(tmp_path: Path) -> Any:
    config = RunnerConfig(
        python_executable="/usr/bin/python3",
        node_executable="node",
        npm_executable="npm",
        install_timeout_ms=60_000,
        preview_host="localhost",
    )

    def build(
        kind: ProjectKind,
        entry_file: str | None = None,
        flavor: DevServerFlavor | None = None,
        env: dict[str, str] | None = None,
        outcome: RunOutcome | None = None,
    ) -> FakeContext:
        spec = RunSpec(
            run_id="run-1",
            kind=kind,
            flavor=flavor,
            entry_file=entry_file,
            working_directory=tmp_path,
            timeout_ms=5_000,
            env=env or {},
        )
        return FakeContext(spec, config, outcome)

    return build


def test_strategies_are_execution_strategies() -> None:
    for strategy in (
        NodeScriptStrategy(),
        PythonScriptStrategy(),
        DevServerStrategy(),
        FrameworkServerStrategy(),
        StaticSiteStrategy(),
    ):
        assert isinstance(strategy, ExecutionStrategy)


def test_execution_strategy_is_abstract() -> None:
    with pytest.raises(TypeError):
        ExecutionStrategy()  # type: ignore[abstract]


# run_installer


@pytest.mark.asyncio
async def test_run_installer_success(make_context: Any) -> None:
    context = make_context(ProjectKind.DEPENDENCY_MANAGED_SCRIPT, outcome=RunOutcome(succeeded=True, stdout="ok"))

    result = await run_installer(context, ["pip", "install"])

    assert result.succeeded
    assert result.stdout == "ok"
    assert context.emitted == ["Installing dependencies...\n", "Dependencies installed successfully.\n\n"]
    kwargs = context.controller.execute.call_args.kwargs
    assert kwargs["timeout_ms"] == 60_000
    assert kwargs["timeout_message"] == "Dependency installation timed out after 60 seconds"


@pytest.mark.asyncio
async def test_run_installer_failure_without_stderr(make_context: Any) -> None:
    context = make_context(
        ProjectKind.PLAIN_SCRIPT,
        outcome=RunOutcome(succeeded=False, exit_code=1, failure=FailureKind.NON_ZERO_EXIT),
    )

    result = await run_installer(context, ["npm", "install"])

    assert not result.succeeded
    assert result.stderr == "Dependency installation failed with exit code 1"
    assert context.emitted == ["Installing dependencies...\n"]


@pytest.mark.asyncio
async def test_run_installer_failure_keeps_stderr(make_context: Any) -> None:
    context = make_context(ProjectKind.PLAIN_SCRIPT, outcome=RunOutcome(succeeded=False, stderr="ERESOLVE"))
    result = await run_installer(context, ["npm", "install"])
    assert result.stderr == "ERESOLVE"


# Python


@pytest.mark.asyncio
async def test_python_prepare_skipped_without_requirements(make_context: Any) -> None:
    context = make_context(ProjectKind.DEPENDENCY_MANAGED_SCRIPT, entry_file="main.py")
    with patch("coreason_runner.strategies.script.run_installer", new_callable=AsyncMock) as installer:
        result = await PythonScriptStrategy().prepare(context)
    assert result.succeeded
    assert result.skipped
    installer.assert_not_called()


@pytest.mark.asyncio
async def test_python_prepare_installs_then_caches(make_context: Any, tmp_path: Path) -> None:
    (tmp_path / "requirements.txt").write_text("requests==2.31.0\n")
    context = make_context(ProjectKind.DEPENDENCY_MANAGED_SCRIPT)
    strategy = PythonScriptStrategy()

    with patch(
        "coreason_runner.strategies.script.run_installer",
        new_callable=AsyncMock,
        return_value=PrepareResult(succeeded=True),
    ) as installer:
        first = await strategy.prepare(context)
        second = await strategy.prepare(context)

    assert first.succeeded and not first.skipped
    assert second.skipped
    assert second.stdout == ALREADY_INSTALLED_MESSAGE
    assert context.emitted == [ALREADY_INSTALLED_MESSAGE]
    installer.assert_awaited_once()
    command = installer.call_args.args[1]
    assert command == ["/usr/bin/python3", "-m", "pip", "install", "-r", "requirements.txt", "--quiet"]


@pytest.mark.asyncio
async def test_python_prepare_reinstalls_when_requirements_change(make_context: Any, tmp_path: Path) -> None:
    requirements = tmp_path / "requirements.txt"
    requirements.write_text("requests\n")
    context = make_context(ProjectKind.DEPENDENCY_MANAGED_SCRIPT)
    strategy = PythonScriptStrategy()

    with patch(
        "coreason_runner.strategies.script.run_installer",
        new_callable=AsyncMock,
        return_value=PrepareResult(succeeded=True),
    ) as installer:
        await strategy.prepare(context)
        requirements.write_text("requests\nrich\n")
        await strategy.prepare(context)

    assert installer.await_count == 2


@pytest.mark.asyncio
async def test_python_prepare_failure_leaves_no_marker(make_context: Any, tmp_path: Path) -> None:
    (tmp_path / "requirements.txt").write_text("not-a-real-package==0\n")
    context = make_context(ProjectKind.DEPENDENCY_MANAGED_SCRIPT)

    with patch(
        "coreason_runner.strategies.script.run_installer",
        new_callable=AsyncMock,
        return_value=PrepareResult(succeeded=False, stderr="No matching distribution"),
    ):
        result = await PythonScriptStrategy().prepare(context)

    assert not result.succeeded
    assert result.stderr == "No matching distribution"
    assert not (tmp_path / ".coreason-runner").exists()


@pytest.mark.asyncio
async def test_python_start_command_and_env(make_context: Any) -> None:
    context = make_context(
        ProjectKind.DEPENDENCY_MANAGED_SCRIPT,
        entry_file="src/app.py",
        env={"PYTHONUNBUFFERED": "0", "API_KEY": "x"},
    )

    await PythonScriptStrategy().start(context)

    call = context.controller.execute.call_args
    assert call.args[0] == ["/usr/bin/python3", "src/app.py"]
    assert call.kwargs["timeout_ms"] == 5_000
    assert call.kwargs["env"] == {"PYTHONUNBUFFERED": "0", "API_KEY": "x"}


@pytest.mark.asyncio
async def test_python_start_defaults_unbuffered(make_context: Any) -> None:
    context = make_context(ProjectKind.DEPENDENCY_MANAGED_SCRIPT)
    await PythonScriptStrategy().start(context)
    call = context.controller.execute.call_args
    assert call.args[0] == ["/usr/bin/python3", "main.py"]
    assert call.kwargs["env"] == {"PYTHONUNBUFFERED": "1"}


# Node script


@pytest.mark.asyncio
async def test_node_prepare_skipped_without_manifest(make_context: Any) -> None:
    context = make_context(ProjectKind.PLAIN_SCRIPT)
    with patch("coreason_runner.strategies.script.run_installer", new_callable=AsyncMock) as installer:
        result = await NodeScriptStrategy().prepare(context)
    assert result.skipped
    installer.assert_not_called()


@pytest.mark.asyncio
async def test_node_prepare_skipped_with_node_modules(make_context: Any, tmp_path: Path) -> None:
    (tmp_path / "package.json").write_text("{}")
    (tmp_path / "node_modules").mkdir()
    context = make_context(ProjectKind.PLAIN_SCRIPT)
    with patch("coreason_runner.strategies.script.run_installer", new_callable=AsyncMock) as installer:
        result = await NodeScriptStrategy().prepare(context)
    assert result.skipped
    installer.assert_not_called()


@pytest.mark.asyncio
async def test_node_prepare_installs(make_context: Any, tmp_path: Path) -> None:
    (tmp_path / "package.json").write_text("{}")
    context = make_context(ProjectKind.PLAIN_SCRIPT)
    with patch(
        "coreason_runner.strategies.script.run_installer",
        new_callable=AsyncMock,
        return_value=PrepareResult(succeeded=True),
    ) as installer:
        await NodeScriptStrategy().prepare(context)
    assert installer.call_args.args[1] == ["npm", "install", "--legacy-peer-deps"]


@pytest.mark.asyncio
async def test_node_start_command(make_context: Any) -> None:
    context = make_context(ProjectKind.PLAIN_SCRIPT, entry_file="index.js", env={"A": "1"})
    await NodeScriptStrategy().start(context)
    call = context.controller.execute.call_args
    assert call.args[0] == ["node", "index.js"]
    assert call.kwargs["env"] == {"A": "1"}


# Dev servers


@pytest.mark.asyncio
async def test_dev_server_prepare_requires_manifest(make_context: Any) -> None:
    context = make_context(ProjectKind.BUNDLER_DEV_SERVER, flavor=DevServerFlavor.VITE)
    result = await DevServerStrategy().prepare(context)
    assert not result.succeeded
    assert result.stderr == "No package.json found"


@pytest.mark.asyncio
async def test_dev_server_prepare_skipped_with_node_modules(make_context: Any, tmp_path: Path) -> None:
    (tmp_path / "package.json").write_text("{}")
    (tmp_path / "node_modules").mkdir()
    context = make_context(ProjectKind.BUNDLER_DEV_SERVER, flavor=DevServerFlavor.VITE)
    result = await DevServerStrategy().prepare(context)
    assert result.skipped
    assert context.emitted == [ALREADY_INSTALLED_MESSAGE]


@pytest.mark.asyncio
async def test_dev_server_prepare_installs(make_context: Any, tmp_path: Path) -> None:
    (tmp_path / "package.json").write_text("{}")
    context = make_context(ProjectKind.BUNDLER_DEV_SERVER, flavor=DevServerFlavor.VITE)
    with patch(
        "coreason_runner.strategies.server.run_installer",
        new_callable=AsyncMock,
        return_value=PrepareResult(succeeded=True),
    ) as installer:
        await DevServerStrategy().prepare(context)
    assert installer.call_args.args[1] == ["npm", "install"]


def test_dev_server_commands(make_context: Any) -> None:
    strategy = DevServerStrategy()
    vite = make_context(ProjectKind.BUNDLER_DEV_SERVER, flavor=DevServerFlavor.VITE)
    classic = make_context(ProjectKind.BUNDLER_DEV_SERVER, flavor=DevServerFlavor.CLASSIC)

    assert strategy.command(vite, 3001) == ["npm", "run", "dev", "--", "--port", "3001"]
    assert strategy.command(classic, 3001) == ["npm", "start"]


def test_framework_server_command(make_context: Any) -> None:
    context = make_context(ProjectKind.FRAMEWORK_SERVER)
    assert FrameworkServerStrategy().command(context, 3002) == ["npm", "run", "dev", "--", "--port", "3002"]


def test_readiness_defaults() -> None:
    assert DevServerStrategy().readiness is BUNDLER_READINESS
    assert FrameworkServerStrategy().readiness is FRAMEWORK_READINESS
    custom = MagicMock()
    assert DevServerStrategy(readiness=custom).readiness is custom


@pytest.mark.asyncio
async def test_dev_server_start(make_context: Any) -> None:
    context = make_context(
        ProjectKind.BUNDLER_DEV_SERVER,
        flavor=DevServerFlavor.CLASSIC,
        env={"PORT": "9999", "BROWSER": "firefox", "NODE_ENV": "development"},
    )

    with patch("coreason_runner.strategies.server.find_free_port", return_value=4321):
        await DevServerStrategy().start(context)

    call = context.controller.execute.call_args
    assert call.args[0] == ["npm", "start"]
    assert call.kwargs["env"] == {"BROWSER": "firefox", "NODE_ENV": "development", "PORT": "4321"}
    assert call.kwargs["preview_address"] == "http://localhost:4321"
    assert call.kwargs["readiness"] is BUNDLER_READINESS
    assert call.kwargs["timeout_message"] == STARTUP_TIMEOUT_MESSAGE


# Static


@pytest.mark.asyncio
async def test_static_site(make_context: Any, tmp_path: Path) -> None:
    (tmp_path / "index.html").write_text("<h1>hi</h1>")
    context = make_context(ProjectKind.STATIC_SITE, entry_file="index.html")
    strategy = StaticSiteStrategy()

    prepared = await strategy.prepare(context)
    outcome = await strategy.start(context)

    assert prepared.skipped
    assert outcome.succeeded
    assert outcome.static_root == str(tmp_path / "index.html")
    assert outcome.exit_code is None
    assert context.emitted == ["Static site ready: index.html\n"]
    context.controller.execute.assert_not_called()


@pytest.mark.asyncio
async def test_static_site_without_index(make_context: Any) -> None:
    context = make_context(ProjectKind.STATIC_SITE, entry_file="index.html")
    outcome = await StaticSiteStrategy().start(context)
    assert not outcome.succeeded
    assert outcome.failure == FailureKind.SPAWN_FAILED
    assert outcome.stderr == "No index.html found in project"


@pytest.mark.asyncio
async def test_static_site_respects_cancel(make_context: Any, tmp_path: Path) -> None:
    (tmp_path / "index.html").write_text("<h1>hi</h1>")
    context = make_context(ProjectKind.STATIC_SITE, entry_file="index.html")
    context.cancelled = True

    with pytest.raises(RunCancelledError):
        await StaticSiteStrategy().start(context)

    assert context.emitted == []
